"""Post creation, editing and listing endpoints."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Identity, get_current_identity, get_db, get_media_host
from core import settings
from services import MediaHost
from services import posts as post_service
from services.schemas import CreatePostCommand, EditPostCommand, PostView
from .common import MessageResponse, read_image
from .pagination import MAX_PAGE_SIZE, fetch_limit, paginate

router = APIRouter(prefix="/posts", tags=["posts"])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PostView)
async def create_post(
    title: str | None = Form(default=None),
    category: str | None = Form(default=None),
    description: str | None = Form(default=None),
    thumbnail: UploadFile | None = File(default=None),
    session: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    media: MediaHost = Depends(get_media_host),
) -> PostView:
    """Create a post owned by the authenticated user."""
    command = CreatePostCommand(
        title=title,
        category=category,
        description=description,
        thumbnail=await read_image(thumbnail),
    )
    return await post_service.create_post(
        session,
        identity.id,
        command,
        media=media,
        max_bytes=settings.thumbnail_max_bytes,
    )


@router.get("", response_model=list[PostView])
async def list_posts(
    response: Response,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    session: AsyncSession = Depends(get_db),
) -> list[PostView]:
    """List posts, most recently updated first."""
    posts = await post_service.list_posts(
        session,
        limit=fetch_limit(limit),
        offset=offset,
    )
    return paginate(response, posts, offset=offset, limit=limit)


@router.get("/categories/{category}", response_model=list[PostView])
async def list_category_posts(
    category: str,
    session: AsyncSession = Depends(get_db),
) -> list[PostView]:
    return await post_service.list_posts_by_category(session, category)


@router.get("/users/{user_id}", response_model=list[PostView])
async def list_user_posts(
    user_id: str,
    session: AsyncSession = Depends(get_db),
) -> list[PostView]:
    return await post_service.list_posts_by_creator(session, user_id)


@router.get("/{post_id}", response_model=PostView)
async def get_post(
    post_id: str,
    session: AsyncSession = Depends(get_db),
) -> PostView:
    return await post_service.get_post(session, post_id)


@router.patch("/{post_id}", response_model=PostView)
async def update_post(
    post_id: str,
    title: str | None = Form(default=None),
    category: str | None = Form(default=None),
    description: str | None = Form(default=None),
    thumbnail: UploadFile | None = File(default=None),
    session: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    media: MediaHost = Depends(get_media_host),
) -> PostView:
    """Edit a post owned by the caller; a new thumbnail is optional."""
    command = EditPostCommand(
        title=title,
        category=category,
        description=description,
        thumbnail=await read_image(thumbnail),
    )
    return await post_service.edit_post(
        session,
        post_id,
        identity.id,
        command,
        media=media,
        max_bytes=settings.thumbnail_edit_max_bytes,
    )


@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: str,
    session: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    media: MediaHost = Depends(get_media_host),
) -> MessageResponse:
    """Delete a post owned by the caller, along with its thumbnail."""
    message = await post_service.delete_post(session, post_id, identity.id, media=media)
    return MessageResponse(message=message)
