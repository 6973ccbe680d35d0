"""Post creation, editing, deletion and listing."""

from __future__ import annotations

import logging
from typing import Any, cast

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import (
    ForbiddenError,
    InternalError,
    NotFoundError,
    PayloadTooLarge,
    ValidationError,
)
from models import Post, PostCategory, User

from .media import MediaHost, PreparedImage
from .schemas import CreatePostCommand, EditPostCommand, ImageUpload, PostView

logger = logging.getLogger(__name__)

THUMBNAIL_MAX_BYTES = 2_000_000
# Replacing a thumbnail accepts larger files than creating a post.
THUMBNAIL_EDIT_MAX_BYTES = 3_000_000
MIN_EDIT_DESCRIPTION_LENGTH = 12
SUPPORTED_CATEGORIES = frozenset(category.value for category in PostCategory)


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def _format_megabytes(limit: int) -> str:
    return f"{limit / 1_000_000:g}MB"


def _require_category(category: str) -> str:
    normalized = category.strip()
    if normalized not in SUPPORTED_CATEGORIES:
        raise ValidationError(f"{normalized} is not a supported category.")
    return normalized


def _require_thumbnail_size(image: ImageUpload, max_bytes: int, message: str) -> None:
    if image.size > max_bytes:
        raise PayloadTooLarge(message.format(limit=_format_megabytes(max_bytes)))


async def _prepare_thumbnail(media: MediaHost, image: ImageUpload) -> PreparedImage:
    try:
        return await media.prepare(image.data)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


async def _upload_thumbnail(media: MediaHost, image: PreparedImage, *, failure_message: str) -> str:
    try:
        return await media.upload(image)
    except Exception as exc:
        raise InternalError(failure_message) from exc


async def _adjust_post_count(session: AsyncSession, user_id: str, delta: int) -> None:
    """Apply ``delta`` to the cached counter in its own commit.

    The post write has already been committed when this runs, so a failure
    here leaves ``post_count`` out of step with the posts table.
    """
    post_count_column = cast(Any, User.post_count)
    try:
        await session.execute(
            update(User)
            .where(_eq(User.id, user_id))
            .values(post_count=post_count_column + delta)
        )
        await session.commit()
    except Exception as exc:
        await session.rollback()
        logger.error(
            "Failed to adjust post count",
            extra={"user_id": user_id, "delta": delta},
            exc_info=exc,
        )
        raise InternalError("Post saved but the author's post count could not be updated.") from exc


async def _require_post(session: AsyncSession, post_id: str) -> Post:
    post = await session.get(Post, post_id)
    if post is None:
        raise NotFoundError("Post not found.")
    return post


async def create_post(
    session: AsyncSession,
    user_id: str,
    command: CreatePostCommand,
    *,
    media: MediaHost,
    max_bytes: int = THUMBNAIL_MAX_BYTES,
) -> PostView:
    thumbnail = command.thumbnail
    if (
        _is_blank(command.title)
        or _is_blank(command.category)
        or _is_blank(command.description)
        or thumbnail is None
        or thumbnail.size == 0
    ):
        raise ValidationError("Fill in all fields and choose a thumbnail.")
    category = _require_category(cast(str, command.category))
    _require_thumbnail_size(
        thumbnail,
        max_bytes,
        "Thumbnail too big. File should be less than {limit}.",
    )

    if await session.get(User, user_id) is None:
        raise NotFoundError("User not found.")

    prepared = await _prepare_thumbnail(media, thumbnail)
    thumbnail_url = await _upload_thumbnail(
        media,
        prepared,
        failure_message="Post couldn't be created.",
    )

    post = Post(
        title=cast(str, command.title).strip(),
        category=category,
        description=cast(str, command.description),
        thumbnail_url=thumbnail_url,
        creator_id=user_id,
    )
    session.add(post)
    try:
        await session.commit()
    except Exception as exc:
        await session.rollback()
        # The upload is left in place; it has no post referencing it.
        logger.error(
            "Post commit failed after thumbnail upload",
            extra={"thumbnail_url": thumbnail_url, "user_id": user_id},
            exc_info=exc,
        )
        raise InternalError("Post couldn't be created.") from exc
    await session.refresh(post)

    await _adjust_post_count(session, user_id, 1)
    logger.info("Created post", extra={"post_id": post.id, "user_id": user_id})
    return PostView.model_validate(post)


async def edit_post(
    session: AsyncSession,
    post_id: str,
    caller_id: str,
    command: EditPostCommand,
    *,
    media: MediaHost,
    max_bytes: int = THUMBNAIL_EDIT_MAX_BYTES,
) -> PostView:
    if (
        _is_blank(command.title)
        or _is_blank(command.category)
        or command.description is None
        or len(command.description) < MIN_EDIT_DESCRIPTION_LENGTH
    ):
        raise ValidationError("Fill in all fields.")
    category = _require_category(cast(str, command.category))

    post = await _require_post(session, post_id)
    if post.creator_id != caller_id:
        raise ForbiddenError("Couldn't update post.")

    thumbnail = command.thumbnail
    if thumbnail is not None and thumbnail.size > 0:
        _require_thumbnail_size(
            thumbnail,
            max_bytes,
            "Thumbnail too big. Should be less than {limit}.",
        )
        prepared = await _prepare_thumbnail(media, thumbnail)
        try:
            await media.delete(post.thumbnail_url)
        except Exception as exc:
            raise InternalError("Couldn't update post.") from exc
        post.thumbnail_url = await _upload_thumbnail(
            media,
            prepared,
            failure_message="Couldn't update post.",
        )

    post.title = cast(str, command.title).strip()
    post.category = category
    post.description = command.description
    session.add(post)
    try:
        await session.commit()
    except Exception as exc:
        await session.rollback()
        raise InternalError("Couldn't update post.") from exc
    await session.refresh(post)
    logger.info("Updated post", extra={"post_id": post.id})
    return PostView.model_validate(post)


async def delete_post(
    session: AsyncSession,
    post_id: str,
    caller_id: str,
    *,
    media: MediaHost,
) -> str:
    if _is_blank(post_id):
        raise NotFoundError("Post unavailable.")

    post = await _require_post(session, post_id)
    if post.creator_id != caller_id:
        raise ForbiddenError("Post couldn't be deleted.")

    try:
        await media.delete(post.thumbnail_url)
    except Exception as exc:
        raise InternalError("Post couldn't be deleted.") from exc

    creator_id = post.creator_id
    await session.delete(post)
    try:
        await session.commit()
    except Exception as exc:
        await session.rollback()
        raise InternalError("Post couldn't be deleted.") from exc

    # No floor: an already inconsistent counter may go negative.
    await _adjust_post_count(session, creator_id, -1)
    logger.info("Deleted post", extra={"post_id": post_id, "user_id": creator_id})
    return f"Post {post_id} deleted"


async def list_posts(
    session: AsyncSession,
    *,
    limit: int | None = None,
    offset: int = 0,
) -> list[PostView]:
    query = select(Post).order_by(
        _desc(Post.updated_at),
        _desc(Post.created_at),
    )
    if offset > 0:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)
    result = await session.execute(query)
    return [PostView.model_validate(post) for post in result.scalars().all()]


async def get_post(session: AsyncSession, post_id: str) -> PostView:
    post = await _require_post(session, post_id)
    return PostView.model_validate(post)


async def list_posts_by_category(session: AsyncSession, category: str) -> list[PostView]:
    result = await session.execute(
        select(Post)
        .where(_eq(Post.category, category))
        .order_by(_desc(Post.created_at))
    )
    return [PostView.model_validate(post) for post in result.scalars().all()]


async def list_posts_by_creator(session: AsyncSession, user_id: str) -> list[PostView]:
    result = await session.execute(
        select(Post)
        .where(_eq(Post.creator_id, user_id))
        .order_by(_desc(Post.created_at))
    )
    return [PostView.model_validate(post) for post in result.scalars().all()]
