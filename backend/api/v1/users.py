"""Account and profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Identity, get_current_identity, get_db, get_mailer, get_media_host, get_tokens
from core import TokenService, settings
from services import Mailer, MediaHost
from services import accounts
from services.schemas import (
    EditProfileCommand,
    EmailCommand,
    LoginCommand,
    LoginResult,
    RegisterCommand,
    ResetPasswordCommand,
    UserProfile,
)
from .common import MessageResponse, read_image

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=MessageResponse)
async def register(
    payload: RegisterCommand,
    session: AsyncSession = Depends(get_db),
) -> MessageResponse:
    message = await accounts.register_user(session, payload)
    return MessageResponse(message=message)


@router.post("/login", response_model=LoginResult)
async def login(
    payload: LoginCommand,
    session: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
) -> LoginResult:
    """Exchange verified credentials for a session token."""
    return await accounts.login_user(session, payload, tokens=tokens)


@router.get("", response_model=list[UserProfile])
async def list_authors(session: AsyncSession = Depends(get_db)) -> list[UserProfile]:
    """List every registered author in sign-up order."""
    return await accounts.list_authors(session, post_count_mode=settings.post_count_mode)


@router.post("/change-avatar", response_model=UserProfile)
async def change_avatar(
    avatar: UploadFile | None = File(default=None),
    session: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    media: MediaHost = Depends(get_media_host),
) -> UserProfile:
    """Replace the authenticated user's avatar."""
    image = await read_image(avatar)
    return await accounts.change_avatar(
        session,
        identity.id,
        image,
        media=media,
        max_bytes=settings.avatar_max_bytes,
        post_count_mode=settings.post_count_mode,
    )


@router.patch("/edit-user", response_model=UserProfile)
async def edit_user(
    payload: EditProfileCommand,
    session: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> UserProfile:
    """Update the authenticated user's name, email and password."""
    return await accounts.edit_profile(
        session,
        identity.id,
        payload,
        post_count_mode=settings.post_count_mode,
    )


@router.post("/forgotPassword", response_model=MessageResponse)
async def forgot_password(
    payload: EmailCommand,
    session: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    """Mail a password-reset link to a registered address."""
    message = await accounts.request_password_reset(
        session,
        payload,
        tokens=tokens,
        mailer=mailer,
        frontend_url=settings.frontend_url,
    )
    return MessageResponse(message=message)


@router.patch("/resetPassword/{token}", response_model=UserProfile)
async def reset_password(
    token: str,
    payload: ResetPasswordCommand,
    session: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
) -> UserProfile:
    return await accounts.confirm_password_reset(
        session,
        token,
        payload,
        tokens=tokens,
        post_count_mode=settings.post_count_mode,
    )


@router.post("/verify", response_model=MessageResponse)
async def request_verification(
    payload: EmailCommand,
    session: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
    mailer: Mailer = Depends(get_mailer),
) -> MessageResponse:
    message = await accounts.request_email_verification(
        session,
        payload,
        tokens=tokens,
        mailer=mailer,
        frontend_url=settings.frontend_url,
    )
    return MessageResponse(message=message)


@router.patch("/verified/{token}", response_model=UserProfile)
async def confirm_verification(
    token: str,
    session: AsyncSession = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
) -> UserProfile:
    """Mark the account behind a verification link as verified."""
    return await accounts.confirm_email_verification(
        session,
        token,
        tokens=tokens,
        post_count_mode=settings.post_count_mode,
    )


@router.get("/{user_id}", response_model=UserProfile)
async def get_user(
    user_id: str,
    session: AsyncSession = Depends(get_db),
) -> UserProfile:
    """Fetch a user's public profile."""
    return await accounts.get_profile(
        session,
        user_id,
        post_count_mode=settings.post_count_mode,
    )
