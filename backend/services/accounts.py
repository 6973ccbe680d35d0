"""Registration, login, verification and profile management."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any, cast

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core import (
    PURPOSE_RESET_PASSWORD,
    PURPOSE_VERIFY_EMAIL,
    AuthError,
    ConflictError,
    DeliveryError,
    InternalError,
    InvalidTokenError,
    NotFoundError,
    TokenService,
    ValidationError,
    hash_password,
    needs_rehash,
    verify_password,
)
from db.errors import is_unique_violation
from models import Post, User

from .mailer import Mailer, password_reset_mail, verification_mail
from .media import MediaHost
from .schemas import (
    EditProfileCommand,
    EmailCommand,
    ImageUpload,
    LoginCommand,
    LoginResult,
    RegisterCommand,
    ResetPasswordCommand,
    UserProfile,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
AVATAR_MAX_BYTES = 500_000
INVALID_CREDENTIALS = "Invalid credentials."
INVALID_LINK = "Unauthorized. Invalid token"
MAIL_SENT = "Mail sent"

MailBuilder = Callable[[str, int], tuple[str, str]]


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def normalize_email(value: str) -> str:
    return value.strip().lower()


def _is_blank(*values: str | None) -> bool:
    return any(value is None or not value.strip() for value in values)


def _require_fields(message: str, *values: str | None) -> tuple[str, ...]:
    if _is_blank(*values):
        raise ValidationError(message)
    return tuple(cast(str, value) for value in values)


def _check_new_password(password: str | None, confirmation: str | None) -> str:
    password, confirmation = _require_fields("Fill in all fields.", password, confirmation)
    if len(password.strip()) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password should contain at least {MIN_PASSWORD_LENGTH} characters."
        )
    if password != confirmation:
        raise ValidationError("Passwords do not match.")
    return password


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(
        select(User).where(_eq(User.email, normalize_email(email))).limit(1)
    )
    return result.scalar_one_or_none()


async def _require_user(session: AsyncSession, user_id: str) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found.")
    return user


async def _commit(session: AsyncSession, *, failure_message: str) -> None:
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc, column="email"):
            raise ConflictError("Email already exists.") from exc
        raise InternalError(failure_message) from exc
    except Exception as exc:
        await session.rollback()
        raise InternalError(failure_message) from exc


async def _derived_post_counts(
    session: AsyncSession,
    user_ids: Sequence[str],
) -> dict[str, int]:
    if not user_ids:
        return {}
    creator_column = cast(Any, Post.creator_id)
    result = await session.execute(
        select(creator_column, func.count())
        .where(creator_column.in_(list(user_ids)))
        .group_by(creator_column)
    )
    return {creator_id: int(count) for creator_id, count in result.all()}


async def project_users(
    session: AsyncSession,
    users: Sequence[User],
    *,
    post_count_mode: str = "counter",
) -> list[UserProfile]:
    """Build public profiles, computing ``post_count`` when running derived."""
    profiles = [UserProfile.model_validate(user) for user in users]
    if post_count_mode != "derived":
        return profiles

    counts = await _derived_post_counts(session, [profile.id for profile in profiles])
    return [
        profile.model_copy(update={"post_count": counts.get(profile.id, 0)})
        for profile in profiles
    ]


async def project_user(
    session: AsyncSession,
    user: User,
    *,
    post_count_mode: str = "counter",
) -> UserProfile:
    (profile,) = await project_users(session, [user], post_count_mode=post_count_mode)
    return profile


async def register_user(session: AsyncSession, command: RegisterCommand) -> str:
    name, raw_email, _, _ = _require_fields(
        "Fill in all fields.",
        command.name,
        command.email,
        command.password,
        command.password2,
    )

    email = normalize_email(raw_email)
    if await get_user_by_email(session, email) is not None:
        raise ValidationError("Email already exists.")

    password = _check_new_password(command.password, command.password2)
    password_hash = await asyncio.to_thread(hash_password, password)

    session.add(
        User(
            name=name.strip(),
            email=email,
            password_hash=password_hash,
        )
    )
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc, column="email"):
            raise ValidationError("Email already exists.") from exc
        raise InternalError("User registration failed.") from exc
    except Exception as exc:
        await session.rollback()
        raise InternalError("User registration failed.") from exc

    logger.info("Registered user", extra={"email": email})
    return f"new user {email} registered"


async def login_user(
    session: AsyncSession,
    command: LoginCommand,
    *,
    tokens: TokenService,
) -> LoginResult:
    email, password = _require_fields("Fill in all fields.", command.email, command.password)

    user = await get_user_by_email(session, email)
    if user is None:
        raise AuthError(INVALID_CREDENTIALS)
    if not user.verified:
        raise AuthError("Please verify your email.")

    password_matches = await asyncio.to_thread(
        verify_password,
        password,
        user.password_hash,
    )
    if not password_matches:
        raise AuthError(INVALID_CREDENTIALS)

    if needs_rehash(user.password_hash):
        user.password_hash = await asyncio.to_thread(hash_password, password)
        await _commit(session, failure_message="User login failed.")

    issued = tokens.issue_session(user.id, user.name)
    logger.info("User logged in", extra={"user_id": user.id})
    return LoginResult(
        token=issued.token,
        id=user.id,
        name=user.name,
        expires_at=issued.expires_at,
    )


async def _send_action_link(
    session: AsyncSession,
    command: EmailCommand,
    *,
    purpose: str,
    link_path: str,
    build_mail: MailBuilder,
    tokens: TokenService,
    mailer: Mailer,
    frontend_url: str,
) -> str:
    (email,) = _require_fields("Fill in all fields.", command.email)

    user = await get_user_by_email(session, email)
    if user is None:
        raise NotFoundError("User doesn't exist.")

    issued = tokens.issue_action(user.id, purpose)
    link = f"{frontend_url.rstrip('/')}/{link_path}/{issued.token}"
    expires_minutes = int(tokens.action_ttl.total_seconds() // 60)
    subject, html = build_mail(link, expires_minutes)
    try:
        await mailer.send(user.email, subject, html)
    except Exception as exc:
        logger.warning(
            "Failed to send account mail",
            extra={"user_id": user.id, "purpose": purpose},
            exc_info=exc,
        )
        raise DeliveryError("Link cannot be sent.") from exc
    return MAIL_SENT


async def request_email_verification(
    session: AsyncSession,
    command: EmailCommand,
    *,
    tokens: TokenService,
    mailer: Mailer,
    frontend_url: str,
) -> str:
    return await _send_action_link(
        session,
        command,
        purpose=PURPOSE_VERIFY_EMAIL,
        link_path="verified",
        build_mail=verification_mail,
        tokens=tokens,
        mailer=mailer,
        frontend_url=frontend_url,
    )


async def request_password_reset(
    session: AsyncSession,
    command: EmailCommand,
    *,
    tokens: TokenService,
    mailer: Mailer,
    frontend_url: str,
) -> str:
    return await _send_action_link(
        session,
        command,
        purpose=PURPOSE_RESET_PASSWORD,
        link_path="reset-password",
        build_mail=password_reset_mail,
        tokens=tokens,
        mailer=mailer,
        frontend_url=frontend_url,
    )


async def _user_from_action_token(
    session: AsyncSession,
    token: str,
    *,
    purpose: str,
    tokens: TokenService,
) -> User:
    try:
        user_id = tokens.verify_action(token, purpose)
    except InvalidTokenError as exc:
        raise AuthError(INVALID_LINK, status_code=403) from exc
    user = await session.get(User, user_id)
    if user is None:
        raise AuthError(INVALID_LINK, status_code=403)
    return user


async def confirm_email_verification(
    session: AsyncSession,
    token: str,
    *,
    tokens: TokenService,
    post_count_mode: str = "counter",
) -> UserProfile:
    user = await _user_from_action_token(
        session,
        token,
        purpose=PURPOSE_VERIFY_EMAIL,
        tokens=tokens,
    )
    user.verified = True
    session.add(user)
    await _commit(session, failure_message="Cannot verify the mail.")
    await session.refresh(user)
    logger.info("Verified user email", extra={"user_id": user.id})
    return await project_user(session, user, post_count_mode=post_count_mode)


async def confirm_password_reset(
    session: AsyncSession,
    token: str,
    command: ResetPasswordCommand,
    *,
    tokens: TokenService,
    post_count_mode: str = "counter",
) -> UserProfile:
    user = await _user_from_action_token(
        session,
        token,
        purpose=PURPOSE_RESET_PASSWORD,
        tokens=tokens,
    )
    password = _check_new_password(command.password, command.password2)
    user.password_hash = await asyncio.to_thread(hash_password, password)
    session.add(user)
    await _commit(session, failure_message="User password can't be updated.")
    await session.refresh(user)
    logger.info("Reset user password", extra={"user_id": user.id})
    return await project_user(session, user, post_count_mode=post_count_mode)


async def change_avatar(
    session: AsyncSession,
    user_id: str,
    image: ImageUpload | None,
    *,
    media: MediaHost,
    max_bytes: int = AVATAR_MAX_BYTES,
    post_count_mode: str = "counter",
) -> UserProfile:
    if image is None or image.size == 0:
        raise ValidationError("Please choose an image.")
    if image.size > max_bytes:
        raise ValidationError(
            f"Profile picture too big. Should be less than {max_bytes // 1000}kb."
        )

    user = await _require_user(session, user_id)
    try:
        prepared = await media.prepare(image.data)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    previous_avatar_url = user.avatar_url
    if previous_avatar_url:
        try:
            await media.delete(previous_avatar_url)
        except Exception as cleanup_error:
            logger.warning(
                "Failed to delete previous avatar",
                extra={"avatar_url": previous_avatar_url},
                exc_info=cleanup_error,
            )

    try:
        avatar_url = await media.upload(prepared)
    except Exception as exc:
        raise InternalError("Failed to change avatar.") from exc

    user.avatar_url = avatar_url
    session.add(user)
    try:
        await session.commit()
    except Exception as exc:
        await session.rollback()
        try:
            await media.delete(avatar_url)
        except Exception as cleanup_error:
            logger.warning(
                "Failed to cleanup uploaded avatar after commit failure",
                extra={"avatar_url": avatar_url},
                exc_info=cleanup_error,
            )
        raise InternalError("Failed to change avatar.") from exc
    await session.refresh(user)
    return await project_user(session, user, post_count_mode=post_count_mode)


async def edit_profile(
    session: AsyncSession,
    user_id: str,
    command: EditProfileCommand,
    *,
    post_count_mode: str = "counter",
) -> UserProfile:
    name, raw_email, current_password, new_password = _require_fields(
        "Fill in all details.",
        command.name,
        command.email,
        command.current_password,
        command.new_password,
    )
    if new_password != command.confirm_new_password:
        raise ValidationError("New passwords do not match.")

    user = await _require_user(session, user_id)

    email = normalize_email(raw_email)
    owner = await get_user_by_email(session, email)
    if owner is not None and owner.id != user.id:
        raise ConflictError("Email already exists.")

    password_matches = await asyncio.to_thread(
        verify_password,
        current_password,
        user.password_hash,
    )
    if not password_matches:
        raise AuthError("Invalid current password.")

    user.name = name.strip()
    user.email = email
    user.password_hash = await asyncio.to_thread(hash_password, new_password)
    session.add(user)
    await _commit(session, failure_message="Failed to update user information.")
    await session.refresh(user)
    logger.info("Updated user profile", extra={"user_id": user.id})
    return await project_user(session, user, post_count_mode=post_count_mode)


async def get_profile(
    session: AsyncSession,
    user_id: str,
    *,
    post_count_mode: str = "counter",
) -> UserProfile:
    user = await _require_user(session, user_id)
    return await project_user(session, user, post_count_mode=post_count_mode)


async def list_authors(
    session: AsyncSession,
    *,
    post_count_mode: str = "counter",
) -> list[UserProfile]:
    created_at_column = cast(Any, User.created_at)
    result = await session.execute(select(User).order_by(created_at_column.asc()))
    return await project_users(
        session,
        result.scalars().all(),
        post_count_mode=post_count_mode,
    )
