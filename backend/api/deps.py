"""FastAPI dependencies: database session, collaborators and the request gate."""

from __future__ import annotations

from collections.abc import AsyncIterator
from functools import lru_cache

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core import (
    ForbiddenError,
    InvalidTokenError,
    SessionClaim,
    TokenService,
    UnauthorizedError,
    get_token_service,
    settings,
)
from db import get_session
from services import Mailer, MediaHost, MinioMediaHost, SmtpMailer

bearer_scheme = HTTPBearer(auto_error=False)

Identity = SessionClaim


async def get_db() -> AsyncIterator[AsyncSession]:
    async for session in get_session():
        yield session


def get_tokens() -> TokenService:
    return get_token_service()


@lru_cache
def get_media_host() -> MediaHost:
    return MinioMediaHost.from_settings(settings)


@lru_cache
def get_mailer() -> Mailer:
    return SmtpMailer.from_settings(settings)


def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    tokens: TokenService = Depends(get_tokens),
) -> Identity:
    """Resolve the bearer token into the caller's identity.

    A missing token is a 401; a token that fails signature or expiry checks
    is a 403.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Unauthorized. No token")
    try:
        return tokens.verify_session(credentials.credentials)
    except InvalidTokenError as exc:
        raise ForbiddenError("Unauthorized. Invalid token") from exc
