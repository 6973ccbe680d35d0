"""Core configuration, errors and security primitives."""

from .config import Settings, settings
from .errors import (
    AppError,
    AuthError,
    ConflictError,
    DeliveryError,
    ForbiddenError,
    InternalError,
    InvalidTokenError,
    NotFoundError,
    PayloadTooLarge,
    UnauthorizedError,
    ValidationError,
)
from .security import (
    PURPOSE_RESET_PASSWORD,
    PURPOSE_VERIFY_EMAIL,
    IssuedToken,
    SessionClaim,
    TokenService,
    get_token_service,
    hash_password,
    needs_rehash,
    verify_password,
)

__all__ = [
    "Settings",
    "settings",
    "AppError",
    "AuthError",
    "ConflictError",
    "DeliveryError",
    "ForbiddenError",
    "InternalError",
    "InvalidTokenError",
    "NotFoundError",
    "PayloadTooLarge",
    "UnauthorizedError",
    "ValidationError",
    "PURPOSE_RESET_PASSWORD",
    "PURPOSE_VERIFY_EMAIL",
    "IssuedToken",
    "SessionClaim",
    "TokenService",
    "get_token_service",
    "hash_password",
    "needs_rehash",
    "verify_password",
]
