"""Application error taxonomy.

Every error carries the HTTP status it renders with. Handlers registered in
``app.create_app`` turn them into ``{"message": ...}`` JSON bodies.
"""

from __future__ import annotations

from fastapi import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An unknown error occurred"

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    default_message = "Fill in all fields."


class AuthError(AppError):
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    default_message = "Invalid credentials."


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized. No token"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(AppError):
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    default_message = "Email already exists."


class PayloadTooLarge(AppError):
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    default_message = "File too big."


class DeliveryError(AppError):
    default_message = "Link cannot be sent."


class InvalidTokenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Unauthorized. Invalid token"


class InternalError(AppError):
    pass


__all__ = [
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
]
