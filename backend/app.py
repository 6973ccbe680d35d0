"""FastAPI application factory."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.v1 import posts, users
from core import AppError, settings

logger = logging.getLogger(__name__)

API_PREFIX = "/api"
UNKNOWN_ERROR_MESSAGE = "An unknown error occurred"


def _message(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message}, headers=headers)


async def handle_app_error(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, AppError):  # pragma: no cover - registered for AppError only
        raise exc
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error(
            "Request failed",
            extra={"path": request.url.path, "error": exc.message},
            exc_info=exc.__cause__ or exc,
        )
    return _message(exc.status_code, exc.message)


async def handle_http_error(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, StarletteHTTPException):  # pragma: no cover
        raise exc
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        return _message(exc.status_code, f"Not Found - {request.url.path}")
    return _message(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def handle_request_validation_error(request: Request, exc: Exception) -> JSONResponse:
    if not isinstance(exc, RequestValidationError):  # pragma: no cover
        raise exc
    errors = exc.errors()
    message = "Invalid request."
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    return _message(status.HTTP_422_UNPROCESSABLE_CONTENT, message)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", extra={"path": request.url.path}, exc_info=exc)
    return _message(status.HTTP_500_INTERNAL_SERVER_ERROR, UNKNOWN_ERROR_MESSAGE)


def create_app() -> FastAPI:
    application = FastAPI(
        title="Blog API",
        description="Accounts, email verification and posts with image thumbnails",
        version="0.1.0",
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.add_exception_handler(AppError, handle_app_error)
    application.add_exception_handler(StarletteHTTPException, handle_http_error)
    application.add_exception_handler(RequestValidationError, handle_request_validation_error)
    application.add_exception_handler(Exception, handle_unexpected_error)

    application.include_router(users.router, prefix=API_PREFIX)
    application.include_router(posts.router, prefix=API_PREFIX)

    @application.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "environment": settings.app_env}

    return application


app = create_app()
