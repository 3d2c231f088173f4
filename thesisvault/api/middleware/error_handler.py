"""
Error Handling for ThesisVault API

Centralized error handling:
- Structured error responses
- Logging of errors
- Exception translation
"""

import traceback

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from thesisvault.api.middleware.logging import get_request_id
from thesisvault.errors import NotAuthenticatedError, ThesisVaultException
from thesisvault.storage.models import utcnow


def create_error_response(
    error: str,
    code: str,
    status_code: int,
    detail: str = None,
    headers: dict = None,
) -> JSONResponse:
    """Create standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "code": code,
            "detail": detail,
            "timestamp": utcnow().isoformat(),
        },
        headers=headers,
    )


def _summarize_validation(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{location}: {err.get('msg')}" if location else err.get("msg", ""))
    return "; ".join(parts)


def setup_exception_handlers(app):
    """Register exception handlers with FastAPI app."""

    @app.exception_handler(ThesisVaultException)
    async def thesisvault_exception_handler(request: Request, exc: ThesisVaultException):
        if exc.status_code >= 500:
            logger.error(f"[{get_request_id()}] ThesisVault error on {request.url.path}: {exc.code} - {exc.message} ({exc.detail})")
        else:
            logger.warning(f"[{get_request_id()}] ThesisVault error on {request.url.path}: {exc.code} - {exc.message}")

        headers = None
        if isinstance(exc, NotAuthenticatedError):
            headers = {"WWW-Authenticate": "Bearer"}

        return create_error_response(
            error=exc.message,
            code=exc.code,
            status_code=exc.status_code,
            detail=exc.detail,
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        detail = _summarize_validation(exc)
        logger.warning(f"Validation error on {request.url.path}: {detail}")
        return create_error_response(
            error="Validation Error",
            code="VALIDATION_ERROR",
            status_code=422,
            detail=detail,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return create_error_response(
            error=str(exc.detail),
            code="HTTP_ERROR",
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"[{get_request_id()}] Database error on {request.url.path}: {type(exc).__name__}: {exc}")
        return create_error_response(
            error="Database unavailable, try again later",
            code="UPSTREAM_ERROR",
            status_code=503,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"[{get_request_id()}] Unhandled exception: {type(exc).__name__}: {str(exc)}\n{traceback.format_exc()}"
        )
        # Internals stay in the log
        return create_error_response(
            error="Internal Server Error",
            code="INTERNAL_ERROR",
            status_code=500,
            detail="An unexpected error occurred",
        )
