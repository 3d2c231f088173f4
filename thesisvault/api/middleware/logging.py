"""
Request/Response logging middleware.

- Request timing
- Correlation IDs for tracing
- Redaction of credentials in logged bodies
"""

import json
import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Set

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

logger = logging.getLogger("thesisvault.api")


@dataclass
class LoggingConfig:
    """Configuration for request logging."""

    enabled: bool = True
    log_request_body: bool = False
    max_body_log_size: int = 10000

    excluded_paths: Set[str] = field(default_factory=lambda: {
        "/health",
        "/favicon.ico",
    })

    # Fields to redact in request bodies
    redacted_fields: Set[str] = field(default_factory=lambda: {
        "password",
        "current_password",
        "new_password",
        "token",
        "access_token",
        "secret",
    })

    # Slow request threshold (seconds)
    slow_request_threshold: float = 2.0

    request_id_header: str = "X-Request-ID"


class StructuredLogFormatter(logging.Formatter):
    """JSON formatter for log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if hasattr(record, "request_data"):
            log_data["request"] = record.request_data
        if hasattr(record, "duration_ms"):
            log_data["duration_ms"] = record.duration_ms

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def redact_sensitive_data(
    data: Any,
    redacted_fields: Set[str],
    replacement: str = "[REDACTED]",
) -> Any:
    """Recursively redact sensitive fields from a parsed body."""
    if isinstance(data, dict):
        return {
            key: replacement if key.lower() in redacted_fields else redact_sensitive_data(value, redacted_fields, replacement)
            for key, value in data.items()
        }
    elif isinstance(data, list):
        return [redact_sensitive_data(item, redacted_fields, replacement) for item in data]
    return data


def get_request_id() -> str:
    """Get current request ID from context."""
    return request_id_var.get()


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request with status and timing."""

    def __init__(self, app: FastAPI, config: Optional[LoggingConfig] = None):
        super().__init__(app)
        self.config = config or LoggingConfig()

    async def _get_request_body(self, request: Request) -> Optional[str]:
        body = await request.body()
        if not body:
            return None
        if len(body) > self.config.max_body_log_size:
            return f"[BODY TOO LARGE: {len(body)} bytes]"

        try:
            parsed = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            # Form posts (the token endpoint) may carry passwords.
            return "[NON-JSON BODY]"

        return json.dumps(redact_sensitive_data(parsed, self.config.redacted_fields))

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.config.request_id_header) or str(uuid.uuid4())[:8]
        request_id_var.set(request_id)

        if not self.config.enabled or request.url.path in self.config.excluded_paths:
            response = await call_next(request)
            response.headers[self.config.request_id_header] = request_id
            return response

        start_time = time.time()

        request_data = {
            "method": request.method,
            "path": request.url.path,
            "query": str(request.url.query) if request.url.query else None,
            "client_ip": request.client.host if request.client else None,
        }

        if self.config.log_request_body:
            body = await self._get_request_body(request)
            if body:
                request_data["body"] = body

        response = await call_next(request)

        duration = time.time() - start_time
        duration_ms = round(duration * 1000, 2)

        response.headers[self.config.request_id_header] = request_id

        if response.status_code >= 500:
            log_level = logging.ERROR
        elif response.status_code >= 400 or duration > self.config.slow_request_threshold:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        message = f"{request.method} {request.url.path} -> {response.status_code} ({duration_ms}ms)"
        if duration > self.config.slow_request_threshold:
            message = f"[SLOW] {message}"

        logger.log(log_level, message, extra={"request_data": request_data, "duration_ms": duration_ms})

        return response


def setup_logging(
    app: FastAPI,
    config: Optional[LoggingConfig] = None,
    structured: bool = True,
) -> None:
    """
    Configure logging middleware and formatters.

    Args:
        app: FastAPI application instance.
        config: Logging configuration.
        structured: Use JSON structured logging format.
    """
    if config is None:
        config = LoggingConfig()

    if structured:
        api_logger = logging.getLogger("thesisvault")
        if not any(isinstance(h.formatter, StructuredLogFormatter) for h in api_logger.handlers):
            handler = logging.StreamHandler()
            handler.setFormatter(StructuredLogFormatter())
            api_logger.addHandler(handler)
        api_logger.setLevel(logging.INFO)

    app.add_middleware(RequestLoggingMiddleware, config=config)
