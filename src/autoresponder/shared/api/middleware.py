"""
Shared API Middleware
======================

Request context middleware and the exception handlers for the FastAPI
application.

Every error leaves the API as `{"error": str, "correlation_id": str}`;
`debug_info` is added only when the service runs with `debug=True`.
"""

import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from autoresponder.core import ApplicationException
from autoresponder.shared.infrastructure.logging import get_logger, correlation_id_var

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Correlation id, timing and an access log line per request.

    The id comes from `X-Correlation-ID` when the caller sends one. It is
    stored on request.state for the error handlers and in a context
    variable so log lines from the pipeline carry it too.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = correlation_id_var.set(correlation_id)
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "error": str(e),
                    "response_time_ms": int((time.perf_counter() - start) * 1000),
                }
            )
            raise
        else:
            elapsed = time.perf_counter() - start
            logger.info(
                "Request completed",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "response_time_ms": int(elapsed * 1000),
                }
            )
            response.headers[CORRELATION_HEADER] = correlation_id
            response.headers["X-Response-Time"] = f"{elapsed:.3f}s"
            return response
        finally:
            correlation_id_var.reset(token)


def _is_debug(request: Request) -> bool:
    return bool(getattr(getattr(request.app.state, "settings", None), "debug", False))


def error_response(
    request: Request,
    status_code: int,
    message: str,
    exc: Optional[Exception] = None
) -> JSONResponse:
    """Build the stable error body."""
    content = {
        "error": message,
        "correlation_id": getattr(request.state, "correlation_id", "unknown"),
    }
    if exc is not None and _is_debug(request):
        content["debug_info"] = repr(exc)
    return JSONResponse(status_code=status_code, content=content)


async def application_exception_handler(
    request: Request,
    exc: ApplicationException
) -> JSONResponse:
    """Map the application exception taxonomy onto HTTP status codes."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        "Request rejected",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": exc.message,
            "status_code": exc.status_code,
        }
    )
    return error_response(request, exc.status_code, exc.message, exc)


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """Report body/query validation failures as 400s with a readable message."""
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    message = "; ".join(parts) or "Invalid request"
    return error_response(request, 400, message, exc)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Global exception handler for unhandled exceptions.

    Returns consistent error responses for all exceptions.
    """
    logger.error(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_type": type(exc).__name__,
            "error_message": str(exc)
        }
    )
    return error_response(request, 500, "Internal server error", exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Route-level HTTP errors (unknown path, 503 from a missing service) in the same shape."""
    return error_response(request, exc.status_code, str(exc.detail))
