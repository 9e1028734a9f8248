"""HTTP middleware: request ids, request logging, slow-request detection and last-resort errors."""

import time
import uuid
from datetime import datetime
from typing import Callable
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .exceptions import VaultXError, create_error_response
from .logging import get_logger, set_logging_context, clear_logging_context

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time"

_SECRET_HEADERS = ("authorization", "cookie", "apikey")


def internal_error_body(error: Exception, request_id: str) -> dict:
    """Body for failures that are not VaultXError; the exception text is not exposed."""
    return {
        "error": "InternalServerError",
        "message": "An unexpected error occurred",
        "details": {
            "error_type": type(error).__name__,
            "timestamp": datetime.utcnow().isoformat()
        },
        "context": {},
        "request_id": request_id
    }


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """
    Outermost middleware.

    Reuses the caller's X-Request-ID or generates one, stamps it on every log
    record and on the response, and turns exceptions that escaped the routers
    into the JSON error body.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        set_logging_context(request_id=request_id, method=request.method, path=request.url.path)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except VaultXError as e:
            logger.warning(
                f"{request.method} {request.url.path} failed with {e.error_code}",
                extra={"extra_fields": {"error": e.to_dict()}}
            )
            response = JSONResponse(status_code=e.status_code, content=create_error_response(e))
        except Exception as e:
            logger.error(f"Unhandled error on {request.method} {request.url.path}: {e}", exc_info=True)
            response = JSONResponse(status_code=500, content=internal_error_body(e, request_id))
        finally:
            clear_logging_context()

        elapsed = time.perf_counter() - started
        user_id = getattr(request.state, "user_id", None)
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.3f}s"
            + (f" (user {user_id})" if user_id else "")
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Debug-level dump of headers and query parameters, with credentials redacted."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        headers = {
            key: "<redacted>" if key.lower() in _SECRET_HEADERS else value
            for key, value in request.headers.items()
        }
        logger.debug(f"{request.method} {request.url.path} headers={headers} query={dict(request.query_params)}")
        return await call_next(request)


class PerformanceMonitoringMiddleware(BaseHTTPMiddleware):
    """Adds X-Response-Time and warns about requests slower than the threshold."""

    def __init__(self, app, slow_request_threshold: float = 5.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - started

        if elapsed > self.slow_request_threshold:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} took {elapsed:.3f}s "
                f"(threshold {self.slow_request_threshold}s)"
            )
        response.headers[RESPONSE_TIME_HEADER] = f"{elapsed * 1000:.1f}ms"
        return response
