"""FastAPI middleware for request logging and correlation."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from warehouse.logging_config import bind_context, clear_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each verifyReceipt or control request with a correlation ID.

    A caller-supplied X-Request-ID is reused, otherwise a new one is
    generated. The ID is bound to the logging context for the duration of
    the request and echoed back in the response header.
    """

    def __init__(self, app: ASGIApp, include_request_details: bool = True):
        super().__init__(app)
        self.include_request_details = include_request_details

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Reuse the caller's correlation ID when it sent one
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        bind_context(request_id=request_id)

        if self.include_request_details:
            logger.info(
                "request_started",
                method=request.method,
                path=request.url.path,
                client_host=request.client.host if request.client else "unknown",
                user_agent=request.headers.get("user-agent"),
            )
        else:
            logger.info("request_started", method=request.method, path=request.url.path)

        start_time = time.time()
        try:
            response = await call_next(request)
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round((time.time() - start_time) * 1000, 2),
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        except Exception as exc:
            # Unhandled errors are turned into a JSON 500 by the app's handler
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round((time.time() - start_time) * 1000, 2),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise
        finally:
            # Context vars outlive the request otherwise
            clear_context()


class EnvironmentContextMiddleware(BaseHTTPMiddleware):
    """Binds the validation environment (sandbox/production) from the path.

    Only verifyReceipt endpoints carry an environment; control endpoints
    such as /emulator/reset are passed through untouched.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # /<environment>/verifyReceipt
        parts = [part for part in request.url.path.split("/") if part]
        if len(parts) >= 2 and parts[-1] == "verifyReceipt":
            bind_context(environment=parts[-2])
        return await call_next(request)
