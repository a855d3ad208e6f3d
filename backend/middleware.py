import logging
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger("http")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with a request id and log its start and completion.

    The id is stored on request.state.request_id and echoed back in the
    X-Request-ID response header, so error logs can be matched to requests.
    """

    def __init__(self, app: ASGIApp, exclude_paths: Optional[list[str]] = None):
        super().__init__(app)
        self.exclude_paths = exclude_paths or []

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
        request.state.request_id = request_id

        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            return await call_next(request)

        start_time = time.perf_counter()
        logger.info(f"Request started | {request_id} | {request.method} {request.url.path}")

        response = await call_next(request)

        elapsed_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"Request finished | {request_id} | {request.method} {request.url.path} | "
            f"{response.status_code} | {elapsed_ms:.1f}ms"
        )
        response.headers["X-Request-ID"] = request_id
        return response
