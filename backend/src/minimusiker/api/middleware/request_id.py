"""Request ID middleware for log correlation across provider calls."""

import uuid
from typing import Callable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Binds a request ID to every log line emitted while serving a request.

    The ID is taken from the X-Request-ID header when the caller sends one,
    otherwise a new 8-character UUID prefix is generated. It is echoed back
    in the response headers.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        with logger.contextualize(request_id=request_id):
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
