"""Request context middleware — request ids and write-request logging."""


import logging
import time
import uuid
from collections.abc import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from thorbis.core.config import settings

logger = logging.getLogger("thorbis.requests")

# Methods that mutate state
_WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

REQUEST_ID_HEADER = "X-Request-ID"

def new_request_id() -> str:
    return f"req_{uuid.uuid4().hex[:16]}"

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every request with an id and logs all write operations.

    The id is taken from an incoming ``X-Request-ID`` header when present,
    stored on ``request.state.request_id`` (error handlers echo it back) and
    returned on the response.
    """

    def __init__(self, app, actor_id_header: str = settings.actor_id_header):
        super().__init__(app)
        self._actor_id_header = actor_id_header

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        request.state.request_id = request_id

        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000)

        response.headers[REQUEST_ID_HEADER] = request_id
        if request.method in _WRITE_METHODS:
            logger.info(
                "[%s] %s %s → %s (%sms) actor=%s",
                request_id,
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                request.headers.get(self._actor_id_header, "-"),
            )
        return response
