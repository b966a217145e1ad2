"""Request correlation middleware.

Reuses an incoming X-Request-ID or mints one, makes it visible to every
log record of the request and echoes it on the response.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .request_id import generate_request_id, set_request_id
from .logging_config import get_logger

REQUEST_ID_HEADER = "X-Request-ID"

logger = get_logger(__name__)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each HTTP request with a request id and log its outcome."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        set_request_id(request_id)

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"{request.method} {request.url.path} raised",
                extra={"duration_ms": _elapsed_ms(started)},
                exc_info=True
            )
            raise

        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code}",
            extra={"status_code": response.status_code, "duration_ms": _elapsed_ms(started)}
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
