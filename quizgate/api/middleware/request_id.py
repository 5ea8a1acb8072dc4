"""
Request correlation middleware.

Accepts a caller-supplied X-Request-ID when it looks sane, otherwise mints
one. The id is echoed on the response and bound to the logging context for
the whole request, together with a cleared quiz session id that the session
dependency fills in.
"""

import re
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from quizgate.logging_config import get_logger, request_id_var, session_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 1000

_SAFE_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def resolve_request_id(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER)
    if supplied and _SAFE_REQUEST_ID.match(supplied):
        return supplied
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind request_id (and a fresh session_id slot) to every request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = resolve_request_id(request)
        request.state.request_id = request_id
        req_token = request_id_var.set(request_id)
        sess_token = session_id_var.set(None)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            session_id_var.reset(sess_token)
            request_id_var.reset(req_token)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        response.headers[REQUEST_ID_HEADER] = request_id
        log = logger.warning if elapsed_ms > SLOW_REQUEST_MS else logger.debug
        log(
            "Slow request" if elapsed_ms > SLOW_REQUEST_MS else "Request handled",
            extra={
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            },
        )
        return response
