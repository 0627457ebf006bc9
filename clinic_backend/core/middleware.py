"""
Request logging middleware

One log line per request with method, path, status, latency and a request id.
The id is echoed in the X-Request-ID response header (or taken from the
incoming header when a proxy already assigned one).
"""
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("clinic_backend.request")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_id=%s method=%s path=%s status=500 latency_ms=%.2f",
                request_id,
                request.method,
                request.url.path,
                (time.perf_counter() - start) * 1000,
            )
            raise

        latency_ms = (time.perf_counter() - start) * 1000
        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
