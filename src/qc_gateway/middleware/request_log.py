"""Access log for HTTP requests on the `qc.request` logger.

Each request gets an id (request.state.request_id) that the response
envelope and the X-Request-ID header both carry. WebSocket traffic is not
seen here; BaseHTTPMiddleware only wraps HTTP.

    INFO  POST /api/v1/listings/123/offers 201 23ms req_a1b2c3d4e5f6
    WARN  GET /api/v1/listings 500 4ms req_0f9e8d7c6b5a
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.qc_common.response import new_request_id

logger = logging.getLogger("qc.request")


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or new_request_id()
        request.state.request_id = request_id
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "%s %s failed after %dms %s",
                request.method,
                request.url.path,
                (time.perf_counter() - started) * 1000,
                request_id,
            )
            raise

        response.headers["X-Request-ID"] = request_id
        logger.log(
            logging.WARNING if response.status_code >= 500 else logging.INFO,
            "%s %s %d %dms %s",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
            request_id,
        )
        return response
