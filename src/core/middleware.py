"""Request middleware: correlation ids and access logging."""

import logging
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from core.error_handler import set_correlation_id


logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Attach a correlation id to every request and echo it on the response.

    A caller-supplied ``X-Correlation-ID`` is reused so a job submission and its
    later status polls can be traced together; otherwise a fresh UUID is issued.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())

        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = int((time.perf_counter() - started) * 1000)

        response.headers[CORRELATION_HEADER] = correlation_id
        logger.debug(
            f"{request.method} {request.url.path} -> {response.status_code} "
            f"({elapsed_ms}ms) [{correlation_id}]"
        )
        return response
