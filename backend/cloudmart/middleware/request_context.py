"""
CloudMart Functions — Request Context Middleware
=================================================

What:  Gives every request a correlation ID and writes one access log line
       per request.
How:   The ID comes from the caller's X-Request-ID header, or the Functions
       host's x-ms-client-request-id, or is generated (8 hex chars). It is
       stored in a ContextVar, injected into log records by RequestIdFilter,
       and echoed back in the X-Request-ID response header.

Access log levels follow the response status:
    5xx → ERROR, 4xx → WARNING, otherwise INFO
Request bodies are never logged.
"""

import logging
import time
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
HOST_REQUEST_ID_HEADER = "x-ms-client-request-id"

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

access_logger = logging.getLogger("cloudmart.access")


class RequestIdFilter(logging.Filter):
    """Adds record.request_id so formats can use %(request_id)s."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("") or "-"
        return True


def _status_level(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Request ID propagation plus access logging (health checks excluded)."""

    QUIET_PATHS = {"/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = (
            request.headers.get(REQUEST_ID_HEADER)
            or request.headers.get(HOST_REQUEST_ID_HEADER)
            or uuid.uuid4().hex[:8]
        )
        token = request_id_var.set(rid)
        request.state.request_id = rid
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid

        if request.url.path not in self.QUIET_PATHS:
            duration_ms = (time.perf_counter() - start_time) * 1000
            client_ip = request.client.host if request.client else "unknown"
            access_logger.log(
                _status_level(response.status_code),
                "%s %s %d %.1fms [%s] from %s",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                rid,
                client_ip,
            )

        return response
