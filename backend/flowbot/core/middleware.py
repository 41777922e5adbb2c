"""
Request context middleware.

For every HTTP request this middleware:
- Takes the trace ID from X-Trace-ID / X-Request-ID, the active OpenTelemetry
  span, or generates one
- Generates a request ID
- Binds both (and X-User-ID when sent) into the logging context
- Logs request start/completion and records HTTP RED metrics
- Echoes X-Trace-ID and X-Request-ID on the response
"""
import time
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging import (
    bind_request_context,
    clear_request_context,
    generate_id,
    get_logger,
)
from .metrics import record_http_request
from .tracing import get_trace_id_from_context, record_exception

logger = get_logger(__name__)


def _otel_trace_id_as_uuid() -> Optional[str]:
    otel_trace_id = get_trace_id_from_context()
    if not otel_trace_id:
        return None
    t = otel_trace_id
    return f"{t[0:8]}-{t[8:12]}-{t[12:16]}-{t[16:20]}-{t[20:32]}"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind trace/request/user IDs for structured logs and time each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = (
            request.headers.get("X-Trace-ID")
            or request.headers.get("X-Request-ID")
            or _otel_trace_id_as_uuid()
            or generate_id()
        )
        request_id = generate_id()
        bind_request_context(
            trace_id=trace_id,
            request_id=request_id,
            user_id=request.headers.get("X-User-ID"),
        )

        start_time = time.time()
        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            record_exception(e)
            record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=500,
                duration_seconds=process_time,
            )
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=int(process_time * 1000),
                exc_info=True,
            )
            raise
        else:
            process_time = time.time() - start_time
            record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration_seconds=process_time,
            )
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                latency_ms=int(process_time * 1000),
            )
            response.headers["X-Trace-ID"] = trace_id
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_request_context()
