"""
Where: fngate/gateway/middleware.py
What: Gateway HTTP middleware for trace propagation and access logging.
Why: Isolate cross-cutting request concerns from app assembly.
"""

import logging
import time

from fastapi import Request

from fngate.common.core.request_context import (
    clear_request_context,
    generate_execution_id,
    set_trace,
)
from fngate.common.core.trace import TraceContext

logger = logging.getLogger("gateway.main")

EXECUTION_ID_HEADER = "Function-Execution-Id"


async def trace_propagation_middleware(request: Request, call_next):
    """Middleware for trace propagation and structured access logging."""
    start_time = time.perf_counter()

    # Parsed exactly once per request; downstream code reads the context variable.
    try:
        trace = TraceContext.from_headers(request.headers)
    except ValueError as exc:
        logger.warning("Ignoring malformed trace header: %s", exc)
        trace = None
    # The gateway's own span: same trace, fresh parent id.
    trace = trace.child() if trace is not None else TraceContext.generate()
    set_trace(trace)

    execution_id = generate_execution_id()

    try:
        response = await call_next(request)
        response.headers["traceparent"] = str(trace)
        response.headers[EXECUTION_ID_HEADER] = execution_id

        process_time = time.perf_counter() - start_time
        process_time_ms = round(process_time * 1000, 2)

        logger.info(
            f"{request.method} {request.url.path} {response.status_code}",
            extra={
                "trace_id": trace.trace_id,
                "execution_id": execution_id,
                "method": request.method,
                "path": request.url.path,
                "status": response.status_code,
                "latency_ms": process_time_ms,
                "user_agent": request.headers.get("user-agent"),
                "client_ip": request.client.host if request.client else None,
            },
        )

        return response
    finally:
        clear_request_context()
