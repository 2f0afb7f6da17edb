"""
RequestContext management.
Use ContextVar to share the trace and execution id across async execution.
"""

import uuid
from contextvars import ContextVar
from typing import Optional
from .trace import TraceContext


# Context variable for the parsed trace (parsed once per request).
_trace_var: ContextVar[Optional[TraceContext]] = ContextVar("trace", default=None)
# Context variable for the execution id (UUID hex).
_execution_id_var: ContextVar[Optional[str]] = ContextVar("execution_id", default=None)


def get_trace() -> Optional[TraceContext]:
    """Get the current trace."""
    return _trace_var.get()


def get_trace_id() -> Optional[str]:
    """Get the current trace id (32 hex chars)."""
    trace = _trace_var.get()
    return trace.trace_id if trace else None


def get_execution_id() -> Optional[str]:
    """Get the current execution id."""
    return _execution_id_var.get()


def generate_execution_id() -> str:
    """
    Generate and set a new execution id for the current context.
    """
    new_id = uuid.uuid4().hex
    _execution_id_var.set(new_id)
    return new_id


def set_trace(trace: TraceContext) -> TraceContext:
    """Set the trace for the current context."""
    _trace_var.set(trace)
    return trace


def clear_request_context() -> None:
    """Clear the trace and execution id."""
    _trace_var.set(None)
    _execution_id_var.set(None)
