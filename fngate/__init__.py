"""
fngate - serve a single Python function over HTTP

Usage:
    import fngate

    @fngate.http
    async def compute(request, context):
        payload = await request.json()
        return {"sum": sum(payload["values"])}

    $ fngate --source main.py --target compute
"""

from .gateway.core.decorators import cloud_event, event, http
from .gateway.core.exceptions import FunctionInvocationError, InvocationCancelled
from .gateway.models.context import InvocationContext, get_invocation_context
from .gateway.models.event import EventContext

__version__ = "0.1.0"
__all__ = [
    "http",
    "cloud_event",
    "event",
    "FunctionInvocationError",
    "InvocationCancelled",
    "InvocationContext",
    "get_invocation_context",
    "EventContext",
]
