"""
Data model definitions package.

Aggregates models for use in other modules.
"""

from .context import InvocationContext, get_invocation_context
from .event import EventContext, LegacyEvent
from .function import FunctionHandle, SignatureType
from .routing import StaticRoute

__all__ = [
    "InvocationContext",
    "get_invocation_context",
    "EventContext",
    "LegacyEvent",
    "FunctionHandle",
    "SignatureType",
    "StaticRoute",
]
