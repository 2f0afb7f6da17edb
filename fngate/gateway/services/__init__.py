"""
Services package.

Provides function loading, static routing and dispatch.
"""

from .dispatcher import InvocationGateway
from .function_loader import FunctionLoader
from .routing_table import RoutingTable

__all__ = [
    "InvocationGateway",
    "FunctionLoader",
    "RoutingTable",
]
