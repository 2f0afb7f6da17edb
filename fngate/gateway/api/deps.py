"""
Dependency Injection for Gateway API.

Manage request handler dependencies using FastAPI Depends.
"""

from typing import Annotated

from fastapi import Depends, Request

from ..services.dispatcher import InvocationGateway


def get_gateway(request: Request) -> InvocationGateway:
    return request.app.state.gateway


# Service Dependency Type Aliases
GatewayDep = Annotated[InvocationGateway, Depends(get_gateway)]
