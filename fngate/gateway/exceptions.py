"""
Where: fngate/gateway/exceptions.py
What: Gateway exception handler registration.
Why: Keep error handling setup isolated from route and lifecycle concerns.
"""

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import (
    GatewayError,
    gateway_exception_handler,
    global_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(GatewayError, gateway_exception_handler)  # type: ignore[arg-type]
