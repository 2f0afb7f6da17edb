"""
Custom exception classes.

Represent errors raised while loading or invoking the user function.
"""

import logging
from typing import Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Base exception class for the invocation gateway."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    headers: Optional[Dict[str, str]] = None

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class FunctionLoadError(GatewayError):
    """Raised at startup when the function cannot be loaded or validated."""

    def __init__(self, target: str, source: str, reason: str):
        self.target = target
        self.source = source
        super().__init__(f"Failed to load function '{target}' from {source}: {reason}")


class MalformedRequest(GatewayError):
    """Raised when the request body or headers violate the expected shape."""

    status_code = status.HTTP_400_BAD_REQUEST


class BodyReadTimeout(GatewayError):
    """Raised when the client stalls while sending the request body."""

    status_code = status.HTTP_408_REQUEST_TIMEOUT

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s waiting for request body")


class DispatchTimeout(GatewayError):
    """Raised when the function did not respond before its deadline."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT

    def __init__(self, function_name: str, timeout: float):
        self.function_name = function_name
        self.timeout = timeout
        super().__init__(f"Function '{function_name}' timed out after {timeout}s")


class InvocationCancelled(GatewayError):
    """Raised inside a function that observes the cancellation of its invocation."""

    status_code = status.HTTP_504_GATEWAY_TIMEOUT

    def __init__(self, detail: str = "Invocation cancelled"):
        super().__init__(detail)


class FunctionInvocationError(GatewayError):
    """
    Raised when the function signals failure.

    Functions may raise it themselves with an explicit status code.
    """

    def __init__(
        self,
        detail: str = "Function invocation failed",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        function_name: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.status_code = status_code
        self.function_name = function_name
        self.headers = headers
        super().__init__(detail)


class ResourceExhaustedError(GatewayError):
    """Raised when resources are exhausted (queue full or timeout)."""

    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, detail: str = "Request timed out in queue"):
        super().__init__(detail)


# ===========================================
# Exception Handlers
# ===========================================


async def gateway_exception_handler(request: Request, exc: GatewayError):
    """
    Handler for all GatewayError subclasses.

    The response carries the error's status code and detail, never a function traceback.
    """
    return JSONResponse(
        status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers
    )


async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler for unhandled exceptions.
    """
    logger.error(
        f"Global exception handler caught: {type(exc).__name__}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Internal Server Error"},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handler for HTTPException.
    """
    return JSONResponse(
        status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handler for validation errors.
    """
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Validation Error", "detail": str(exc.errors())},
    )
