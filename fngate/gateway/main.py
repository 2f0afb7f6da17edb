"""
Functions Gateway - Functions Framework compatible server

Loads a single user function at startup and serves every HTTP request through
the invocation gateway: static-path exceptions, deadline enforcement and
isolated per-request state.
"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.responses import Response
from pydantic import ValidationError

from .api.deps import GatewayDep
from .config import GatewayConfig, load_config
from .core.exceptions import FunctionLoadError
from .core.logging_config import setup_logging
from .exceptions import register_exception_handlers
from .lifecycle import manage_lifespan
from .middleware import trace_propagation_middleware
from .models.function import FunctionHandle
from .services.dispatcher import InvocationGateway
from .services.function_loader import FunctionLoader

logger = logging.getLogger("gateway.main")

HTTP_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

EXIT_OK = 0
EXIT_LOAD_ERROR = 1
EXIT_CONFIG_ERROR = 2


def create_app(
    gateway_config: Optional[GatewayConfig] = None,
    handle: Optional[FunctionHandle] = None,
) -> FastAPI:
    """
    Build the application.

    The function is loaded and validated here, before any server exists, so a
    broken function never gets a listening socket.

    Raises:
        FunctionLoadError: the function cannot be loaded
    """
    started_at = time.perf_counter()
    gateway_config = gateway_config or load_config()

    if handle is None:
        handle = FunctionLoader(
            source=gateway_config.FUNCTION_SOURCE,
            target=gateway_config.FUNCTION_TARGET,
            signature_type=gateway_config.FUNCTION_SIGNATURE_TYPE,
        ).load()

    gateway = InvocationGateway.from_config(handle, gateway_config)

    app = FastAPI(
        title=f"Function: {handle.name}",
        lifespan=lambda app: manage_lifespan(app, gateway, started_at),
        # Every path belongs to the function.
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.gateway = gateway
    app.state.config = gateway_config

    app.middleware("http")(trace_propagation_middleware)
    register_exception_handlers(app)

    @app.api_route("/{path:path}", methods=HTTP_METHODS, include_in_schema=False)
    async def invoke_function(request: Request, gateway: GatewayDep) -> Response:
        """Catch-all route: every request goes through the invocation gateway."""
        return await gateway.dispatch(request)

    return app


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fngate",
        description="Serve a Python function over HTTP",
    )
    parser.add_argument("--target", help="Name of the function to serve (FUNCTION_TARGET)")
    parser.add_argument("--source", help="Path of the function source file (FUNCTION_SOURCE)")
    parser.add_argument(
        "--signature-type",
        choices=["http", "event", "cloudevent"],
        help="Signature type of the function (FUNCTION_SIGNATURE_TYPE)",
    )
    parser.add_argument("--host", help="Listen host (HOST)")
    parser.add_argument("--port", type=int, help="Listen port (PORT)")
    parser.add_argument(
        "--timeout", type=float, help="Function execution timeout in seconds (EXECUTION_TIMEOUT)"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level="DEBUG" if args.debug else None)

    try:
        gateway_config = load_config(
            FUNCTION_TARGET=args.target,
            FUNCTION_SOURCE=args.source,
            FUNCTION_SIGNATURE_TYPE=args.signature_type,
            HOST=args.host,
            PORT=args.port,
            EXECUTION_TIMEOUT=args.timeout,
        )
    except ValidationError:
        return EXIT_CONFIG_ERROR

    try:
        app = create_app(gateway_config)
    except FunctionLoadError as e:
        logger.error(str(e), exc_info=e.__cause__ is not None)
        return EXIT_LOAD_ERROR
    except ValueError as e:
        logger.error(f"Invalid gateway configuration: {e}")
        return EXIT_CONFIG_ERROR

    import uvicorn

    logger.info(f"Starting function server on {gateway_config.HOST}:{gateway_config.PORT}")
    uvicorn.run(app, host=gateway_config.HOST, port=gateway_config.PORT, log_config=None)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
