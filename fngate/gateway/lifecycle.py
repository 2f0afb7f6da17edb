"""
Where: fngate/gateway/lifecycle.py
What: Gateway startup/shutdown orchestration for shared resources.
Why: Keep main.py focused on app assembly while preserving lifecycle behavior.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from .services.dispatcher import InvocationGateway

logger = logging.getLogger("gateway.main")


@asynccontextmanager
async def manage_lifespan(
    app: FastAPI, gateway: InvocationGateway, started_at: float
) -> AsyncIterator[None]:
    """
    Manage application lifecycle.

    The function handle is already loaded and validated when this runs; startup
    only publishes the gateway and reports the cold start.
    """
    app.state.gateway = gateway
    cold_start_ms = round((time.perf_counter() - started_at) * 1000, 2)
    logger.info(
        f"Gateway ready to serve '{gateway.handle.name}'",
        extra={
            "function_name": gateway.handle.name,
            "signature_type": gateway.handle.signature_type.value,
            "cold_start_ms": cold_start_ms,
        },
    )

    try:
        yield
    finally:
        logger.info("Gateway shutting down.")
        gateway.close()
