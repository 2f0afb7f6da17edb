"""
Gateway configuration definition.

Loads configuration from environment variables and provides a Pydantic model.
Uses pydantic-settings for type safety and defaults.
"""

import sys
from typing import List, Literal, Optional

from pydantic import Field

from fngate.common.core.config import BaseAppConfig

SignatureTypeName = Literal["http", "event", "cloudevent"]


class GatewayConfig(BaseAppConfig):
    """
    Configuration management for the invocation gateway.
    """

    # Function settings
    FUNCTION_TARGET: str = Field(default="function", description="Name of the exported function")
    FUNCTION_SOURCE: str = Field(default="main.py", description="Path of the function source file")
    FUNCTION_SIGNATURE_TYPE: SignatureTypeName = Field(
        default="http", description="Signature type of the function"
    )

    # Server settings
    HOST: str = Field(default="0.0.0.0", description="Listen host")
    PORT: int = Field(default=8080, ge=0, le=65535, description="Listen port")

    # Request limits
    EXECUTION_TIMEOUT: float = Field(
        default=60.0, gt=0, description="Function execution timeout (seconds)"
    )
    BODY_READ_TIMEOUT: float = Field(
        default=30.0, gt=0, description="Timeout waiting for each body chunk (seconds)"
    )
    MAX_BODY_SIZE: Optional[int] = Field(
        default=None, ge=0, description="Maximum request body size in bytes (unbounded if unset)"
    )

    # Static routing exceptions
    RESERVED_PATHS: List[str] = Field(
        default_factory=lambda: ["/robots.txt", "/favicon.ico"],
        description="Paths answered with 404 without invoking the function",
    )
    ROUTING_CONFIG_PATH: str = Field(
        default="", description="Optional YAML file with additional static routes"
    )

    # Flow control
    MAX_CONCURRENT_REQUESTS: int = Field(
        default=0, ge=0, description="Max concurrent invocations (0 disables the throttle)"
    )
    QUEUE_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0, description="Queue wait timeout")

    # Error log suppression
    ERROR_LOG_WINDOW_SECONDS: float = Field(
        default=60.0, gt=0, description="Window in which repeated failures are logged once"
    )
    ERROR_LOG_MAX_SIGNATURES: int = Field(
        default=256, gt=0, description="Distinct failure signatures tracked per window"
    )

    # model_config is inherited


def load_config(**overrides) -> GatewayConfig:
    """
    Build the gateway configuration once.

    Explicit overrides (e.g. CLI flags) take precedence over environment variables.
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return GatewayConfig(**values)
    except Exception as e:
        sys.stderr.write(f"Failed to load configuration: {e}\n")
        raise
