import os
from typing import Optional

from fngate.common.core.logging_config import setup_logging as common_setup_logging


def setup_logging(level: Optional[str] = None):
    """
    Load the YAML config and initialize logging.
    """
    config_path = os.getenv("LOG_CONFIG_PATH", "config/gateway_log.yaml")
    common_setup_logging(config_path, level=level)
