from pathlib import Path

import httpx
import pytest

from fngate.gateway.config import GatewayConfig
from fngate.gateway.main import create_app

FIXTURES = Path(__file__).parent / "fixtures"
HTTP_FUNCTIONS = str(FIXTURES / "http_functions.py")
EVENT_FUNCTIONS = str(FIXTURES / "event_functions.py")


@pytest.fixture
def make_config():
    """Build a GatewayConfig that ignores .env files."""

    def _make(**overrides) -> GatewayConfig:
        values = {"FUNCTION_SOURCE": HTTP_FUNCTIONS, "FUNCTION_TARGET": "hello"}
        values.update(overrides)
        return GatewayConfig(_env_file=None, **values)

    return _make


@pytest.fixture
def make_app(make_config):
    def _make(**overrides):
        return create_app(make_config(**overrides))

    return _make


@pytest.fixture
def client_for():
    def _client(app) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://testserver"
        )

    return _client
