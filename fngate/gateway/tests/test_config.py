import pytest
from pydantic import ValidationError

from fngate.gateway.config import GatewayConfig, load_config


def test_defaults(monkeypatch):
    for name in ("EXECUTION_TIMEOUT", "BODY_READ_TIMEOUT", "MAX_BODY_SIZE", "PORT"):
        monkeypatch.delenv(name, raising=False)

    config = GatewayConfig(_env_file=None)

    assert config.FUNCTION_TARGET == "function"
    assert config.FUNCTION_SIGNATURE_TYPE == "http"
    assert config.PORT == 8080
    assert config.EXECUTION_TIMEOUT == 60.0
    assert config.BODY_READ_TIMEOUT == 30.0
    assert config.MAX_BODY_SIZE is None
    assert config.RESERVED_PATHS == ["/robots.txt", "/favicon.ico"]
    assert config.MAX_CONCURRENT_REQUESTS == 0


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("EXECUTION_TIMEOUT", "5")
    monkeypatch.setenv("MAX_BODY_SIZE", "1024")
    monkeypatch.setenv("RESERVED_PATHS", '["/robots.txt"]')

    config = GatewayConfig(_env_file=None)

    assert config.EXECUTION_TIMEOUT == 5.0
    assert config.MAX_BODY_SIZE == 1024
    assert config.RESERVED_PATHS == ["/robots.txt"]


def test_config_is_frozen():
    config = GatewayConfig(_env_file=None)

    with pytest.raises(ValidationError):
        config.EXECUTION_TIMEOUT = 1.0


@pytest.mark.parametrize(
    "overrides",
    [
        {"EXECUTION_TIMEOUT": 0},
        {"BODY_READ_TIMEOUT": -1},
        {"MAX_BODY_SIZE": -5},
        {"FUNCTION_SIGNATURE_TYPE": "grpc"},
        {"PORT": 70000},
    ],
)
def test_invalid_values(overrides):
    with pytest.raises(ValidationError):
        GatewayConfig(_env_file=None, **overrides)


def test_load_config_ignores_unset_overrides(monkeypatch):
    monkeypatch.setenv("FUNCTION_TARGET", "from_env")

    config = load_config(FUNCTION_TARGET=None, PORT=9000)

    assert config.FUNCTION_TARGET == "from_env"
    assert config.PORT == 9000
