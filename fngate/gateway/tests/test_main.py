from pathlib import Path
from unittest.mock import patch

import pytest

from fngate.gateway.core.exceptions import FunctionLoadError
from fngate.gateway.main import (
    EXIT_CONFIG_ERROR,
    EXIT_LOAD_ERROR,
    EXIT_OK,
    build_parser,
    create_app,
    main,
)

FIXTURES = Path(__file__).parent / "fixtures"
HTTP_FUNCTIONS = str(FIXTURES / "http_functions.py")


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("fngate.gateway.main.setup_logging"):
        yield


def test_create_app_fails_before_serving(make_config):
    with pytest.raises(FunctionLoadError):
        create_app(make_config(FUNCTION_TARGET="missing"))


def test_main_serves_loaded_function():
    with patch("uvicorn.run") as run:
        code = main(["--source", HTTP_FUNCTIONS, "--target", "hello", "--port", "9090"])

    assert code == EXIT_OK
    run.assert_called_once()
    _, kwargs = run.call_args
    assert kwargs["port"] == 9090
    assert kwargs["log_config"] is None


def test_main_exits_on_load_error():
    with patch("uvicorn.run") as run:
        code = main(["--source", str(FIXTURES / "broken_import.py"), "--target", "function"])

    assert code == EXIT_LOAD_ERROR
    run.assert_not_called()


def test_main_exits_on_missing_source():
    with patch("uvicorn.run") as run:
        code = main(["--source", str(FIXTURES / "absent.py")])

    assert code == EXIT_LOAD_ERROR
    run.assert_not_called()


def test_main_exits_on_invalid_config(capsys):
    with patch("uvicorn.run") as run:
        code = main(["--source", HTTP_FUNCTIONS, "--target", "hello", "--timeout", "0"])

    assert code == EXIT_CONFIG_ERROR
    run.assert_not_called()
    assert "Failed to load configuration" in capsys.readouterr().err


def test_main_exits_on_invalid_routing_file(tmp_path, monkeypatch):
    routing_file = tmp_path / "routing.yml"
    routing_file.write_text("static_routes: [unclosed")
    monkeypatch.setenv("ROUTING_CONFIG_PATH", str(routing_file))

    with patch("uvicorn.run") as run:
        code = main(["--source", HTTP_FUNCTIONS, "--target", "hello"])

    assert code == EXIT_CONFIG_ERROR
    run.assert_not_called()


def test_parser_rejects_unknown_signature_type():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--signature-type", "grpc"])


@pytest.mark.asyncio
async def test_lifespan_publishes_gateway(make_app):
    app = make_app()

    async with app.router.lifespan_context(app):
        assert app.state.gateway.handle.name == "hello"
