"""
Tests for the CLI entry point.

The HTTP transport is replaced with the in-process transport from
conftest, so commands run end to end without a network.
"""

import json
import logging
import os
from unittest.mock import MagicMock, patch

import pytest

from domainclient.cli.app import COMMANDS, create_parser, main, parse_params
from domainclient.cli.exit_codes import ExitCode
from domainclient.core.exceptions import TransportError


URL = "https://example.com/Services/Customers"


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Empty working directory, no DOMAINCLIENT_* variables, clean root logger."""
    for key in list(os.environ):
        if key.startswith("DOMAINCLIENT_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()


@pytest.fixture
def http_transport(local_transport):
    """Serve CLI requests from the in-process transport."""
    with patch("domainclient.cli.app.HttpTransportClient") as transport_cls:
        transport_cls.from_config.return_value = local_transport
        yield transport_cls


# =============================================================================
# Argument parsing
# =============================================================================


class TestParser:
    """Tests for the argument parser."""

    def test_query_arguments(self):
        args = create_parser().parse_args(
            ["query", "GetOrders", "-p", "customer=ACME", "--take", "5", "--count"]
        )

        assert args.command == "query"
        assert args.name == "GetOrders"
        assert args.param == ["customer=ACME"]
        assert args.take == 5
        assert args.count is True
        assert args.load_behavior == "keep"

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])

    def test_common_options_on_subcommands(self):
        args = create_parser().parse_args(["invoke", "Ping", "--url", URL, "-o", "json"])

        assert args.url == URL
        assert args.output == "json"
        assert args.no_side_effects is False


class TestParseParams:
    """Tests for KEY=VALUE parsing."""

    def test_json_values(self):
        assert parse_params(["n=5", "ok=true", "ids=[1,2]", "name=ACME"]) == {
            "n": 5,
            "ok": True,
            "ids": [1, 2],
            "name": "ACME",
        }

    def test_value_may_contain_equals(self):
        assert parse_params(["filter=a=b"]) == {"filter": "a=b"}

    @pytest.mark.parametrize("item", ["novalue", "=5"])
    def test_invalid(self, item):
        with pytest.raises(ValueError, match="KEY=VALUE"):
            parse_params([item])


# =============================================================================
# Commands
# =============================================================================


class TestConfigCommand:
    """Tests for the config command."""

    def test_valid(self, capsys):
        assert main(["config", "--url", URL, "--no-color"]) == ExitCode.SUCCESS

        out = capsys.readouterr().out
        assert URL in out
        assert "Configuration is valid" in out

    def test_json_output_masks_headers(self, capsys, monkeypatch):
        monkeypatch.setenv("DOMAINCLIENT_SERVICE_URL", URL)
        monkeypatch.setenv("DOMAINCLIENT_HEADERS", '{"Authorization": "Bearer secret"}')

        assert main(["config", "-o", "json"]) == ExitCode.SUCCESS

        data = json.loads(capsys.readouterr().out)
        assert data["service_url"] == URL
        assert data["headers"] == {"Authorization": "***"}

    def test_missing_url(self, capsys):
        assert main(["config", "--no-color"]) == ExitCode.CONFIG_ERROR
        assert "Missing service URL" in capsys.readouterr().out

    def test_missing_config_file(self, capsys):
        code = main(["config", "--url", URL, "--config", "missing.yaml", "--no-color"])

        assert code == ExitCode.CONFIG_ERROR
        assert "Config file not found" in capsys.readouterr().out


class TestQueryCommand:
    """Tests for the query command."""

    def test_text_output(self, http_transport, capsys):
        code = main(["query", "GetCustomers", "--url", URL, "--no-color", "--count"])

        out = capsys.readouterr().out
        assert code == ExitCode.SUCCESS
        assert "Grace" in out
        assert "Loaded 3 entities" in out
        assert "Total count: 3" in out
        assert http_transport.from_config.call_args.args[0].service_url == URL

    def test_json_output_with_paging(self, http_transport, capsys):
        code = main(
            ["query", "GetCustomers", "--url", URL, "--skip", "1", "--take", "1", "-o", "json"]
        )

        data = json.loads(capsys.readouterr().out)
        assert code == ExitCode.SUCCESS
        assert data["entities"] == [
            {"$type": "Customer", "id": 2, "name": "Grace", "city": "Arlington"}
        ]
        assert data["total_entity_count"] == -1

    def test_unknown_query(self, http_transport, capsys):
        code = main(["query", "GetPlanets", "--url", URL, "--no-color"])

        assert code == ExitCode.ERROR
        assert "does not exist" in capsys.readouterr().out


class TestInvokeCommand:
    """Tests for the invoke command."""

    def test_invoke(self, http_transport, capsys):
        code = main(["invoke", "Add", "-p", "a=1", "-p", "b=2", "--url", URL])

        assert code == ExitCode.SUCCESS
        assert capsys.readouterr().out.strip().endswith("3")

    def test_invoke_json(self, http_transport, capsys):
        main(["invoke", "Add", "-p", "a=1", "-p", "b=2", "--url", URL, "-o", "json"])
        assert json.loads(capsys.readouterr().out) == {"value": 3}

    def test_bad_parameter(self, http_transport, capsys):
        code = main(["invoke", "Add", "-p", "a", "--url", URL, "--no-color"])

        assert code == ExitCode.ERROR
        assert "KEY=VALUE" in capsys.readouterr().out


# =============================================================================
# Error handling
# =============================================================================


class TestMainErrors:
    """Tests for exceptions escaping a command."""

    def test_keyboard_interrupt(self, capsys):
        with patch.dict(COMMANDS, {"config": MagicMock(side_effect=KeyboardInterrupt)}):
            assert main(["config", "--no-color"]) == ExitCode.SIGINT

        assert "Interrupted by user" in capsys.readouterr().out

    def test_unreachable_service(self, capsys):
        failing = MagicMock(side_effect=TransportError("Connection error talking to x"))
        with patch.dict(COMMANDS, {"query": failing}):
            code = main(["query", "GetCustomers", "--no-color"])

        assert code == ExitCode.CONNECTION_ERROR
        assert "Check the service URL" in capsys.readouterr().out
