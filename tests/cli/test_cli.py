"""Execution tests for the ``wstelem`` command line."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from click.testing import CliRunner

from wstelem.cli.main import cli, main

if TYPE_CHECKING:
    from pathlib import Path

_FAST = ["--min-delay", "50", "--max-delay", "100", "--connect-timeout", "1"]


def _events(output: str) -> list[dict[str, object]]:
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


class TestHelp:
    def test_root_help_lists_commands(self) -> None:
        result = CliRunner().invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "listen" in result.output
        assert "dashboard" in result.output

    def test_listen_help_shows_connection_options(self) -> None:
        result = CliRunner().invoke(cli, ["listen", "--help"])
        assert result.exit_code == 0
        for option in ("--transport", "--min-delay", "--duration", "--format", "--base64"):
            assert option in result.output

    def test_dashboard_help_shows_keys(self) -> None:
        result = CliRunner().invoke(cli, ["dashboard", "--help"])
        assert result.exit_code == 0
        assert "--refresh" in result.output
        assert "auto-scroll" in result.output


class TestListen:
    def test_streams_json_log_events_until_duration(
        self, cli_env: Path, refused_url: str
    ) -> None:
        result = CliRunner().invoke(
            cli,
            ["listen", refused_url, "--duration", "0.5", "--format", "json", *_FAST],
        )
        assert result.exit_code == 0, result.output
        events = _events(result.output)
        assert events
        assert all(e["event"] == "log" for e in events)
        texts = [str(e["data"]["text"]) for e in events]  # type: ignore[index]
        assert texts[0] == f"Connecting to {refused_url}..."
        assert any(t.startswith("Connect failed: ") for t in texts)
        assert any(t.startswith("Reconnecting in ") for t in texts)
        assert texts[-1] == "Listener stopped."

    def test_url_from_environment(
        self, cli_env: Path, refused_url: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("WSTELEM_URL", refused_url)
        result = CliRunner().invoke(
            cli, ["listen", "--duration", "0.2", "--format", "json", *_FAST]
        )
        assert result.exit_code == 0, result.output
        assert refused_url in result.output

    def test_non_positive_duration_is_usage_error(self, cli_env: Path) -> None:
        result = CliRunner().invoke(cli, ["listen", "ws://a/ws", "--duration", "0"])
        assert result.exit_code == 2
        assert "--duration must be positive" in result.output


class TestDashboard:
    def test_non_positive_refresh_is_usage_error(self, cli_env: Path) -> None:
        result = CliRunner().invoke(cli, ["dashboard", "ws://a/ws", "--refresh", "0"])
        assert result.exit_code == 2
        assert "--refresh must be positive" in result.output


class TestErrorMapping:
    def test_bad_scheme_is_config_error(
        self, cli_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["--format", "json", "listen", "ftp://robot.local/ws"])
        assert exc_info.value.code == 1
        parsed = json.loads(capsys.readouterr().out)
        assert parsed["ok"] is False
        assert parsed["command"] == "wstelem.listen"
        assert parsed["error"]["code"] == "config_error"
        assert "not allowed" in parsed["error"]["message"]

    def test_invalid_setting_is_config_error(
        self, cli_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(
                [
                    "--format",
                    "json",
                    "listen",
                    "ws://a/ws",
                    "--min-delay",
                    "5000",
                    "--max-delay",
                    "100",
                ]
            )
        assert exc_info.value.code == 1
        parsed = json.loads(capsys.readouterr().out)
        assert parsed["error"]["code"] == "config_error"
        assert parsed["error"]["message"].startswith("Invalid settings:")

    def test_usage_error_exit_code(self, cli_env: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["listen", "--transport", "carrier-pigeon"])
        assert exc_info.value.code == 2
