"""Unit tests for the command line entry point."""

import json
import os

import pytest
from unittest.mock import AsyncMock, patch

from wordware_mcp.cli import apply_args, build_parser, main

ENV_NAMES = ("WORDWARE_API_KEY", "APP_IDS", "POLL_INTERVAL_SECONDS", "POLL_MAX_ATTEMPTS", "DEBUG")


@pytest.fixture
def clean_env(monkeypatch):
    """Register every variable the CLI may write so monkeypatch restores it."""
    for name in ENV_NAMES:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestApplyArgs:
    def test_flags_override_environment(self, clean_env):
        args = build_parser().parse_args([
            "--api-key", "cli-key",
            "--app-ids", "a1,a2", "a3",
            "--poll-interval", "0.5",
            "--poll-attempts", "10",
        ])

        cfg = apply_args(args)

        assert cfg.WORDWARE_API_KEY == "cli-key"
        assert cfg.APP_IDS == ["a1", "a2", "a3"]
        assert json.loads(os.environ["APP_IDS"]) == ["a1", "a2", "a3"]
        assert cfg.POLL_INTERVAL_SECONDS == 0.5
        assert cfg.POLL_MAX_ATTEMPTS == 10

    def test_environment_used_without_flags(self, clean_env):
        clean_env.setenv("WORDWARE_API_KEY", "env-key")
        clean_env.setenv("APP_IDS", "x1")

        cfg = apply_args(build_parser().parse_args([]))

        assert cfg.WORDWARE_API_KEY == "env-key"
        assert cfg.APP_IDS == ["x1"]


class TestMain:
    def test_missing_api_key_exits_1(self, clean_env, capsys):
        with patch("wordware_mcp.server.serve", new=AsyncMock()) as serve:
            assert main([]) == 1

        serve.assert_not_called()
        assert "WORDWARE_API_KEY" in capsys.readouterr().err

    def test_invalid_poll_attempts_exits_1(self, clean_env):
        assert main(["--api-key", "k", "--poll-attempts", "0"]) == 1

    @pytest.mark.parametrize("name", ["POLL_MAX_ATTEMPTS", "POLL_INTERVAL_SECONDS"])
    def test_unparsable_env_value_exits_1(self, clean_env, capsys, name):
        """A bad numeric env value is reported with usage, not a traceback."""
        clean_env.setenv("WORDWARE_API_KEY", "k")
        clean_env.setenv(name, "abc")

        with patch("wordware_mcp.server.serve", new=AsyncMock()) as serve:
            assert main([]) == 1

        serve.assert_not_called()
        err = capsys.readouterr().err
        assert name in err
        assert "usage:" in err
        assert "Traceback" not in err

    def test_starts_server(self, clean_env):
        with patch("wordware_mcp.server.serve", new=AsyncMock()) as serve:
            assert main(["--api-key", "k", "--app-ids", "a1"]) == 0

        cfg = serve.await_args.args[0]
        assert cfg.WORDWARE_API_KEY == "k"
        assert cfg.APP_IDS == ["a1"]
