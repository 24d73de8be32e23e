"""Unit tests for configuration loading."""

import importlib

import pytest

from wordware_mcp.infra.config import Config, parse_app_ids
from wordware_mcp.infra.error_handler import ConfigurationError


class TestParseAppIds:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            (None, []),
            ("", []),
            ("   ", []),
            ('["a1", "a2"]', ["a1", "a2"]),
            ("a1,a2", ["a1", "a2"]),
            (" a1 , , a2 ", ["a1", "a2"]),
            ('["a1", ""]', ["a1"]),
            ("[not json", ["[not json"]),
        ],
    )
    def test_parse(self, raw, expected):
        assert parse_app_ids(raw) == expected


class TestConfig:
    """Environment to Config."""

    def test_defaults(self, monkeypatch):
        for name in (
            "APP_IDS",
            "POLL_INTERVAL_SECONDS",
            "POLL_MAX_ATTEMPTS",
            "RUN_DEADLINE_SECONDS",
            "DEFAULT_INPUT_NAME",
            "METRICS_PORT",
        ):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setenv("WORDWARE_API_KEY", "k")

        cfg = Config()
        cfg.validate()

        assert cfg.APP_IDS == []
        assert cfg.POLL_INTERVAL_SECONDS == 1.0
        assert cfg.POLL_MAX_ATTEMPTS == 30
        assert cfg.RUN_DEADLINE_SECONDS is None
        assert cfg.DEFAULT_INPUT_NAME == "input"
        assert cfg.METRICS_PORT is None

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("WORDWARE_API_KEY", "k")
        monkeypatch.setenv("APP_IDS", '["a1"]')
        monkeypatch.setenv("POLL_INTERVAL_SECONDS", "0.5")
        monkeypatch.setenv("POLL_MAX_ATTEMPTS", "5")
        monkeypatch.setenv("RUN_DEADLINE_SECONDS", "120")
        monkeypatch.setenv("DEFAULT_INPUT_NAME", "query")

        cfg = Config()

        assert cfg.APP_IDS == ["a1"]
        assert cfg.POLL_INTERVAL_SECONDS == 0.5
        assert cfg.POLL_MAX_ATTEMPTS == 5
        assert cfg.RUN_DEADLINE_SECONDS == 120.0
        assert cfg.DEFAULT_INPUT_NAME == "query"

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("WORDWARE_API_KEY", raising=False)

        with pytest.raises(ConfigurationError, match="WORDWARE_API_KEY"):
            Config().validate()

    @pytest.mark.parametrize(
        "name,value",
        [
            ("POLL_MAX_ATTEMPTS", "0"),
            ("POLL_INTERVAL_SECONDS", "-1"),
            ("RUN_DEADLINE_SECONDS", "0"),
            ("HTTP_MAX_RETRIES", "-1"),
            ("DEFAULT_INPUT_NAME", "prompt"),
        ],
    )
    def test_out_of_range_values(self, monkeypatch, name, value):
        monkeypatch.setenv("WORDWARE_API_KEY", "k")
        monkeypatch.setenv(name, value)

        with pytest.raises(ConfigurationError):
            Config().validate()

    @pytest.mark.parametrize("name", ["POLL_MAX_ATTEMPTS", "POLL_INTERVAL_SECONDS", "METRICS_PORT"])
    def test_unparsable_numbers(self, monkeypatch, name):
        monkeypatch.setenv(name, "many")

        with pytest.raises(ConfigurationError, match=name):
            Config()

    def test_import_tolerates_bad_values(self, monkeypatch):
        """Bad values are only reported when a Config is built, never on import."""
        import wordware_mcp.infra.config as config_module
        import wordware_mcp.infra.logging as logging_module

        monkeypatch.setenv("POLL_MAX_ATTEMPTS", "abc")

        importlib.reload(config_module)
        importlib.reload(logging_module)

        with pytest.raises(ConfigurationError, match="POLL_MAX_ATTEMPTS"):
            config_module.Config()
