"""Configuration management loaded from the environment and an optional .env file."""

import json
import os
from typing import List, Optional
from pathlib import Path
from dotenv import load_dotenv

from wordware_mcp.infra.error_handler import ConfigurationError

# Load .env file from project root
# This ensures dotenv works regardless of where the server is started from
project_root = Path(__file__).parent.parent.parent
env_file = project_root / ".env"

# override=False means existing environment variables take precedence
load_dotenv(dotenv_path=env_file, override=False)


def parse_app_ids(raw: Optional[str]) -> List[str]:
    """
    Parse APP_IDS from either a JSON array or a comma-separated list.

    Args:
        raw: Raw environment value (may be None or empty)

    Returns:
        List of non-empty app IDs, in the order given
    """
    if not raw or not raw.strip():
        return []

    value = raw.strip()
    if value.startswith("["):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return [str(item).strip() for item in parsed if str(item).strip()]

    return [part.strip() for part in value.split(",") if part.strip()]


def _float_env(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


class Config:
    """Bridge configuration, read from the environment on construction."""

    def __init__(self):
        # Credential for every outbound call
        self.WORDWARE_API_KEY: Optional[str] = os.getenv("WORDWARE_API_KEY") or None

        # Optional allowlist of app IDs (or names) to expose as tools
        self.APP_IDS: List[str] = parse_app_ids(os.getenv("APP_IDS"))

        # Remote endpoints
        self.WORDWARE_API_URL: str = os.getenv("WORDWARE_API_URL", "https://api.wordware.ai/v1").rstrip("/")
        self.WORDWARE_RPC_URL: str = os.getenv("WORDWARE_RPC_URL", "http://localhost:9000/rpc")
        self.WORDWARE_SERVICE_URL: str = os.getenv("WORDWARE_SERVICE_URL", "http://localhost:9000").rstrip("/")
        self.RUN_VERSION: str = os.getenv("RUN_VERSION", "1.0")

        # Run lifecycle policy
        self.POLL_INTERVAL_SECONDS: float = _float_env("POLL_INTERVAL_SECONDS", 1.0)
        self.POLL_MAX_ATTEMPTS: int = _int_env("POLL_MAX_ATTEMPTS", 30)
        self.RUN_DEADLINE_SECONDS: Optional[float] = _float_env("RUN_DEADLINE_SECONDS", None)

        # HTTP transport
        self.HTTP_TIMEOUT_SECONDS: float = _float_env("HTTP_TIMEOUT_SECONDS", 30.0)
        self.HTTP_MAX_RETRIES: int = _int_env("HTTP_MAX_RETRIES", 2)

        # Schema fallback parameter name ("input" or "query")
        self.DEFAULT_INPUT_NAME: str = os.getenv("DEFAULT_INPUT_NAME", "input")

        # Application
        self.DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
        self.METRICS_PORT: Optional[int] = _int_env("METRICS_PORT", 0) or None

    def validate(self) -> None:
        """
        Check settings that must hold before any tool is registered.

        Raises:
            ConfigurationError: If the API key is missing or a setting is out of range
        """
        if not self.WORDWARE_API_KEY:
            raise ConfigurationError("WORDWARE_API_KEY environment variable is not set")
        if self.POLL_MAX_ATTEMPTS < 1:
            raise ConfigurationError("POLL_MAX_ATTEMPTS must be at least 1")
        if self.POLL_INTERVAL_SECONDS < 0:
            raise ConfigurationError("POLL_INTERVAL_SECONDS cannot be negative")
        if self.RUN_DEADLINE_SECONDS is not None and self.RUN_DEADLINE_SECONDS <= 0:
            raise ConfigurationError("RUN_DEADLINE_SECONDS must be positive")
        if self.HTTP_MAX_RETRIES < 0:
            raise ConfigurationError("HTTP_MAX_RETRIES cannot be negative")
        if self.DEFAULT_INPUT_NAME not in ("input", "query"):
            raise ConfigurationError("DEFAULT_INPUT_NAME must be 'input' or 'query'")

