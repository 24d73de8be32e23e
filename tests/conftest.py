"""Pytest configuration and fixtures."""

import os

import pytest
from unittest.mock import AsyncMock, MagicMock

# Set test environment before the package reads its configuration
os.environ.setdefault("WORDWARE_API_KEY", "test-api-key")
os.environ.setdefault("DEBUG", "true")

from wordware_mcp.models.run import RunHandle, RunStatus
from wordware_mcp.services.run_execution_engine import PollingPolicy


def records(*items):
    """Async iterator over stream records, as returned by stream_run."""
    async def _gen():
        for item in items:
            yield item
    return _gen()


@pytest.fixture
def fast_policy():
    """Polling policy with no delay between attempts."""
    return PollingPolicy(interval_seconds=0, max_attempts=30)


@pytest.fixture
def run_client():
    """Run client double: no stream, run completes on the first poll."""
    client = MagicMock()
    client.submit_run = AsyncMock(return_value=RunHandle(run_id="r1"))
    client.get_run_status = AsyncMock(return_value=RunStatus(status="completed", outputs={"text": "done"}))
    client.stream_run = MagicMock(side_effect=lambda url: records())
    client.list_tools = AsyncMock(return_value=[])
    client.describe_tool = AsyncMock(return_value=None)
    return client


@pytest.fixture
def stream_records():
    """Factory for async stream record iterators."""
    return records
