"""Prometheus metrics export."""

import logging
from typing import Optional

from prometheus_client import Counter, Histogram, start_http_server

logger = logging.getLogger(__name__)

# Tool metrics
tool_calls_total = Counter(
    "wordware_tool_calls_total",
    "Total tool calls",
    ["tool_name", "outcome"],  # outcome: succeeded | failed | timed_out | cancelled | error
)

tool_call_duration = Histogram(
    "wordware_tool_call_duration_seconds",
    "Tool call duration in seconds",
    ["tool_name"],
)

# Run lifecycle metrics
run_poll_attempts_total = Counter(
    "wordware_run_poll_attempts_total",
    "Status fetches issued while polling runs",
    ["result"],  # result: terminal | pending | error
)

run_stream_records_total = Counter(
    "wordware_run_stream_records_total",
    "JSON records received on run streams",
)

# Discovery metrics
discovered_tools_total = Counter(
    "wordware_discovered_tools_total",
    "Tool descriptors seen during discovery",
    ["status"],  # status: registered | skipped | renamed
)


def start_metrics_server(port: Optional[int]) -> bool:
    """
    Expose metrics over HTTP when a port is configured.

    Returns:
        True if the exporter was started
    """
    if not port:
        return False
    start_http_server(port)
    logger.info(f"Metrics exporter listening on port {port}")
    return True
