"""Structured logging configuration."""

import logging
import os
import sys
from pythonjsonlogger import jsonlogger


def setup_logging(debug: bool = os.getenv("DEBUG", "false").lower() == "true"):
    """Setup structured JSON logging.

    Logs go to stderr: stdout carries the MCP stdio channel and must only
    ever contain protocol messages.
    """
    logger = logging.getLogger("wordware_mcp")
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Remove existing handlers
    logger.handlers = []

    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # Set levels for third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("mcp").setLevel(logging.WARNING)

    return logger


# Initialize logging
app_logger = setup_logging()
