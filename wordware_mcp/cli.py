"""Command line entry point for the Wordware MCP server.

Usage:
    wordware-mcp [--api-key KEY] [--app-ids ID [ID ...]] [--poll-interval S] [--poll-attempts N] [--debug]

Flags override WORDWARE_API_KEY, APP_IDS, POLL_INTERVAL_SECONDS and
POLL_MAX_ATTEMPTS from the environment or .env file.
"""

import argparse
import asyncio
import json
import os
import sys
from typing import List, Optional

from wordware_mcp.infra.config import Config
from wordware_mcp.infra.error_handler import ConfigurationError
from wordware_mcp.infra.logging import setup_logging


def _split_app_ids(values: List[str]) -> List[str]:
    app_ids = []
    for value in values:
        app_ids.extend(part.strip() for part in value.split(",") if part.strip())
    return app_ids


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wordware-mcp",
        description="Expose Wordware apps as MCP tools over stdio",
    )
    parser.add_argument("--api-key", "-k", help="Wordware API key (default: WORDWARE_API_KEY)")
    parser.add_argument(
        "--app-ids",
        "-a",
        nargs="+",
        default=[],
        help="App IDs to expose, comma-separated or space-separated (default: APP_IDS, or all)",
    )
    parser.add_argument("--poll-interval", type=float, help="Seconds between run status checks")
    parser.add_argument("--poll-attempts", type=int, help="Status checks before a run times out")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def apply_args(args: argparse.Namespace) -> Config:
    """Push command line values into the environment and build a fresh Config."""
    if args.api_key:
        os.environ["WORDWARE_API_KEY"] = args.api_key
    app_ids = _split_app_ids(args.app_ids)
    if app_ids:
        os.environ["APP_IDS"] = json.dumps(app_ids)
    if args.poll_interval is not None:
        os.environ["POLL_INTERVAL_SECONDS"] = str(args.poll_interval)
    if args.poll_attempts is not None:
        os.environ["POLL_MAX_ATTEMPTS"] = str(args.poll_attempts)
    if args.debug:
        os.environ["DEBUG"] = "true"
    return Config()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = apply_args(args)
        cfg.validate()
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        build_parser().print_help(sys.stderr)
        return 1

    logger = setup_logging(debug=cfg.DEBUG)

    from wordware_mcp.server import serve

    try:
        asyncio.run(serve(cfg))
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("MCP server stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
