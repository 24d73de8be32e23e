#!/usr/bin/env python3
"""Start the Wordware MCP server on stdio.

Usage:
    python scripts/start_server.py [--api-key KEY] [--app-ids ID ...] [--debug]

Equivalent to the `wordware-mcp` console script, for running from a checkout.
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from wordware_mcp.cli import main


if __name__ == "__main__":
    sys.exit(main())
