#!/usr/bin/env python3
"""
proxdial - Main Entry Point
"""

import logging
import sys
from typing import Optional

from .proxy_cli.cli_base import setup_cli_logging


def setup_logging(verbose: Optional[bool] = None) -> None:
    """Configure logging before the CLI parses its options.

    stdout is reserved for relayed data, so log records go to stderr.
    The CLI reconfigures this once the config file has been read.
    """
    if verbose is None:
        verbose = '--verbose' in sys.argv or '-v' in sys.argv
    setup_cli_logging(verbose=verbose)


def main():
    """Main entry point"""
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.debug("Starting proxdial CLI")

    from .proxy_cli.cli import main_cli
    return main_cli(prog_name="proxdial")


if __name__ == "__main__":
    sys.exit(main())
