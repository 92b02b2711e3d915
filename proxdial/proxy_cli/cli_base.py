"""Base CLI Components - Logging setup and rich output helpers shared by CLI commands"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..proxy_core.constants import (
    DEFAULT_LOG_FORMAT, DEFAULT_LOG_LEVEL, LOG_FILE_BACKUPS, LOG_FILE_MAX_BYTES
)
from ..proxy_core.models import ScanResult

# stdout carries relayed data, so every status line goes to stderr
console = Console(stderr=True, highlight=False)


# ===============================================================================
# LOGGING
# ===============================================================================

class CLILoggingManager:
    """Owns the handlers the CLI installs on the root logger"""

    def __init__(self, console_level: int = logging.WARNING,
                 log_file: Optional[str] = None):
        self.handlers = {}
        self._setup_base_logging(console_level, log_file)

    def _setup_base_logging(self, console_level: int, log_file: Optional[str]) -> None:
        """Attach a stderr handler and, optionally, a rotating file handler"""
        root_logger = logging.getLogger()
        formatter = logging.Formatter(fmt=DEFAULT_LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(console_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)
        self.handlers['console'] = console_handler

        root_level = console_level
        if log_file:
            Path(log_file).expanduser().parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                str(Path(log_file).expanduser()), maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS, encoding='utf-8'
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            self.handlers['file'] = file_handler
            root_level = logging.DEBUG

        root_logger.setLevel(root_level)

    def close(self) -> None:
        """Detach and close every handler this manager installed"""
        root_logger = logging.getLogger()
        for handler in self.handlers.values():
            root_logger.removeHandler(handler)
            handler.close()
        self.handlers = {}


# Global logging manager instance
_logging_manager: Optional[CLILoggingManager] = None


def resolve_log_level(verbose: bool = False, log_level: Optional[str] = None) -> int:
    """DEBUG with verbose, otherwise the configured level name (WARNING by default)"""
    if verbose:
        return logging.DEBUG
    level = logging.getLevelName(str(log_level or DEFAULT_LOG_LEVEL).upper())
    return level if isinstance(level, int) else logging.WARNING


def setup_cli_logging(verbose: bool = False, log_level: Optional[str] = None,
                      log_file: Optional[str] = None) -> CLILoggingManager:
    """(Re)configure CLI logging; handlers from a previous call are replaced"""
    global _logging_manager

    if _logging_manager is not None:
        _logging_manager.close()

    _logging_manager = CLILoggingManager(
        console_level=resolve_log_level(verbose, log_level),
        log_file=log_file
    )
    return _logging_manager


def get_cli_logger(name: str) -> logging.Logger:
    """Get a CLI logger under the proxdial namespace"""
    return logging.getLogger(f"proxdial.cli.{name}")


# ===============================================================================
# OUTPUT
# ===============================================================================

def print_info(message: str) -> None:
    console.print(escape(message))


def print_success(message: str) -> None:
    console.print(f"[green]{escape(message)}[/green]")


def print_error(message: str) -> None:
    console.print(f"[red]Error: {escape(message)}[/red]")


def build_scan_table(host: str, results: List[ScanResult], show_closed: bool = False) -> Table:
    """Rich table of scan results, open ports only unless show_closed"""
    table = Table(title=f"Scan results for {escape(host)}", show_header=True,
                  header_style="bold magenta")
    table.add_column("Port", style="cyan", justify="right")
    table.add_column("State")
    table.add_column("Latency", justify="right")
    table.add_column("Detail", style="dim")

    for result in results:
        if result.open:
            table.add_row(str(result.port), "[green]open[/green]",
                          f"{result.latency_ms:.2f} ms", "")
        elif show_closed:
            table.add_row(str(result.port), "[red]closed/filtered[/red]",
                          f"{result.latency_ms:.2f} ms", escape(result.error_message or ""))
    return table


def show_scan_results(host: str, results: List[ScanResult], verbose: bool = False) -> int:
    """Print the result table plus summary line; returns the open port count"""
    open_count = sum(1 for result in results if result.open)
    if open_count or verbose:
        console.print(build_scan_table(host, results, show_closed=verbose))
    console.print(f"\nScan complete: {len(results)} ports scanned, {open_count} open")
    return open_count
