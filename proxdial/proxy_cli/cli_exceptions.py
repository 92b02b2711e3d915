"""Proxy CLI Exception Handling - Consistent error reporting for CLI commands

Library errors all derive from ProxDialError; CLI-only failures (bad
argument combinations) use CommandError, which shares that base so the
error handler treats both the same way.
"""

import logging
from typing import Any, Dict, Optional

from rich.markup import escape

from ..proxy_core.exceptions import ProxDialError
from .cli_base import console, print_error


class CommandError(ProxDialError):
    """Command execution errors"""

    def __init__(self, message: str, command: Optional[str] = None,
                 exit_code: Optional[int] = None):
        context = {}
        if command:
            context['command'] = command
        if exit_code is not None:
            context['exit_code'] = exit_code
        super().__init__(message, "COMMAND_ERROR", context)


class CLIErrorHandler:
    """Centralized error handling for CLI operations"""

    def __init__(self, logger: Optional[logging.Logger] = None, verbose: bool = False):
        self.logger = logger or logging.getLogger(__name__)
        self.verbose = verbose

    def handle_error(self, error: Exception, context: Optional[Dict[str, Any]] = None) -> int:
        """Log and print ``error``; returns the process exit status to use"""
        if isinstance(error, ProxDialError):
            error_data = error.to_dict()
            if context:
                error_data['context'].update(context)

            self.logger.debug(f"{error.error_code}: {error.message}",
                              extra={'error_data': error_data})
            self._print_user_error(error)
        else:
            self.logger.error(f"Unexpected error: {error}", exc_info=error)
            print_error(f"an unexpected error occurred: {error}")

        return 1

    def _print_user_error(self, error: ProxDialError) -> None:
        """One line on stderr; context details only in verbose mode"""
        print_error(error.message)

        if self.verbose and error.context:
            for key, value in error.context.items():
                console.print(f"  [dim]{escape(str(key))}: {escape(str(value))}[/dim]")
