"""
Unified CLI Error Handling
==========================

Provides consistent error handling and exit codes for the gbmetrics
commands.
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn, Optional

import click

from gbasm_metrics.errors import ConfigError, MetricsError


class ExitCode(IntEnum):
    """Standard exit codes for CLI tools."""
    SUCCESS = 0
    BUILD_ERROR = 1      # Analysis error or unknown instruction
    INVALID_ARGS = 2     # Invalid arguments, configuration or missing files
    INTERNAL_ERROR = 3   # Unexpected internal error


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: Optional[str] = None,
) -> NoReturn:
    """
    Unified exception handler for all gbmetrics commands.

    Formats the error message, optionally prints the traceback for
    internal errors in verbose mode, and exits with the matching code.

    Args:
        error: The exception that was raised
        verbose: If True, print full traceback for internal errors
        error_type: Optional prefix for the error message (e.g., "Analysis")

    Raises:
        SystemExit: Always exits with an appropriate exit code
    """
    if isinstance(error, ConfigError):
        # Bad option values behave like bad arguments
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, MetricsError):
        prefix = f"{error_type} error: " if error_type else "Error: "
        click.echo(f"{prefix}{error}", err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    elif isinstance(error, click.BadParameter):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, (FileNotFoundError, PermissionError)):
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
