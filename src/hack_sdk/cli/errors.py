"""
hvmt Exit Codes and Error Reporting
===================================

Maps whatever stopped a translation to a message on stderr and a process
exit code. Scripts driving hvmt can tell apart bad VM code (1), a bad
command line or missing input (2), and a fault in the translator
itself (3).
"""

import sys
import traceback
from enum import IntEnum
from typing import NoReturn

import click


class ExitCode(IntEnum):
    """Process exit codes for hvmt."""
    SUCCESS = 0
    BUILD_ERROR = 1      # The VM source could not be translated
    INVALID_ARGS = 2     # Bad path, wrong suffix, empty directory
    INTERNAL_ERROR = 3   # A bug in the translator


def handle_cli_exception(
    error: Exception,
    verbose: bool = False,
    error_type: str | None = None
) -> NoReturn:
    """
    Report error on stderr and exit with its ExitCode.

    VM translation errors already carry file:line:col, the offending
    line and a hint, so they are printed unchanged. Anything unexpected
    is reported as an internal error, with its traceback in verbose mode.

    Args:
        error: The exception that ended the run
        verbose: Print the traceback of internal errors
        error_type: Prefix for errors without a source location
                    (e.g., "Translation")

    Raises:
        SystemExit: Always
    """
    from hack_sdk.errors import HackError, VMTranslationError

    prefix = f"{error_type} error: " if error_type else "Error: "

    if isinstance(error, VMTranslationError):
        click.echo(str(error), err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    elif isinstance(error, HackError):
        click.echo(f"{prefix}{error}", err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    elif isinstance(error, (click.BadParameter, FileNotFoundError,
                            PermissionError, ValueError)):
        # The input named on the command line cannot be translated
        click.echo(f"Error: {error}", err=True)
        sys.exit(ExitCode.INVALID_ARGS)

    elif isinstance(error, OSError):
        # Reading a unit or writing the .asm failed part way
        click.echo(f"{prefix}{error}", err=True)
        sys.exit(ExitCode.BUILD_ERROR)

    else:
        click.echo(f"Internal error: {error}", err=True)
        if verbose:
            traceback.print_exc()
        sys.exit(ExitCode.INTERNAL_ERROR)
