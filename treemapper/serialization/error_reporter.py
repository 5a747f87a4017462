"""
Diagnostic side channel for deserialization failures.

A failure is handed to the active reporter exactly once, right before it leaves the
public deserialization entry point. The default reporter logs through structlog; it can
be replaced or silenced with `set_error_reporter()`, which should happen before the
engine is used from several threads.
"""

from __future__ import annotations
from typing import Any, Callable
import sys
import structlog

from treemapper.serialization.errors import FieldError

ErrorReporter = Callable[[FieldError], None]

LOGGER_NAME = "treemapper.serialization"


def _get_logger() -> Any:
    # unconfigured structlog prints to stdout; diagnostics go to stderr
    if structlog.is_configured():
        return structlog.get_logger(LOGGER_NAME)
    return structlog.wrap_logger(structlog.PrintLogger(file=sys.stderr), logger_name=LOGGER_NAME)


def log_field_error(error: FieldError) -> None:
    """
    Default reporter: emit one `error` event naming the field path and reason.

    Args:
        error (FieldError):
            The failure about to be raised to the caller.
    """
    _get_logger().error(
        "tree_field_error",
        field_path=error.field_path,
        reason=error.reason,
        error=type(error).__name__,
    )


_reporter: ErrorReporter | None = log_field_error


def set_error_reporter(reporter: ErrorReporter | None) -> ErrorReporter | None:
    """
    Install the reporter called on deserialization failures.

    Args:
        reporter (ErrorReporter | None):
            Callable receiving the error, or None to disable reporting.

    Returns:
        ErrorReporter | None:
            The previously installed reporter, so callers can restore it.
    """
    global _reporter  # pylint: disable=global-statement
    previous = _reporter
    _reporter = reporter
    return previous


def report_field_error(error: FieldError) -> None:
    """
    Pass `error` to the active reporter, if any.
    """
    if _reporter is not None:
        _reporter(error)
