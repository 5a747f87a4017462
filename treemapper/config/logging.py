"""
structlog configuration for treemapper.

Deserialization failures are reported as `tree_field_error` events on the
`treemapper.serialization` logger. `configure_logging()` routes them, and any other
`treemapper.*` record, to stderr either as console lines or as JSON lines. Only the
`treemapper` logger gets a handler; the root logger is left to the application.
"""

from __future__ import annotations
import logging
import sys
import structlog

_HANDLER_NAME = "treemapper-stderr"


def configure_logging(*, verbose: bool = False, log_json: bool = False) -> None:
    """
    Route treemapper diagnostics to stderr through structlog.

    Safe to call more than once; the previous treemapper handler is replaced.

    Args:
        verbose (bool):
            Log `treemapper` records from DEBUG up instead of from WARNING up.

        log_json (bool):
            Render JSON lines instead of console lines.
    """
    pre_chain: list[structlog.types.Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    renderer: structlog.types.Processor
    if log_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    ))

    package_logger = logging.getLogger("treemapper")
    for old in [h for h in package_logger.handlers if h.get_name() == _HANDLER_NAME]:
        package_logger.removeHandler(old)
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    package_logger.propagate = False
