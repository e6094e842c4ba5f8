# src/botflow/core/logging.py
"""structlog setup shared by the compiler, registry, runtime and CLI.

Events go through stdlib logging with a structlog ProcessorFormatter on a
single stderr handler, so structlog loggers, plain ``logging`` loggers and
third-party libraries all come out in one format. stdout stays reserved for
compiled bodies and run reports.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# Libraries that log every connection or statement below WARNING.
_QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "sqlalchemy.pool")


def _drop_formatter_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    # Added by ProcessorFormatter for every record.
    event_dict.pop("_record")
    event_dict.pop("_from_structlog")
    return event_dict


def _pre_chain() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _renderers(json_output: bool) -> list[Any]:
    if json_output:
        return [
            _drop_formatter_fields,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    return [_drop_formatter_fields, structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]


def configure_logging(*, json_output: bool = False, level: str = "INFO") -> None:
    """Install the botflow log format on the root logger.

    Safe to call repeatedly; each call replaces the previous handler.

    Args:
        json_output: One JSON object per line instead of console output.
        level: Root level name (DEBUG, INFO, WARNING, ERROR).
    """
    root_level = logging.getLevelName(level.upper())
    if not isinstance(root_level, int):
        raise ValueError(f"Unknown log level: {level!r}")

    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Loggers bound before a reconfigure must pick up the new setup.
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ProcessorFormatter(processors=_renderers(json_output), foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(root_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Module logger; components accept one of these as their ``logger`` argument."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
