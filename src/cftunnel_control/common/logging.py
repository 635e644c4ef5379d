"""Structured logging for the control plane, built on structlog."""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any, TextIO

import structlog
from structlog.typing import EventDict, Processor

from .utils import sanitize_log_data


def mask_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> EventDict:
    """Mask relay tokens and SSH passwords passed as log context."""
    return sanitize_log_data(dict(event_dict))


# Applied to records from plain stdlib loggers as well
_FOREIGN_PRE_CHAIN: list[Processor] = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def _formatter(renderer: Processor) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=_FOREIGN_PRE_CHAIN,
    )


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """Configure structured logging.

    Console output goes to stderr unless ``stream`` is given, keeping stdout
    free for the shell. The optional log file always receives JSON lines
    written as UTF-8, since CLI output is frequently Chinese.

    Args:
        level: Level name applied to the root logger and every handler
        json_format: Render console output as JSON instead of key=value
        log_file: Path of an additional JSON log file
        stream: Console stream (defaults to ``sys.stderr``)
    """
    numeric_level = logging.getLevelName(level.upper())
    json_renderer = structlog.processors.JSONRenderer(ensure_ascii=False)

    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    renderers: list[Processor] = [
        json_renderer if json_format else structlog.dev.ConsoleRenderer()
    ]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
        renderers.append(json_renderer)

    for handler, renderer in zip(handlers, renderers):
        handler.setLevel(numeric_level)
        handler.setFormatter(_formatter(renderer))

    root = logging.getLogger()
    root.handlers = handlers
    root.setLevel(numeric_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_FOREIGN_PRE_CHAIN,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            mask_secrets,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger for ``name`` (usually ``__name__``)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
