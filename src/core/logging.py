"""
Structured logging configuration with structlog.

Modules only ever do `logger = structlog.get_logger()` and log key/value pairs.
The renderer ("console" or "json") and the level come from Settings.
"""

import logging
import sys
from enum import Enum
from typing import Any, MutableMapping

import structlog

_VALID_LOG_FORMATS = {"json", "console"}


def _serialize_enums(
    _logger: object, _method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Replace Enum instances with their .value for readable log output."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def setup_logging(level: str = "INFO", log_format: str = "console") -> None:
    """Configure structlog on top of the stdlib root logger."""
    log_format = log_format.lower()
    if log_format not in _VALID_LOG_FORMATS:
        raise ValueError(
            f"Invalid log format {log_format!r}. Must be one of {', '.join(sorted(_VALID_LOG_FORMATS))}."
        )
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level {level!r}.")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _serialize_enums,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    # SQLAlchemy echo is controlled through Settings.database_echo
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
