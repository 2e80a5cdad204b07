"""
structlog setup for Stakewatch.

Every record carries an ISO timestamp, the level, the emitting module and
an event_type; engine events add voter or authority context through
bind_validator() / bind_authority(). Records go to stderr, one JSON object
per line (LOG_FORMAT=json) or a console rendering for local runs.

The module configures itself from LOG_LEVEL / LOG_FORMAT on first import;
the CLI calls configure_logging() again with the values from Settings.
Imports nothing from stakewatch so any module can log.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

DEFAULT_LEVEL = "INFO"
DEFAULT_FORMAT = "json"


def _stamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """structlog's positional 'event' becomes event_type."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def _renderer(fmt: str) -> Any:
    if fmt == "json":
        return structlog.processors.JSONRenderer(sort_keys=True)
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """
    (Re)configure structlog.

    level and fmt default to LOG_LEVEL and LOG_FORMAT from the environment.
    Unknown level names fall back to INFO.
    """
    level_name = (level or os.getenv("LOG_LEVEL") or DEFAULT_LEVEL).strip().upper()
    fmt_name = (fmt or os.getenv("LOG_FORMAT") or DEFAULT_FORMAT).strip().lower()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            _stamp,
            _event_type,
            _renderer(fmt_name),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name, logging.INFO)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> Any:
    """
    Logger for a module; call sites pass the event type first:

        logger = get_logger(__name__)
        logger.info("authority_analyzed", authority="firep", active_validators=412)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_validator(voter: str, name: str = "stakewatch") -> Any:
    return get_logger(name).bind(voter=voter)


def bind_authority(authority: str, name: str = "stakewatch") -> Any:
    return get_logger(name).bind(authority=authority)
