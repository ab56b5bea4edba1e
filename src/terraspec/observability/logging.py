"""Structured logging setup: structlog processors with level filtering and redaction."""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping, MutableMapping
from typing import IO, Any, Final

import structlog

from terraspec.config.schema import REDACTED_VALUE, is_sensitive_key

_DEFAULT_LEVEL: Final[str] = "INFO"
_DEFAULT_FORMAT: Final[str] = "console"


def redact_event(
    logger: object, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor replacing values under sensitive keys."""
    for key in list(event_dict):
        if key == "event":
            continue
        value = event_dict[key]
        if is_sensitive_key(key):
            event_dict[key] = REDACTED_VALUE
        elif isinstance(value, Mapping):
            event_dict[key] = _redact_mapping(value)
    return event_dict


def _redact_mapping(value: Mapping[str, Any]) -> dict[str, Any]:
    return {
        key: REDACTED_VALUE
        if is_sensitive_key(str(key))
        else _redact_mapping(item) if isinstance(item, Mapping) else item
        for key, item in value.items()
    }


def build_processors(*, log_format: str, redact_secrets: bool) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if redact_secrets:
        processors.append(redact_event)
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def configure_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    stream: IO[str] | None = None,
) -> None:
    """Configure structlog from the ``observability`` config section.

    Logs go to stderr by default so command output on stdout stays machine readable.
    """

    settings = observability_config or {}
    level_name = str(settings.get("log_level", _DEFAULT_LEVEL)).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise ValueError(f"unknown log level {level_name!r}")
    log_format = str(settings.get("log_format", _DEFAULT_FORMAT))
    redact_secrets = settings.get("redact_secrets", True) is not False

    structlog.configure(
        processors=build_processors(log_format=log_format, redact_secrets=redact_secrets),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        context_class=dict,
        cache_logger_on_first_use=False,
    )


__all__ = ["build_processors", "configure_logging", "redact_event"]
