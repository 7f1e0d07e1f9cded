"""Structured logging for DepGraph (structlog rendered through stdlib logging).

Records go to stderr; stdout carries command output only. Settings come
from arguments first, then ``DEPGRAPH_LOG_LEVEL`` (default ``INFO``) and
``DEPGRAPH_LOG_FORMAT`` (``console``, ``json`` or ``logfmt``; default
``console``).
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

from depgraph.exceptions import ConfigError

_HANDLER_NAME = "depgraph"

# Never more verbose than WARNING.
_QUIET_LOGGERS = ("httpx", "httpcore")

_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def _resolve_level(level: str | None) -> int:
    name = (level or os.environ.get("DEPGRAPH_LOG_LEVEL") or "INFO").strip().upper()
    if name not in _LEVELS:
        raise ConfigError(f"unknown log level {name!r} (expected one of: {', '.join(_LEVELS)})")
    return logging.getLevelName(name)


def _renderer(fmt: str | None) -> structlog.types.Processor:
    name = (fmt or os.environ.get("DEPGRAPH_LOG_FORMAT") or "console").strip().lower()
    if name == "console":
        return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    if name == "json":
        return structlog.processors.JSONRenderer()
    if name == "logfmt":
        return structlog.processors.LogfmtRenderer()
    raise ConfigError(f"unknown log format {name!r} (expected console, json or logfmt)")


def setup_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Route structlog and stdlib records through one stderr handler.

    Safe to call repeatedly: the handler installed by a previous call is
    replaced rather than duplicated. Raises :class:`ConfigError` for an
    unknown level or format.
    """
    log_level = _resolve_level(level)
    renderer = _renderer(fmt)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(log_level)

    logging.getLogger("depgraph").setLevel(log_level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
