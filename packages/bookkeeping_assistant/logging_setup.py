"""Logging for ``bookkeeping_assistant``.

Library modules call ``get_logger("bookkeeping_assistant.<module>")`` and never
attach handlers. The host (the CLI, a chat webhook) calls
:func:`configure_logging` once at startup.

Every record emitted through the configured handler carries ``ledger_id`` and
``process_id`` attributes. Per-message code binds them with
:func:`bind_logger`; records logged without a binding show ``-``, so one
chat message can be followed across parse, match and learn lines.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from typing import IO, Any

_PKG_LOGGER_NAME = "bookkeeping_assistant"
_LEVEL_ENV = "BOOKKEEPING_LOG_LEVEL"
_CONTEXT_FIELDS: tuple[str, ...] = ("ledger_id", "process_id")
DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s [%(ledger_id)s %(process_id)s] %(message)s"

_CONFIGURED = False


class _MessageContextFilter(logging.Filter):
    """Fill in missing per-message fields so the format never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        for field in _CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, "-")
        return True


class _BoundLogger(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def _resolve_level(*candidates: int | str | None) -> int:
    """First usable level among ``candidates``; INFO when none is."""

    for value in candidates:
        if isinstance(value, int):
            return value
        if not isinstance(value, str) or not value.strip():
            continue
        name = value.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelName(name)
        if isinstance(numeric, int):
            return numeric
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Attach one ``StreamHandler`` to the package logger; later calls are no-ops.

    Parameters
    ----------
    level:
        ``int`` or level name. Unset or unrecognized values fall back to
        ``BOOKKEEPING_LOG_LEVEL``, then INFO.
    fmt:
        Format string; defaults to :data:`DEFAULT_FORMAT`, which includes the
        bound ledger and process ids.
    stream:
        Handler output (``sys.stderr``).
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    resolved = _resolve_level(level, os.getenv(_LEVEL_ENV))
    logger = logging.getLogger(_PKG_LOGGER_NAME)
    logger.handlers[:] = [h for h in logger.handlers if not isinstance(h, logging.NullHandler)]

    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.addFilter(_MessageContextFilter())
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    # No double emission through the root logger
    logger.propagate = False
    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return ``name``'s logger; silent until :func:`configure_logging` runs."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


def bind_logger(
    logger: logging.Logger,
    *,
    ledger_id: str | None = None,
    process_id: str | None = None,
    **extra: Any,
) -> logging.LoggerAdapter:
    """Wrap ``logger`` so every record carries the message's ledger and process id."""

    context: Mapping[str, Any] = {
        "ledger_id": ledger_id or "-",
        "process_id": process_id or "-",
        **extra,
    }
    return _BoundLogger(logger, dict(context))


__all__ = ["DEFAULT_FORMAT", "bind_logger", "configure_logging", "get_logger"]
