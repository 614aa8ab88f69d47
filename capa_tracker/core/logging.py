"""
Logging for the CAPA tracker.

All loggers live under the ``capa_tracker`` namespace and share one stdout
handler that writes single-line ``key=value`` records. Context passed through
``log_with_context`` is appended after the message; ``capa_id`` always comes
first so records about the same CAPA line up when grepping.
"""

import logging
import sys
from typing import Any

ROOT_LOGGER = "capa_tracker"

_BASE_FIELDS = ("timestamp", "level", "logger", "message")


def _render(value: Any) -> str:
    text = str(value)
    if not text or any(ch.isspace() or ch == "=" for ch in text):
        return repr(text)
    return text


class StructuredFormatter(logging.Formatter):
    """key=value formatter with CAPA context fields."""

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = dict(zip(_BASE_FIELDS, (
            self.formatTime(record, self.datefmt),
            record.levelname,
            record.name,
            record.getMessage(),
        )))

        capa_id = getattr(record, "capa_id", None)
        if capa_id is not None:
            fields["capa_id"] = capa_id
        fields.update(getattr(record, "context", None) or {})

        line = " ".join(f"{key}={_render(value)}" for key, value in fields.items())
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return root

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)
    root.propagate = False

    try:
        from capa_tracker.core.config import get_settings

        env = get_settings().CAPA_ENV
    except Exception:
        # Settings need the Supabase env vars; logging must not
        env = None
    root.setLevel(logging.DEBUG if env == "dev" else logging.INFO)
    return root


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the capa_tracker namespace.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger sharing the package handler
    """
    _configure_root()
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: int, msg: str, **kwargs: Any) -> None:
    """
    Log a message with context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Context fields (e.g. capa_id, folio)
    """
    capa_id = kwargs.pop("capa_id", None)
    logger.log(level, msg, extra={"capa_id": capa_id, "context": kwargs})
