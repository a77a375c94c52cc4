"""Logging setup for the command line entry points.

Records are written to ``stderr`` either as human readable lines or as JSON
objects.  A :class:`RedactingFilter` masks credentials and shortens cursor
tokens, which are long opaque strings embedded in every pagination URL.
"""

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
import logging.config
import re
from typing import Any, Literal

__all__ = ["JsonFormatter", "RedactingFilter", "configure_logging"]

LogFormat = Literal["human", "json"]

_SECRET_RE = re.compile(
    r"(?i)(?P<prefix>\b(?:token|secret|password|api[_-]?key)\b\s*[:=]\s*)[^\s&,;\"']+"
)
_CURSOR_RE = re.compile(r"(?P<prefix>[?&]cursor=)(?P<cursor>[^&\s>]{8})[^&\s>]*")

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


class RedactingFilter(logging.Filter):
    """Mask secrets and truncate cursor tokens in the formatted message."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        message = _SECRET_RE.sub(r"\g<prefix>***", record.getMessage())
        record.msg = _CURSOR_RE.sub(r"\g<prefix>\g<cursor>...", message)
        # The message is already formatted; drop args to avoid a second pass.
        record.args = ()
        return True


class JsonFormatter(logging.Formatter):
    """Render records as single line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: dict[str, Any] = {
            "timestamp": timestamp.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        }
        if extras:
            payload["extra"] = extras
        return json.dumps(payload, ensure_ascii=False, default=repr)


def _resolve_level(log_level: str) -> int:
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        msg = f"Unknown log level: {log_level!r}"
        raise ValueError(msg)
    return level


def configure_logging(
    log_level: str = "INFO", *, log_format: LogFormat = "human"
) -> None:
    """Configure the root logger.

    Raises:
        ValueError: If ``log_level`` or ``log_format`` is not recognised.
    """

    if log_format not in ("human", "json"):
        msg = f"Unsupported log format: {log_format!r}"
        raise ValueError(msg)
    level_value = _resolve_level(log_level)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"redact": {"()": RedactingFilter}},
            "formatters": {
                "human": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S%z",
                },
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "level": level_value,
                    "filters": ["redact"],
                    "formatter": log_format,
                    "stream": "ext://sys.stderr",
                }
            },
            "root": {"level": level_value, "handlers": ["default"]},
        }
    )
    # urllib3 logs every connection at DEBUG, including full cursor URLs.
    logging.getLogger("urllib3").setLevel(max(level_value, logging.INFO))
