"""
Structured JSON Logging.

Every component receives a :class:`StructuredLogger` through its
constructor.  Records are written as one JSON object per line to stdout
and, unless ``LOG_FILE`` is empty, to a size-rotated log file.

Security events additionally go through :meth:`StructuredLogger.audit`,
which prefixes the line with ``AUDIT:`` so the trail can be grepped out
of the general log.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Mapping, Optional, TextIO

from pydantic_core import to_jsonable_python

AUDIT_PREFIX: str = "AUDIT: "


class JSONFormatter(logging.Formatter):
    """Formats log records as structured JSON objects.

    Keys: ``timestamp`` (ISO-8601, UTC), ``level``, ``logger_name``,
    ``message``, and, when present, ``extra`` and ``exception``.
    Values passed through ``extra=`` keep their JSON type where they have
    one (ids stay strings, counts stay numbers); anything else is
    rendered with ``str()``.
    """

    _STANDARD_ATTRS: frozenset[str] = frozenset(
        logging.LogRecord(
            name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
        ).__dict__.keys()
    ) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        extra = {
            key: to_jsonable_python(value, fallback=str)
            for key, value in record.__dict__.items()
            if key not in self._STANDARD_ATTRS
        }
        if extra:
            entry["extra"] = extra

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False)


def _stream_handler(stream: Optional[TextIO], level: int) -> logging.Handler:
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    return handler


def _file_handler(
    log_file: str,
    max_bytes: int,
    backup_count: int,
    level: int,
) -> logging.Handler:
    """Rotating file handler.  Raises ``OSError`` when the path is unusable."""
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(log_path),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    return handler


class StructuredLogger:
    """Injectable wrapper around a named ``logging.Logger``.

    Handlers are attached only the first time a name is used, so building
    several ``StructuredLogger`` objects for the same name is cheap and
    never duplicates output.  Unset file options fall back to
    :class:`~parlor.config.AppConfig`.

    Usage::

        log = StructuredLogger(name="parlor")
        log.info("Sale recorded", extra={"sale_id": "s-1", "quantity": 2})
    """

    def __init__(
        self,
        name: str = "parlor",
        level: int = logging.INFO,
        stream: Optional[TextIO] = None,
        log_file: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        # Lazy import: config itself logs through the stdlib logger.
        from parlor.config import get_config

        self._logger: logging.Logger = logging.getLogger(name)
        self._logger.setLevel(level)
        if self._logger.handlers:
            return

        self._logger.addHandler(_stream_handler(stream, level))

        cfg = get_config()
        target = cfg.LOG_FILE if log_file is None else log_file
        if not target:
            return
        try:
            self._logger.addHandler(
                _file_handler(
                    target,
                    cfg.LOG_MAX_BYTES if max_bytes is None else max_bytes,
                    cfg.LOG_BACKUP_COUNT if backup_count is None else backup_count,
                    level,
                )
            )
        except OSError as exc:
            self._logger.warning(
                "Could not open log file '%s': %s. Logging to the console only.",
                target,
                exc,
            )

    @property
    def logger(self) -> logging.Logger:
        """The underlying ``logging.Logger``."""
        return self._logger

    def debug(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args: object, **kwargs: Any) -> None:
        self._logger.critical(msg, *args, **kwargs)

    def audit(self, record: Mapping[str, Any]) -> None:
        """Emit *record* as a single ``AUDIT: {json}`` line at INFO."""
        self._logger.info(
            "%s%s",
            AUDIT_PREFIX,
            json.dumps(to_jsonable_python(record, fallback=str), ensure_ascii=False),
            extra={"event": "AUDIT"},
        )


def get_logger(name: str = "parlor") -> StructuredLogger:
    """Shorthand for ``StructuredLogger(name=name)``."""
    return StructuredLogger(name=name)
