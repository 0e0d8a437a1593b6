"""Structured logging on top of the standard library ``logging`` module.

Every call takes a short dotted message plus arbitrary keyword fields:

    logger.info("bench.task_retry", event="bench.task_retry", task_index=3, attempt=2)

Fields are rendered either as a single JSON object per line or as
``message key=value ...`` text. Secret-looking fields are redacted and
oversized values truncated before anything reaches a handler.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

_REDACTED = "[REDACTED]"
_TRUNCATED_SUFFIX = "...[truncated]"
_MAX_FIELD_CHARS = 1000
_SECRET_MARKERS = ("private_key", "secret", "password", "token", "api_key")


class Logger(ABC):
    """Minimal structured logging interface used across chainload."""

    @abstractmethod
    def debug(self, message: str, **kwargs: Any) -> None: ...

    @abstractmethod
    def info(self, message: str, **kwargs: Any) -> None: ...

    @abstractmethod
    def warning(self, message: str, **kwargs: Any) -> None: ...

    @abstractmethod
    def error(self, message: str, **kwargs: Any) -> None: ...


class _LiveStreamHandler(logging.StreamHandler):
    """StreamHandler that resolves sys.stdout/sys.stderr at emit time.

    pytest's capsys swaps the std streams per test; binding the stream once
    at construction would write into a stale object.
    """

    def __init__(self, stream_name: str) -> None:
        self._stream_name = stream_name
        super().__init__()

    @property  # type: ignore[override]
    def stream(self):
        return getattr(sys, self._stream_name)

    @stream.setter
    def stream(self, _value) -> None:
        pass


def _sanitize(key: str, value: Any) -> Any:
    lowered = key.lower()
    if any(marker in lowered for marker in _SECRET_MARKERS) and value is not None:
        return _REDACTED
    if isinstance(value, str) and len(value) > _MAX_FIELD_CHARS:
        return value[:_MAX_FIELD_CHARS] + _TRUNCATED_SUFFIX
    return value


class StructuredLogger(Logger):
    """Logger emitting JSON lines or key=value text through stdlib logging."""

    def __init__(
        self,
        name: str = "chainload",
        *,
        level: int = logging.INFO,
        json_format: bool = False,
        stream_name: str = "stdout",
    ) -> None:
        self.name = name
        self.json_format = json_format
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level)
        self._logger.propagate = False

        for handler in list(self._logger.handlers):
            if isinstance(handler, _LiveStreamHandler):
                self._logger.removeHandler(handler)

        handler = _LiveStreamHandler(stream_name)
        handler.setFormatter(logging.Formatter("%(message)s"))
        self._logger.addHandler(handler)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._emit(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._emit(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._emit(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._emit(logging.ERROR, message, kwargs)

    def _emit(self, level: int, message: str, fields: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        clean = {key: _sanitize(key, value) for key, value in fields.items()}
        self._logger.log(level, self._render(level, message, clean))

    def _render(self, level: int, message: str, fields: dict[str, Any]) -> str:
        timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        level_name = logging.getLevelName(level)

        if self.json_format:
            payload: dict[str, Any] = {
                "timestamp": timestamp,
                "level": level_name,
                "logger": self.name,
                "message": message,
            }
            payload.update(fields)
            return json.dumps(payload, default=str, sort_keys=False)

        parts = [timestamp, level_name, message]
        parts.extend(f"{key}={value}" for key, value in fields.items() if key != "event")
        return " ".join(str(p) for p in parts)


class ConsoleLogger(StructuredLogger):
    """Human-readable text logger writing to stderr."""

    def __init__(self, name: str = "chainload", *, level: int = logging.INFO) -> None:
        super().__init__(name, level=level, json_format=False, stream_name="stderr")


def build_session_logger() -> Logger:
    """Build the shared logger from CHAINLOAD_LOG_LEVEL / CHAINLOAD_LOG_JSON."""
    level_name = os.environ.get("CHAINLOAD_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO

    if os.environ.get("CHAINLOAD_LOG_JSON", "").strip().lower() in ("1", "true", "yes"):
        return StructuredLogger("chainload", level=level, json_format=True, stream_name="stderr")
    return ConsoleLogger("chainload", level=level)
