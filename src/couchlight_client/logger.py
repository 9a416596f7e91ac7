"""Logging wrapper adding a trace level and per-component child loggers."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Literal, Protocol

LogLevel = Literal["trace", "debug", "info", "warn", "error"]

TRACE_LEVEL = 5
logging.addLevelName(TRACE_LEVEL, "TRACE")

LOGGER_NAME = "couchlight"
LOG_LEVEL_ENV = "COUCHLIGHT_LOG_LEVEL"


class LoggerProtocol(Protocol):
    def trace(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def warn(self, msg: str, *args: Any, **kwargs: Any) -> None: ...

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None: ...


LOG_LEVEL_PRIORITY: dict[LogLevel, int] = {
    "trace": 0,
    "debug": 1,
    "info": 2,
    "warn": 3,
    "error": 4,
}

_STDLIB_LEVELS: dict[LogLevel, int] = {
    "trace": TRACE_LEVEL,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class BoundLogger:
    """Wraps a logging.Logger (or a duck-typed object) and filters by level.

    Child loggers created with :meth:`child` share the level of their parent
    and, for real ``logging.Logger`` instances, nest under its name so that
    ``couchlight.http`` or ``couchlight.changes`` can be tuned separately.
    """

    def __init__(
        self,
        logger: Any | None = None,
        *,
        level: LogLevel = "info",
    ) -> None:
        self._logger = logger or _default_logger()
        self._level = level

    @property
    def level(self) -> LogLevel:
        return self._level

    def is_enabled(self, level: LogLevel) -> bool:
        return LOG_LEVEL_PRIORITY[level] >= LOG_LEVEL_PRIORITY[self._level]

    def trace(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.is_enabled("trace"):
            self._log("trace", msg, *args, **kwargs)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.is_enabled("debug"):
            self._log("debug", msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.is_enabled("info"):
            self._log("info", msg, *args, **kwargs)

    def warn(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.is_enabled("warn"):
            self._log("warn", msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        if self.is_enabled("error"):
            self._log("error", msg, *args, **kwargs)

    def child(self, name: str) -> "BoundLogger":
        if isinstance(self._logger, logging.Logger):
            base = self._logger.getChild(name)
        else:
            base = self._logger
        return BoundLogger(base, level=self._level)

    def _log(self, level: LogLevel, msg: str, *args: Any, **kwargs: Any) -> None:
        try:
            if hasattr(self._logger, "log"):
                self._logger.log(_STDLIB_LEVELS[level], msg, *args, **kwargs)
                return

            method_map: dict[LogLevel, Callable[..., Any] | None] = {
                "trace": getattr(self._logger, "trace", None),
                "debug": getattr(self._logger, "debug", None),
                "info": getattr(self._logger, "info", None),
                "warn": getattr(self._logger, "warn", None) or getattr(self._logger, "warning", None),
                "error": getattr(self._logger, "error", None),
            }
            handler = method_map.get(level)
            if handler:
                handler(msg, *args, **kwargs)
        except Exception:
            # Logging must never break a request
            pass


def _default_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(TRACE_LEVEL)
    return logger


def resolve_level(level: str | None, default: LogLevel = "info") -> LogLevel:
    """Map a user or environment supplied level name onto a known level."""
    candidate = (level or os.getenv(LOG_LEVEL_ENV) or default).strip().lower()
    if candidate == "warning":
        candidate = "warn"
    if candidate not in LOG_LEVEL_PRIORITY:
        return default
    return candidate  # type: ignore[return-value]


def create_logger(*, logger: Any | None = None, level: LogLevel | None = None) -> BoundLogger:
    if isinstance(logger, BoundLogger):
        return logger
    return BoundLogger(logger, level=resolve_level(level))


__all__ = ["BoundLogger", "LogLevel", "LoggerProtocol", "create_logger", "resolve_level"]
