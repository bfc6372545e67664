"""
User-facing notifications.

View models report outcomes here instead of raising: a backend failure
becomes an error notification, a refused input becomes a warning.
"""

import logging
from collections import deque
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Level(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    Level.SUCCESS: logging.INFO,
    Level.INFO: logging.INFO,
    Level.WARNING: logging.WARNING,
    Level.ERROR: logging.ERROR,
}


class Notification:
    __slots__ = ("level", "title", "message")

    def __init__(self, level: Level, title: str, message: str = ""):
        self.level = level
        self.title = title
        self.message = message

    def __repr__(self) -> str:
        return f"Notification(level={self.level.value!r}, title={self.title!r}, message={self.message!r})"


class Notifier:
    """Keeps the most recent notifications and forwards each to an optional listener."""

    def __init__(self, listener: Optional[Callable[[Notification], None]] = None, keep: int = 50):
        self._listener = listener
        self._history: deque[Notification] = deque(maxlen=keep)

    @property
    def history(self) -> list[Notification]:
        return list(self._history)

    @property
    def last(self) -> Optional[Notification]:
        return self._history[-1] if self._history else None

    def clear(self) -> None:
        self._history.clear()

    def notify(self, level: Level, title: str, message: str = "") -> Notification:
        note = Notification(level, title, message)
        self._history.append(note)
        logger.log(_LOG_LEVELS[level], "%s: %s", title, message)
        if self._listener:
            self._listener(note)
        return note

    def success(self, title: str, message: str = "") -> Notification:
        return self.notify(Level.SUCCESS, title, message)

    def info(self, title: str, message: str = "") -> Notification:
        return self.notify(Level.INFO, title, message)

    def warning(self, title: str, message: str = "") -> Notification:
        return self.notify(Level.WARNING, title, message)

    def error(self, title: str, message: str = "") -> Notification:
        return self.notify(Level.ERROR, title, message)
