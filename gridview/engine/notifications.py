"""Non-blocking notifications surfaced to the caller of the engine."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Deque, List, Optional

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str


NoticeCallback = Callable[[Notice], None]

_LOG_LEVELS = {
    NoticeLevel.INFO: logging.INFO,
    NoticeLevel.WARNING: logging.WARNING,
    NoticeLevel.ERROR: logging.ERROR,
}


class Notifier:
    """Log notices and forward them to an optional caller callback.

    The last ``history_size`` notices are kept so that front-ends without a
    callback (and tests) can inspect what happened.
    """

    def __init__(self, callback: Optional[NoticeCallback] = None, history_size: int = 50) -> None:
        self._callback = callback
        self._history: Deque[Notice] = deque(maxlen=history_size)

    @property
    def history(self) -> List[Notice]:
        return list(self._history)

    def clear(self) -> None:
        self._history.clear()

    def info(self, message: str) -> Notice:
        return self.emit(NoticeLevel.INFO, message)

    def warning(self, message: str) -> Notice:
        return self.emit(NoticeLevel.WARNING, message)

    def error(self, message: str) -> Notice:
        return self.emit(NoticeLevel.ERROR, message)

    def emit(self, level: NoticeLevel, message: str) -> Notice:
        notice = Notice(level=level, message=message)
        logger.log(_LOG_LEVELS[level], message)
        self._history.append(notice)
        if self._callback is not None:
            try:
                self._callback(notice)
            except Exception as exc:  # pragma: no cover - caller bug
                logger.debug("Notice callback failed: %s", exc)
        return notice


__all__ = ["Notice", "NoticeLevel", "NoticeCallback", "Notifier"]
