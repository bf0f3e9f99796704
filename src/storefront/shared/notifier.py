"""User-facing notifications (the toast channel).

Each logical failure must reach the user exactly once. Callers pass a
``key`` for failures that several code paths can detect at the same time
(session expiry, for instance); a keyed notification is suppressed while an
undismissed one with the same key is still open. Whoever starts a new
episode of that failure (a fresh merge run, a new login, a new offer
validation) calls :meth:`Notifier.dismiss` first so the next occurrence is
shown again.

Only the most recent ``history`` notifications are kept.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

import structlog

logger = structlog.get_logger(__name__)

SESSION_EXPIRED_KEY = "session-expired"
CART_MERGE_KEY = "cart-merge"
OFFERS_INVALIDATED_KEY = "offers-invalidated"
OFFERS_LOAD_KEY = "offers-load"


class NotificationLevel(Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: NotificationLevel
    message: str
    key: str | None = None


class Notifier:
    def __init__(self, history: int = 100) -> None:
        self._notifications: deque[Notification] = deque(maxlen=history)
        self._open_keys: set[str] = set()
        self._listeners: list[Callable[[Notification], None]] = []

    def subscribe(self, listener: Callable[[Notification], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def notify(self, message: str, level: NotificationLevel = NotificationLevel.INFO, key: str | None = None) -> bool:
        """Show ``message``. Returns False when suppressed as a duplicate."""
        if key is not None:
            if key in self._open_keys:
                logger.debug("Duplicate notification suppressed", key=key)
                return False
            self._open_keys.add(key)

        notification = Notification(level=level, message=message, key=key)
        self._notifications.append(notification)
        for listener in list(self._listeners):
            listener(notification)
        return True

    def error(self, message: str, key: str | None = None) -> bool:
        return self.notify(message, NotificationLevel.ERROR, key)

    def warning(self, message: str, key: str | None = None) -> bool:
        return self.notify(message, NotificationLevel.WARNING, key)

    def success(self, message: str, key: str | None = None) -> bool:
        return self.notify(message, NotificationLevel.SUCCESS, key)

    def dismiss(self, key: str) -> None:
        """Close the episode behind ``key``; the next notification with it is shown."""
        self._open_keys.discard(key)

    def pending(self) -> list[Notification]:
        return list(self._notifications)

    def drain(self) -> list[Notification]:
        """Return and forget everything shown so far."""
        shown = list(self._notifications)
        self._notifications.clear()
        self._open_keys.clear()
        return shown
