"""Per-session notification queue (the toasts of the portal)."""

from __future__ import annotations

import logging
from collections import deque

from models.errors import Notification, NotificationVariant

logger = logging.getLogger(__name__)

MAX_PENDING_NOTIFICATIONS = 50


class NotificationCenter:
    """Collects notifications until the client picks them up.

    Oldest entries are dropped once ``MAX_PENDING_NOTIFICATIONS`` is reached.
    """

    def __init__(self, maxlen: int = MAX_PENDING_NOTIFICATIONS) -> None:
        self._pending: deque[Notification] = deque(maxlen=maxlen)

    def push(self, notification: Notification) -> None:
        level = logging.WARNING if notification.variant is NotificationVariant.DESTRUCTIVE else logging.INFO
        logger.log(level, "Notify: %s — %s", notification.title, notification.description)
        self._pending.append(notification)

    def peek(self) -> list[Notification]:
        return list(self._pending)

    def drain(self) -> list[Notification]:
        """Return and clear all pending notifications."""
        items = list(self._pending)
        self._pending.clear()
        return items

    def __len__(self) -> int:
        return len(self._pending)
