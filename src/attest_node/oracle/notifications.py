"""NotificationBus — dispatch of emitted protocol events.

Notifications are first appended to the state store (which assigns their
sequence number), then published to in-process subscribers. A failing
subscriber is logged and skipped; it never undoes a committed transition.
"""

from __future__ import annotations

import logging
from typing import Callable

from attest_node.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)

Handler = Callable[[Notification], None]


class NotificationBus:
    def __init__(self) -> None:
        self._handlers: dict[NotificationType | None, list[Handler]] = {}

    def subscribe(self, handler: Handler, event_type: NotificationType | None = None) -> None:
        """Register a handler for one event type, or for all when None."""
        self._handlers.setdefault(event_type, []).append(handler)

    def unsubscribe(self, handler: Handler, event_type: NotificationType | None = None) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, notification: Notification) -> None:
        handlers = (
            self._handlers.get(notification.event_type, [])
            + self._handlers.get(None, [])
        )
        for handler in handlers:
            try:
                handler(notification)
            except Exception:
                logger.exception(
                    "Subscriber error for %s (task %d)",
                    notification.event_type.value,
                    notification.task_index,
                )
