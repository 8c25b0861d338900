"""User-facing notifications for BidSync.

Sync and persist failures never raise to callers; they are turned into a
``Notification`` here. Delivery (toasts, banners) belongs to the host
application, which registers a sink. Every notification is also logged.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

import structlog

logger = structlog.get_logger()


class NotificationVariant(str, Enum):
    """Severity of a notification, as rendered by the host."""

    DEFAULT = "default"
    SUCCESS = "success"
    WARNING = "warning"
    DESTRUCTIVE = "destructive"


@dataclass(frozen=True)
class Notification:
    """One message for the user."""

    title: str
    description: str
    variant: NotificationVariant = NotificationVariant.DEFAULT
    bid_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


NotificationSink = Callable[[Notification], None]


class Notifier:
    """Collects notifications and forwards them to an optional sink."""

    def __init__(self, sink: Optional[NotificationSink] = None, max_history: int = 100):
        self._sink = sink
        self._max_history = max_history
        self.history: List[Notification] = []

    def notify(
        self,
        title: str,
        description: str,
        variant: NotificationVariant = NotificationVariant.DEFAULT,
        bid_id: Optional[str] = None,
    ) -> Notification:
        notification = Notification(title=title, description=description, variant=variant, bid_id=bid_id)
        self.history.append(notification)
        if len(self.history) > self._max_history:
            del self.history[: len(self.history) - self._max_history]

        log = logger.warning if variant in (NotificationVariant.WARNING, NotificationVariant.DESTRUCTIVE) else logger.info
        log(
            "user_notified",
            title=title,
            description=description,
            variant=variant.value,
            bid_id=bid_id,
        )

        if self._sink is not None:
            self._sink(notification)
        return notification

    def success(self, title: str, description: str, bid_id: Optional[str] = None) -> Notification:
        return self.notify(title, description, NotificationVariant.SUCCESS, bid_id)

    def warning(self, title: str, description: str, bid_id: Optional[str] = None) -> Notification:
        return self.notify(title, description, NotificationVariant.WARNING, bid_id)

    def error(self, title: str, description: str, bid_id: Optional[str] = None) -> Notification:
        return self.notify(title, description, NotificationVariant.DESTRUCTIVE, bid_id)

    @property
    def last(self) -> Optional[Notification]:
        return self.history[-1] if self.history else None

    def clear(self) -> None:
        self.history.clear()
