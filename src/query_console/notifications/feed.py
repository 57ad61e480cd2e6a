"""Notification feed bounded by a cumulative height budget.

Notifications are kept newest first. Each carries an estimated rendered
height derived from its kind, so the feed can enforce its budget without
waiting on layout.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

from query_console.config import get_settings
from query_console.observability import get_logger, record_notifications_evicted

if TYPE_CHECKING:
    from query_console.config import FeedConfig

logger = get_logger(__name__)


class NotificationKind(str, Enum):
    """Notification types."""

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Notification:
    """One outcome shown in the feed."""

    id: int
    kind: NotificationKind
    estimated_height: int
    title: str
    message: str | None = None
    summary: str | None = None


@dataclass(frozen=True)
class NotificationFeedState:
    """Snapshot of the feed."""

    notifications: tuple[Notification, ...] = ()
    max_height: int = 500

    @property
    def total_height(self) -> int:
        return total_height(self.notifications)


def total_height(notifications: tuple[Notification, ...] | list[Notification]) -> int:
    return sum(notification.estimated_height for notification in notifications)


class HeightEstimator:
    """Fixed height estimate per notification kind."""

    def __init__(self, success_height: int = 145, default_height: int = 70) -> None:
        self.success_height = success_height
        self.default_height = default_height

    @classmethod
    def from_config(cls, config: FeedConfig) -> HeightEstimator:
        return cls(success_height=config.success_height, default_height=config.default_height)

    def estimate(self, kind: NotificationKind) -> int:
        if kind is NotificationKind.SUCCESS:
            return self.success_height
        return self.default_height


class NotificationFeed:
    """Ordered, height-bounded collection of notifications."""

    def __init__(
        self,
        max_height: int | None = None,
        estimator: HeightEstimator | None = None,
    ) -> None:
        config = get_settings().feed
        self._estimator = estimator or HeightEstimator.from_config(config)
        self._state = NotificationFeedState(
            max_height=config.max_height if max_height is None else max_height
        )
        self._last_id = 0

    @property
    def state(self) -> NotificationFeedState:
        return self._state

    def _next_id(self) -> int:
        # Timestamp ids, bumped to stay unique and increasing within a burst.
        self._last_id = max(time.time_ns(), self._last_id + 1)
        return self._last_id

    def create(
        self,
        kind: NotificationKind,
        title: str,
        message: str | None = None,
        summary: str | None = None,
    ) -> Notification:
        """Build a notification with the next id and its estimated height."""
        return Notification(
            id=self._next_id(),
            kind=kind,
            estimated_height=self._estimator.estimate(kind),
            title=title,
            message=message,
            summary=summary,
        )

    def add(self, notification: Notification) -> NotificationFeedState:
        """Prepend ``notification``, evicting the oldest entries over budget.

        The newest notification always survives, even when it alone exceeds
        the budget.
        """
        notifications = [notification, *self._state.notifications]
        evicted = 0
        while len(notifications) > 1 and total_height(notifications) > self._state.max_height:
            notifications.pop()
            evicted += 1

        self._state = replace(self._state, notifications=tuple(notifications))
        self._record_eviction(evicted, "add")
        return self._state

    def set_max_height(self, max_height: int) -> NotificationFeedState:
        """Change the budget and evict the oldest entries until it holds.

        Unlike ``add`` this may empty the feed.
        """
        if max_height < 0:
            raise ValueError(f"max_height must be >= 0: {max_height}")

        notifications = list(self._state.notifications)
        evicted = 0
        while notifications and total_height(notifications) > max_height:
            notifications.pop()
            evicted += 1

        self._state = NotificationFeedState(
            notifications=tuple(notifications), max_height=max_height
        )
        self._record_eviction(evicted, "resize")
        return self._state

    def remove(self, notification_id: int) -> NotificationFeedState:
        """Remove the notification with ``notification_id``; no-op if absent."""
        notifications = tuple(
            notification
            for notification in self._state.notifications
            if notification.id != notification_id
        )
        if len(notifications) != len(self._state.notifications):
            self._state = replace(self._state, notifications=notifications)
        return self._state

    def clear(self) -> NotificationFeedState:
        self._state = replace(self._state, notifications=())
        return self._state

    def _record_eviction(self, evicted: int, reason: str) -> None:
        if evicted:
            logger.info("notifications_evicted", count=evicted, reason=reason)
            record_notifications_evicted(evicted, reason)
