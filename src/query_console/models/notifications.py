"""API models for the notification feed."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from query_console.notifications.feed import Notification, NotificationFeedState


class NotificationModel(BaseModel):
    """One feed entry."""

    id: int = Field(..., description="Creation timestamp in nanoseconds; unique.")
    kind: str = Field(..., description="success, error or info.")
    estimated_height: int
    title: str = Field(..., description="Statement the notification is about.")
    message: str | None = Field(default=None, description="Engine error message.")
    summary: str | None = Field(default=None, description="Row count and timings.")

    @classmethod
    def from_notification(cls, notification: Notification) -> NotificationModel:
        return cls(
            id=notification.id,
            kind=notification.kind.value,
            estimated_height=notification.estimated_height,
            title=notification.title,
            message=notification.message,
            summary=notification.summary,
        )


class NotificationFeedResponse(BaseModel):
    """The feed, newest first."""

    notifications: list[NotificationModel]
    max_height: int
    total_height: int

    @classmethod
    def from_state(cls, state: NotificationFeedState) -> NotificationFeedResponse:
        return cls(
            notifications=[NotificationModel.from_notification(n) for n in state.notifications],
            max_height=state.max_height,
            total_height=state.total_height,
        )


class MaxHeightRequest(BaseModel):
    """Change the feed's height budget."""

    max_height: int = Field(..., ge=0, description="New cumulative height budget.")
