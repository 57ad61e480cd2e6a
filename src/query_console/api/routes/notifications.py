"""Notification feed API routes.

Provides endpoints for:
- Listing the feed
- Changing its height budget
- Removing one notification or clearing all
"""

from __future__ import annotations

from fastapi import APIRouter

from query_console.api.routes.utils import SessionDep
from query_console.models.notifications import MaxHeightRequest, NotificationFeedResponse

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("", response_model=NotificationFeedResponse)
async def list_notifications(session: SessionDep) -> NotificationFeedResponse:
    """List notifications, newest first."""
    return NotificationFeedResponse.from_state(session.feed.state)


@router.put("/max-height", response_model=NotificationFeedResponse)
async def set_max_height(
    request: MaxHeightRequest, session: SessionDep
) -> NotificationFeedResponse:
    """Change the height budget, evicting the oldest notifications that no longer fit."""
    return NotificationFeedResponse.from_state(session.feed.set_max_height(request.max_height))


@router.delete("/{notification_id}", response_model=NotificationFeedResponse)
async def remove_notification(
    notification_id: int, session: SessionDep
) -> NotificationFeedResponse:
    """Remove one notification. Unknown ids are ignored."""
    return NotificationFeedResponse.from_state(session.feed.remove(notification_id))


@router.delete("", response_model=NotificationFeedResponse)
async def clear_notifications(session: SessionDep) -> NotificationFeedResponse:
    """Remove every notification."""
    return NotificationFeedResponse.from_state(session.feed.clear())
