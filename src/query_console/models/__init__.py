"""Models package for Query Console."""

from query_console.models.notifications import (
    MaxHeightRequest,
    NotificationFeedResponse,
    NotificationModel,
)
from query_console.models.session import (
    DocumentUpdateRequest,
    InsertTextRequest,
    MarkerModel,
    PositionModel,
    ResultSummary,
    RunQueryRequest,
    SelectionModel,
    SessionResponse,
)

__all__ = [
    "DocumentUpdateRequest",
    "InsertTextRequest",
    "MarkerModel",
    "MaxHeightRequest",
    "NotificationFeedResponse",
    "NotificationModel",
    "PositionModel",
    "ResultSummary",
    "RunQueryRequest",
    "SelectionModel",
    "SessionResponse",
]
