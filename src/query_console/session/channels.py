"""Typed message channels for one editing session.

Each concern gets its own channel carrying a specific message type. The
channels are created with a session and closed with it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, fields
from typing import Generic, TypeVar

from query_console.observability import get_logger
from query_console.session.state import SessionState

logger = get_logger(__name__)

T = TypeVar("T")


class ChannelClosedError(Exception):
    """Raised when publishing to or subscribing on a closed channel."""

    pass


class Channel(Generic[T]):
    """Synchronous publish/subscribe channel for one message type."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: list[Callable[[T], None]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, handler: Callable[[T], None]) -> Callable[[], None]:
        """Register ``handler``.

        Returns:
            A callable that removes the subscription.
        """
        if self._closed:
            raise ChannelClosedError(f"Channel is closed: {self.name}")
        self._subscribers.append(handler)

        def unsubscribe() -> None:
            if handler in self._subscribers:
                self._subscribers.remove(handler)

        return unsubscribe

    def publish(self, message: T) -> None:
        """Deliver ``message`` to every subscriber, in subscription order."""
        if self._closed:
            raise ChannelClosedError(f"Channel is closed: {self.name}")
        logger.debug("channel_publish", channel=self.name, subscribers=len(self._subscribers))
        for handler in list(self._subscribers):
            handler(message)

    def close(self) -> None:
        self._closed = True
        self._subscribers.clear()


@dataclass(frozen=True)
class ToggleRun:
    """Start a run, or stop the one in flight."""


@dataclass(frozen=True)
class RunQuery:
    """Run a literal query.

    With ``append`` the query is added to the end of the document first;
    otherwise its first occurrence in the document is selected.
    """

    query: str
    append: bool = True


@dataclass(frozen=True)
class ExportQuery:
    """Offer the query's results as a download."""

    query: str


@dataclass(frozen=True)
class InsertText:
    """Insert text at the cursor."""

    text: str


@dataclass(frozen=True)
class FocusEditor:
    """Scroll the cursor into view and focus the editor."""


@dataclass(frozen=True)
class FocusGrid:
    """Move keyboard focus to the result grid."""


@dataclass(frozen=True)
class LoadPreferences:
    """Restore the stored editor snapshot."""


@dataclass(frozen=True)
class SavePreferences:
    """Store an editor snapshot."""


@dataclass(frozen=True)
class SetContents:
    """Replace the editor contents."""

    text: str


@dataclass(frozen=True)
class Download:
    """A URL the UI should follow to download a file."""

    url: str


@dataclass
class SessionChannels:
    """All channels of one session."""

    toggle_run: Channel[ToggleRun] = field(default_factory=lambda: Channel("toggle_run"))
    run_query: Channel[RunQuery] = field(default_factory=lambda: Channel("run_query"))
    export_query: Channel[ExportQuery] = field(default_factory=lambda: Channel("export_query"))
    insert_text: Channel[InsertText] = field(default_factory=lambda: Channel("insert_text"))
    focus_editor: Channel[FocusEditor] = field(default_factory=lambda: Channel("focus_editor"))
    focus_grid: Channel[FocusGrid] = field(default_factory=lambda: Channel("focus_grid"))
    load_preferences: Channel[LoadPreferences] = field(
        default_factory=lambda: Channel("load_preferences")
    )
    save_preferences: Channel[SavePreferences] = field(
        default_factory=lambda: Channel("save_preferences")
    )
    set_contents: Channel[SetContents] = field(default_factory=lambda: Channel("set_contents"))
    download: Channel[Download] = field(default_factory=lambda: Channel("download"))
    state_changed: Channel[SessionState] = field(default_factory=lambda: Channel("state_changed"))

    def close(self) -> None:
        """Close every channel."""
        for channel_field in fields(self):
            getattr(self, channel_field.name).close()
