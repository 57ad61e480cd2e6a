"""One editing session: editor, feed, channels, controller and commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

from query_console.config import get_settings
from query_console.editor.extractor import StatementExtractor
from query_console.editor.surface import InMemoryEditor, InMemoryPreferenceStore
from query_console.notifications.feed import HeightEstimator, NotificationFeed
from query_console.observability import get_logger
from query_console.query.executor import QueryExecutor
from query_console.session.channels import SessionChannels
from query_console.session.commands import EditorCommands
from query_console.session.controller import QuerySessionController

if TYPE_CHECKING:
    from query_console.config import Settings
    from query_console.editor.surface import EditorSurface, PreferenceStore
    from query_console.session.controller import QueryClient

logger = get_logger(__name__)


class ConsoleSession:
    """Owns the collaborators of one editing session and their lifecycle."""

    def __init__(
        self,
        client: QueryClient | None = None,
        editor: EditorSurface | None = None,
        preferences: PreferenceStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.editor = editor if editor is not None else InMemoryEditor()
        self.preferences = preferences if preferences is not None else InMemoryPreferenceStore()
        self.client = client if client is not None else QueryExecutor(settings=settings)
        self.channels = SessionChannels()
        self.extractor = StatementExtractor(settings.editor.delimiter)
        self.feed = NotificationFeed(
            max_height=settings.feed.max_height,
            estimator=HeightEstimator.from_config(settings.feed),
        )
        self.controller = QuerySessionController(
            editor=self.editor,
            client=self.client,
            feed=self.feed,
            channels=self.channels,
            extractor=self.extractor,
            preferences=self.preferences,
            limit=settings.query.limit,
        )
        self.commands = EditorCommands(
            self.editor, self.channels, self.preferences, settings.editor.delimiter
        )
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        if self._open:
            return
        self.controller.open()
        self.commands.open()
        self._open = True
        logger.info("session_opened")

    def close(self) -> None:
        """Cancel any run in flight and close every channel."""
        if not self._open:
            return
        self.controller.close()
        self.commands.close()
        self.channels.close()
        self._open = False
        logger.info("session_closed")
