"""Editor commands driven by session channels and key bindings."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING
from urllib.parse import quote

from query_console.editor.document import Selection
from query_console.editor.surface import KeyBinding
from query_console.observability import get_logger
from query_console.session.channels import Download, FocusGrid, ToggleRun

if TYPE_CHECKING:
    from query_console.editor.surface import EditorSurface, PreferenceStore
    from query_console.session.channels import (
        ExportQuery,
        FocusEditor,
        InsertText,
        LoadPreferences,
        RunQuery,
        SavePreferences,
        SessionChannels,
        SetContents,
    )

logger = get_logger(__name__)

EXPORT_PATH = "/api/v1/export/csv"


class Command(str, Enum):
    """Named keyboard commands."""

    EXECUTE = "execute"
    EXECUTE_AT = "execute_at"
    FOCUS_GRID = "focus_grid"


KEY_BINDINGS = {
    Command.EXECUTE: KeyBinding(win="F9"),
    Command.EXECUTE_AT: KeyBinding(win="Ctrl-Enter", mac="Command-Enter"),
    Command.FOCUS_GRID: KeyBinding(win="F2"),
}


def export_url(query: str) -> str:
    """Download URL for the CSV export of ``query``."""
    return f"{EXPORT_PATH}?query={quote(query, safe='')}"


class EditorCommands:
    """Handles every session signal except toggle-run itself."""

    def __init__(
        self,
        editor: EditorSurface,
        channels: SessionChannels,
        preferences: PreferenceStore,
        delimiter: str = ";",
    ) -> None:
        self._editor = editor
        self._channels = channels
        self._preferences = preferences
        self._delimiter = delimiter
        self._unsubscribers: list[Callable[[], None]] = []

    def open(self) -> None:
        """Register key bindings and subscribe to the session channels."""
        handlers: dict[Command, Callable[[], None]] = {
            Command.EXECUTE: self._toggle_run,
            Command.EXECUTE_AT: self._toggle_run,
            Command.FOCUS_GRID: self._focus_grid,
        }
        for command, handler in handlers.items():
            self._editor.register_command(command.value, KEY_BINDINGS[command], handler)

        channels = self._channels
        self._unsubscribers.extend(
            [
                channels.run_query.subscribe(self.run_query),
                channels.export_query.subscribe(self.export_query),
                channels.insert_text.subscribe(self.insert_text),
                channels.focus_editor.subscribe(self.focus_editor),
                channels.load_preferences.subscribe(self.load_preferences),
                channels.save_preferences.subscribe(self.save_preferences),
                channels.set_contents.subscribe(self.set_contents),
            ]
        )

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

    def _toggle_run(self) -> None:
        self._channels.toggle_run.publish(ToggleRun())

    def _focus_grid(self) -> None:
        self._channels.focus_grid.publish(FocusGrid())

    def run_query(self, message: RunQuery) -> None:
        """Select ``message.query`` in the document, then run it."""
        if message.append:
            document = self._editor.document()
            start = self._editor.insert("\n", document.end)
            end = self._editor.insert(message.query)
            self._editor.insert(self._delimiter)
            self._editor.select(Selection(start, end))
        elif self._editor.find(message.query) is None:
            logger.info("run_query_not_found")

        self._toggle_run()

    def export_query(self, message: ExportQuery) -> None:
        if not message.query.strip():
            return
        self._channels.download.publish(Download(url=export_url(message.query)))

    def insert_text(self, message: InsertText) -> None:
        self._editor.insert(message.text)
        self._editor.focus()

    def focus_editor(self, _message: FocusEditor) -> None:
        self._editor.scroll_to_row(self._editor.cursor.row)
        self._editor.focus()

    def load_preferences(self, _message: LoadPreferences) -> None:
        self._preferences.load(self._editor)

    def save_preferences(self, _message: SavePreferences) -> None:
        self._preferences.save(self._editor)

    def set_contents(self, message: SetContents) -> None:
        if message.text:
            self._editor.set_text(message.text)
