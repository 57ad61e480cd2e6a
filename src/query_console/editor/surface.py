"""Editor capability interface.

The session only talks to the editor through ``EditorSurface``. The
in-memory implementation backs the HTTP API and the tests; a rendering
widget can implement the same protocol.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from query_console.editor.document import Document, Position, Selection

SYNTAX_ERROR_CLASS = "syntax-error"


@dataclass(frozen=True)
class Marker:
    """A highlighted range in the editor."""

    id: int
    start: Position
    end: Position
    css_class: str


@dataclass(frozen=True)
class KeyBinding:
    """Key combination for a command, optionally per platform."""

    win: str
    mac: str | None = None

    def for_platform(self, platform: str) -> str:
        if platform == "mac" and self.mac is not None:
            return self.mac
        return self.win


@dataclass
class EditorCommand:
    """A named, keyboard-triggered editor action."""

    name: str
    binding: KeyBinding
    handler: Callable[[], None]


class EditorSurface(Protocol):
    """Operations the session needs from an editor."""

    @property
    def text(self) -> str: ...

    @property
    def cursor(self) -> Position: ...

    @property
    def selection(self) -> Selection | None: ...

    @property
    def markers(self) -> list[Marker]: ...

    def document(self) -> Document: ...

    def set_text(self, text: str) -> None: ...

    def insert(self, text: str, position: Position | None = None) -> Position: ...

    def select(self, selection: Selection | None) -> None: ...

    def move_caret(self, position: Position, scroll_into_view: bool = False) -> None: ...

    def scroll_to_row(self, row: int) -> None: ...

    def focus(self) -> None: ...

    def add_marker(self, start: Position, end: Position, css_class: str) -> Marker: ...

    def clear_markers(self) -> None: ...

    def find(self, needle: str) -> Selection | None: ...

    def register_command(
        self, name: str, binding: KeyBinding, handler: Callable[[], None]
    ) -> None: ...

    def exec_command(self, name: str) -> bool: ...


class InMemoryEditor:
    """Editor surface holding its state in memory."""

    def __init__(self, text: str = "") -> None:
        self._document = Document(text)
        self._cursor = Position(1, 0)
        self._selection: Selection | None = None
        self._markers: dict[int, Marker] = {}
        self._next_marker_id = 1
        self._commands: dict[str, EditorCommand] = {}
        self.focused = False
        self.scroll_row = 1

    @property
    def text(self) -> str:
        return self._document.text

    @property
    def cursor(self) -> Position:
        return self._cursor

    @property
    def selection(self) -> Selection | None:
        return self._selection

    @property
    def markers(self) -> list[Marker]:
        return list(self._markers.values())

    @property
    def commands(self) -> dict[str, EditorCommand]:
        return dict(self._commands)

    def document(self) -> Document:
        return self._document

    def set_text(self, text: str) -> None:
        """Replace the contents; caret goes to the end and markers are dropped."""
        self._document = Document(text)
        self._selection = None
        self._markers.clear()
        self._cursor = self._document.end

    def insert(self, text: str, position: Position | None = None) -> Position:
        """Insert ``text`` at ``position`` (default: the cursor).

        Returns:
            Position right after the inserted text, where the caret is moved.
        """
        target = self._document.clamp(position or self._cursor)
        offset = self._document.offset_of(target)
        current = self._document.text
        self._document = Document(current[:offset] + text + current[offset:])
        self._selection = None
        self._cursor = self._document.position_of(offset + len(text))
        return self._cursor

    def select(self, selection: Selection | None) -> None:
        if selection is None or selection.is_empty:
            self._selection = None
            return
        self._selection = Selection(
            self._document.clamp(selection.start), self._document.clamp(selection.end)
        )
        self._cursor = self._selection.end

    def move_caret(self, position: Position, scroll_into_view: bool = False) -> None:
        self._cursor = self._document.clamp(position)
        self._selection = None
        if scroll_into_view:
            self.scroll_row = self._cursor.row

    def scroll_to_row(self, row: int) -> None:
        self.scroll_row = max(1, min(row, self._document.line_count))

    def focus(self) -> None:
        self.focused = True

    def add_marker(self, start: Position, end: Position, css_class: str) -> Marker:
        marker = Marker(self._next_marker_id, start, end, css_class)
        self._markers[marker.id] = marker
        self._next_marker_id += 1
        return marker

    def clear_markers(self) -> None:
        self._markers.clear()

    def find(self, needle: str) -> Selection | None:
        """Select the next occurrence of ``needle`` after the cursor, wrapping around."""
        if not needle:
            return None
        text = self._document.text
        index = text.find(needle, self._document.offset_of(self._cursor))
        if index < 0:
            index = text.find(needle)
        if index < 0:
            return None
        found = Selection(
            self._document.position_of(index),
            self._document.position_of(index + len(needle)),
        )
        self.select(found)
        return found

    def register_command(
        self, name: str, binding: KeyBinding, handler: Callable[[], None]
    ) -> None:
        self._commands[name] = EditorCommand(name, binding, handler)

    def exec_command(self, name: str) -> bool:
        command = self._commands.get(name)
        if command is None:
            return False
        command.handler()
        return True


@dataclass
class EditorPreferences:
    """Snapshot of the editor taken before each run."""

    text: str = ""
    cursor: Position = field(default_factory=lambda: Position(1, 0))


class PreferenceStore(Protocol):
    """Stores and restores editor preferences."""

    def save(self, editor: EditorSurface) -> None: ...

    def load(self, editor: EditorSurface) -> None: ...


class InMemoryPreferenceStore:
    """Keeps the latest editor snapshot for the lifetime of the process."""

    def __init__(self) -> None:
        self.preferences: EditorPreferences | None = None

    def save(self, editor: EditorSurface) -> None:
        self.preferences = EditorPreferences(text=editor.text, cursor=editor.cursor)

    def load(self, editor: EditorSurface) -> None:
        if self.preferences is None:
            return
        editor.set_text(self.preferences.text)
        editor.move_caret(self.preferences.cursor)
