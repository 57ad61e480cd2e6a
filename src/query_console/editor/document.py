"""Text document addressing.

Positions use 1-indexed rows and 0-indexed columns. Offsets are flat,
0-indexed character counts from the start of the text.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass


@dataclass(frozen=True, order=True)
class Position:
    """A caret position inside a document."""

    row: int
    column: int


@dataclass(frozen=True)
class Selection:
    """A selected range, normalised so that ``start <= end``."""

    start: Position
    end: Position

    def __post_init__(self) -> None:
        if self.end < self.start:
            start, end = self.end, self.start
            object.__setattr__(self, "start", start)
            object.__setattr__(self, "end", end)

    @property
    def is_empty(self) -> bool:
        return self.start == self.end


class Document:
    """Immutable text with offset/position conversion."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._line_starts = [0]
        for index, char in enumerate(text):
            if char == "\n":
                self._line_starts.append(index + 1)

    @property
    def text(self) -> str:
        return self._text

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def __len__(self) -> int:
        return len(self._text)

    def line(self, row: int) -> str:
        """Return the text of ``row`` without its line break."""
        if row < 1 or row > self.line_count:
            raise IndexError(f"Row out of range: {row}")
        start = self._line_starts[row - 1]
        end = self._line_starts[row] - 1 if row < self.line_count else len(self._text)
        return self._text[start:end]

    def clamp(self, position: Position) -> Position:
        """Move ``position`` onto the nearest valid caret position."""
        if position.row < 1:
            return Position(1, 0)
        if position.row > self.line_count:
            return self.end
        column = max(0, min(position.column, len(self.line(position.row))))
        return Position(position.row, column)

    @property
    def end(self) -> Position:
        """Position after the last character."""
        return self.position_of(len(self._text))

    def offset_of(self, position: Position) -> int:
        """Convert a position to a flat offset, clamping out-of-range values."""
        position = self.clamp(position)
        return self._line_starts[position.row - 1] + position.column

    def position_of(self, offset: int) -> Position:
        """Convert a flat offset to a position, clamping out-of-range values."""
        offset = max(0, min(offset, len(self._text)))
        row = bisect_right(self._line_starts, offset)
        return Position(row, offset - self._line_starts[row - 1])

    def slice(self, start: Position, end: Position) -> str:
        """Return the text between two positions."""
        return self._text[self.offset_of(start) : self.offset_of(end)]

    def selected_text(self, selection: Selection | None) -> str:
        if selection is None:
            return ""
        return self.slice(selection.start, selection.end)
