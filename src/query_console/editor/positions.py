"""Error position mapping.

Engines report errors as a flat offset into the exact text that was
executed. These helpers translate that offset back into the document the
text was extracted from and resolve the token to underline.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from query_console.editor.document import Document, Position

if TYPE_CHECKING:
    from query_console.editor.extractor import ExtractedRequest

QUOTES = frozenset({"'", '"'})


def is_word_char(char: str) -> bool:
    return char.isalnum() or char in "_$."


@dataclass(frozen=True)
class ErrorLocation:
    """Absolute error position and the ``[start, end)`` span to mark."""

    position: Position
    start: Position
    end: Position
    start_offset: int
    end_offset: int

    @property
    def token_length(self) -> int:
        return self.end_offset - self.start_offset


def token_length_at(text: str, offset: int) -> int:
    """Length of the token beginning at ``offset``.

    Word characters extend to the end of the word, a quote extends to its
    closing quote (or the end of text), any other visible character is a
    token of its own. Whitespace and end of text have no token.
    """
    if offset < 0 or offset >= len(text):
        return 0

    char = text[offset]
    if char.isspace():
        return 0

    if char in QUOTES:
        closing = text.find(char, offset + 1)
        return (closing + 1 if closing >= 0 else len(text)) - offset

    if not is_word_char(char):
        return 1

    end = offset
    while end < len(text) and is_word_char(text[end]):
        end += 1
    return end - offset


class ErrorPositionMapper:
    """Maps engine error offsets onto document positions."""

    def to_absolute_position(self, request: ExtractedRequest, flat_offset: int) -> Position:
        """Translate an offset into ``request.query`` into a document position.

        Args:
            request: The request that was executed.
            flat_offset: 0-indexed offset reported by the engine.

        Returns:
            Absolute position in the document.
        """
        query = request.query
        flat_offset = max(0, min(flat_offset, len(query)))

        prefix = query[:flat_offset]
        relative_row = prefix.count("\n")
        relative_column = flat_offset - (prefix.rfind("\n") + 1)

        if relative_row > 0:
            return Position(request.row + relative_row, relative_column)
        return Position(request.row, request.column + relative_column)

    def locate(
        self, document: Document, request: ExtractedRequest, flat_offset: int
    ) -> ErrorLocation:
        """Resolve the error position and its token span in ``document``.

        Args:
            document: Document the request was extracted from.
            request: The request that was executed.
            flat_offset: 0-indexed offset reported by the engine.

        Returns:
            ErrorLocation; the span is zero-width when no token starts there.
        """
        position = document.clamp(self.to_absolute_position(request, flat_offset))
        start_offset = document.offset_of(position)
        end_offset = start_offset + token_length_at(document.text, start_offset)
        return ErrorLocation(
            position=position,
            start=position,
            end=document.position_of(end_offset),
            start_offset=start_offset,
            end_offset=end_offset,
        )
