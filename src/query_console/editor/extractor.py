"""Statement extraction from editor text.

Finds the text to execute from either an explicit selection or the
statement enclosing the cursor. Statement boundaries are located with a
small lexical scanner so that delimiters inside string literals, quoted
identifiers and comments do not split a statement.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from query_console.editor.document import Document, Position, Selection

if TYPE_CHECKING:
    from collections.abc import Iterator


class LexState(Enum):
    """Lexical context of the scanner."""

    NORMAL = "normal"
    STRING = "string"
    QUOTED_IDENTIFIER = "quoted_identifier"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"


@dataclass(frozen=True)
class ExtractedRequest:
    """Statement text to execute and the document position where it begins."""

    query: str
    row: int
    column: int

    @property
    def position(self) -> Position:
        return Position(self.row, self.column)


@dataclass(frozen=True)
class StatementRange:
    """Flat ``[start, end)`` range of one statement, delimiter excluded.

    ``terminated`` is True when a delimiter sits at ``end``.
    """

    start: int
    end: int
    terminated: bool


def iter_delimiters(text: str, delimiter: str = ";") -> Iterator[int]:
    """Yield offsets of delimiters that terminate a statement.

    Delimiters inside single-quoted strings, double-quoted identifiers,
    ``--`` line comments and ``/* */`` block comments are skipped.
    """
    state = LexState.NORMAL
    index = 0
    length = len(text)

    while index < length:
        char = text[index]
        following = text[index + 1] if index + 1 < length else ""

        if state is LexState.NORMAL:
            if char == delimiter:
                yield index
            elif char == "'":
                state = LexState.STRING
            elif char == '"':
                state = LexState.QUOTED_IDENTIFIER
            elif char == "-" and following == "-":
                state = LexState.LINE_COMMENT
                index += 1
            elif char == "/" and following == "*":
                state = LexState.BLOCK_COMMENT
                index += 1
        elif state is LexState.STRING:
            # A doubled quote leaves and re-enters the literal.
            if char == "'":
                state = LexState.NORMAL
        elif state is LexState.QUOTED_IDENTIFIER:
            if char == '"':
                state = LexState.NORMAL
        elif state is LexState.LINE_COMMENT:
            if char == "\n":
                state = LexState.NORMAL
        elif state is LexState.BLOCK_COMMENT:
            if char == "*" and following == "/":
                state = LexState.NORMAL
                index += 1

        index += 1


def split_statements(text: str, delimiter: str = ";") -> list[StatementRange]:
    """Split ``text`` into statement ranges covering the whole document."""
    ranges: list[StatementRange] = []
    start = 0
    for offset in iter_delimiters(text, delimiter):
        ranges.append(StatementRange(start, offset, terminated=True))
        start = offset + 1
    ranges.append(StatementRange(start, len(text), terminated=False))
    return ranges


class StatementExtractor:
    """Extracts the statement to run from a document."""

    def __init__(self, delimiter: str = ";") -> None:
        if len(delimiter) != 1:
            raise ValueError(f"Delimiter must be a single character: {delimiter!r}")
        self._delimiter = delimiter

    @property
    def delimiter(self) -> str:
        return self._delimiter

    def extract(
        self,
        document: Document,
        cursor: Position,
        selection: Selection | None = None,
    ) -> ExtractedRequest | None:
        """Return the request for the selection, or for the statement at the cursor.

        Args:
            document: Full editor text.
            cursor: Caret position.
            selection: Current selection, if any.

        Returns:
            ExtractedRequest, or None when there is nothing to run.
        """
        if selection is not None and not selection.is_empty:
            return self.from_selection(document, selection)
        return self.from_cursor(document, cursor)

    def from_selection(self, document: Document, selection: Selection) -> ExtractedRequest:
        """Use the selected text verbatim."""
        start = document.clamp(selection.start)
        return ExtractedRequest(
            query=document.slice(start, selection.end),
            row=start.row,
            column=start.column,
        )

    def from_cursor(self, document: Document, cursor: Position) -> ExtractedRequest | None:
        """Find the statement enclosing ``cursor``."""
        caret = document.offset_of(cursor)
        statements = split_statements(document.text, self._delimiter)

        for index, statement in enumerate(statements):
            if not statement.start <= caret <= statement.end:
                continue

            request = self._request(document, statement)
            if request is None and index > 0 and caret == statement.start:
                # A caret right after a delimiter, before a blank statement,
                # runs the statement that delimiter ends.
                request = self._request(document, statements[index - 1])
            return request

        return None

    def _request(self, document: Document, statement: StatementRange) -> ExtractedRequest | None:
        body = document.text[statement.start : statement.end]
        stripped = body.lstrip()
        if not stripped:
            return None

        begin = statement.start + len(body) - len(stripped)
        position = document.position_of(begin)
        return ExtractedRequest(
            query=stripped.rstrip(),
            row=position.row,
            column=position.column,
        )
