"""API models for the editing session.

Provides Pydantic models for:
- Document, cursor and selection updates
- Session state responses
- Find-and-run and insert requests
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from query_console.editor.document import Position, Selection
    from query_console.editor.surface import Marker


class PositionModel(BaseModel):
    """A caret position: 1-indexed row, 0-indexed column."""

    row: int = Field(..., ge=1, description="1-indexed row.")
    column: int = Field(..., ge=0, description="0-indexed column.")

    @classmethod
    def from_position(cls, position: Position) -> PositionModel:
        return cls(row=position.row, column=position.column)

    def to_position(self) -> Position:
        from query_console.editor.document import Position

        return Position(self.row, self.column)


class SelectionModel(BaseModel):
    """A selected range."""

    start: PositionModel
    end: PositionModel

    @classmethod
    def from_selection(cls, selection: Selection | None) -> SelectionModel | None:
        if selection is None:
            return None
        return cls(
            start=PositionModel.from_position(selection.start),
            end=PositionModel.from_position(selection.end),
        )

    def to_selection(self) -> Selection:
        from query_console.editor.document import Selection

        return Selection(self.start.to_position(), self.end.to_position())


class MarkerModel(BaseModel):
    """A highlighted range in the editor."""

    id: int
    start: PositionModel
    end: PositionModel
    css_class: str

    @classmethod
    def from_marker(cls, marker: Marker) -> MarkerModel:
        return cls(
            id=marker.id,
            start=PositionModel.from_position(marker.start),
            end=PositionModel.from_position(marker.end),
            css_class=marker.css_class,
        )


class DocumentUpdateRequest(BaseModel):
    """Replace the editor contents, cursor and selection."""

    text: str = Field(..., description="Full document text.")
    cursor: PositionModel | None = Field(
        default=None,
        description="Caret position. Defaults to the end of the document.",
    )
    selection: SelectionModel | None = Field(
        default=None,
        description="Selected range, if any.",
    )


class RunQueryRequest(BaseModel):
    """Run a literal query."""

    query: str = Field(..., min_length=1, description="Query text to run.")
    append: bool = Field(
        default=True,
        description="Append the query to the document before running it; "
        "otherwise run its first occurrence.",
    )


class InsertTextRequest(BaseModel):
    """Insert text at the cursor."""

    text: str = Field(..., description="Text to insert.")


class ResultSummary(BaseModel):
    """Summary of the latest successful result."""

    query_id: str
    query: str
    kind: str = Field(..., description="ddl or dql.")
    count: int = Field(..., description="Rows produced by the statement.")
    columns: list[dict] = Field(default_factory=list, description="Column names and types.")
    rows: list[list] = Field(default_factory=list, description="Rows within the row window.")
    execute_ms: float
    fetch_ms: float


class SessionResponse(BaseModel):
    """Current session state."""

    state: str = Field(..., description="idle or running.")
    text: str
    cursor: PositionModel
    selection: SelectionModel | None = None
    markers: list[MarkerModel] = Field(default_factory=list)
    pending_query: str | None = Field(
        default=None, description="Statement in flight while running."
    )
    result: ResultSummary | None = None
