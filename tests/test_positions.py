"""Tests for error position mapping."""

from __future__ import annotations

import pytest

from query_console.editor.document import Document, Position
from query_console.editor.extractor import ExtractedRequest, StatementExtractor
from query_console.editor.positions import ErrorPositionMapper, token_length_at


@pytest.fixture
def mapper() -> ErrorPositionMapper:
    return ErrorPositionMapper()


class TestTokenLength:
    """Tests for token_length_at."""

    def test_word(self) -> None:
        assert token_length_at("select frm t", 7) == 3

    def test_word_with_dots_and_underscores(self) -> None:
        assert token_length_at("from my_schema.t_1 x", 5) == 13

    def test_quoted_literal(self) -> None:
        assert token_length_at("where a = 'abc' and", 10) == 5

    def test_unterminated_quote_runs_to_end(self) -> None:
        assert token_length_at("x = 'abc", 4) == 4

    def test_punctuation(self) -> None:
        assert token_length_at("a + b", 2) == 1

    def test_whitespace_and_end_of_text(self) -> None:
        assert token_length_at("a b", 1) == 0
        assert token_length_at("ab", 2) == 0
        assert token_length_at("ab", -1) == 0


class TestToAbsolutePosition:
    """Tests for ErrorPositionMapper.to_absolute_position."""

    def test_same_line_adds_request_column(self, mapper: ErrorPositionMapper) -> None:
        request = ExtractedRequest(query="SELECT * FROM t", row=3, column=2)
        assert mapper.to_absolute_position(request, 7) == Position(3, 9)

    def test_later_line_uses_relative_column(self, mapper: ErrorPositionMapper) -> None:
        request = ExtractedRequest(query="select\n  frm t", row=2, column=4)
        assert mapper.to_absolute_position(request, 9) == Position(3, 2)

    def test_offset_zero_is_request_start(self, mapper: ErrorPositionMapper) -> None:
        request = ExtractedRequest(query="select 1", row=5, column=3)
        assert mapper.to_absolute_position(request, 0) == Position(5, 3)

    def test_offset_is_clamped_to_query(self, mapper: ErrorPositionMapper) -> None:
        request = ExtractedRequest(query="abc", row=1, column=0)
        assert mapper.to_absolute_position(request, 99) == Position(1, 3)
        assert mapper.to_absolute_position(request, -5) == Position(1, 0)

    def test_offset_at_newline_boundary(self, mapper: ErrorPositionMapper) -> None:
        request = ExtractedRequest(query="a\nb", row=1, column=4)
        assert mapper.to_absolute_position(request, 1) == Position(1, 5)
        assert mapper.to_absolute_position(request, 2) == Position(2, 0)

    def test_every_offset_maps_back_to_same_character(self, mapper: ErrorPositionMapper) -> None:
        document = Document("select 1;\n\n  select a,\n    frm\n  from t;")
        request = StatementExtractor().extract(document, Position(4, 1))
        assert request is not None

        start = document.offset_of(request.position)
        for offset in range(len(request.query)):
            position = mapper.to_absolute_position(request, offset)
            assert document.text[document.offset_of(position)] == request.query[offset]
            assert document.offset_of(position) == start + offset


class TestLocate:
    """Tests for ErrorPositionMapper.locate."""

    def test_token_span(self, mapper: ErrorPositionMapper) -> None:
        document = Document("select 1;\nselect * frm t;")
        request = ExtractedRequest(query="select * frm t", row=2, column=0)
        location = mapper.locate(document, request, 9)
        assert location.position == Position(2, 9)
        assert location.start == Position(2, 9)
        assert location.end == Position(2, 12)
        assert location.token_length == 3

    def test_zero_width_span_at_end(self, mapper: ErrorPositionMapper) -> None:
        document = Document("select")
        request = ExtractedRequest(query="select", row=1, column=0)
        location = mapper.locate(document, request, 6)
        assert location.start == location.end == Position(1, 6)
        assert location.token_length == 0

    def test_position_is_clamped_to_document(self, mapper: ErrorPositionMapper) -> None:
        document = Document("ab")
        request = ExtractedRequest(query="select x", row=4, column=0)
        location = mapper.locate(document, request, 3)
        assert location.position == Position(1, 2)
