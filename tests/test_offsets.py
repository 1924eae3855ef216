from __future__ import annotations

import pytest

from catedit.document import Document, LineBreakMarker, Paragraph
from catedit.mentions import SavedMention
from catedit.offsets import (
    OffsetMappingError,
    TreePosition,
    offset_to_position,
    position_to_offset,
    runs_in_range,
    step_caret,
)
from catedit.sync import build_document


def _mention_document() -> Document:
    mention = SavedMention(start=2, end=6, mention_id="5", mention_name="Ann", text="@{5}")
    return build_document("a @{5} b", [], [mention])


def test_offsets_count_paragraph_boundaries() -> None:
    document = build_document("ab\ncd", [])
    assert offset_to_position(document, 0) == TreePosition(0, 0, 0)
    assert offset_to_position(document, 2) == TreePosition(0, 0, 2)
    assert offset_to_position(document, 3) == TreePosition(1, 0, 0)
    assert offset_to_position(document, 5) == TreePosition(1, 0, 2)
    assert offset_to_position(document, 6) is None
    assert offset_to_position(document, -1) is None


def test_empty_document_has_one_position() -> None:
    assert offset_to_position(Document.empty(), 0) == TreePosition(0, 0, 0)
    assert offset_to_position(Document.empty(), 1) is None


def test_round_trip_outside_atomic_runs() -> None:
    document = _mention_document()
    text = document.plain_text()
    for offset in range(len(text) + 1):
        if 2 < offset < 6:
            continue
        position = offset_to_position(document, offset)
        assert position is not None
        assert position_to_offset(document, position) == offset


def test_round_trip_across_paragraphs() -> None:
    document = build_document("one\n\ntwo three\nx", [])
    for offset in range(len(document.plain_text()) + 1):
        assert position_to_offset(document, offset_to_position(document, offset)) == offset


def test_interior_atomic_offsets_snap_after() -> None:
    document = _mention_document()
    for offset in (3, 4, 5):
        assert offset_to_position(document, offset) == TreePosition(0, 1, 4)
    assert position_to_offset(document, TreePosition(0, 1, 2)) == 6
    assert position_to_offset(document, TreePosition(0, 1, 0)) == 2


def test_line_break_marker_clamps_to_line_end() -> None:
    document = build_document("ab\ncd", [])
    assert position_to_offset(document, TreePosition(0, 1, 0)) == 2


def test_invalid_positions_raise() -> None:
    document = build_document("ab\ncd", [])
    for position in (TreePosition(2, 0, 0), TreePosition(0, 5, 0), TreePosition(0, 0, 3)):
        with pytest.raises(OffsetMappingError):
            position_to_offset(document, position)
    assert issubclass(OffsetMappingError, ValueError)


def test_paragraph_without_text_runs_raises() -> None:
    for runs in ([], [LineBreakMarker()]):
        document = Document([Paragraph(runs)])
        with pytest.raises(OffsetMappingError):
            offset_to_position(document, 0)
    assert offset_to_position(Document([Paragraph([])]), 1) is None


def test_runs_in_range() -> None:
    document = build_document("ab\ncd", [])
    spans = runs_in_range(document, 1, 4)
    assert [(s.paragraph, s.run, s.start, s.end) for s in spans] == [(0, 0, 0, 2), (1, 0, 3, 5)]
    assert runs_in_range(document, 2, 2) == []


def test_step_caret_jumps_over_atomic_runs() -> None:
    document = _mention_document()
    assert step_caret(document, 1, 1) == 2
    assert step_caret(document, 2, 1) == 6
    assert step_caret(document, 6, -1) == 2
    assert step_caret(document, 0, -1) == 0
    assert step_caret(document, 8, 1) == 8
    with pytest.raises(ValueError):
        step_caret(document, 0, 0)
