from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from .document import Document, LineBreakMarker, is_atomic_run, run_text

__all__ = [
    "OffsetMappingError",
    "RunSpan",
    "TreePosition",
    "iter_run_spans",
    "offset_to_position",
    "position_to_offset",
    "runs_in_range",
    "step_caret",
]


class OffsetMappingError(ValueError):
    """Raised when a tree position does not exist in the document."""


@dataclass(frozen=True)
class TreePosition:
    paragraph: int
    run: int
    offset: int


@dataclass(frozen=True)
class RunSpan:
    paragraph: int
    run: int
    start: int
    end: int
    atomic: bool


def iter_run_spans(document: Document) -> Iterator[RunSpan]:
    """Flat span of every text-bearing run, in document order."""
    base = 0
    for p_idx, paragraph in enumerate(document.paragraphs):
        cursor = base
        for r_idx, run in enumerate(paragraph.runs):
            if isinstance(run, LineBreakMarker):
                continue
            length = len(run_text(run))
            yield RunSpan(p_idx, r_idx, cursor, cursor + length, is_atomic_run(run))
            cursor += length
        base = cursor + 1


def offset_to_position(document: Document, offset: int) -> TreePosition | None:
    """
    Resolve a flat offset to a run position, or ``None`` when out of range.

    A boundary between two runs resolves to the end of the earlier run.
    Offsets strictly inside an atomic run snap to its end; the start of an
    atomic run is only returned when nothing precedes it on the line.
    Raises ``OffsetMappingError`` for a paragraph without text runs.
    """
    if offset < 0:
        return None
    remaining = offset
    for p_idx, paragraph in enumerate(document.paragraphs):
        length = len(paragraph.text)
        if remaining > length:
            remaining -= length + 1
            continue
        for r_idx, run in enumerate(paragraph.runs):
            if isinstance(run, LineBreakMarker):
                continue
            run_length = len(run_text(run))
            if remaining <= run_length:
                if is_atomic_run(run) and remaining > 0:
                    return TreePosition(p_idx, r_idx, run_length)
                return TreePosition(p_idx, r_idx, remaining)
            remaining -= run_length
        raise OffsetMappingError(f"Paragraph {p_idx} has no text runs")
    return None


def position_to_offset(document: Document, position: TreePosition) -> int:
    if not 0 <= position.paragraph < len(document.paragraphs):
        raise OffsetMappingError(f"No paragraph at index {position.paragraph}")
    base = sum(len(p.text) + 1 for p in document.paragraphs[: position.paragraph])
    paragraph = document.paragraphs[position.paragraph]
    if not 0 <= position.run < len(paragraph.runs):
        raise OffsetMappingError(
            f"No run at index {position.run} in paragraph {position.paragraph}"
        )
    run = paragraph.runs[position.run]
    if isinstance(run, LineBreakMarker):
        return base + len(paragraph.text)
    run_length = len(run_text(run))
    if not 0 <= position.offset <= run_length:
        raise OffsetMappingError(
            f"Offset {position.offset} outside run of length {run_length}"
        )
    before = sum(len(run_text(r)) for r in paragraph.runs[: position.run])
    inner = position.offset
    if is_atomic_run(run) and 0 < inner < run_length:
        inner = run_length
    return base + before + inner


def runs_in_range(document: Document, start: int, end: int) -> list[RunSpan]:
    if end <= start:
        return []
    return [span for span in iter_run_spans(document) if span.start < end and span.end > start]


def step_caret(document: Document, offset: int, direction: int) -> int:
    """Move the caret one step, crossing an atomic run in a single step."""
    if direction not in (-1, 1):
        raise ValueError(f"direction must be -1 or 1, got {direction!r}")
    total = len(document.plain_text())
    target = min(max(offset + direction, 0), total)
    for span in iter_run_spans(document):
        if span.atomic and span.start < target < span.end:
            return span.end if direction > 0 else span.start
    return target
