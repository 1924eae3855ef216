from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from .display import DisplayConfig, replace_invisible_chars

__all__ = [
    "Document",
    "HighlightRun",
    "LineBreakMarker",
    "MentionRun",
    "Paragraph",
    "Run",
    "TextRun",
    "is_atomic_run",
    "run_text",
    "serialize_document",
    "visible_text",
]


@dataclass
class TextRun:
    text: str


@dataclass
class HighlightRun:
    text: str
    annotation_ids: tuple[str, ...] = ()
    types: tuple[str, ...] = ()
    display_text: str | None = None
    atomic: bool = False


@dataclass
class MentionRun:
    mention_id: str
    mention_name: str
    text: str


@dataclass
class LineBreakMarker:
    """Visible end-of-line indicator; never part of the document text."""

    annotation_ids: tuple[str, ...] = ()
    types: tuple[str, ...] = ()
    symbol: str = "↩"


Run = Union[TextRun, HighlightRun, MentionRun, LineBreakMarker]


def run_text(run: Run) -> str:
    if isinstance(run, LineBreakMarker):
        return ""
    return run.text


def is_atomic_run(run: Run) -> bool:
    if isinstance(run, MentionRun):
        return True
    if isinstance(run, HighlightRun):
        return run.atomic
    return False


def visible_text(run: Run, display: DisplayConfig | None = None) -> str:
    """What a renderer shows for ``run``."""
    if isinstance(run, LineBreakMarker):
        return run.symbol
    if isinstance(run, MentionRun):
        return f"@{run.mention_name}"
    if isinstance(run, HighlightRun) and run.display_text is not None:
        return run.display_text
    return replace_invisible_chars(run.text, display)


@dataclass
class Paragraph:
    runs: list[Run] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(run_text(run) for run in self.runs)


@dataclass
class Document:
    paragraphs: list[Paragraph] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "Document":
        return cls(paragraphs=[Paragraph(runs=[TextRun("")])])

    def plain_text(self) -> str:
        return "\n".join(paragraph.text for paragraph in self.paragraphs)

    def mention_runs(self) -> list[MentionRun]:
        return [
            run
            for paragraph in self.paragraphs
            for run in paragraph.runs
            if isinstance(run, MentionRun)
        ]


def _serialize_run(run: Run, display: DisplayConfig | None) -> dict[str, object]:
    if isinstance(run, TextRun):
        return {"type": "text", "text": run.text, "display": visible_text(run, display)}
    if isinstance(run, HighlightRun):
        return {
            "type": "highlight",
            "text": run.text,
            "display": visible_text(run, display),
            "annotations": list(run.annotation_ids),
            "types": list(run.types),
            "atomic": run.atomic,
        }
    if isinstance(run, MentionRun):
        return {
            "type": "mention",
            "text": run.text,
            "display": visible_text(run, display),
            "mention_id": run.mention_id,
            "mention_name": run.mention_name,
        }
    return {
        "type": "line-break",
        "display": run.symbol,
        "annotations": list(run.annotation_ids),
        "types": list(run.types),
    }


def serialize_document(
    document: Document, display: DisplayConfig | None = None
) -> list[list[dict[str, object]]]:
    return [
        [_serialize_run(run, display) for run in paragraph.runs]
        for paragraph in document.paragraphs
    ]
