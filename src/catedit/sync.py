from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from .annotations import (
    GlossaryAnnotation,
    HighlightSegment,
    QuoteAnnotation,
    TagAnnotation,
    annotation_type_name,
    is_atomic_annotation,
)
from .display import DisplayConfig
from .document import (
    Document,
    HighlightRun,
    LineBreakMarker,
    MentionRun,
    Paragraph,
    Run,
    TextRun,
)
from .logging_utils import debug_log
from .mentions import SavedMention
from .offsets import OffsetMappingError, TreePosition, offset_to_position, position_to_offset

__all__ = [
    "DocumentSynchronizer",
    "FlatSelection",
    "Selection",
    "build_document",
    "collect_text",
]


@dataclass(frozen=True)
class FlatSelection:
    anchor: int
    focus: int

    @property
    def start(self) -> int:
        return min(self.anchor, self.focus)

    @property
    def end(self) -> int:
        return max(self.anchor, self.focus)

    @property
    def is_collapsed(self) -> bool:
        return self.anchor == self.focus


@dataclass(frozen=True)
class Selection:
    anchor: TreePosition
    focus: TreePosition


def collect_text(document: Document) -> tuple[str, list[SavedMention]]:
    """Read the document back into flat text, recording where mentions sit."""
    lines: list[str] = []
    mentions: list[SavedMention] = []
    offset = 0
    for paragraph in document.paragraphs:
        parts: list[str] = []
        for run in paragraph.runs:
            if isinstance(run, LineBreakMarker):
                continue
            if isinstance(run, MentionRun):
                mentions.append(
                    SavedMention(
                        start=offset,
                        end=offset + len(run.text),
                        mention_id=run.mention_id,
                        mention_name=run.mention_name,
                        text=run.text,
                    )
                )
            parts.append(run.text)
            offset += len(run.text)
        lines.append("".join(parts))
        offset += 1
    return "\n".join(lines), mentions


def _segment_types(segment: HighlightSegment) -> tuple[str, ...]:
    types: list[str] = []
    for annotation in segment.annotations:
        name = annotation_type_name(annotation)
        if name not in types:
            types.append(name)
    if any(isinstance(a, GlossaryAnnotation) and a.atomic for a in segment.annotations):
        types.append("glossary-atomic")
    if any(isinstance(a, TagAnnotation) and a.collapsed for a in segment.annotations):
        types.append("tag-collapsed")
    return tuple(types)


def _segment_display_text(segment: HighlightSegment) -> str | None:
    for annotation in segment.annotations:
        if isinstance(annotation, TagAnnotation) and annotation.collapsed:
            return annotation.display_text
    for annotation in segment.annotations:
        if isinstance(annotation, QuoteAnnotation):
            return annotation.replacement_char
    return None


class _TreeBuilder:
    def __init__(self, text: str, mentions: Sequence[SavedMention]) -> None:
        self.text = text
        self.mentions = sorted(mentions, key=lambda m: m.start)
        self.emitted: set[int] = set()

    def mention_run(self, mention: SavedMention) -> MentionRun:
        self.emitted.add(mention.start)
        return MentionRun(mention.mention_id, mention.mention_name, mention.text)

    def append_range(
        self,
        runs: list[Run],
        start: int,
        end: int,
        make_run: Callable[[str], Run],
    ) -> None:
        """Append ``text[start:end]``, splicing in mentions that overlap it."""
        cursor = start
        for mention in self.mentions:
            if mention.start >= end or mention.end <= start or mention.start in self.emitted:
                continue
            m_start = max(mention.start, start)
            if m_start > cursor:
                runs.append(make_run(self.text[cursor:m_start]))
            runs.append(self.mention_run(mention))
            cursor = min(mention.end, end)
        if cursor < end:
            runs.append(make_run(self.text[cursor:end]))

    def containing_mention(self, start: int, end: int) -> SavedMention | None:
        for mention in self.mentions:
            if mention.start <= start and mention.end >= end:
                return mention
        return None


def build_document(
    text: str,
    segments: Sequence[HighlightSegment],
    mentions: Sequence[SavedMention] = (),
    display: DisplayConfig | None = None,
) -> Document:
    """
    Build a fresh document tree from flat text and composed segments.

    Each line becomes a paragraph. Gaps between segments become plain runs,
    each segment becomes one highlight run, and mentions are spliced in whole
    wherever they overlap. Every line but the last ends with a line-break
    marker carrying the annotations that cover the newline.
    """
    if not text:
        return Document.empty()
    symbol = (display or DisplayConfig()).line_break_symbol
    builder = _TreeBuilder(text, mentions)
    paragraphs: list[Paragraph] = []
    line_start = 0
    for line in text.split("\n"):
        line_end = line_start + len(line)
        runs: list[Run] = []
        pos = line_start
        for segment in segments:
            if segment.end <= line_start or segment.start >= line_end:
                continue
            seg_start = max(segment.start, line_start)
            seg_end = min(segment.end, line_end)
            if seg_start > pos:
                builder.append_range(runs, pos, seg_start, TextRun)
            mention = builder.containing_mention(seg_start, seg_end)
            if mention is not None:
                if mention.start not in builder.emitted:
                    runs.append(builder.mention_run(mention))
            else:
                ids = tuple(segment.annotation_ids)
                types = _segment_types(segment)
                display_text = _segment_display_text(segment)
                atomic = any(is_atomic_annotation(a) for a in segment.annotations)
                builder.append_range(
                    runs,
                    seg_start,
                    seg_end,
                    lambda chunk: HighlightRun(chunk, ids, types, display_text, atomic),
                )
            pos = max(pos, seg_end)
        if pos < line_end:
            builder.append_range(runs, pos, line_end, TextRun)
        if not runs:
            runs.append(TextRun(""))
        if line_end < len(text):
            covering = [s for s in segments if s.start <= line_end < s.end]
            nl_ids = tuple(a.id for s in covering for a in s.annotations)
            nl_types = tuple(dict.fromkeys(t for s in covering for t in _segment_types(s)))
            runs.append(LineBreakMarker(annotation_ids=nl_ids, types=nl_types, symbol=symbol))
        paragraphs.append(Paragraph(runs=runs))
        line_start = line_end + 1
    return Document(paragraphs=paragraphs)


class DocumentSynchronizer:
    """
    Owns one document tree and the selection inside it.

    A rebuild replaces the tree wholesale; the selection survives by being
    saved as flat offsets beforehand and converted back afterwards. Nothing is
    saved or restored while the editor does not hold focus.
    Not thread-safe; callers serialize access.
    """

    def __init__(
        self,
        document: Document | None = None,
        display: DisplayConfig | None = None,
    ) -> None:
        self.document = document or Document.empty()
        self.display = display or DisplayConfig()
        self.has_focus = False
        self._selection: Selection | None = None
        self.last_saved: FlatSelection | None = None

    @property
    def selection(self) -> Selection | None:
        return self._selection

    def set_selection(self, selection: Selection | None) -> None:
        self._selection = selection

    def set_flat_selection(self, anchor: int, focus: int) -> bool:
        restored = self.restore_selection(FlatSelection(anchor, focus))
        return restored is not None

    def save_selection(self) -> FlatSelection | None:
        if self._selection is None:
            return None
        try:
            saved = FlatSelection(
                position_to_offset(self.document, self._selection.anchor),
                position_to_offset(self.document, self._selection.focus),
            )
        except OffsetMappingError as exc:
            debug_log(f"sync: selection not saved ({exc})")
            return None
        self.last_saved = saved
        return saved

    def restore_selection(self, saved: FlatSelection) -> Selection | None:
        anchor = offset_to_position(self.document, saved.anchor)
        focus = offset_to_position(self.document, saved.focus)
        if anchor is None or focus is None:
            debug_log(
                f"sync: selection {saved.anchor}-{saved.focus} unresolvable, cleared"
            )
            self._selection = None
            return None
        self._selection = Selection(anchor, focus)
        return self._selection

    def flat_selection(self) -> FlatSelection | None:
        if self._selection is None:
            return None
        try:
            return FlatSelection(
                position_to_offset(self.document, self._selection.anchor),
                position_to_offset(self.document, self._selection.focus),
            )
        except OffsetMappingError:
            return None

    def rebuild(
        self,
        text: str,
        segments: Sequence[HighlightSegment],
        mentions: Sequence[SavedMention] = (),
    ) -> Document:
        saved = self.save_selection() if self.has_focus else None
        self.document = build_document(text, segments, mentions, self.display)
        if self.has_focus:
            if saved is not None:
                self.restore_selection(saved)
            else:
                self._selection = None
        debug_log(
            f"sync: rebuilt {len(self.document.paragraphs)} paragraphs, "
            f"{len(mentions)} mentions, focus={self.has_focus}"
        )
        return self.document
