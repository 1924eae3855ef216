from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from .annotate import AnnotationResult, annotate
from .config import EngineConfig
from .document import Document, HighlightRun
from .logging_utils import debug_log
from .mentions import (
    MentionQuery,
    SavedMention,
    detect_new_mentions,
    filter_mention_users,
    find_mention_rule,
    mask_mention_ranges,
    match_mention_query,
)
from .offsets import RunSpan, iter_run_spans, runs_in_range, step_caret
from .rules import MentionRule, MentionUser, Rule
from .scheduler import RebuildScheduler
from .sync import DocumentSynchronizer, FlatSelection, build_document, collect_text

__all__ = ["ChangeEvent", "EditorEngine", "ReplacedRange"]


@dataclass(frozen=True)
class ChangeEvent:
    generation: int
    text: str
    token: int | None = None


@dataclass(frozen=True)
class ReplacedRange:
    start: int
    end: int
    content: str
    annotation_type: str | None = None


Listener = Callable[[ChangeEvent], object]
_Edit = tuple[int, int, str]


class EditorEngine:
    """
    One annotated document: text, rules, tree, selection and listeners.

    Every change recomputes highlights from scratch. Host commands edit the
    flat text, keep tracked mentions whose text they leave alone, and then
    run a full highlight pass.
    """

    def __init__(
        self,
        text: str = "",
        rules: Sequence[Rule] = (),
        config: EngineConfig | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self._rules: tuple[Rule, ...] = tuple(rules)
        self.sync = DocumentSynchronizer(display=self.config.display_for(self._rules))
        self.result = AnnotationResult()
        self.generation = 0
        self._listeners: list[Listener] = []
        self.scheduler = RebuildScheduler(self._run_scheduled)
        self._load_text(text)
        self.apply_highlights()

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    @property
    def document(self) -> Document:
        return self.sync.document

    @property
    def has_focus(self) -> bool:
        return self.sync.has_focus

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply_highlights(self, token: int | None = None) -> ChangeEvent:
        text, tracked = collect_text(self.sync.document)
        mentions = detect_new_mentions(text, find_mention_rule(self._rules), tracked)
        masked = mask_mention_ranges(text, mentions, self.config.mask_char)
        self.result = annotate(masked, self._rules, mentions=mentions)
        self.sync.rebuild(text, self.result.segments, mentions)
        self.generation += 1
        event = ChangeEvent(generation=self.generation, text=text, token=token)
        for listener in list(self._listeners):
            listener(event)
        return event

    def _run_scheduled(self, token: int) -> None:
        self.apply_highlights(token)

    def request_highlights(self) -> int:
        return self.scheduler.request()

    def flush(self) -> bool:
        return self.scheduler.flush()

    def get_text(self) -> str:
        return self.sync.document.plain_text()

    def _load_text(self, text: str) -> None:
        self.sync.document = build_document(text, (), (), self.sync.display)

    def set_text(self, text: str) -> ChangeEvent:
        self._load_text(text)
        self.sync.set_selection(None)
        return self.apply_highlights()

    def set_rules(self, rules: Sequence[Rule]) -> ChangeEvent:
        self._rules = tuple(rules)
        self.sync.display = self.config.display_for(self._rules)
        return self.apply_highlights()

    def focus(self) -> None:
        self.sync.has_focus = True

    def blur(self) -> None:
        self.sync.save_selection()
        self.sync.has_focus = False

    def set_selection(self, anchor: int, focus: int) -> bool:
        self.focus()
        return self.sync.set_flat_selection(anchor, focus)

    def get_selection(self) -> FlatSelection | None:
        if self.sync.has_focus:
            current = self.sync.flat_selection()
            if current is not None:
                return current
        return self.sync.last_saved

    def move_caret(self, direction: int) -> int:
        selection = self.get_selection()
        if selection is None:
            offset = len(self.get_text()) if direction > 0 else 0
        else:
            offset = step_caret(self.sync.document, selection.focus, direction)
        self.set_selection(offset, offset)
        return offset

    def _atomic_spans(self) -> list[RunSpan]:
        return [span for span in iter_run_spans(self.sync.document) if span.atomic]

    def _edit_range(self, selection: FlatSelection | None) -> tuple[int, int]:
        if selection is None:
            end = len(self.get_text())
            return end, end
        start, end = selection.start, selection.end
        for span in self._atomic_spans():
            if start == end:
                if span.start < start < span.end:
                    return span.end, span.end
            elif span.start < end and span.end > start:
                start = min(start, span.start)
                end = max(end, span.end)
        return start, end

    def _splice(
        self,
        edits: Sequence[_Edit],
        *,
        caret: int | None = None,
        added: Sequence[SavedMention] = (),
    ) -> None:
        text, tracked = collect_text(self.sync.document)
        pieces: list[str] = []
        cursor = 0
        for start, end, replacement in edits:
            pieces.append(text[cursor:start])
            pieces.append(replacement)
            cursor = end
        pieces.append(text[cursor:])
        new_text = "".join(pieces)

        mentions: list[SavedMention] = []
        for mention in tracked:
            if any(mention.start < end and mention.end > start for start, end, _ in edits):
                continue
            delta = sum(len(rep) - (end - start) for start, end, rep in edits if end <= mention.start)
            mentions.append(mention.shifted(delta))
        mentions.extend(added)
        mentions.sort(key=lambda m: m.start)

        previous = self.get_selection()
        self.sync.document = build_document(new_text, (), mentions, self.sync.display)
        if caret is not None:
            self.sync.set_flat_selection(caret, caret)
        elif previous is not None and self.sync.has_focus:
            limit = len(new_text)
            self.sync.set_flat_selection(min(previous.anchor, limit), min(previous.focus, limit))
        self.apply_highlights()

    def insert_text(self, text: str) -> None:
        """Insert at the selection, or append when there is none."""
        start, end = self._edit_range(self.get_selection())
        self.focus()
        self._splice([(start, end, text)], caret=start + len(text))

    def _mention_rule(self) -> MentionRule:
        return find_mention_rule(self._rules) or MentionRule()

    def mention_query(self) -> MentionQuery | None:
        selection = self.get_selection()
        if selection is None or not selection.is_collapsed:
            return None
        before = self.get_text()[: selection.focus]
        return match_mention_query(before, self._mention_rule().trigger)

    def suggest_mentions(self) -> list[MentionUser]:
        query = self.mention_query()
        if query is None:
            return []
        return filter_mention_users(self._mention_rule().users, query.query)

    def insert_mention(self, user: MentionUser) -> SavedMention:
        """Insert ``user`` as an atomic mention, replacing a typed ``@query``."""
        rule = self._mention_rule()
        selection = self.get_selection()
        start, end = self._edit_range(selection)
        query = self.mention_query()
        if query is not None:
            start = query.lead_offset
        serialized = rule.serialize(user.id)
        mention = SavedMention(
            start=start,
            end=start + len(serialized),
            mention_id=user.id,
            mention_name=user.name,
            text=serialized,
        )
        self.focus()
        self._splice(
            [(start, end, serialized + " ")],
            caret=mention.end + 1,
            added=[mention],
        )
        return mention

    def replace_all(self, search: str, replacement: str) -> int:
        if not search:
            return 0
        text = self.get_text()
        edits: list[_Edit] = []
        idx = text.find(search)
        while idx != -1:
            edits.append((idx, idx + len(search), replacement))
            idx = text.find(search, idx + len(search))
        if edits:
            self._splice(edits)
        debug_log(f"editor: replaced {len(edits)} occurrence(s) of {search!r}")
        return len(edits)

    def apply_suggestion(self, annotation_id: str, suggestion: str) -> ReplacedRange | None:
        """Replace the first run carrying ``annotation_id`` with ``suggestion``."""
        document = self.sync.document
        for span in iter_run_spans(document):
            run = document.paragraphs[span.paragraph].runs[span.run]
            if not isinstance(run, HighlightRun) or annotation_id not in run.annotation_ids:
                continue
            annotation = self.result.annotation_index.get(annotation_id)
            replaced = ReplacedRange(
                start=span.start,
                end=span.end,
                content=run.text,
                annotation_type=annotation.kind if annotation is not None else None,
            )
            self._splice([(span.start, span.end, suggestion)])
            return replaced
        return None

    def flash_ranges(self, annotation_id: str) -> list[tuple[int, int]]:
        return self.result.ranges_for(annotation_id)

    def flash_runs(self, start: int, end: int) -> list[RunSpan]:
        return runs_in_range(self.sync.document, start, end)
