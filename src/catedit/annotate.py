from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Sequence

from .annotations import Annotation, HighlightSegment, RawRange, TagAnnotation
from .logging_utils import debug_log
from .matchers import (
    match_glossary,
    match_links,
    match_mentions,
    match_quotes,
    match_special_chars,
    match_spellcheck,
    match_tags,
)
from .mentions import SavedMention, detect_new_mentions
from .rules import (
    GlossaryRule,
    LinkRule,
    MentionRule,
    QuoteRule,
    Rule,
    SpecialCharRule,
    SpellcheckRule,
    TagRule,
)
from .segments import compose_segments

__all__ = ["AnnotationResult", "annotate", "collect_raw_ranges"]


@dataclass
class AnnotationResult:
    segments: list[HighlightSegment] = field(default_factory=list)
    annotation_index: dict[str, Annotation] = field(default_factory=dict)

    def ranges_for(self, annotation_id: str) -> list[tuple[int, int]]:
        """Merged flat ranges of the segments carrying ``annotation_id``."""
        spans: list[tuple[int, int]] = []
        for segment in self.segments:
            if annotation_id not in segment.annotation_ids:
                continue
            if spans and spans[-1][1] == segment.start:
                spans[-1] = (spans[-1][0], segment.end)
            else:
                spans.append((segment.start, segment.end))
        return spans


def _first_tag_rule(rules: Iterable[Rule]) -> TagRule | None:
    for rule in rules:
        if isinstance(rule, TagRule):
            return rule
    return None


def collect_raw_ranges(
    text: str,
    rules: Sequence[Rule],
    mentions: Sequence[SavedMention] | None = None,
) -> list[RawRange]:
    tag_rule = _first_tag_rule(rules)
    ranges: list[RawRange] = []
    for rule in rules:
        if isinstance(rule, SpellcheckRule):
            ranges.extend(match_spellcheck(text, rule))
        elif isinstance(rule, GlossaryRule):
            ranges.extend(match_glossary(text, rule))
        elif isinstance(rule, SpecialCharRule):
            ranges.extend(match_special_chars(text, rule))
        elif isinstance(rule, TagRule):
            ranges.extend(match_tags(text, rule))
        elif isinstance(rule, QuoteRule):
            ranges.extend(match_quotes(text, rule, tag_rule))
        elif isinstance(rule, LinkRule):
            ranges.extend(match_links(text, rule))
        elif isinstance(rule, MentionRule):
            found = mentions
            if found is None:
                found = detect_new_mentions(text, rule, ())
            ranges.extend(match_mentions(found))
        else:
            raise TypeError(f"Unsupported rule: {rule!r}")
    return ranges


def _suppress_inside_collapsed_tags(ranges: list[RawRange]) -> list[RawRange]:
    collapsed = [
        r for r in ranges if isinstance(r.annotation, TagAnnotation) and r.annotation.collapsed
    ]
    if not collapsed:
        return ranges
    kept: list[RawRange] = []
    for raw in ranges:
        if isinstance(raw.annotation, TagAnnotation):
            kept.append(raw)
            continue
        if any(raw.start < tag.end and raw.end > tag.start for tag in collapsed):
            continue
        kept.append(raw)
    return kept


def annotate(
    text: str,
    rules: Sequence[Rule],
    *,
    mentions: Sequence[SavedMention] | None = None,
) -> AnnotationResult:
    """
    Run every rule over ``text`` and merge the results into segments.

    ``mentions`` are the atomic mentions already tracked by the document; when
    omitted and a mention rule is active, mentions are detected in ``text``.
    Collapsed tags suppress every other range that overlaps them so a
    collapsed tag is never split.
    """
    raw_ranges = collect_raw_ranges(text, rules, mentions)
    filtered = _suppress_inside_collapsed_tags(raw_ranges)
    segments = compose_segments(filtered)
    index: dict[str, Annotation] = {}
    for segment in segments:
        for annotation in segment.annotations:
            index[annotation.id] = annotation
    debug_log(
        f"annotate: {len(rules)} rules, {len(raw_ranges)} raw ranges "
        f"({len(raw_ranges) - len(filtered)} suppressed), {len(segments)} segments"
    )
    return AnnotationResult(segments=segments, annotation_index=index)
