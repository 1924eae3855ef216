from __future__ import annotations

import pytest

from catedit.annotate import annotate, collect_raw_ranges
from catedit.annotations import (
    MentionAnnotation,
    QuoteAnnotation,
    annotation_type_name,
    is_atomic_annotation,
    serialize_annotation,
    serialize_segments,
)
from catedit.logging_utils import set_debug_logging
from catedit.rules import (
    GlossaryEntry,
    GlossaryRule,
    MentionRule,
    MentionUser,
    QuoteRule,
    SpecialCharEntry,
    SpecialCharRule,
    SpellcheckRule,
    SpellcheckValidation,
    TagRule,
)


def test_tags_and_glossary_nest() -> None:
    rules = [TagRule(), GlossaryRule(label="tb", entries=(GlossaryEntry("cat"),))]
    result = annotate("<b>cat</b>", rules)
    assert [(s.start, s.end) for s in result.segments] == [(0, 3), (3, 6), (6, 10)]
    assert result.segments[1].annotation_ids == ["gl-tb-3-6"]
    assert set(result.annotation_index) == {"tag-0-3", "gl-tb-3-6", "tag-6-10"}


def test_one_segment_carries_every_covering_annotation() -> None:
    rules = [
        GlossaryRule(label="tb", entries=(GlossaryEntry('"hi"'),)),
        QuoteRule(),
    ]
    result = annotate('say "hi"', rules)
    first = next(s for s in result.segments if s.start == 4)
    assert first.annotation_ids == ["gl-tb-4-8", "qt-4-5"]


def test_collapsed_tag_suppresses_overlapping_ranges() -> None:
    rules = [TagRule(collapsed=True), QuoteRule(detect_in_tags=True)]
    result = annotate('<a title="x">y</a>', rules)
    assert not any(isinstance(a, QuoteAnnotation) for a in result.annotation_index.values())
    assert [(s.start, s.end) for s in result.segments] == [(0, 13), (14, 18)]


def test_mentions_are_detected_when_not_given() -> None:
    rule = MentionRule(users=(MentionUser("5", "Ann"),))
    result = annotate("hi @{5}", [rule])
    annotation = result.annotation_index["mention-3-7"]
    assert isinstance(annotation, MentionAnnotation)
    assert annotation.mention_name == "Ann"


def test_given_mentions_take_precedence() -> None:
    rule = MentionRule(users=(MentionUser("5", "Ann"),))
    result = annotate("hi @{5}", [rule], mentions=[])
    assert result.segments == []


def test_ranges_for_merges_adjacent_segments() -> None:
    rules = [
        GlossaryRule(label="qa", entries=(GlossaryEntry("a b"),)),
        SpecialCharRule(entries=(SpecialCharEntry(name="space", pattern=" "),)),
    ]
    result = annotate("a b", rules)
    assert len(result.segments) == 3
    assert result.ranges_for("gl-qa-0-3") == [(0, 3)]
    assert result.ranges_for("sp-1-2") == [(1, 2)]
    assert result.ranges_for("missing") == []


def test_stale_spellcheck_is_dropped_silently() -> None:
    rule = SpellcheckRule(validations=(SpellcheckValidation(start=0, end=3, content="teh"),))
    assert annotate("the end", [rule]).segments == []


def test_unknown_rule_type_raises() -> None:
    with pytest.raises(TypeError):
        collect_raw_ranges("text", [object()])  # type: ignore[list-item]


def test_type_names_and_atomic_flags() -> None:
    rules = [
        GlossaryRule(label="tb", entries=(GlossaryEntry("cat", atomic=True),)),
        SpellcheckRule(
            validations=(SpellcheckValidation(start=4, end=7, content="dgo", category_id="typo"),)
        ),
    ]
    result = annotate("cat dgo", rules)
    glossary = result.annotation_index["gl-tb-0-3"]
    spelling = result.annotation_index["sc-4-7"]
    assert annotation_type_name(glossary) == "glossary-tb"
    assert annotation_type_name(spelling) == "spellcheck-typo"
    assert is_atomic_annotation(glossary) is True
    assert is_atomic_annotation(spelling) is False


def test_serialization_payloads() -> None:
    result = annotate("cat", [GlossaryRule(label="tb", entries=(GlossaryEntry("cat"),))])
    assert serialize_segments(result.segments) == [
        {"start": 0, "end": 3, "annotations": ["gl-tb-0-3"]}
    ]
    payload = serialize_annotation(result.annotation_index["gl-tb-0-3"])
    assert payload["type"] == "glossary"
    assert payload["id"] == "gl-tb-0-3"
    assert payload["data"]["term"] == "cat"


def test_debug_logging_reports_counts(capsys) -> None:
    set_debug_logging(True)
    try:
        annotate("cat", [GlossaryRule(label="tb", entries=(GlossaryEntry("cat"),))])
    finally:
        set_debug_logging(False)
    captured = capsys.readouterr()
    assert "[catedit debug]" in captured.err
    assert "1 segments" in captured.err
