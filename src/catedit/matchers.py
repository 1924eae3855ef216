from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from .annotations import (
    GlossaryAnnotation,
    LinkAnnotation,
    MentionAnnotation,
    QuoteAnnotation,
    RawRange,
    SpecialCharAnnotation,
    SpellcheckAnnotation,
    TagAnnotation,
)
from .mentions import SavedMention
from .quotes import detect_quotes
from .rules import (
    GlossaryRule,
    LinkRule,
    QuoteRule,
    SpecialCharRule,
    SpellcheckRule,
    SpellcheckValidation,
    TagRule,
)

__all__ = [
    "LINK_PATTERN",
    "TAG_PATTERN",
    "code_point_label",
    "detect_tags",
    "match_glossary",
    "match_links",
    "match_mentions",
    "match_quotes",
    "match_special_chars",
    "match_spellcheck",
    "match_tags",
    "relocate_validation",
]

MIN_SEARCH_RADIUS = 64

TAG_PATTERN = re.compile(r"<(/?)([a-zA-Z][a-zA-Z0-9]*)\b[^>]*?(/?)>")
_HTML_TAG_SHAPE = re.compile(r"<(/?)([a-zA-Z][a-zA-Z0-9-]*)\b[^>]*?(/?)>")
LINK_PATTERN = re.compile(r"(?:https?://|www\.)[^\s<>\"']+", re.IGNORECASE)
_LINK_TRAILING = ".,;:!?)]}"


@dataclass
class DetectedTag:
    start: int
    end: int
    tag_name: str
    tag_number: int
    is_closing: bool
    is_self_closing: bool
    original_text: str
    display_text: str
    is_html: bool


def relocate_validation(text: str, validation: SpellcheckValidation) -> tuple[int, int] | None:
    """Return the validation's current offsets, searching nearby when the text drifted."""
    start, end, content = validation.start, validation.end, validation.content
    if start < 0 or start >= end or not content:
        return None
    if end <= len(text) and text[start:end] == content:
        return start, end
    radius = max(MIN_SEARCH_RADIUS, len(content) * 4)
    window_start = max(0, start - radius)
    window_end = min(len(text), end + radius)
    idx = text[window_start:window_end].lower().find(content.lower())
    if idx == -1:
        return None
    match_start = window_start + idx
    return match_start, match_start + len(content)


def match_spellcheck(text: str, rule: SpellcheckRule) -> list[RawRange]:
    ranges: list[RawRange] = []
    for validation in rule.validations:
        located = relocate_validation(text, validation)
        if located is None:
            continue
        start, end = located
        ranges.append(
            RawRange(
                start=start,
                end=end,
                annotation=SpellcheckAnnotation(id=f"sc-{start}-{end}", validation=validation),
            )
        )
    return ranges


def match_glossary(text: str, rule: GlossaryRule) -> list[RawRange]:
    ranges: list[RawRange] = []
    lowered = text.lower()
    for entry in rule.entries:
        if not entry.term:
            continue
        term = entry.term.lower()
        idx = lowered.find(term)
        while idx != -1:
            end = idx + len(term)
            ranges.append(
                RawRange(
                    start=idx,
                    end=end,
                    annotation=GlossaryAnnotation(
                        id=f"gl-{rule.label}-{idx}-{end}",
                        label=rule.label,
                        term=entry.term,
                        description=entry.description,
                        atomic=entry.atomic,
                    ),
                )
            )
            idx = lowered.find(term, end)
    return ranges


def code_point_label(chars: str) -> str:
    return " ".join(f"U+{ord(ch):04X}" for ch in chars)


def match_special_chars(text: str, rule: SpecialCharRule) -> list[RawRange]:
    ranges: list[RawRange] = []
    for entry in rule.entries:
        for match in entry.regex.finditer(text):
            start, end = match.span()
            if start == end:
                continue
            matched = match.group(0)
            ranges.append(
                RawRange(
                    start=start,
                    end=end,
                    annotation=SpecialCharAnnotation(
                        id=f"sp-{start}-{end}",
                        name=entry.name,
                        char=matched,
                        code_point=code_point_label(matched),
                        atomic=entry.atomic,
                        display_symbol=entry.display_symbol,
                    ),
                )
            )
    return ranges


def _pair_html_tags(text: str, detect_inner: bool) -> list[DetectedTag]:
    found = list(TAG_PATTERN.finditer(text))
    next_number = 1
    stack: list[tuple[str, int, re.Match[str]]] = []
    result: list[DetectedTag] = []
    for match in found:
        is_closing = match.group(1) == "/"
        is_self_closing = not is_closing and (match.group(3) == "/" or match.group(0).endswith("/>"))
        name = match.group(2).lower()
        if is_self_closing:
            result.append(
                DetectedTag(
                    start=match.start(),
                    end=match.end(),
                    tag_name=name,
                    tag_number=next_number,
                    is_closing=False,
                    is_self_closing=True,
                    original_text=match.group(0),
                    display_text=f"<{next_number}/>",
                    is_html=True,
                )
            )
            next_number += 1
            continue
        if not is_closing:
            stack.append((name, next_number, match))
            next_number += 1
            continue
        candidates = range(len(stack) - 1, -1, -1) if detect_inner else range(len(stack))
        pair_idx = next((idx for idx in candidates if stack[idx][0] == name), None)
        if pair_idx is None:
            continue
        _, number, opening = stack.pop(pair_idx)
        result.append(
            DetectedTag(
                start=opening.start(),
                end=opening.end(),
                tag_name=name,
                tag_number=number,
                is_closing=False,
                is_self_closing=False,
                original_text=opening.group(0),
                display_text=f"<{number}>",
                is_html=True,
            )
        )
        result.append(
            DetectedTag(
                start=match.start(),
                end=match.end(),
                tag_name=name,
                tag_number=number,
                is_closing=True,
                is_self_closing=False,
                original_text=match.group(0),
                display_text=f"</{number}>",
                is_html=True,
            )
        )
    result.sort(key=lambda tag: tag.start)
    return result


def _number_pattern_tokens(text: str, regex: re.Pattern[str]) -> list[DetectedTag]:
    result: list[DetectedTag] = []
    number = 1
    for match in regex.finditer(text):
        start, end = match.span()
        if start == end:
            continue
        original = match.group(0)
        html = _HTML_TAG_SHAPE.fullmatch(original)
        if html is not None:
            is_closing = html.group(1) == "/"
            is_self_closing = not is_closing and original.endswith("/>")
            tag_name = html.group(2).lower()
        else:
            is_closing = False
            is_self_closing = False
            tag_name = original
        if is_closing:
            display = f"</{number}>"
        elif is_self_closing:
            display = f"<{number}/>"
        else:
            display = f"<{number}>"
        result.append(
            DetectedTag(
                start=start,
                end=end,
                tag_name=tag_name,
                tag_number=number,
                is_closing=is_closing,
                is_self_closing=is_self_closing,
                original_text=original,
                display_text=display,
                is_html=html is not None,
            )
        )
        number += 1
    return result


def detect_tags(text: str, rule: TagRule | None = None) -> list[DetectedTag]:
    if rule is not None and rule.regex is not None:
        return _number_pattern_tokens(text, rule.regex)
    return _pair_html_tags(text, True if rule is None else rule.detect_inner)


def match_tags(text: str, rule: TagRule) -> list[RawRange]:
    return [
        RawRange(
            start=tag.start,
            end=tag.end,
            annotation=TagAnnotation(
                id=f"tag-{tag.start}-{tag.end}",
                tag_number=tag.tag_number,
                tag_name=tag.tag_name,
                is_closing=tag.is_closing,
                is_self_closing=tag.is_self_closing,
                original_text=tag.original_text,
                display_text=tag.display_text,
                is_html=tag.is_html,
                collapsed=rule.collapses(tag.is_html),
            ),
        )
        for tag in detect_tags(text, rule)
    ]


def _inside_any(position: int, spans: Sequence[tuple[int, int]]) -> bool:
    return any(start <= position < end for start, end in spans)


def match_quotes(text: str, rule: QuoteRule, tag_rule: TagRule | None = None) -> list[RawRange]:
    tag_spans: list[tuple[int, int]] = []
    if not rule.detect_in_tags:
        tag_spans = [(tag.start, tag.end) for tag in detect_tags(text, tag_rule)]

    ranges: list[RawRange] = []
    for quote in detect_quotes(text, rule.detect_options).unique():
        if not quote.closed or quote.end is None:
            continue
        mapping = rule.mapping_for(quote.quote_type)
        for position, offset, replacement in (
            ("opening", quote.start, mapping.opening),
            ("closing", quote.end, mapping.closing),
        ):
            if _inside_any(offset, tag_spans):
                continue
            ranges.append(
                RawRange(
                    start=offset,
                    end=offset + 1,
                    annotation=QuoteAnnotation(
                        id=f"qt-{offset}-{offset + 1}",
                        quote_type=quote.quote_type,
                        position=position,
                        original_char=text[offset],
                        replacement_char=replacement,
                    ),
                )
            )
    ranges.sort(key=lambda r: r.start)
    return ranges


def match_links(text: str, rule: LinkRule | None = None) -> list[RawRange]:
    ranges: list[RawRange] = []
    for match in LINK_PATTERN.finditer(text):
        url = match.group(0).rstrip(_LINK_TRAILING)
        if not url or url.lower() in {"www.", "http://", "https://"}:
            continue
        start = match.start()
        end = start + len(url)
        href = url if "://" in url else f"https://{url}"
        ranges.append(
            RawRange(
                start=start,
                end=end,
                annotation=LinkAnnotation(id=f"link-{start}-{end}", url=url, href=href),
            )
        )
    return ranges


def match_mentions(mentions: Iterable[SavedMention]) -> list[RawRange]:
    return [
        RawRange(
            start=mention.start,
            end=mention.end,
            annotation=MentionAnnotation(
                id=f"mention-{mention.start}-{mention.end}",
                mention_id=mention.mention_id,
                mention_name=mention.mention_name,
            ),
        )
        for mention in mentions
        if mention.end > mention.start
    ]
