from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from .rules import MentionRule, MentionUser, Rule

__all__ = [
    "DEFAULT_MASK_CHAR",
    "MentionQuery",
    "SavedMention",
    "detect_new_mentions",
    "filter_mention_users",
    "find_mention_rule",
    "mask_mention_ranges",
    "match_mention_query",
]

DEFAULT_MASK_CHAR = "\x01"
SUGGESTION_LIST_LENGTH_LIMIT = 5
_MAX_QUERY_LENGTH = 75


@dataclass(frozen=True)
class SavedMention:
    """Position and identity of an atomic mention, recorded by flat offset."""

    start: int
    end: int
    mention_id: str
    mention_name: str
    text: str

    def shifted(self, delta: int) -> "SavedMention":
        return SavedMention(
            start=self.start + delta,
            end=self.end + delta,
            mention_id=self.mention_id,
            mention_name=self.mention_name,
            text=self.text,
        )


@dataclass(frozen=True)
class MentionQuery:
    lead_offset: int
    query: str
    replaceable: str


def find_mention_rule(rules: Iterable[Rule]) -> MentionRule | None:
    for rule in rules:
        if isinstance(rule, MentionRule):
            return rule
    return None


def detect_new_mentions(
    text: str,
    rule: MentionRule | None,
    existing: Sequence[SavedMention],
) -> list[SavedMention]:
    """
    Merge tracked mentions with pattern matches found in plain text.

    Tracked mentions win; matches overlapping one are ignored, and ids
    missing from the user directory stay plain text.
    """
    merged = list(existing)
    if rule is None:
        return merged
    for match in rule.regex.finditer(text):
        start, end = match.span()
        if start == end:
            continue
        if any(m.start < end and m.end > start for m in merged):
            continue
        user = rule.find_user(match.group(1))
        if user is None:
            continue
        merged.append(
            SavedMention(
                start=start,
                end=end,
                mention_id=user.id,
                mention_name=user.name,
                text=match.group(0),
            )
        )
    merged.sort(key=lambda m: m.start)
    return merged


def mask_mention_ranges(
    text: str,
    mentions: Sequence[SavedMention],
    mask_char: str = DEFAULT_MASK_CHAR,
) -> str:
    if not mentions:
        return text
    chars = list(text)
    for mention in mentions:
        for idx in range(max(0, mention.start), min(len(chars), mention.end)):
            chars[idx] = mask_char
    return "".join(chars)


def match_mention_query(text_before_caret: str, trigger: str = "@") -> MentionQuery | None:
    """Typeahead: the mention being typed at the end of ``text_before_caret``."""
    escaped = re.escape(trigger)
    pattern = re.compile(
        rf"(^|\s|\()({escaped}((?:(?!{escaped})\S){{0,{_MAX_QUERY_LENGTH}}}))$"
    )
    match = pattern.search(text_before_caret)
    if match is None:
        return None
    return MentionQuery(
        lead_offset=match.start() + len(match.group(1)),
        query=match.group(3),
        replaceable=match.group(2),
    )


def filter_mention_users(
    users: Sequence[MentionUser],
    query: str | None,
    limit: int = SUGGESTION_LIST_LENGTH_LIMIT,
) -> list[MentionUser]:
    if query is None:
        return list(users[:limit])
    lowered = query.lower()
    return [user for user in users if lowered in user.name.lower()][:limit]
