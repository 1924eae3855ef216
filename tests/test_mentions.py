from __future__ import annotations

import pytest

from catedit.mentions import (
    SavedMention,
    detect_new_mentions,
    filter_mention_users,
    find_mention_rule,
    mask_mention_ranges,
    match_mention_query,
)
from catedit.rules import LinkRule, MentionRule, MentionUser, RuleConfigError

USERS = (MentionUser("5", "Ann Lee"), MentionUser("7", "Bob"))


def test_detects_known_ids_only() -> None:
    rule = MentionRule(users=USERS)
    mentions = detect_new_mentions("@{5} and @{9}", rule, [])
    assert mentions == [SavedMention(0, 4, "5", "Ann Lee", "@{5}")]


def test_existing_mentions_win() -> None:
    rule = MentionRule(users=USERS)
    existing = SavedMention(0, 4, "5", "Ann Lee", "@{5}")
    mentions = detect_new_mentions("@{5} @{7}", rule, [existing])
    assert mentions[0] is existing
    assert [(m.start, m.mention_id) for m in mentions] == [(0, "5"), (5, "7")]


def test_no_rule_keeps_existing() -> None:
    existing = SavedMention(0, 4, "5", "Ann Lee", "@{5}")
    assert detect_new_mentions("@{5} @{7}", None, [existing]) == [existing]
    assert find_mention_rule([LinkRule()]) is None


def test_custom_pattern_and_trigger() -> None:
    rule = MentionRule(users=USERS, pattern=r"<@(\w+)>")
    assert detect_new_mentions("hi <@7>", rule, [])[0].text == "<@7>"
    hashed = MentionRule(users=USERS, trigger="#")
    assert hashed.serialize("7") == "#{7}"
    assert detect_new_mentions("#{7} @{7}", hashed, [])[0].start == 0
    assert len(detect_new_mentions("#{7} @{7}", hashed, [])) == 1


def test_pattern_needs_exactly_one_group() -> None:
    with pytest.raises(RuleConfigError):
        MentionRule(pattern=r"@(\w)(\w)")
    with pytest.raises(RuleConfigError):
        MentionRule(pattern=r"@\w+")


def test_default_serialization() -> None:
    assert MentionRule().serialize("5") == "@{5}"


def test_mask_mention_ranges() -> None:
    mention = SavedMention(2, 6, "5", "Ann Lee", "@{5}")
    assert mask_mention_ranges("a @{5} b", [mention]) == "a \x01\x01\x01\x01 b"
    assert mask_mention_ranges("a @{5} b", [mention], "#") == "a #### b"
    assert mask_mention_ranges("abc", []) == "abc"


def test_match_mention_query() -> None:
    query = match_mention_query("hello @an")
    assert query is not None
    assert (query.lead_offset, query.query, query.replaceable) == (6, "an", "@an")
    assert match_mention_query("(@x").lead_offset == 1
    assert match_mention_query("@").query == ""
    assert match_mention_query("mail@an") is None
    assert match_mention_query("@an b") is None
    assert match_mention_query("x #bo", trigger="#").query == "bo"


def test_filter_mention_users() -> None:
    users = [MentionUser(str(i), f"User {i}") for i in range(7)]
    assert len(filter_mention_users(users, None)) == 5
    assert filter_mention_users(USERS, "LEE") == [USERS[0]]
    assert filter_mention_users(USERS, "zzz") == []
    assert len(filter_mention_users(users, "user", limit=3)) == 3
