from __future__ import annotations

import pytest

from catedit.quotes import DetectQuotesOptions, detect_quotes, serialize_quote_ranges


def test_closed_double_quote() -> None:
    quotes = detect_quotes('"abc"')
    assert len(quotes.unique()) == 1
    quote = quotes[0]
    assert quote.quote_type == "double"
    assert (quote.start, quote.end) == (0, 4)
    assert quote.content == "abc"
    assert quote.closed is True


def test_closed_range_shared_between_start_and_end() -> None:
    quotes = detect_quotes("say 'hello' now")
    assert set(quotes) == {4, 10}
    assert quotes[4] is quotes[10]


def test_unclosed_range_only_under_start() -> None:
    quotes = detect_quotes('start "unclosed text')
    assert list(quotes) == [6]
    quote = quotes[6]
    assert quote.end is None
    assert quote.closed is False
    assert quote.content == "unclosed text"


def test_contraction_is_not_a_quote() -> None:
    assert len(detect_quotes("I don't know")) == 0
    assert len(detect_quotes("It's Bob's book, they're here")) == 0


def test_contraction_check_is_case_insensitive() -> None:
    assert len(detect_quotes("I DON'T KNOW")) == 0


def test_apostrophe_after_space_still_quotes() -> None:
    quotes = detect_quotes("it's 'fine'")
    ranges = quotes.unique()
    assert len(ranges) == 1
    assert ranges[0].content == "fine"
    assert ranges[0].start == 5


def test_contractions_can_be_disabled() -> None:
    quotes = detect_quotes("don't", DetectQuotesOptions(escape_contractions=False))
    assert list(quotes) == [3]
    assert quotes[3].closed is False


def test_custom_escape_patterns() -> None:
    options = DetectQuotesOptions(escape_patterns={"fr": ("'il",)})
    assert len(detect_quotes("qu'il", options)) == 0
    assert len(detect_quotes("qu'il")) == 1


def test_unknown_escape_pattern_set_raises() -> None:
    with pytest.raises(ValueError):
        detect_quotes("x", DetectQuotesOptions(escape_patterns="klingon"))


def test_backslash_escaped_quotes_are_skipped() -> None:
    assert len(detect_quotes('say \\"hi\\"')) == 0


def test_edge_cases() -> None:
    assert len(detect_quotes("")) == 0
    lone = detect_quotes('"')
    assert lone[0].closed is False
    empty = detect_quotes('""')
    assert empty[0].closed is True
    assert empty[0].content == ""
    multi = detect_quotes('"a\nb"')
    assert multi[0].content == "a\nb"


def test_crossing_quotes_without_nesting() -> None:
    text = "\"text 'a b\" c'"
    ranges = detect_quotes(text).unique()
    assert len(ranges) == 2
    double, single = ranges
    assert double.quote_type == "double"
    assert double.closed is True
    assert double.content == "text 'a b"
    assert single.quote_type == "single"
    assert single.start == 13
    assert single.closed is False


def test_crossing_quotes_with_nesting() -> None:
    text = "\"text 'a b\" c'"
    ranges = detect_quotes(text, DetectQuotesOptions(allow_nesting=True)).unique()
    assert len(ranges) == 2
    double, single = ranges
    assert double.closed and single.closed
    assert (double.start, double.end) == (0, 10)
    assert (single.start, single.end) == (6, 13)
    assert single.start < double.end < single.end


def test_inner_quotes_can_be_ignored() -> None:
    text = "\"a 'b' c\""
    assert len(detect_quotes(text).unique()) == 2
    outer_only = detect_quotes(text, DetectQuotesOptions(detect_inner_quotes=False)).unique()
    assert len(outer_only) == 1
    assert outer_only[0].quote_type == "double"
    assert outer_only[0].content == "a 'b' c"


def test_no_quotes_means_empty_map() -> None:
    for text in ["plain", "won't", "back\\'slash", "it's"]:
        assert len(detect_quotes(text)) == 0


def test_serialize_quote_ranges_lists_each_range_once() -> None:
    payload = serialize_quote_ranges(detect_quotes('"a" \'b'))
    assert payload == [
        {"start": 0, "end": 2, "quote_type": "double", "content": "a", "closed": True},
        {"start": 4, "end": None, "quote_type": "single", "content": "b", "closed": False},
    ]
