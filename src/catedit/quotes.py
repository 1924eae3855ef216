from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Iterator, Literal

__all__ = [
    "BUILTIN_ESCAPE_PATTERNS",
    "DetectQuotesOptions",
    "QuoteMap",
    "QuoteRange",
    "QuoteType",
    "detect_quotes",
    "resolve_escape_suffixes",
    "serialize_quote_ranges",
]

QuoteType = Literal["single", "double"]

# Suffixes whose apostrophe is not a quote delimiter when preceded by a word character.
BUILTIN_ESCAPE_PATTERNS: dict[str, tuple[str, ...]] = {
    "english": ("n't", "'s", "'re", "'ve", "'ll", "'m", "'d"),
    "default": (),
}

_QUOTE_CHARS: dict[str, QuoteType] = {'"': "double", "'": "single"}


@dataclass(eq=False)
class QuoteRange:
    """
    A detected quote span.

    Closed ranges are shared between their start and end keys inside a
    `QuoteMap`, so consumers may deduplicate by identity.
    """

    start: int
    end: int | None
    quote_type: QuoteType
    content: str
    closed: bool


@dataclass(frozen=True)
class DetectQuotesOptions:
    escape_contractions: bool = True
    escape_patterns: str | Mapping[str, tuple[str, ...] | list[str]] = "english"
    allow_nesting: bool = False
    detect_inner_quotes: bool = True


class QuoteMap(Mapping[int, QuoteRange]):
    """Offset -> QuoteRange lookup backed by a range arena."""

    def __init__(self) -> None:
        self.ranges: list[QuoteRange] = []
        self._index: dict[int, int] = {}

    def _add(self, quote: QuoteRange) -> None:
        slot = len(self.ranges)
        self.ranges.append(quote)
        self._index[quote.start] = slot
        if quote.end is not None:
            self._index[quote.end] = slot

    def __getitem__(self, offset: int) -> QuoteRange:
        return self.ranges[self._index[offset]]

    def __iter__(self) -> Iterator[int]:
        return iter(self._index)

    def __len__(self) -> int:
        return len(self._index)

    def unique(self) -> list[QuoteRange]:
        return sorted(self.ranges, key=lambda quote: quote.start)


def resolve_escape_suffixes(options: DetectQuotesOptions) -> list[str]:
    patterns = options.escape_patterns
    if isinstance(patterns, str):
        try:
            return list(BUILTIN_ESCAPE_PATTERNS[patterns])
        except KeyError:
            raise ValueError(f"Unknown escape pattern set: {patterns!r}") from None
    suffixes: list[str] = []
    for values in patterns.values():
        suffixes.extend(values)
    return suffixes


def _is_word_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _is_contraction_apostrophe(text: str, index: int, suffixes: list[str]) -> bool:
    for suffix in suffixes:
        lowered = suffix.lower()
        for ap, ch in enumerate(suffix):
            if ch != "'":
                continue
            suffix_start = index - ap
            suffix_end = suffix_start + len(suffix)
            if suffix_start < 0 or suffix_end > len(text):
                continue
            if text[suffix_start:suffix_end].lower() != lowered:
                continue
            # `'t` at the start of the text or after a space is a quote, not a contraction.
            if suffix_start > 0 and _is_word_char(text[suffix_start - 1]):
                return True
    return False


def detect_quotes(text: str, options: DetectQuotesOptions | None = None) -> QuoteMap:
    """
    Scan ``text`` for single and double quote ranges.

    Each closed range is reachable under both its start and end offsets;
    unclosed ranges only under their start offset.
    """
    opts = options or DetectQuotesOptions()
    suffixes = resolve_escape_suffixes(opts) if opts.escape_contractions else []
    skip_inner = not opts.allow_nesting and not opts.detect_inner_quotes

    result = QuoteMap()
    pending: dict[QuoteType, int | None] = {"single": None, "double": None}

    idx = 0
    length = len(text)
    while idx < length:
        ch = text[idx]
        if ch == "\\":
            idx += 2
            continue
        quote_type = _QUOTE_CHARS.get(ch)
        if quote_type is None:
            idx += 1
            continue
        other: QuoteType = "double" if quote_type == "single" else "single"

        if skip_inner and pending[other] is not None:
            idx += 1
            continue
        if quote_type == "single" and suffixes and _is_contraction_apostrophe(text, idx, suffixes):
            idx += 1
            continue

        start = pending[quote_type]
        if start is None:
            pending[quote_type] = idx
        else:
            other_start = pending[other]
            if not opts.allow_nesting and other_start is not None and other_start > start:
                pending[other] = None
            result._add(
                QuoteRange(
                    start=start,
                    end=idx,
                    quote_type=quote_type,
                    content=text[start + 1 : idx],
                    closed=True,
                )
            )
            pending[quote_type] = None
        idx += 1

    for quote_type in ("single", "double"):
        start = pending[quote_type]
        if start is None:
            continue
        result._add(
            QuoteRange(
                start=start,
                end=None,
                quote_type=quote_type,
                content=text[start + 1 :],
                closed=False,
            )
        )
    return result


def serialize_quote_ranges(quotes: QuoteMap) -> list[dict[str, object]]:
    return [
        {
            "start": quote.start,
            "end": quote.end,
            "quote_type": quote.quote_type,
            "content": quote.content,
            "closed": quote.closed,
        }
        for quote in quotes.unique()
    ]
