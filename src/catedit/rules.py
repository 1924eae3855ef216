from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import ClassVar, Literal, Union

from .quotes import DetectQuotesOptions, resolve_escape_suffixes

__all__ = [
    "GlossaryEntry",
    "GlossaryRule",
    "LinkRule",
    "MentionRule",
    "MentionUser",
    "QuoteMapping",
    "QuoteRule",
    "Rule",
    "RuleConfigError",
    "SpecialCharEntry",
    "SpecialCharRule",
    "SpellcheckRule",
    "SpellcheckValidation",
    "Suggestion",
    "TagRule",
    "compile_pattern",
]

CollapseScope = Literal["all", "html-only"]
_COLLAPSE_SCOPES = ("all", "html-only")


class RuleConfigError(ValueError):
    """Raised when a rule carries an invalid pattern or option."""


def compile_pattern(pattern: str | re.Pattern[str], *, owner: str) -> re.Pattern[str]:
    if isinstance(pattern, re.Pattern):
        return pattern
    if not isinstance(pattern, str) or not pattern:
        raise RuleConfigError(f"{owner}: pattern must be a non-empty string.")
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise RuleConfigError(f"{owner}: invalid pattern {pattern!r}: {exc}") from exc


@dataclass(frozen=True)
class Suggestion:
    value: str


@dataclass(frozen=True)
class SpellcheckValidation:
    """A spelling finding computed by the host against an earlier text snapshot."""

    start: int
    end: int
    content: str
    category_id: str = "spelling"
    message: str = ""
    short_message: str = ""
    suggestions: tuple[Suggestion, ...] = ()
    dictionaries: tuple[str, ...] = ()


@dataclass(frozen=True)
class SpellcheckRule:
    kind: ClassVar[str] = "spellcheck"

    validations: tuple[SpellcheckValidation, ...] = ()


@dataclass(frozen=True)
class GlossaryEntry:
    term: str
    description: str | None = None
    atomic: bool = False


@dataclass(frozen=True)
class GlossaryRule:
    """
    Generic term highlighting (glossary, termbase, QA keywords, search).

    ``label`` distinguishes rule instances in annotation ids and run types.
    """

    kind: ClassVar[str] = "glossary"

    label: str
    entries: tuple[GlossaryEntry, ...] = ()

    def __post_init__(self) -> None:
        if not self.label:
            raise RuleConfigError("glossary rule: label must not be empty.")


@dataclass(frozen=True)
class SpecialCharEntry:
    name: str
    pattern: str | re.Pattern[str]
    atomic: bool = False
    display_symbol: str | None = None
    regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "regex", compile_pattern(self.pattern, owner=f"special-char {self.name!r}"))

    @property
    def source(self) -> str:
        return self.regex.pattern


@dataclass(frozen=True)
class SpecialCharRule:
    kind: ClassVar[str] = "special-char"

    entries: tuple[SpecialCharEntry, ...] = ()


@dataclass(frozen=True)
class TagRule:
    kind: ClassVar[str] = "tag"

    detect_inner: bool = True
    collapsed: bool = False
    collapse_scope: CollapseScope = "all"
    pattern: str | None = None
    regex: re.Pattern[str] | None = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.collapse_scope not in _COLLAPSE_SCOPES:
            raise RuleConfigError(
                f"tag rule: collapse_scope must be one of {', '.join(_COLLAPSE_SCOPES)}; "
                f"got {self.collapse_scope!r}."
            )
        regex = compile_pattern(self.pattern, owner="tag rule") if self.pattern is not None else None
        object.__setattr__(self, "regex", regex)

    def collapses(self, is_html: bool) -> bool:
        if not self.collapsed:
            return False
        return self.collapse_scope == "all" or is_html


@dataclass(frozen=True)
class QuoteMapping:
    opening: str
    closing: str


@dataclass(frozen=True)
class QuoteRule:
    kind: ClassVar[str] = "quote"

    single: QuoteMapping = QuoteMapping("‘", "’")
    double: QuoteMapping = QuoteMapping("“", "”")
    detect_in_tags: bool = False
    detect_options: DetectQuotesOptions = DetectQuotesOptions()

    def __post_init__(self) -> None:
        try:
            resolve_escape_suffixes(self.detect_options)
        except ValueError as exc:
            raise RuleConfigError(f"quote rule: {exc}") from exc

    def mapping_for(self, quote_type: str) -> QuoteMapping:
        return self.single if quote_type == "single" else self.double


@dataclass(frozen=True)
class LinkRule:
    kind: ClassVar[str] = "link"


@dataclass(frozen=True)
class MentionUser:
    id: str
    name: str


@dataclass(frozen=True)
class MentionRule:
    """
    Mentions serialized as ``{trigger}{id}`` in braces (``@{5}``).

    A custom ``pattern`` must capture the mention id in its only group.
    """

    kind: ClassVar[str] = "mention"

    users: tuple[MentionUser, ...] = ()
    trigger: str = "@"
    pattern: str | None = None
    regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.trigger:
            raise RuleConfigError("mention rule: trigger must not be empty.")
        if self.pattern is None:
            regex = re.compile(re.escape(self.trigger) + r"\{([^}]+)\}")
        else:
            regex = compile_pattern(self.pattern, owner="mention rule")
            if regex.groups != 1:
                raise RuleConfigError(
                    f"mention rule: pattern must contain exactly one capture group; got {regex.groups}."
                )
        object.__setattr__(self, "regex", regex)

    def serialize(self, mention_id: str) -> str:
        return f"{self.trigger}{{{mention_id}}}"

    def find_user(self, mention_id: str) -> MentionUser | None:
        for user in self.users:
            if user.id == mention_id:
                return user
        return None


Rule = Union[
    SpellcheckRule,
    GlossaryRule,
    SpecialCharRule,
    TagRule,
    QuoteRule,
    LinkRule,
    MentionRule,
]
