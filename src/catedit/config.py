from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from .display import DisplayConfig, codepoint_overrides_from_rules
from .mentions import DEFAULT_MASK_CHAR
from .quotes import DetectQuotesOptions
from .rules import (
    GlossaryEntry,
    GlossaryRule,
    LinkRule,
    MentionRule,
    MentionUser,
    QuoteMapping,
    QuoteRule,
    Rule,
    RuleConfigError,
    SpecialCharEntry,
    SpecialCharRule,
    SpellcheckRule,
    SpellcheckValidation,
    Suggestion,
    TagRule,
)

__all__ = [
    "EngineConfig",
    "dump_rules",
    "load_engine_config",
    "load_rules",
    "parse_display_config",
    "parse_escape_patterns",
    "parse_rules",
    "serialize_rule",
    "serialize_rules",
]

RULE_TYPE_ALIASES = {"keyword": "glossary"}


@dataclass(frozen=True)
class EngineConfig:
    display: DisplayConfig = field(default_factory=DisplayConfig)
    mask_char: str = DEFAULT_MASK_CHAR
    line_break_symbol: str | None = None

    def __post_init__(self) -> None:
        if len(self.mask_char) != 1:
            raise RuleConfigError("mask_char must be a single character.")

    def display_for(self, rules: Iterable[Rule]) -> DisplayConfig:
        """Engine display symbols plus those declared by atomic special-char entries."""
        display = self.display.merged(codepoint_overrides_from_rules(rules))
        if self.line_break_symbol:
            overrides = dict(display.overrides)
            overrides[0x000A] = self.line_break_symbol
            display = DisplayConfig(overrides=overrides)
        return display


def _field(entry: Mapping[str, Any], key: str, kind: type, where: str, default: Any = None) -> Any:
    value = entry.get(key, default)
    if value is None:
        return default
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise RuleConfigError(f"{where}: '{key}' must be {kind.__name__}.")
    return value


def _required_str(entry: Mapping[str, Any], key: str, where: str) -> str:
    value = _field(entry, key, str, where)
    if not value:
        raise RuleConfigError(f"{where}: '{key}' is required.")
    return value


def _objects(entry: Mapping[str, Any], key: str, where: str) -> list[Mapping[str, Any]]:
    items = _field(entry, key, list, where, [])
    for idx, item in enumerate(items):
        if not isinstance(item, dict):
            raise RuleConfigError(f"{where}: {key}[{idx}] must be an object.")
    return items


def _parse_spellcheck(entry: Mapping[str, Any], where: str) -> SpellcheckRule:
    validations: list[SpellcheckValidation] = []
    for idx, item in enumerate(_objects(entry, "validations", where)):
        item_where = f"{where} validations[{idx}]"
        start = _field(item, "start", int, item_where)
        end = _field(item, "end", int, item_where)
        if start is None or end is None:
            raise RuleConfigError(f"{item_where}: 'start' and 'end' are required.")
        suggestions = tuple(
            Suggestion(value=_required_str(s, "value", item_where))
            for s in _objects(item, "suggestions", item_where)
        )
        dictionaries = _field(item, "dictionaries", list, item_where, [])
        validations.append(
            SpellcheckValidation(
                start=start,
                end=end,
                content=_required_str(item, "content", item_where),
                category_id=_field(item, "category_id", str, item_where, "spelling"),
                message=_field(item, "message", str, item_where, ""),
                short_message=_field(item, "short_message", str, item_where, ""),
                suggestions=suggestions,
                dictionaries=tuple(str(d) for d in dictionaries),
            )
        )
    return SpellcheckRule(validations=tuple(validations))


def _parse_glossary(entry: Mapping[str, Any], where: str) -> GlossaryRule:
    entries = tuple(
        GlossaryEntry(
            term=_required_str(item, "term", f"{where} entries[{idx}]"),
            description=_field(item, "description", str, f"{where} entries[{idx}]"),
            atomic=_field(item, "atomic", bool, f"{where} entries[{idx}]", False),
        )
        for idx, item in enumerate(_objects(entry, "entries", where))
    )
    return GlossaryRule(label=_required_str(entry, "label", where), entries=entries)


def _parse_special_char(entry: Mapping[str, Any], where: str) -> SpecialCharRule:
    entries = tuple(
        SpecialCharEntry(
            name=_required_str(item, "name", f"{where} entries[{idx}]"),
            pattern=_required_str(item, "pattern", f"{where} entries[{idx}]"),
            atomic=_field(item, "atomic", bool, f"{where} entries[{idx}]", False),
            display_symbol=_field(item, "display_symbol", str, f"{where} entries[{idx}]"),
        )
        for idx, item in enumerate(_objects(entry, "entries", where))
    )
    return SpecialCharRule(entries=entries)


def _parse_tag(entry: Mapping[str, Any], where: str) -> TagRule:
    return TagRule(
        detect_inner=_field(entry, "detect_inner", bool, where, True),
        collapsed=_field(entry, "collapsed", bool, where, False),
        collapse_scope=_field(entry, "collapse_scope", str, where, "all"),
        pattern=_field(entry, "pattern", str, where),
    )


def _parse_mapping(entry: Mapping[str, Any], key: str, where: str, default: QuoteMapping) -> QuoteMapping:
    raw = _field(entry, key, dict, where)
    if raw is None:
        return default
    return QuoteMapping(
        opening=_field(raw, "opening", str, f"{where} {key}", default.opening),
        closing=_field(raw, "closing", str, f"{where} {key}", default.closing),
    )


def parse_escape_patterns(value: Any, where: str) -> str | dict[str, tuple[str, ...]]:
    """Validate an escape set name or a custom ``{key: [patterns]}`` object."""
    if isinstance(value, dict):
        for key, values in value.items():
            if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
                raise RuleConfigError(f"{where}: escape_patterns[{key!r}] must be a list of strings.")
        return {key: tuple(values) for key, values in value.items()}
    if not isinstance(value, str):
        raise RuleConfigError(f"{where}: 'escape_patterns' must be a name or an object of lists.")
    return value


def _parse_quote(entry: Mapping[str, Any], where: str) -> QuoteRule:
    defaults = QuoteRule()
    escape_patterns = parse_escape_patterns(entry.get("escape_patterns", "english"), where)
    options = DetectQuotesOptions(
        escape_contractions=_field(entry, "escape_contractions", bool, where, True),
        escape_patterns=escape_patterns,
        allow_nesting=_field(entry, "allow_nesting", bool, where, False),
        detect_inner_quotes=_field(entry, "detect_inner_quotes", bool, where, True),
    )
    return QuoteRule(
        single=_parse_mapping(entry, "single", where, defaults.single),
        double=_parse_mapping(entry, "double", where, defaults.double),
        detect_in_tags=_field(entry, "detect_in_tags", bool, where, False),
        detect_options=options,
    )


def _user_id(item: Mapping[str, Any], where: str) -> str:
    value = item.get("id")
    if isinstance(value, bool) or not isinstance(value, (str, int)) or value == "":
        raise RuleConfigError(f"{where}: 'id' must be a string or integer.")
    return str(value)


def _parse_mention(entry: Mapping[str, Any], where: str) -> MentionRule:
    users = tuple(
        MentionUser(
            id=_user_id(item, f"{where} users[{idx}]"),
            name=_required_str(item, "name", f"{where} users[{idx}]"),
        )
        for idx, item in enumerate(_objects(entry, "users", where))
    )
    return MentionRule(
        users=users,
        trigger=_field(entry, "trigger", str, where, "@"),
        pattern=_field(entry, "pattern", str, where),
    )


_PARSERS = {
    "spellcheck": _parse_spellcheck,
    "glossary": _parse_glossary,
    "special-char": _parse_special_char,
    "tag": _parse_tag,
    "quote": _parse_quote,
    "link": lambda entry, where: LinkRule(),
    "mention": _parse_mention,
}


def parse_rules(payload: Any, *, source: str = "rules") -> list[Rule]:
    """Build rules from a decoded rule document (``{"rules": [...]}``)."""
    if isinstance(payload, dict):
        payload = payload.get("rules")
    if not isinstance(payload, list):
        raise RuleConfigError(f"{source} must contain a 'rules' array.")
    rules: list[Rule] = []
    for idx, entry in enumerate(payload):
        where = f"{source} rules[{idx}]"
        if not isinstance(entry, dict):
            raise RuleConfigError(f"{where}: must be an object.")
        rule_type = entry.get("type")
        rule_type = RULE_TYPE_ALIASES.get(rule_type, rule_type)
        parser = _PARSERS.get(rule_type) if isinstance(rule_type, str) else None
        if parser is None:
            raise RuleConfigError(f"{where}: unknown rule type {entry.get('type')!r}.")
        try:
            rules.append(parser(entry, f"{where} ({rule_type})"))
        except RuleConfigError as exc:
            if str(exc).startswith(source):
                raise
            raise RuleConfigError(f"{where}: {exc}") from exc
    return rules


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise RuleConfigError(f"Failed to parse rules file: {path}") from exc


def load_rules(path: Path) -> list[Rule]:
    path = Path(path)
    return parse_rules(_read_json(path), source=path.name)


def _parse_code_point(key: str, where: str) -> int:
    if len(key) == 1:
        return ord(key)
    text = key.strip()
    if text[:2].upper() in ("U+", "0X"):
        try:
            return int(text[2:], 16)
        except ValueError:
            pass
    raise RuleConfigError(f"{where}: invalid code point {key!r}.")


def parse_display_config(payload: Any, *, source: str = "display") -> EngineConfig:
    if payload is None:
        return EngineConfig()
    if not isinstance(payload, dict):
        raise RuleConfigError(f"{source}: 'display' must be an object.")
    overrides: dict[int, str] = {}
    for key, symbol in _field(payload, "overrides", dict, source, {}).items():
        if not isinstance(symbol, str) or not symbol:
            raise RuleConfigError(f"{source}: override for {key!r} must be a string.")
        overrides[_parse_code_point(str(key), source)] = symbol
    return EngineConfig(
        display=DisplayConfig(overrides=overrides),
        mask_char=_field(payload, "mask_char", str, source, DEFAULT_MASK_CHAR),
        line_break_symbol=_field(payload, "line_break_symbol", str, source),
    )


def load_engine_config(path: Path) -> tuple[list[Rule], EngineConfig]:
    """Rules and the optional ``display`` section of a rules file."""
    path = Path(path)
    raw = _read_json(path)
    rules = parse_rules(raw, source=path.name)
    display = raw.get("display") if isinstance(raw, dict) else None
    return rules, parse_display_config(display, source=f"{path.name} display")


def _drop_defaults(payload: dict[str, Any], defaults: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if k not in defaults or defaults[k] != v}


def serialize_rule(rule: Rule) -> dict[str, Any]:
    if isinstance(rule, SpellcheckRule):
        validations = []
        for validation in rule.validations:
            item: dict[str, Any] = {
                "start": validation.start,
                "end": validation.end,
                "content": validation.content,
                "category_id": validation.category_id,
                "message": validation.message,
                "short_message": validation.short_message,
                "suggestions": [{"value": s.value} for s in validation.suggestions],
                "dictionaries": list(validation.dictionaries),
            }
            validations.append(item)
        return {"type": "spellcheck", "validations": validations}
    if isinstance(rule, GlossaryRule):
        return {
            "type": "glossary",
            "label": rule.label,
            "entries": [
                _drop_defaults(
                    {"term": e.term, "description": e.description, "atomic": e.atomic},
                    {"description": None, "atomic": False},
                )
                for e in rule.entries
            ],
        }
    if isinstance(rule, SpecialCharRule):
        return {
            "type": "special-char",
            "entries": [
                _drop_defaults(
                    {
                        "name": e.name,
                        "pattern": e.source,
                        "atomic": e.atomic,
                        "display_symbol": e.display_symbol,
                    },
                    {"atomic": False, "display_symbol": None},
                )
                for e in rule.entries
            ],
        }
    if isinstance(rule, TagRule):
        return {
            "type": "tag",
            "detect_inner": rule.detect_inner,
            "collapsed": rule.collapsed,
            "collapse_scope": rule.collapse_scope,
            **({"pattern": rule.regex.pattern} if rule.regex is not None else {}),
        }
    if isinstance(rule, QuoteRule):
        options = rule.detect_options
        escape_patterns: Any = options.escape_patterns
        if not isinstance(escape_patterns, str):
            escape_patterns = {k: list(v) for k, v in escape_patterns.items()}
        return {
            "type": "quote",
            "single": {"opening": rule.single.opening, "closing": rule.single.closing},
            "double": {"opening": rule.double.opening, "closing": rule.double.closing},
            "detect_in_tags": rule.detect_in_tags,
            "escape_contractions": options.escape_contractions,
            "escape_patterns": escape_patterns,
            "allow_nesting": options.allow_nesting,
            "detect_inner_quotes": options.detect_inner_quotes,
        }
    if isinstance(rule, LinkRule):
        return {"type": "link"}
    if isinstance(rule, MentionRule):
        payload: dict[str, Any] = {
            "type": "mention",
            "trigger": rule.trigger,
            "users": [{"id": u.id, "name": u.name} for u in rule.users],
        }
        if rule.pattern is not None:
            payload["pattern"] = rule.pattern
        return payload
    raise TypeError(f"Unsupported rule: {rule!r}")


def serialize_rules(rules: Sequence[Rule]) -> dict[str, Any]:
    return {"rules": [serialize_rule(rule) for rule in rules]}


def dump_rules(rules: Sequence[Rule], path: Path) -> Path:
    path = Path(path)
    path.write_text(
        json.dumps(serialize_rules(rules), ensure_ascii=False, indent=2) + "\n",
        encoding="utf-8",
    )
    return path
