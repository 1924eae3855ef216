from __future__ import annotations

import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from .rules import Rule, SpecialCharRule

__all__ = [
    "CODEPOINT_DISPLAY_MAP",
    "DisplayConfig",
    "codepoint_overrides_from_rules",
    "replace_invisible_chars",
]

# Invisible or ambiguous characters and the symbol shown in their place.
CODEPOINT_DISPLAY_MAP: Mapping[int, str] = MappingProxyType(
    {
        0x0000: "␀",
        0x0009: "⇥",
        0x000A: "↩",
        0x000C: "␌",
        0x000D: "↵",
        0x00A0: "⍽",
        0x2002: "␣",
        0x2003: "␣",
        0x2009: "·",
        0x200A: "·",
        0x200B: "∅",
        0x200C: "⊘",
        0x200D: "⊕",
        0x2060: "⁀",
        0x3000: "□",
        0xFEFF: "◊",
    }
)

_UNICODE_ESCAPE = re.compile(r"^\\u([0-9A-Fa-f]{4})$")


@dataclass(frozen=True)
class DisplayConfig:
    """Per-engine display symbols layered over `CODEPOINT_DISPLAY_MAP`."""

    overrides: Mapping[int, str] = field(default_factory=dict)

    def symbol_for(self, ch: str) -> str | None:
        code = ord(ch)
        if code in self.overrides:
            return self.overrides[code]
        return CODEPOINT_DISPLAY_MAP.get(code)

    @property
    def line_break_symbol(self) -> str:
        return self.symbol_for("\n") or "↩"

    def merged(self, extra: Mapping[int, str]) -> "DisplayConfig":
        if not extra:
            return self
        combined = dict(extra)
        combined.update(self.overrides)
        return DisplayConfig(overrides=combined)


def replace_invisible_chars(text: str, display: DisplayConfig | None = None) -> str:
    config = display or DisplayConfig()
    return "".join(config.symbol_for(ch) or ch for ch in text)


def _single_code_point(source: str) -> int | None:
    escaped = _UNICODE_ESCAPE.match(source)
    if escaped:
        return int(escaped.group(1), 16)
    if len(source) == 1:
        return ord(source)
    return None


def codepoint_overrides_from_rules(rules: Iterable[Rule]) -> dict[int, str]:
    """Display symbols declared by atomic special-character entries."""
    overrides: dict[int, str] = {}
    for rule in rules:
        if not isinstance(rule, SpecialCharRule):
            continue
        for entry in rule.entries:
            if not entry.atomic or not entry.display_symbol:
                continue
            code = _single_code_point(entry.source)
            if code is not None:
                overrides[code] = entry.display_symbol
    return overrides
