from __future__ import annotations

from catedit.config import EngineConfig
from catedit.display import (
    CODEPOINT_DISPLAY_MAP,
    DisplayConfig,
    codepoint_overrides_from_rules,
    replace_invisible_chars,
)
from catedit.rules import GlossaryRule, SpecialCharEntry, SpecialCharRule


def test_builtin_symbols() -> None:
    assert CODEPOINT_DISPLAY_MAP[0x00A0] == "⍽"
    assert CODEPOINT_DISPLAY_MAP[0x000A] == "↩"
    assert replace_invisible_chars("a\u00a0b\u200bc") == "a⍽b∅c"
    assert replace_invisible_chars("plain") == "plain"


def test_overrides_apply_per_config() -> None:
    display = DisplayConfig(overrides={0x00A0: "_"})
    assert replace_invisible_chars("a\u00a0b", display) == "a_b"
    assert replace_invisible_chars("a\u00a0b") == "a⍽b"
    assert display.line_break_symbol == "↩"


def test_overrides_from_atomic_special_chars() -> None:
    rules = [
        GlossaryRule(label="tb"),
        SpecialCharRule(
            entries=(
                SpecialCharEntry(name="nbsp", pattern="\\u00a0", atomic=True, display_symbol="°"),
                SpecialCharEntry(name="thin", pattern="\u2009", atomic=True, display_symbol="^"),
                SpecialCharEntry(name="plain", pattern="\u200b", display_symbol="!"),
                SpecialCharEntry(name="multi", pattern="ab", atomic=True, display_symbol="?"),
            )
        ),
    ]
    assert codepoint_overrides_from_rules(rules) == {0x00A0: "°", 0x2009: "^"}


def test_engine_config_merges_rule_symbols_under_explicit_ones() -> None:
    rules = [
        SpecialCharRule(
            entries=(
                SpecialCharEntry(name="nbsp", pattern="\u00a0", atomic=True, display_symbol="°"),
                SpecialCharEntry(name="tab", pattern="\t", atomic=True, display_symbol=">"),
            )
        )
    ]
    config = EngineConfig(display=DisplayConfig(overrides={0x0009: "T"}), line_break_symbol="¶")
    display = config.display_for(rules)
    assert display.symbol_for("\u00a0") == "°"
    assert display.symbol_for("\t") == "T"
    assert display.line_break_symbol == "¶"
