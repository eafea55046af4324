# Copyright 2025 Lars Marowsky-Brée <lars@marowsky-bree.eu>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Tests for pattern matching engine."""

import logging

import pytest

from prompt_sanitizer import matcher as matcher_module
from prompt_sanitizer.matcher import PatternMatcher, compile_rule, literal_pattern, resolve_overlaps
from prompt_sanitizer.models import Match, Rule


def test_match_regex() -> None:
    """Test regex pattern matching."""
    rule = Rule(id="dan", category="Jailbreak", pattern=r"\bdan\s+mode\b")
    matcher = PatternMatcher([rule])
    matches = matcher.scan("enable DAN mode now")
    assert len(matches) == 1
    assert matches[0].text == "DAN mode"
    assert matches[0].start == 7
    assert matches[0].end == 15
    assert matches[0].category == "Jailbreak"


def test_match_case_insensitive() -> None:
    """Test that every rule matches regardless of case."""
    rule = Rule(id="jb", category="Jailbreak", pattern=r"\bjailbreak\b")
    matcher = PatternMatcher([rule])
    assert len(matcher.scan("JailBreak")) == 1
    assert len(matcher.scan("JAILBREAK")) == 1


def test_match_literal_phrase() -> None:
    """Test literal phrases are escaped and bounded on word edges."""
    rule = Rule(id="lit", category="RoleManipulation", pattern="act as", is_regex=False)
    matcher = PatternMatcher([rule])
    assert len(matcher.scan("Act as a pirate")) == 1
    assert matcher.scan("react as expected") == []
    assert matcher.scan("actually as well") == []


def test_literal_pattern_special_characters() -> None:
    """Test literal patterns with regex metacharacters."""
    rule = Rule(id="lit", category="CodeExecution", pattern="eval(", is_regex=False)
    matcher = PatternMatcher([rule])
    matches = matcher.scan("call eval(x)")
    assert len(matches) == 1
    assert matches[0].text == "eval("


def test_literal_pattern_word_edges() -> None:
    """Test word boundaries only wrap word characters."""
    assert literal_pattern("abc").startswith(r"\b")
    assert literal_pattern("abc").endswith(r"\b")
    assert not literal_pattern("[x]").startswith(r"\b")
    assert not literal_pattern("[x]").endswith(r"\b")


def test_word_boundary_precision() -> None:
    """Test keywords do not match inside longer words."""
    rule = Rule(id="jb", category="Jailbreak", pattern=r"\bjailbreak\b")
    matcher = PatternMatcher([rule])
    assert matcher.scan("jailbreaking is a topic") == []


def test_invalid_rule_is_inert(caplog: pytest.LogCaptureFixture) -> None:
    """Test that a rule that fails to compile is skipped, not raised."""
    bad = Rule(id="bad", category="Jailbreak", pattern="[unclosed")
    good = Rule(id="good", category="Jailbreak", pattern=r"\bjailbreak\b")
    with caplog.at_level(logging.WARNING, logger="prompt_sanitizer.matcher"):
        matcher = PatternMatcher([bad, good])
    assert matcher.active_rules == [good]
    assert len(matcher.scan("jailbreak [unclosed")) == 1
    assert "Skipping rule 'bad'" in caplog.text


def test_compile_rule_non_string_pattern() -> None:
    """Test that a missing pattern compiles to nothing."""
    rule = Rule(id="none", category="Jailbreak", pattern=None)  # type: ignore[arg-type]
    assert compile_rule(rule) is None


def test_multiple_matches() -> None:
    """Test multiple matches in same text."""
    rule = Rule(id="jb", category="Jailbreak", pattern=r"\bjailbreak\b")
    matcher = PatternMatcher([rule])
    matches = matcher.scan("jailbreak, then jailbreak again")
    assert [m.start for m in matches] == [0, 16]


def test_no_matches() -> None:
    """Test when no patterns match."""
    rule = Rule(id="jb", category="Jailbreak", pattern=r"\bjailbreak\b")
    matcher = PatternMatcher([rule])
    assert matcher.scan("nothing to see here") == []
    assert matcher.find("nothing to see here") == []


def test_resolve_earliest_start_wins() -> None:
    """Test overlapping matches keep the one that starts first."""
    first = Rule(id="first", category="InstructionOverride", pattern=r"\bignore\s+previous\b")
    second = Rule(
        id="second", category="SystemPromptInjection", pattern=r"\bprevious\s+instructions\b"
    )
    matcher = PatternMatcher([second, first])
    matches = matcher.find("ignore previous instructions")
    assert len(matches) == 1
    assert matches[0].rule.id == "first"
    assert matches[0].text == "ignore previous"


def test_resolve_longest_wins_on_equal_start() -> None:
    """Test equal starts keep the longer match."""
    short = Rule(id="short", category="SystemPromptInjection", pattern=r"\bignore\b")
    long = Rule(id="long", category="InstructionOverride", pattern=r"\bignore\s+previous\b")
    matcher = PatternMatcher([short, long])
    matches = matcher.find("ignore previous")
    assert len(matches) == 1
    assert matches[0].rule.id == "long"


def test_resolve_catalog_order_breaks_ties() -> None:
    """Test identical spans go to the earlier rule."""
    a = Rule(id="a", category="SystemPromptInjection", pattern=r"\bforget\b")
    b = Rule(id="b", category="InstructionOverride", pattern=r"\bforget\b")
    assert PatternMatcher([a, b]).find("forget it")[0].rule.id == "a"
    assert PatternMatcher([b, a]).find("forget it")[0].rule.id == "b"


def test_resolve_sorted_and_disjoint() -> None:
    """Test resolved matches are sorted and non-overlapping."""
    rule = Rule(id="r", category="Jailbreak", pattern="x")
    matches = [
        Match(rule=rule, start=10, end=14, text="xxxx"),
        Match(rule=rule, start=0, end=5, text="xxxxx"),
        Match(rule=rule, start=3, end=8, text="xxxxx"),
        Match(rule=rule, start=5, end=6, text="x"),
    ]
    resolved = resolve_overlaps(matches, {"r": 0})
    assert [(m.start, m.end) for m in resolved] == [(0, 5), (5, 6), (10, 14)]


def test_resolve_drops_empty_matches() -> None:
    """Test zero-width matches are never reported."""
    rule = Rule(id="empty", category="Jailbreak", pattern=r"\b")
    matcher = PatternMatcher([rule])
    assert matcher.find("some words") == []


def test_bytes_pattern_is_inert(caplog: pytest.LogCaptureFixture) -> None:
    """Test a bytes pattern is rejected instead of failing at search time."""
    bad = Rule(id="bytes", category="Jailbreak", pattern=b"dan")  # type: ignore[arg-type]
    good = Rule(id="good", category="Jailbreak", pattern=r"\bjailbreak\b")
    with caplog.at_level(logging.WARNING, logger="prompt_sanitizer.matcher"):
        matcher = PatternMatcher([bad, good])
    assert matcher.active_rules == [good]
    assert [m.text for m in matcher.find("jailbreak dan")] == ["jailbreak"]
    assert "pattern must be a string" in caplog.text


class _BrokenPattern:
    """Compiled pattern stand-in that fails whenever it is used."""

    def search(self, text: str, pos: int = 0) -> None:
        raise TypeError("broken pattern")

    def finditer(self, text: str) -> None:
        raise TypeError("broken pattern")


def test_rule_failing_at_search_is_skipped(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    """Test a rule that raises while searching is skipped, not propagated."""
    real_compile = matcher_module.compile_rule

    def fake_compile(rule: Rule) -> object:
        return _BrokenPattern() if rule.id == "broken" else real_compile(rule)

    monkeypatch.setattr("prompt_sanitizer.matcher.compile_rule", fake_compile)
    broken = Rule(id="broken", category="Jailbreak", pattern="x")
    good = Rule(id="good", category="Jailbreak", pattern=r"\bjailbreak\b")
    matcher = PatternMatcher([broken, good])

    with caplog.at_level(logging.WARNING, logger="prompt_sanitizer.matcher"):
        assert [m.rule.id for m in matcher.find("jailbreak x")] == ["good"]
        assert [m.rule.id for m in matcher.scan("jailbreak x")] == ["good"]
    assert "search failed" in caplog.text


def test_dropped_match_does_not_hide_later_match() -> None:
    """Test a rule is searched again after its match loses an overlap."""
    stop = Rule(id="stop", category="ContextEscape", pattern=r"\bstop\s+being\s+an?\s+\w+")
    act = Rule(id="act", category="RoleManipulation", pattern=r"\bact\s+as\s+a\s+\w+")
    matcher = PatternMatcher([stop, act])
    matches = matcher.find("stop being an act as a act as a hacker")
    assert [(m.rule.id, m.text) for m in matches] == [
        ("stop", "stop being an act"),
        ("act", "act as a hacker"),
    ]


def test_search_again_respects_word_boundaries() -> None:
    """Test searching from inside a word does not match its tail."""
    first = Rule(id="first", category="Jailbreak", pattern=r"\bthe\s+evil\s+re")
    later = Rule(
        id="later", category="RoleManipulation", pattern=r"\b(?:evil\s+react|act\s+as)\b"
    )
    matcher = PatternMatcher([first, later])
    matches = matcher.find("the evil react as")
    assert [m.text for m in matches] == ["the evil re"]
