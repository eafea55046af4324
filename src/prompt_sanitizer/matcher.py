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

"""Pattern matching engine for detection rules."""

import heapq
import logging
import re
from collections.abc import Callable, Iterable

from .models import Match, Rule

logger = logging.getLogger(__name__)


def literal_pattern(phrase: str) -> str:
    """Build a regex for a literal phrase, bounded on word edges."""
    pattern = re.escape(phrase)
    if phrase[:1].isalnum() or phrase[:1] == "_":
        pattern = r"\b" + pattern
    if phrase[-1:].isalnum() or phrase[-1:] == "_":
        pattern += r"\b"
    return pattern


def compile_rule(rule: Rule) -> re.Pattern[str] | None:
    """Compile a rule's pattern, or return None if it cannot be compiled."""
    if not isinstance(rule.pattern, str):
        logger.warning(
            "Skipping rule '%s': pattern must be a string, not %s",
            rule.id,
            type(rule.pattern).__name__,
        )
        return None
    try:
        source = rule.pattern if rule.is_regex else literal_pattern(rule.pattern)
        return re.compile(source, re.IGNORECASE)
    except re.error as e:
        logger.warning("Skipping rule '%s': invalid pattern: %s", rule.id, e)
        return None


def resolve_overlaps(
    matches: Iterable[Match],
    rule_order: dict[str, int],
    next_match: Callable[[Rule, int], Match | None] | None = None,
) -> list[Match]:
    """Reduce matches to a non-overlapping set, ordered by start offset.

    Earliest start wins; on equal start the longer match wins; remaining ties
    go to the rule earlier in the catalog.

    With ``next_match``, ``matches`` holds at most one candidate per rule.
    Once a rule's candidate is accepted or dropped, ``next_match(rule, pos)``
    supplies that rule's next candidate at or after ``pos``, so a match hidden
    inside a dropped span is still found.
    """

    def key(m: Match) -> tuple[int, int, int]:
        return (m.start, -(m.end - m.start), rule_order.get(m.rule.id, len(rule_order)))

    heap = [(key(m), i, m) for i, m in enumerate(matches)]
    heapq.heapify(heap)
    seq = len(heap)

    resolved: list[Match] = []
    last_end = 0
    while heap:
        _, _, match = heapq.heappop(heap)
        if match.end == match.start:
            # Zero-width matches carry nothing to redact
            resume = max(match.end + 1, last_end)
        elif resolved and match.start < last_end:
            resume = last_end
        else:
            resolved.append(match)
            last_end = match.end
            resume = match.end
        if next_match is None:
            continue
        candidate = next_match(match.rule, resume)
        if candidate is not None:
            heapq.heappush(heap, (key(candidate), seq, candidate))
            seq += 1
    return resolved


class PatternMatcher:
    """Scans text against a list of detection rules.

    Patterns are compiled once, up front. Rules that fail to compile are
    inert and never take part in a scan; a rule that fails while searching
    is skipped for that text.
    """

    def __init__(self, rules: Iterable[Rule]) -> None:
        self.rules = list(rules)
        self._order = {rule.id: i for i, rule in reversed(list(enumerate(self.rules)))}
        self._compiled: list[tuple[Rule, re.Pattern[str]]] = []
        for rule in self.rules:
            pattern = compile_rule(rule)
            if pattern is not None:
                self._compiled.append((rule, pattern))

    @property
    def active_rules(self) -> list[Rule]:
        """Rules that compiled and take part in scanning."""
        return [rule for rule, _ in self._compiled]

    def scan(self, text: str) -> list[Match]:
        """Scan text and return all raw matches, possibly overlapping."""
        matches: list[Match] = []
        for rule, pattern in self._compiled:
            try:
                found = [
                    Match(rule=rule, start=m.start(), end=m.end(), text=m.group())
                    for m in pattern.finditer(text)
                ]
            except (re.error, TypeError) as e:
                logger.warning("Skipping rule '%s': search failed: %s", rule.id, e)
                continue
            matches.extend(found)
        return matches

    def find(self, text: str) -> list[Match]:
        """Scan text and return the resolved, non-overlapping matches."""
        patterns = {id(rule): pattern for rule, pattern in self._compiled}
        failed: set[int] = set()

        def next_match(rule: Rule, pos: int) -> Match | None:
            if id(rule) in failed or pos > len(text):
                return None
            try:
                m = patterns[id(rule)].search(text, pos)
            except (re.error, TypeError) as e:
                logger.warning("Skipping rule '%s': search failed: %s", rule.id, e)
                failed.add(id(rule))
                return None
            if m is None:
                return None
            return Match(rule=rule, start=m.start(), end=m.end(), text=m.group())

        first = (next_match(rule, 0) for rule, _ in self._compiled)
        return resolve_overlaps([m for m in first if m is not None], self._order, next_match)
