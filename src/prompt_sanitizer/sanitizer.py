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

"""Sanitization engine: redact injection patterns from prompt text."""

from collections.abc import Iterable
from functools import lru_cache

from .matcher import PatternMatcher
from .models import FILTERED_MARKER, FilterEvent, Match, Rule, SanitizationResult
from .rules import DEFAULT_RULES


def apply_redactions(text: str, matches: list[Match]) -> SanitizationResult:
    """Replace resolved matches with the redaction marker.

    ``matches`` must be non-overlapping and sorted by start offset, as
    returned by ``PatternMatcher.find``. Text outside the matches is copied
    unchanged.
    """
    if not matches:
        return SanitizationResult(
            sanitized_text=text,
            original_length=len(text),
            sanitized_length=len(text),
        )

    parts: list[str] = []
    events: list[FilterEvent] = []
    pos = 0
    for match in matches:
        parts.append(text[pos : match.start])
        parts.append(FILTERED_MARKER)
        events.append(
            FilterEvent(
                category=match.category,
                original_text=match.text,
                start=match.start,
                end=match.end,
                rule_id=match.rule.id,
            )
        )
        pos = match.end
    parts.append(text[pos:])

    sanitized = "".join(parts)
    return SanitizationResult(
        sanitized_text=sanitized,
        filtered_events=events,
        original_length=len(text),
        sanitized_length=len(sanitized),
    )


class Sanitizer:
    """Redacts prompt injection patterns using a fixed rule catalog.

    The catalog is compiled once; instances hold no per-call state and can be
    shared between threads.
    """

    def __init__(self, rules: Iterable[Rule] = DEFAULT_RULES) -> None:
        self.matcher = PatternMatcher(rules)

    @property
    def rules(self) -> list[Rule]:
        return self.matcher.active_rules

    def sanitize(self, text: str) -> SanitizationResult:
        """Sanitize text, returning the redacted text and what was removed."""
        if not text:
            return apply_redactions(text, [])
        return apply_redactions(text, self.matcher.find(text))


@lru_cache(maxsize=1)
def default_sanitizer() -> Sanitizer:
    """Return the process-wide sanitizer over the built-in catalog."""
    return Sanitizer(DEFAULT_RULES)


def sanitize(text: str) -> SanitizationResult:
    """Sanitize text with the built-in rule catalog."""
    return default_sanitizer().sanitize(text)
