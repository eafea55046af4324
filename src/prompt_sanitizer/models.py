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

"""Data models for detection rules, matches and sanitization results."""

from dataclasses import dataclass, field
from typing import Literal

Category = Literal[
    "SystemPromptInjection",
    "RoleManipulation",
    "InstructionOverride",
    "ContextEscape",
    "Jailbreak",
    "PromptLeaking",
    "CodeExecution",
    "TrainingDataExtraction",
    "IndirectInjection",
    "ModelManipulation",
]

# Catalog order; also the final tie-break between equal matches
CATEGORIES: tuple[Category, ...] = (
    "SystemPromptInjection",
    "RoleManipulation",
    "InstructionOverride",
    "ContextEscape",
    "Jailbreak",
    "PromptLeaking",
    "CodeExecution",
    "TrainingDataExtraction",
    "IndirectInjection",
    "ModelManipulation",
)

FILTERED_MARKER = "[FILTERED]"


@dataclass(frozen=True)
class Rule:
    """A detection rule for one class of injection pattern."""

    id: str
    category: Category
    pattern: str
    is_regex: bool = True
    description: str = ""


@dataclass
class Match:
    """A match found by scanning text against rules."""

    rule: Rule
    start: int
    end: int
    text: str

    @property
    def category(self) -> Category:
        return self.rule.category


@dataclass(frozen=True)
class FilterEvent:
    """One redacted span reported back to the caller."""

    category: Category
    original_text: str
    start: int
    end: int
    rule_id: str = ""


@dataclass
class SanitizationResult:
    """Result of sanitizing a piece of text."""

    sanitized_text: str
    filtered_events: list[FilterEvent] = field(default_factory=list)
    original_length: int = 0
    sanitized_length: int = 0

    @property
    def filtered_count(self) -> int:
        return len(self.filtered_events)

    @property
    def is_clean(self) -> bool:
        return not self.filtered_events
