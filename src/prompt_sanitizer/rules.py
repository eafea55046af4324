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

"""Built-in catalog of OWASP LLM prompt injection rules.

Every pattern is matched case-insensitively. Patterns are anchored on word
boundaries so that a keyword never matches inside a longer unrelated word.
"""

from .models import Category, Rule

_CATALOG: dict[Category, list[tuple[str, str]]] = {
    "SystemPromptInjection": [
        ("system-colon", r"\bsystem\s*:"),
        ("you-are-now", r"\byou\s+are\s+now\b"),
        ("ignore-previous-instructions", r"\bignore\s+previous\s+instructions\b"),
        ("ignore-all-previous-instructions", r"\bignore\s+all\s+previous\s+instructions\b"),
        ("forget-everything", r"\bforget\s+everything\b"),
        ("new-instructions", r"\bnew\s+instructions\s*:"),
    ],
    "RoleManipulation": [
        ("act-as", r"\bact\s+as\s+a\s+\w+"),
        ("pretend-to-be", r"\bpretend\s+to\s+be\b"),
        ("roleplay-as", r"\broleplay\s+as\b"),
        ("simulate-being", r"\bsimulate\s+being\b"),
        ("take-on-role", r"\btake\s+on\s+the\s+role\b"),
    ],
    "InstructionOverride": [
        ("instead-of-following", r"\binstead\s+of\s+following\b"),
        ("override-instructions", r"\boverride\s+your\s+instructions\b"),
        ("ignore-previous-instruction", r"\bignore\s+previous\s+instruction\b"),
        ("disregard-above", r"\bdisregard\s+the\s+above\b"),
        ("ignore-guidelines", r"\bignore\s+your\s+guidelines\b"),
        ("new-directive", r"\bnew\s+directive\s*:"),
    ],
    "ContextEscape": [
        ("break-character", r"\bbreak\s+out\s+of\s+character\b"),
        ("exit-simulation", r"\bexit\s+the\s+simulation\b"),
        ("end-conversation", r"\bend\s+conversation\b"),
        ("stop-being", r"\bstop\s+being\s+an?\s+\w+"),
        ("leave-role", r"\bleave\s+your\s+role\b"),
    ],
    "Jailbreak": [
        ("jailbreak", r"\bjailbreak\b"),
        ("dan-mode", r"\bdan\s+mode\b"),
        ("developer-mode", r"\bdeveloper\s+mode\b"),
        ("evil-mode", r"\bevil\s+mode\b"),
        ("unrestricted-mode", r"\bunrestricted\s+mode\b"),
        ("bypass-safety", r"\bbypass\s+safety\b"),
    ],
    "PromptLeaking": [
        ("show-prompt", r"\bshow\s+me\s+your\s+prompt\b"),
        ("what-instructions", r"\bwhat\s+are\s+your\s+instructions\b"),
        ("repeat-system-message", r"\brepeat\s+your\s+system\s+message\b"),
        ("reveal-guidelines", r"\breveal\s+your\s+guidelines\b"),
        ("display-configuration", r"\bdisplay\s+your\s+configuration\b"),
    ],
    "CodeExecution": [
        ("execute-code", r"\bexecute\s+code\b"),
        ("run-script", r"\brun\s+this\s+script\b"),
        ("eval-call", r"\beval\s*\("),
        ("system-call", r"\bsystem\s*\("),
        ("shell-command", r"\bshell\s+command\b"),
        ("code-block", r"```[\s\S]*?```"),
    ],
    "TrainingDataExtraction": [
        ("training-data", r"\btraining\s+data\b"),
        ("memorized-content", r"\bmemorized\s+content\b"),
        ("repeat-verbatim", r"\brepeat\s+verbatim\b"),
        ("exact-copy", r"\bexact\s+copy\b"),
        ("word-for-word", r"\bword\s+for\s+word\b"),
        ("what-did-you-learn", r"\bwhat\s+did\s+you\s+learn\b"),
    ],
    "IndirectInjection": [
        ("when-you-see-this", r"\bwhen\s+you\s+see\s+this\b"),
        ("if-someone-asks", r"\bif\s+someone\s+asks\b"),
        ("future-instructions", r"\bfuture\s+instructions\b"),
        ("next-time-respond", r"\bnext\s+time\s+respond\b"),
        ("remember-always", r"\bremember\s+to\s+always\b"),
    ],
    "ModelManipulation": [
        ("temperature", r"\btemperature\s*="),
        ("max-tokens", r"\bmax_tokens\s*="),
        ("top-p", r"\btop_p\s*="),
        ("frequency-penalty", r"\bfrequency_penalty\b"),
        ("presence-penalty", r"\bpresence_penalty\b"),
        ("model-parameters", r"\bmodel\s+parameters\b"),
    ],
}

_DESCRIPTIONS: dict[Category, str] = {
    "SystemPromptInjection": "Attempt to inject or replace the system prompt",
    "RoleManipulation": "Attempt to make the model assume another role",
    "InstructionOverride": "Attempt to override prior instructions",
    "ContextEscape": "Attempt to escape the conversation context",
    "Jailbreak": "Known jailbreak trigger",
    "PromptLeaking": "Attempt to leak the prompt or configuration",
    "CodeExecution": "Attempt to get code executed",
    "TrainingDataExtraction": "Attempt to extract training data",
    "IndirectInjection": "Deferred or conditional instruction",
    "ModelManipulation": "Attempt to change model parameters",
}

DEFAULT_RULES: tuple[Rule, ...] = tuple(
    Rule(id=rule_id, category=category, pattern=pattern, description=_DESCRIPTIONS[category])
    for category, patterns in _CATALOG.items()
    for rule_id, pattern in patterns
)


def rules_for_category(category: Category) -> list[Rule]:
    """Return the built-in rules of one category, in catalog order."""
    return [r for r in DEFAULT_RULES if r.category == category]
