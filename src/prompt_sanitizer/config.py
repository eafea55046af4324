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

"""Configuration loading for extra rules and disabled categories."""

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .models import CATEGORIES, Rule
from .rules import DEFAULT_RULES

VALID_CATEGORIES: set[str] = set(CATEGORIES)

PROJECT_CONFIG_FILE = ".prompt_sanitizer.yaml"
GLOBAL_CONFIG_DIR = Path.home() / ".config" / "prompt-sanitizer"
GLOBAL_CONFIG_FILE = GLOBAL_CONFIG_DIR / "config.yaml"


class ConfigError(Exception):
    """Raised when a configuration file cannot be used."""


@dataclass
class SanitizerConfig:
    """Extra rules and disabled categories from configuration files."""

    rules: list[Rule] = field(default_factory=list)
    disabled_categories: set[str] = field(default_factory=set)


def _parse_rule(data: dict[str, Any]) -> Rule:
    """Parse a rule dictionary into a Rule object."""
    rule_id = data.get("id")
    if rule_id is None:
        raise ConfigError("rule is missing required field 'id'")
    if not isinstance(rule_id, str):
        raise ConfigError(f"rule id {rule_id!r} must be a string")
    category = data.get("category")
    if not isinstance(category, str):
        raise ConfigError(f"rule '{rule_id}': category must be a string")
    if category not in VALID_CATEGORIES:
        raise ConfigError(f"rule '{rule_id}': unknown category {category!r}")
    return Rule(
        id=rule_id,
        category=category,
        pattern=data.get("pattern"),
        is_regex=data.get("is_regex", True),
        description=data.get("description", ""),
    )


def _get_list(data: dict[str, Any], key: str) -> list[Any]:
    """Return a list-valued key, treating a missing or null value as empty."""
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' must be a list")
    return value


def load_config_file(path: Path) -> SanitizerConfig:
    """Load configuration from a YAML file.

    A missing or empty file yields an empty configuration. Rules with an
    invalid regex load fine and are skipped at scan time.
    """
    if not path.exists():
        return SanitizerConfig()
    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"{path}: YAML syntax error: {e}") from e
    except OSError as e:
        raise ConfigError(f"{path}: cannot read file: {e.strerror or e}") from e
    if not data:
        return SanitizerConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a mapping")

    try:
        rules: list[Rule] = []
        for i, entry in enumerate(_get_list(data, "rules")):
            if not isinstance(entry, dict):
                raise ConfigError(f"rule {i + 1} must be a mapping")
            rules.append(_parse_rule(entry))
        disabled = _get_list(data, "disabled_categories")
        if not all(isinstance(c, str) for c in disabled):
            raise ConfigError("'disabled_categories' entries must be strings")
    except ConfigError as e:
        raise ConfigError(f"{path}: {e}") from e
    return SanitizerConfig(rules=rules, disabled_categories=set(disabled))


def load_config(project_dir: Path | None = None) -> SanitizerConfig:
    """Load and merge global and project configuration.

    Project rules override global rules with the same id; disabled categories
    from both files apply.
    """
    global_config = load_config_file(GLOBAL_CONFIG_FILE)
    if project_dir is None:
        project_dir = Path.cwd()
    project_config = load_config_file(project_dir / PROJECT_CONFIG_FILE)

    rules_by_id: dict[str, Rule] = {}
    for rule in global_config.rules:
        rules_by_id[rule.id] = rule
    for rule in project_config.rules:
        rules_by_id[rule.id] = rule

    return SanitizerConfig(
        rules=list(rules_by_id.values()),
        disabled_categories=global_config.disabled_categories
        | project_config.disabled_categories,
    )


def build_rules(config: SanitizerConfig, base: Iterable[Rule] = DEFAULT_RULES) -> list[Rule]:
    """Combine built-in rules with configured ones.

    A configured rule replaces the built-in rule with the same id in place;
    new rules are appended after the built-ins.
    """
    custom = {r.id: r for r in config.rules}
    rules: list[Rule] = []
    for rule in base:
        rules.append(custom.pop(rule.id, rule))
    rules.extend(custom.values())
    return [r for r in rules if r.category not in config.disabled_categories]


def get_config_path(global_: bool = False, project_dir: Path | None = None) -> Path:
    """Get the path to the configuration file."""
    if global_:
        return GLOBAL_CONFIG_FILE
    if project_dir is None:
        project_dir = Path.cwd()
    return project_dir / PROJECT_CONFIG_FILE


def _validate_rule(rule: dict[str, Any], index: int, seen_ids: set[str]) -> list[str]:
    """Validate a single rule dict, return list of errors."""
    errors: list[str] = []
    prefix = f"Rule {index + 1}"

    if "id" not in rule:
        errors.append(f"{prefix}: missing required field 'id'")
    else:
        rule_id = rule["id"]
        prefix = f"Rule '{rule_id}'"
        if not isinstance(rule_id, str):
            errors.append(f"{prefix}: id must be a string")
        elif rule_id in seen_ids:
            errors.append(f"{prefix}: duplicate id")
        else:
            seen_ids.add(rule_id)

    if "category" not in rule:
        errors.append(f"{prefix}: missing required field 'category'")
    elif not isinstance(rule["category"], str):
        errors.append(f"{prefix}: category must be a string")
    elif rule["category"] not in VALID_CATEGORIES:
        errors.append(f"{prefix}: unknown category '{rule['category']}'")

    if "pattern" not in rule:
        errors.append(f"{prefix}: missing required field 'pattern'")
    elif not isinstance(rule["pattern"], str) or not rule["pattern"]:
        errors.append(f"{prefix}: pattern must be a non-empty string")
    elif rule.get("is_regex", True):
        try:
            re.compile(rule["pattern"])
        except re.error as e:
            errors.append(f"{prefix}: invalid regex pattern: {e}")

    return errors


def validate_config_file(path: Path) -> list[str]:
    """Validate a configuration file, return list of error messages (empty if valid)."""
    if not path.exists():
        return []

    try:
        with path.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        return [f"YAML syntax error: {e}"]
    except OSError as e:
        return [f"Cannot read file: {e.strerror or e}"]

    if data is None:
        return []

    if not isinstance(data, dict):
        return ["Invalid format: expected a mapping"]

    errors: list[str] = []

    disabled = data.get("disabled_categories")
    if disabled is None:
        disabled = []
    if not isinstance(disabled, list):
        errors.append("Invalid format: 'disabled_categories' must be a list")
    else:
        for category in disabled:
            if not isinstance(category, str):
                errors.append(f"Disabled category {category!r} must be a string")
            elif category not in VALID_CATEGORIES:
                errors.append(f"Unknown disabled category '{category}'")

    rules = data.get("rules")
    if rules is None:
        rules = []
    if not isinstance(rules, list):
        errors.append("Invalid format: 'rules' must be a list")
        return errors

    seen_ids: set[str] = set()
    for i, rule in enumerate(rules):
        if not isinstance(rule, dict):
            errors.append(f"Rule {i + 1}: must be a mapping")
            continue
        errors.extend(_validate_rule(rule, i, seen_ids))

    return errors
