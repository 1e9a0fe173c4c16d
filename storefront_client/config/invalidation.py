"""Declarative cache invalidation rules and YAML loader.

A mutation against an endpoint revalidates the endpoint's own cache key plus
every key listed by the rules whose pattern matches the endpoint path.
Patterns are regular expressions that may reference ``{api_prefix}``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

BUNDLED_RULES_PATH = Path(__file__).with_name("invalidation_rules.yaml")


class InvalidationRule(BaseModel):
    """Keys to revalidate after a mutation on a matching endpoint."""

    pattern: str
    keys: list[str] = Field(default_factory=list)


_DEFAULT_RULES = [
    InvalidationRule(pattern=r"^{api_prefix}/products(/.*)?$", keys=["{api_prefix}/products"]),
    InvalidationRule(pattern=r"^{api_prefix}/categories(/.*)?$", keys=["{api_prefix}/categories"]),
]


class InvalidationRules:
    """Compiled rule set resolving an endpoint to the cache keys it affects.

    Args:
        rules: Rules to compile.
        api_prefix: Value substituted for ``{api_prefix}`` in patterns and keys.
    """

    def __init__(self, rules: list[InvalidationRule], api_prefix: str = "") -> None:
        self._compiled: list[tuple[re.Pattern[str], list[str]]] = []
        for rule in rules:
            pattern = rule.pattern.replace("{api_prefix}", re.escape(api_prefix))
            keys = [key.replace("{api_prefix}", api_prefix) for key in rule.keys]
            self._compiled.append((re.compile(pattern), keys))

    def __len__(self) -> int:
        return len(self._compiled)

    def keys_for(self, endpoint: str) -> list[str]:
        """Return the keys (in rule order, without duplicates) affected by ``endpoint``."""
        path = endpoint.split("?", 1)[0]
        keys: list[str] = []
        for pattern, rule_keys in self._compiled:
            if pattern.match(path):
                for key in rule_keys:
                    if key not in keys:
                        keys.append(key)
        return keys


def default_invalidation_rules(api_prefix: str) -> InvalidationRules:
    """Built-in rules: any product or category mutation refreshes its list."""
    return InvalidationRules(_DEFAULT_RULES, api_prefix=api_prefix)


def load_invalidation_rules(yaml_path: str, api_prefix: str = "") -> InvalidationRules:
    """Parse an invalidation rules YAML file.

    Args:
        yaml_path: Path to the YAML configuration file.
        api_prefix: Value substituted for ``{api_prefix}``.

    Returns:
        The compiled rules. If the file is missing or unparsable, the built-in
        defaults are returned instead. Individual invalid rules are skipped.
    """
    path = Path(yaml_path)

    if not path.exists():
        logger.warning("Invalidation rules file not found at %s, using built-in defaults", yaml_path)
        return default_invalidation_rules(api_prefix)

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        logger.error("Failed to parse invalidation rules YAML at %s: %s", yaml_path, exc)
        return default_invalidation_rules(api_prefix)

    if not isinstance(raw, dict) or not isinstance(raw.get("rules"), list):
        logger.warning("Invalidation rules YAML missing 'rules' list, using built-in defaults")
        return default_invalidation_rules(api_prefix)

    rules: list[InvalidationRule] = []
    for index, config in enumerate(raw["rules"]):
        try:
            rule = InvalidationRule.model_validate(config)
            re.compile(rule.pattern.replace("{api_prefix}", re.escape(api_prefix)))
        except (ValueError, re.error) as exc:
            logger.error("Invalid invalidation rule #%d: %s, skipping", index, exc)
            continue
        rules.append(rule)

    return InvalidationRules(rules, api_prefix=api_prefix)
