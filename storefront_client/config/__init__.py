"""Configuration: settings and cache invalidation rules."""

from storefront_client.config.invalidation import (
    BUNDLED_RULES_PATH,
    InvalidationRule,
    InvalidationRules,
    default_invalidation_rules,
    load_invalidation_rules,
)
from storefront_client.config.settings import ClientSettings

__all__ = [
    "BUNDLED_RULES_PATH",
    "ClientSettings",
    "InvalidationRule",
    "InvalidationRules",
    "default_invalidation_rules",
    "load_invalidation_rules",
]
