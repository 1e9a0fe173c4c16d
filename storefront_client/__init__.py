"""Async client for the storefront REST API."""

from storefront_client.cache import CacheEntry, ResponseCache
from storefront_client.cart import Cart, CartItem
from storefront_client.config import ClientSettings, InvalidationRules, load_invalidation_rules
from storefront_client.context import ClientContext
from storefront_client.endpoints import EndpointCatalog
from storefront_client.engine import (
    BatchItemResult,
    BatchRequest,
    RequestConfig,
    RequestEngine,
    RequestResult,
)
from storefront_client.errors import (
    AuthError,
    RateLimitError,
    RequestCancelledError,
    ServerError,
    StorefrontApiError,
    TransportError,
    ValidationError,
    handle_api_error,
)
from storefront_client.logging_config import configure_logging
from storefront_client.notifications import LoggingNotifier, Notifier

__all__ = [
    "AuthError",
    "BatchItemResult",
    "BatchRequest",
    "CacheEntry",
    "Cart",
    "CartItem",
    "ClientContext",
    "ClientSettings",
    "EndpointCatalog",
    "InvalidationRules",
    "LoggingNotifier",
    "Notifier",
    "RateLimitError",
    "RequestCancelledError",
    "RequestConfig",
    "RequestEngine",
    "RequestResult",
    "ResponseCache",
    "ServerError",
    "StorefrontApiError",
    "TransportError",
    "ValidationError",
    "configure_logging",
    "handle_api_error",
    "load_invalidation_rules",
]
