"""Pydantic Settings for the storefront client.

All environment variables use the STOREFRONT_ prefix.
Example: STOREFRONT_API_BASE_URL=https://shop.example.com, STOREFRONT_API_VERSION=v2
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Storefront client configuration validated from environment variables."""

    # Backend
    api_base_url: str = "http://localhost:4000"
    api_version: str = "v1"
    timeout_seconds: float = Field(default=10.0, gt=0)  # Per attempt
    log_level: str = "INFO"

    # Retries
    retry_count: int = Field(default=3, ge=0)  # GET / data-fetch path
    retry_delay_seconds: float = Field(default=1.0, ge=0)
    mutation_retry_count: int = Field(default=0, ge=0)  # Opt-in for mutations

    # Debounce
    debounce_delay_seconds: float = Field(default=0.3, ge=0)

    # Cache invalidation rules
    invalidation_rules_path: str | None = None  # None = bundled rules file

    model_config = {"env_prefix": "STOREFRONT_"}

    @property
    def api_prefix(self) -> str:
        """Path prefix shared by every versioned endpoint, e.g. ``/api/v1``."""
        return f"/api/{self.api_version}"
