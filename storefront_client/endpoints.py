"""Endpoint catalog for the storefront API.

Every path is built from the versioned API prefix (``/api/v1`` by default),
so the same catalog works against any configured API version.
"""

from __future__ import annotations

from storefront_client.config.settings import ClientSettings


class UserEndpoints:
    def __init__(self, prefix: str) -> None:
        self.login = f"{prefix}/login"
        self.signup = f"{prefix}/signup"
        self.profile = f"{prefix}/users/profile"
        self.logout = f"{prefix}/logout"
        self.image_upload = f"{prefix}/image/upload"
        self.image_delete = f"{prefix}/image/delete"


class ProductEndpoints:
    def __init__(self, prefix: str) -> None:
        self._base = f"{prefix}/products"
        self.list = self._base
        self.create = self._base

    def detail(self, product_id: str) -> str:
        return f"{self._base}/{product_id}"

    def by_slug(self, slug: str) -> str:
        return f"{self._base}/slug/{slug}"

    def update(self, product_id: str) -> str:
        return self.detail(product_id)

    def delete(self, product_id: str) -> str:
        return self.detail(product_id)


class CategoryEndpoints:
    def __init__(self, prefix: str) -> None:
        self._base = f"{prefix}/categories"
        self.list = self._base
        self.create = self._base

    def detail(self, category_id: str) -> str:
        return f"{self._base}/{category_id}"

    def update(self, category_id: str) -> str:
        return self.detail(category_id)

    def delete(self, category_id: str) -> str:
        return self.detail(category_id)


class EndpointCatalog:
    """All storefront endpoints under one API prefix."""

    def __init__(self, api_prefix: str = "/api/v1") -> None:
        self.api_prefix = api_prefix.rstrip("/")
        self.users = UserEndpoints(self.api_prefix)
        self.products = ProductEndpoints(self.api_prefix)
        self.categories = CategoryEndpoints(self.api_prefix)

    @classmethod
    def from_settings(cls, settings: ClientSettings) -> EndpointCatalog:
        return cls(settings.api_prefix)
