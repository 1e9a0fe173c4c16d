"""Shared test fixtures for the storefront client test suite."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront_client.cache import ResponseCache
from storefront_client.config.invalidation import default_invalidation_rules
from storefront_client.config.settings import ClientSettings
from storefront_client.engine import RequestEngine

TIMESTAMP = "2026-01-01T00:00:00.000Z"


def make_envelope(
    data: Any = None,
    message: str = "OK",
    success: bool = True,
    **extra: Any,
) -> dict:
    """Build a storefront response envelope."""
    body = {"success": success, "message": message, "timestamp": TIMESTAMP, **extra}
    if data is not None:
        body["data"] = data
    return body


# ---------------------------------------------------------------------------
# Keep tests independent of the developer's environment
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _clear_client_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "STOREFRONT_API_BASE_URL",
        "STOREFRONT_API_VERSION",
        "STOREFRONT_RETRY_COUNT",
        "STOREFRONT_INVALIDATION_RULES_PATH",
        "STOREFRONT_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Settings and component fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings() -> ClientSettings:
    """Test settings with short delays."""
    return ClientSettings(
        api_base_url="http://shop.test",
        retry_count=3,
        retry_delay_seconds=0.5,
        debounce_delay_seconds=0.01,
    )


@pytest.fixture
def cache() -> ResponseCache:
    return ResponseCache()


@pytest.fixture
def notifier() -> MagicMock:
    """Stands in for the UI toast layer; records success/error calls."""
    return MagicMock()


@pytest.fixture
def envelope() -> Callable[..., dict]:
    return make_envelope


@pytest.fixture
def make_engine(
    settings: ClientSettings, cache: ResponseCache, notifier: MagicMock
) -> Callable[..., RequestEngine]:
    """Factory for engines wired to the shared test cache and notifier."""

    def _make(handler: Any = None, **kwargs: Any) -> RequestEngine:
        transport = kwargs.pop("transport", None)
        if transport is None and handler is not None:
            transport = httpx.MockTransport(handler)
        kwargs.setdefault("settings", settings)
        kwargs.setdefault("cache", cache)
        kwargs.setdefault("notifier", notifier)
        kwargs.setdefault("immediate", False)
        kwargs.setdefault("invalidation_rules", default_invalidation_rules(settings.api_prefix))
        return RequestEngine(transport=transport, **kwargs)

    return _make


# ---------------------------------------------------------------------------
# In-process storefront backend
# ---------------------------------------------------------------------------

def create_backend_app(prefix: str = "/api/v1") -> FastAPI:
    """Minimal storefront backend speaking the response envelope."""
    app = FastAPI()
    app.state.products = [
        {"_id": "p1", "name": "Linen Shirt", "slug": "linen-shirt", "price": 49.0, "stock": 5},
        {"_id": "p2", "name": "Canvas Tote", "slug": "canvas-tote", "price": 19.5, "stock": 12},
        {"_id": "p3", "name": "Wool Scarf", "slug": "wool-scarf", "price": 35.0, "stock": 0},
    ]
    app.state.categories = [
        {"_id": "c1", "name": "Tops", "slug": "tops"},
    ]

    @app.get(f"{prefix}/products")
    async def list_products() -> JSONResponse:
        return JSONResponse(make_envelope({"products": app.state.products}))

    @app.delete(prefix + "/products/{product_id}")
    async def delete_product(product_id: str) -> JSONResponse:
        before = len(app.state.products)
        app.state.products = [p for p in app.state.products if p["_id"] != product_id]
        if len(app.state.products) == before:
            return JSONResponse(
                status_code=404,
                content=make_envelope(message="Product not found", success=False),
            )
        return JSONResponse(make_envelope({"_id": product_id}, message="Product deleted"))

    @app.get(f"{prefix}/categories")
    async def list_categories() -> JSONResponse:
        return JSONResponse(make_envelope({"categories": app.state.categories}))

    @app.post(f"{prefix}/categories")
    async def create_category(request: Request) -> JSONResponse:
        body = await request.json()
        if any(c["name"] == body.get("name") for c in app.state.categories):
            return JSONResponse(
                status_code=409,
                content={
                    "success": False,
                    "errors": [{"field": "name", "message": "Name exists"}],
                },
            )
        category = {"_id": f"c{len(app.state.categories) + 1}", **body}
        app.state.categories.append(category)
        return JSONResponse(
            status_code=201,
            content=make_envelope(category, message="Category created"),
        )

    return app


@pytest.fixture
def backend_app(settings: ClientSettings) -> FastAPI:
    return create_backend_app(settings.api_prefix)


@pytest.fixture
def backend_transport(backend_app: FastAPI) -> httpx.ASGITransport:
    return httpx.ASGITransport(app=backend_app)

