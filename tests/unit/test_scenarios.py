"""End-to-end scenarios against an in-process storefront backend."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from storefront_client.endpoints import EndpointCatalog
from storefront_client.engine import RequestConfig
from storefront_client.errors import ServerError, ValidationError
from storefront_client.models.catalog import ProductList


@pytest.fixture
def endpoints(settings) -> EndpointCatalog:
    return EndpointCatalog.from_settings(settings)


class TestStorefrontScenarios:
    @pytest.mark.asyncio
    async def test_product_list_is_fetched_and_cached(
        self, make_engine, backend_transport, endpoints, cache
    ) -> None:
        engine = make_engine(
            transport=backend_transport,
            endpoint=endpoints.products.list,
            immediate=True,
        )

        async with engine:
            assert engine.is_fetching is False
            assert [p["_id"] for p in engine.data["products"]] == ["p1", "p2", "p3"]

        assert cache.get(endpoints.products.list).data == engine.data

    @pytest.mark.asyncio
    async def test_duplicate_category_routes_error_to_form_field(
        self, make_engine, backend_transport, endpoints, notifier
    ) -> None:
        set_field_error = MagicMock()

        async with make_engine(transport=backend_transport) as engine:
            with pytest.raises(ValidationError):
                await engine.post(
                    endpoints.categories.create,
                    {"name": "Tops", "slug": "tops-2"},
                    RequestConfig(set_field_error=set_field_error),
                )

        set_field_error.assert_called_once_with("name", "Name exists")
        notifier.success.assert_not_called()
        notifier.error.assert_not_called()

    @pytest.mark.asyncio
    async def test_new_category_shows_up_in_revalidated_list(
        self, make_engine, backend_transport, endpoints, notifier
    ) -> None:
        async with make_engine(transport=backend_transport) as engine:
            await engine.get(endpoints.categories.list)
            result = await engine.post(
                endpoints.categories.create, {"name": "Shoes", "slug": "shoes"}
            )

            assert result.data["_id"] == "c2"
            names = [c["name"] for c in engine.cache.get(endpoints.categories.list).data["categories"]]
            assert names == ["Tops", "Shoes"]

        notifier.success.assert_called_once_with("Category created")

    @pytest.mark.asyncio
    async def test_deleted_product_leaves_cached_list(
        self, make_engine, backend_transport, endpoints, cache
    ) -> None:
        async with make_engine(transport=backend_transport) as engine:
            await engine.get(endpoints.products.list)
            await engine.delete(endpoints.products.delete("p2"))
            await engine.invalidate(endpoints.products.list)

        ids = [p["_id"] for p in cache.get(endpoints.products.list).data["products"]]
        assert ids == ["p1", "p3"]

    @pytest.mark.asyncio
    async def test_engines_sharing_a_cache_see_each_others_writes(
        self, make_engine, backend_transport, endpoints
    ) -> None:
        reader = make_engine(
            transport=backend_transport,
            endpoint=endpoints.products.list,
            data_schema=ProductList,
            immediate=True,
        )
        writer = make_engine(transport=backend_transport)

        async with reader, writer:
            assert len(reader.data.products) == 3
            result = await writer.delete(endpoints.products.delete("p1"))

            assert endpoints.products.list in result.affected_keys
            assert [p.id for p in reader.data.products] == ["p2", "p3"]

    @pytest.mark.asyncio
    async def test_missing_product_is_a_server_error(
        self, make_engine, backend_transport, endpoints, notifier
    ) -> None:
        async with make_engine(transport=backend_transport) as engine:
            with pytest.raises(ServerError) as exc_info:
                await engine.delete(endpoints.products.delete("nope"))

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Product not found"
        notifier.error.assert_called_once_with("Product not found")
