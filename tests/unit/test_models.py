"""Unit tests for envelope, catalog and form models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from storefront_client.models.catalog import AuthPayload, Category, Image, Product, ProductList
from storefront_client.models.envelope import ApiResponse
from storefront_client.models.forms import CategoryForm, LoginForm, ProductForm, SignupForm

IMAGE = {"url": "https://img.test/a.png", "public_id": "a"}


class TestEnvelope:
    def test_pagination_meta_uses_camel_case_aliases(self) -> None:
        envelope = ApiResponse[ProductList].model_validate(
            {
                "success": True,
                "message": "OK",
                "data": {"products": []},
                "meta": {
                    "pagination": {
                        "currentPage": 2,
                        "totalPages": 5,
                        "totalItems": 48,
                        "itemsPerPage": 10,
                        "hasNextPage": True,
                        "hasPrevPage": True,
                        "nextPage": 3,
                        "prevPage": 1,
                    },
                    "hasNext": True,
                    "requestId": "abc",
                },
                "timestamp": "2026-01-01T00:00:00.000Z",
            }
        )

        pagination = envelope.meta.pagination
        assert pagination.current_page == 2
        assert pagination.next_page == 3
        assert envelope.meta.has_next is True
        assert envelope.meta.model_extra == {"requestId": "abc"}

    def test_failure_envelope_carries_field_errors(self) -> None:
        envelope = ApiResponse.model_validate(
            {
                "success": False,
                "message": "Validation failed",
                "errors": [{"field": "price", "message": "Too low", "code": "min"}],
                "timestamp": "2026-01-01T00:00:00.000Z",
            }
        )

        assert envelope.data is None
        assert envelope.errors[0].code == "min"

    def test_timestamp_and_message_are_required(self) -> None:
        with pytest.raises(ValidationError):
            ApiResponse.model_validate({"success": True})


class TestCatalogModels:
    def test_product_accepts_mongo_and_camel_case_fields(self) -> None:
        product = Product.model_validate(
            {
                "_id": "p1",
                "name": "Linen Shirt",
                "price": 49,
                "inStock": False,
                "totalStock": 7,
                "category": {"_id": "c1", "name": "Tops", "slug": "tops"},
                "size": ["s", "m"],
                "createdAt": "2026-01-01T00:00:00.000Z",
            }
        )

        assert product.id == "p1"
        assert product.in_stock is False
        assert product.total_stock == 7
        assert isinstance(product.category, Category)
        assert product.created_at.year == 2026

    def test_product_category_may_be_bare_id(self) -> None:
        product = Product.model_validate({"_id": "p1", "name": "Tote", "price": 1, "category": "c1"})

        assert product.category == "c1"

    def test_login_payload_carries_user_and_token(self) -> None:
        payload = AuthPayload.model_validate(
            {
                "user": {
                    "_id": "u1",
                    "username": "ada",
                    "email": "ada@shop.test",
                    "role": "admin",
                    "isActive": False,
                },
                "token": "jwt-abc",
            }
        )

        assert payload.token == "jwt-abc"
        assert payload.user.id == "u1"
        assert payload.user.role == "admin"
        assert payload.user.is_active is False

        with pytest.raises(ValidationError):
            AuthPayload.model_validate({"user": payload.user.model_dump(by_alias=True)})

    @pytest.mark.parametrize("bad", [{"price": -1}, {"size": ["xxl"]}])
    def test_product_rejects_invalid_values(self, bad) -> None:
        with pytest.raises(ValidationError):
            Product.model_validate({"_id": "p1", "name": "Tote", "price": 1, **bad})


class TestForms:
    def test_login_requires_strong_password(self) -> None:
        LoginForm(email="a@b.io", password="Str0ng!pass")

        with pytest.raises(ValidationError, match="special character"):
            LoginForm(email="a@b.io", password="weakpassword")

    def test_signup_validates_email_and_lengths(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            SignupForm(
                username="ab",
                email="not-an-email",
                phone="123",
                password="Str0ng!pass",
                image=IMAGE,
            )

        fields = {error["loc"][0] for error in exc_info.value.errors()}
        assert fields == {"username", "email", "phone"}

    def test_category_form_limits(self) -> None:
        assert CategoryForm(name="Tops", slug="tops").description is None

        with pytest.raises(ValidationError):
            CategoryForm(name="", slug="tops")
        with pytest.raises(ValidationError):
            CategoryForm(name="Tops", slug="tops", description="x" * 501)

    def test_product_form_image_count_and_non_negative_numbers(self) -> None:
        base = {
            "name": "Tote",
            "description": "Canvas tote",
            "price": 19.5,
            "thumbnail": IMAGE,
            "images": [IMAGE],
            "stock": 3,
            "category": "c1",
        }
        form = ProductForm(**base)
        assert form.images == [Image(**IMAGE)]

        for override in ({"images": []}, {"images": [IMAGE] * 11}, {"price": -1}, {"stock": -1}):
            with pytest.raises(ValidationError):
                ProductForm(**{**base, **override})
