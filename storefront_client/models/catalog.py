"""Storefront domain models returned by the catalog and user endpoints.

The backend serializes Mongo documents, so ids arrive as ``_id`` and
multi-word fields in camelCase. Both spellings are accepted on input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["admin", "user"]
Size = Literal["xs", "s", "m", "l", "xl"]


class Image(BaseModel):
    """Hosted image reference."""

    url: str
    public_id: str


class _Document(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")


class User(_Document):
    username: str
    email: str
    phone: str = ""
    role: Role = "user"
    is_active: bool = Field(default=True, alias="isActive")
    image: Image | None = None


class Category(_Document):
    name: str
    slug: str
    description: str = ""
    image: Image | None = None


class Product(_Document):
    name: str
    slug: str = ""
    description: str = ""
    price: float = Field(ge=0)
    tags: list[str] = Field(default_factory=list)
    color: list[str] = Field(default_factory=list)
    thumbnail: Image | None = None
    images: list[Image] = Field(default_factory=list)
    stock: int = 0
    category: Category | str | None = None  # Populated document or bare id
    size: list[Size] = Field(default_factory=list)
    in_stock: bool = Field(default=True, alias="inStock")
    total_stock: int = Field(default=0, alias="totalStock")
    total_sold: int = Field(default=0, alias="totalSold")


class ProductList(BaseModel):
    """Payload of ``GET /products``."""

    products: list[Product]


class CategoryList(BaseModel):
    """Payload of ``GET /categories``."""

    categories: list[Category]


class AuthPayload(BaseModel):
    """Payload of the login and signup endpoints."""

    user: User
    token: str
