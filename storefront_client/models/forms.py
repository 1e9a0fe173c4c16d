"""Request body models for the storefront's write endpoints.

Constraints mirror the backend's validation so bad input is rejected before
a request is sent. Any of these may be passed directly as a request body.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, EmailStr, Field, field_validator

from storefront_client.models.catalog import Image, Size

_PASSWORD_RULE = re.compile(
    r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[!@#$%^&*()_\-+={}\[\]|\\:;\"'<>,.?/~`]).{8,}$"
)
_PASSWORD_MESSAGE = (
    "Password must be at least 8 characters long and include an uppercase letter, "
    "a lowercase letter, a number, and a special character"
)


def _check_password(value: str) -> str:
    if not _PASSWORD_RULE.match(value):
        raise ValueError(_PASSWORD_MESSAGE)
    return value


class LoginForm(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password(value)


class SignupForm(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: EmailStr
    phone: str = Field(min_length=10, max_length=15)
    password: str = Field(min_length=8)
    image: Image

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password(value)


class CategoryForm(BaseModel):
    """Body of category create and update requests."""

    name: str = Field(min_length=1, max_length=100)
    slug: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    image: Image | None = None


class ProductForm(BaseModel):
    """Body of product create and update requests."""

    name: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    price: float = Field(ge=0)
    tags: list[str] | None = None
    color: list[str] | None = None
    thumbnail: Image
    images: list[Image] = Field(min_length=1, max_length=10)
    stock: int = Field(ge=0)
    category: str = Field(min_length=1)  # Category id
    size: list[Size] | None = None
