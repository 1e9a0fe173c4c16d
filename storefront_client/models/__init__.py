"""Public models for the storefront client."""

from storefront_client.models.catalog import (
    AuthPayload,
    Category,
    CategoryList,
    Image,
    Product,
    ProductList,
    Role,
    Size,
    User,
)
from storefront_client.models.envelope import (
    ApiResponse,
    FieldError,
    PaginationMeta,
    ResponseMeta,
)
from storefront_client.models.forms import (
    CategoryForm,
    LoginForm,
    ProductForm,
    SignupForm,
)

__all__ = [
    "ApiResponse",
    "AuthPayload",
    "Category",
    "CategoryForm",
    "CategoryList",
    "FieldError",
    "Image",
    "LoginForm",
    "PaginationMeta",
    "Product",
    "ProductForm",
    "ProductList",
    "ResponseMeta",
    "Role",
    "SignupForm",
    "Size",
    "User",
]
