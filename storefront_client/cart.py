"""Client-side shopping cart.

Items are product variants: the same product with a different size or
color is a separate line. Adding an existing variant merges quantities;
driving a quantity to zero removes the line.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from storefront_client.models.catalog import Product, Size


@dataclass
class CartItem:
    product: Product
    quantity: int = 1
    selected_size: Size | None = None
    selected_color: str | None = None

    @property
    def variant(self) -> tuple[str, str | None, str | None]:
        return (self.product.id, self.selected_size, self.selected_color)

    @property
    def subtotal(self) -> float:
        return self.product.price * self.quantity


@dataclass
class Cart:
    items: list[CartItem] = field(default_factory=list)
    is_open: bool = False

    def _find(
        self, product_id: str, size: Size | None, color: str | None
    ) -> CartItem | None:
        for item in self.items:
            if item.variant == (product_id, size, color):
                return item
        return None

    def add(
        self,
        product: Product,
        quantity: int = 1,
        size: Size | None = None,
        color: str | None = None,
    ) -> CartItem:
        """Add a variant, or increase its quantity if it is already in the cart."""
        existing = self._find(product.id, size, color)
        if existing is not None:
            existing.quantity += quantity
            return existing
        item = CartItem(product=product, quantity=quantity, selected_size=size, selected_color=color)
        self.items.append(item)
        return item

    def remove(self, product_id: str, size: Size | None = None, color: str | None = None) -> None:
        self.items = [item for item in self.items if item.variant != (product_id, size, color)]

    def update_quantity(
        self,
        product_id: str,
        quantity: int,
        size: Size | None = None,
        color: str | None = None,
    ) -> None:
        """Set a variant's quantity; zero or less removes it. Unknown variants are ignored."""
        item = self._find(product_id, size, color)
        if item is None:
            return
        if quantity <= 0:
            self.items.remove(item)
        else:
            item.quantity = quantity

    def increment(self, product_id: str, size: Size | None = None, color: str | None = None) -> None:
        item = self._find(product_id, size, color)
        if item is not None:
            item.quantity += 1

    def decrement(self, product_id: str, size: Size | None = None, color: str | None = None) -> None:
        item = self._find(product_id, size, color)
        if item is None:
            return
        if item.quantity > 1:
            item.quantity -= 1
        else:
            self.items.remove(item)

    def clear(self) -> None:
        self.items = []

    def toggle(self) -> None:
        self.is_open = not self.is_open

    def open(self) -> None:
        self.is_open = True

    def close(self) -> None:
        self.is_open = False

    @property
    def total(self) -> float:
        return sum(item.subtotal for item in self.items)

    @property
    def count(self) -> int:
        return sum(item.quantity for item in self.items)
