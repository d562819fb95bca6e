"""Product value object as seen by orders and the tax service."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import FrozenSet


@dataclass(frozen=True)
class Product:
    """A sellable product.

    ``tax_classes`` lists the tax classes the product is charged under;
    an empty set means the product is tax-free.
    """

    id: int
    name: str
    price: Decimal
    tax_classes: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        object.__setattr__(self, "price", Decimal(str(self.price)))
        object.__setattr__(self, "tax_classes", frozenset(self.tax_classes))

    def get_tax_classes(self) -> FrozenSet[str]:
        return self.tax_classes

    def __str__(self) -> str:
        return f"{self.name} (#{self.id})"
