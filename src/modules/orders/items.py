"""Order line items and status history entries."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Dict, Optional

from modules.orders.exceptions import InvalidArgument

if TYPE_CHECKING:
    from modules.orders.ports import TaxableProduct, TaxService

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class OrderItem:
    """One priced entry in an order.

    ``key`` identifies the entry inside its order; it defaults to the
    product id but may differ so the same product can appear more than
    once (e.g. as different variants).  ``tax`` holds the per-unit tax of
    each tax class, fixed when the item was created.  Items are immutable;
    the order swaps in a new one when the quantity changes.
    """

    key: str
    product: TaxableProduct
    quantity: int
    price: Decimal
    tax: Dict[str, Decimal] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise InvalidArgument("Quantity must be at least 1.")
        try:
            price = Decimal(str(self.price))
            tax = {name: Decimal(str(amount)) for name, amount in self.tax.items()}
        except InvalidOperation:
            raise InvalidArgument("Item price and tax must be monetary amounts.") from None
        object.__setattr__(self, "price", price)
        object.__setattr__(self, "tax", tax)

    @classmethod
    def for_product(
        cls,
        product: TaxableProduct,
        quantity: int,
        tax_service: TaxService,
        key: Optional[str] = None,
    ) -> OrderItem:
        """Build an item priced at the product's current price and tax rates."""
        return cls(
            key=key if key is not None else str(product.id),
            product=product,
            quantity=quantity,
            price=product.price,
            tax={
                tax_class: tax_service.get(product, tax_class)
                for tax_class in sorted(product.get_tax_classes())
            },
        )

    @property
    def cost(self) -> Decimal:
        return self.price * self.quantity

    @property
    def unit_tax(self) -> Decimal:
        return sum(self.tax.values(), ZERO)

    @property
    def total_tax(self) -> Decimal:
        return self.unit_tax * self.quantity


@dataclass(frozen=True)
class StatusChange:
    """Append-only record of a status transition."""

    message: str
    old_status: str
    new_status: str
