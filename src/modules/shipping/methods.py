"""Shipping methods an order can select.

- ``FlatRate``: fixed cost per order, or per unit when ``per_item`` is set.
- ``FreeShipping``: costs nothing once the product subtotal reaches
  ``minimum``; below it the method is not available.

Every method can be turned into a tagged, immutable state object
(``get_state()``) and rebuilt from one (``restore_shipping_method()``),
which is how orders persist their shipping selection.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Annotated, FrozenSet, Iterable, Literal, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.shipping.exceptions import ShippingNotAvailable

if TYPE_CHECKING:
    from modules.orders.entities import Order

ZERO = Decimal("0.00")


# ---------------------------------------------------------------------------
# Persisted state
# ---------------------------------------------------------------------------


class FlatRateState(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Literal["flat_rate"] = "flat_rate"
    cost: Decimal
    tax_classes: Tuple[str, ...] = ()
    per_item: bool = False

    @field_validator("cost")
    @classmethod
    def cost_must_not_be_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Shipping cost cannot be negative.")
        return v


class FreeShippingState(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Literal["free_shipping"] = "free_shipping"
    minimum: Decimal = ZERO


ShippingMethodState = Annotated[
    Union[FlatRateState, FreeShippingState],
    Field(discriminator="id"),
]


# ---------------------------------------------------------------------------
# Methods
# ---------------------------------------------------------------------------


class FlatRate:
    id = "flat_rate"

    def __init__(
        self,
        cost: Decimal,
        tax_classes: Iterable[str] = (),
        per_item: bool = False,
    ) -> None:
        self.cost = Decimal(str(cost))
        self.tax_classes: FrozenSet[str] = frozenset(tax_classes)
        self.per_item = per_item

    def get_id(self) -> str:
        return self.id

    def calculate(self, order: Order) -> Decimal:
        if not self.per_item:
            return self.cost
        units = sum(item.quantity for item in order.items.values())
        return self.cost * units

    def get_tax_classes(self) -> FrozenSet[str]:
        return self.tax_classes

    def get_state(self) -> FlatRateState:
        return FlatRateState(
            cost=self.cost,
            tax_classes=tuple(sorted(self.tax_classes)),
            per_item=self.per_item,
        )

    def __repr__(self) -> str:
        return f"FlatRate(cost={self.cost}, per_item={self.per_item})"


class FreeShipping:
    id = "free_shipping"

    def __init__(self, minimum: Decimal = ZERO) -> None:
        self.minimum = Decimal(str(minimum))

    def get_id(self) -> str:
        return self.id

    def calculate(self, order: Order) -> Decimal:
        if order.product_subtotal < self.minimum:
            raise ShippingNotAvailable(
                f"Free shipping requires a subtotal of at least {self.minimum}."
            )
        return ZERO

    def get_tax_classes(self) -> FrozenSet[str]:
        return frozenset()

    def get_state(self) -> FreeShippingState:
        return FreeShippingState(minimum=self.minimum)

    def __repr__(self) -> str:
        return f"FreeShipping(minimum={self.minimum})"


def restore_shipping_method(
    state: Union[FlatRateState, FreeShippingState],
) -> Union[FlatRate, FreeShipping]:
    """Rebuild a shipping method from its persisted state."""
    if isinstance(state, FlatRateState):
        return FlatRate(state.cost, state.tax_classes, state.per_item)
    if isinstance(state, FreeShippingState):
        return FreeShipping(state.minimum)
    raise TypeError(f"Unsupported shipping state {type(state).__name__}.")
