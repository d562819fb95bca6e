"""Order snapshot DTOs.

Framework-agnostic data transfer objects using Pydantic v2.  They define
the flat state an order is persisted as (``Order.get_state_to_save``) and
validate it on the way back in (``Order.restore_state``).  DTOs are
immutable (``frozen=True``).

- ``ProductStateDTO``: product reference kept inside a line item.
- ``OrderItemStateDTO``: a single line item.
- ``ShippingStateDTO``: selected method (tagged state) and its price.
- ``StatusChangeDTO``: one status history entry.
- ``OrderStateDTO``: the whole snapshot.  Every field is optional so a
  partial snapshot restores only what it carries.

Money is ``Decimal`` and dumps as a decimal string in JSON mode.
Timestamps are unix seconds; ``completed_at == 0`` means "not completed".
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from modules.customers.entities import CustomerEntity
from modules.orders.constants import OrderStatus
from modules.shipping.methods import ShippingMethodState


def _false_to_none(value: Any) -> Any:
    return None if value is False else value


def _check_status(value: str) -> str:
    if value not in OrderStatus.values:
        raise ValueError(f"Unknown order status {value!r}.")
    return value


class ProductStateDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str = ""
    price: Decimal
    tax_classes: List[str] = Field(default_factory=list)


class OrderItemStateDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    product: ProductStateDTO
    quantity: int
    price: Decimal
    tax: Dict[str, Decimal] = Field(default_factory=dict)

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class ShippingStateDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    method: Optional[ShippingMethodState] = None
    price: Decimal = Decimal("0.00")

    @field_validator("method", mode="before")
    @classmethod
    def method_false_means_none(cls, v: Any) -> Any:
        return _false_to_none(v)


class StatusChangeDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = ""
    old_status: str
    new_status: str

    @field_validator("old_status", "new_status")
    @classmethod
    def status_must_be_known(cls, v: str) -> str:
        return _check_status(v)


class OrderStateDTO(BaseModel):
    """Flat order snapshot."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    number: Optional[str] = None
    created_at: Optional[int] = None
    updated_at: Optional[int] = None
    completed_at: Optional[int] = None
    items: Optional[List[OrderItemStateDTO]] = None
    customer: Optional[CustomerEntity] = None
    customer_id: Optional[int] = None
    shipping: Optional[ShippingStateDTO] = None
    payment: Optional[str] = None
    customer_note: Optional[str] = None
    total: Optional[Decimal] = None
    subtotal: Optional[Decimal] = None
    product_subtotal: Optional[Decimal] = None
    discount: Optional[Decimal] = None
    shipping_tax: Optional[Dict[str, Decimal]] = None
    status: Optional[str] = None
    update_messages: Optional[List[StatusChangeDTO]] = None

    @field_validator("payment", "customer", mode="before")
    @classmethod
    def false_means_none(cls, v: Any) -> Any:
        return _false_to_none(v)

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: Optional[str]) -> Optional[str]:
        return v if v is None else _check_status(v)

    def provided(self, name: str) -> bool:
        """``True`` when ``name`` was present in the input and not null."""
        return name in self.model_fields_set and getattr(self, name) is not None
