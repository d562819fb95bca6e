"""Collaborator contracts consumed by the Order aggregate.

The aggregate never imports concrete tax services, shipping methods or
products; anything matching these protocols can be plugged in.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, AbstractSet, Any, Protocol, Union

if TYPE_CHECKING:
    from modules.customers.entities import Guest, RegisteredCustomer
    from modules.orders.entities import Order

    CustomerLike = Union[Guest, RegisteredCustomer]


class TaxableProduct(Protocol):
    id: Any
    price: Decimal

    def get_tax_classes(self) -> AbstractSet[str]: ...


class ShippingMethod(Protocol):
    id: str

    def calculate(self, order: Order) -> Decimal: ...

    def get_tax_classes(self) -> AbstractSet[str]: ...

    def get_state(self) -> Any: ...

    def get_id(self) -> str: ...


class TaxService(Protocol):
    def get(self, product: TaxableProduct, tax_class: str) -> Decimal: ...

    def get_shipping(
        self,
        method: ShippingMethod,
        price: Decimal,
        tax_class: str,
        customer: CustomerLike,
    ) -> Decimal: ...

    def calculate_shipping(
        self,
        method: ShippingMethod,
        price: Decimal,
        customer: CustomerLike,
    ) -> Decimal: ...
