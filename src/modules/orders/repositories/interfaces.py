"""Order repository interface.

Extends ``IRepository[Order]`` with what the order use cases need on
top of plain fetch/save: building empty orders with the configured tax
classes and error policy, row locking, and order number allocation.

The Service Layer depends exclusively on this contract (DIP).
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING, Optional

from modules.core.repositories.interfaces import IRepository

if TYPE_CHECKING:
    from modules.orders.entities import Order


class IOrderRepository(IRepository["Order"]):
    """Repository contract for the Order aggregate root.

    Orders are stored as snapshots; ``get_by_id`` hands back a fully
    restored aggregate.
    """

    @abstractmethod
    def new_order(self) -> Order:
        """Build an empty, unsaved order."""

    @abstractmethod
    def get_for_update(self, id: int) -> Optional[Order]:
        """Retrieve an order while holding a row-level lock on it."""

    @abstractmethod
    def next_order_number(self) -> str:
        """Allocate an order number not used by any stored order."""
