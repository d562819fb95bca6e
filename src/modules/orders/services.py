"""Order service layer (Use Cases).

Loads an order, applies one aggregate operation and stores it again.
All write operations are atomic; the service defines the unit-of-work
boundary and locks the order row while it is being changed.

Business rules enforced:
- Orders start as guest orders unless a stored customer is given.
- An order number is assigned once, when the order is placed.
- Empty orders cannot be placed.
- Completing an order stamps ``completed_at`` exactly once.
- Domain events collected by the aggregate are published after save.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

import structlog
from django.db import transaction

from modules.orders.constants import OrderStatus
from modules.orders.exceptions import InvalidOrderState, OrderNotFound
from modules.orders.items import OrderItem
from shared.infrastructure.bus import event_bus as default_event_bus

if TYPE_CHECKING:
    from modules.customers.services import CustomerService
    from modules.orders.entities import Order
    from modules.orders.ports import ShippingMethod, TaxableProduct, TaxService
    from modules.orders.repositories.interfaces import IOrderRepository
    from shared.domain.bus import IEventBus

logger = structlog.get_logger(__name__)


class OrderService:
    """Application service for Order use-cases.

    Receives its collaborators via constructor injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        customer_service: CustomerService,
        tax_service: TaxService,
        event_bus: Optional[IEventBus] = None,
    ) -> None:
        self._order_repo = order_repository
        self._customers = customer_service
        self._tax_service = tax_service
        self._event_bus = event_bus or default_event_bus

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def create_order(
        self,
        customer_id: Optional[int] = None,
        customer_note: Optional[str] = None,
    ) -> Order:
        """Create an empty order for a stored customer, or a guest.

        Raises:
            CustomerNotFound: ``customer_id`` does not resolve (strict mode).
        """
        order = self._order_repo.new_order()
        if customer_id:
            customer = self._customers.find(customer_id)
            if customer is not None:
                order.customer = customer
        order.customer_note = customer_note
        self._save(order)
        logger.info("order.created", order_id=order.id, customer_id=order.customer.id)
        return order

    @transaction.atomic
    def add_product(
        self,
        order_id: int,
        product: TaxableProduct,
        quantity: int = 1,
        key: Optional[str] = None,
    ) -> Order:
        """Add ``quantity`` units of ``product`` priced at current tax rates."""
        order = self._lock(order_id)
        item = OrderItem.for_product(product, quantity, self._tax_service, key=key)
        order.add_item(item)
        self._save(order)
        logger.info(
            "order.item_added",
            order_id=order.id,
            key=item.key,
            quantity=item.quantity,
        )
        return order

    @transaction.atomic
    def update_quantity(self, order_id: int, key: str, quantity: Any) -> Order:
        order = self._lock(order_id)
        order.update_quantity(key, quantity, self._tax_service)
        self._save(order)
        logger.info("order.quantity_updated", order_id=order.id, key=key)
        return order

    @transaction.atomic
    def remove_item(self, order_id: int, key: str) -> Optional[OrderItem]:
        """Remove an item and return it (``None`` if lenient and missing)."""
        order = self._lock(order_id)
        item = order.remove_item(key)
        if item is not None:
            self._save(order)
            logger.info("order.item_removed", order_id=order.id, key=key)
        return item

    @transaction.atomic
    def set_shipping_method(self, order_id: int, method: ShippingMethod) -> Order:
        order = self._lock(order_id)
        order.set_shipping_method(method, self._tax_service)
        self._save(order)
        logger.info(
            "order.shipping_selected",
            order_id=order.id,
            method=method.get_id(),
            price=str(order.shipping_price),
        )
        return order

    @transaction.atomic
    def remove_shipping_method(self, order_id: int) -> Order:
        order = self._lock(order_id)
        order.remove_shipping_method()
        self._save(order)
        logger.info("order.shipping_removed", order_id=order.id)
        return order

    @transaction.atomic
    def apply_discount(self, order_id: int, discount: Decimal) -> Order:
        order = self._lock(order_id)
        order.set_discount(discount)
        self._save(order)
        logger.info("order.discount_applied", order_id=order.id, discount=str(order.discount))
        return order

    @transaction.atomic
    def update_status(self, order_id: int, new_status: str, message: str = "") -> Order:
        """Move an order to ``new_status``.

        Moving to COMPLETED stamps ``completed_at`` the first time.
        """
        order = self._lock(order_id)
        log = logger.bind(
            order_id=order.id,
            current_status=order.status,
            new_status=new_status,
        )

        order.set_status(new_status, message)
        if order.status == OrderStatus.COMPLETED and order.completed_at is None:
            order.set_completed_at()

        self._save(order)
        log.info("order.status_updated")
        return order

    @transaction.atomic
    def place_order(self, order_id: int, payment_method: Optional[str] = None) -> Order:
        """Check out: assign the order number and start processing.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderState: the order has no items.
        """
        order = self._lock(order_id)
        log = logger.bind(order_id=order.id)

        if not order.items:
            log.warning("order.place_empty")
            raise InvalidOrderState(f"Order {order.id} has no items.")

        if order.number is None:
            order.number = self._order_repo.next_order_number()
        if payment_method is not None:
            order.payment_method = payment_method
        order.set_status(OrderStatus.PROCESSING, "Order placed")

        self._save(order)
        log.info("order.placed", number=order.number, total=str(order.total))
        return order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: int) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def list_orders(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """Return a list of orders, optionally filtered."""
        return self._order_repo.list(filters)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock(self, order_id: int) -> Order:
        order = self._order_repo.get_for_update(order_id)
        if not order:
            raise OrderNotFound(f"Order {order_id} not found.")
        return order

    def _save(self, order: Order) -> None:
        self._order_repo.save(order)
        events = order.domain_events
        order.clear_domain_events()
        for event in events:
            self._event_bus.publish(event.for_aggregate(order.id))
