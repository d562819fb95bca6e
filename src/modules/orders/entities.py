"""Order aggregate.

The order owns its line items, the shipping and payment selection, the
discount and two tax ledgers (items and shipping, keyed by tax class),
and keeps the money figures consistent while they change one at a time:

- ``product_subtotal`` is the sum of item costs.
- ``subtotal`` is ``product_subtotal`` plus the shipping price.
- ``total`` is ``subtotal`` plus all item and shipping tax, minus the
  discount.
- ``total_tax`` is the sum of the item tax ledger, cached until the
  ledger changes.

Every mutation works out its deltas first and commits them afterwards,
so a failing collaborator (tax service, shipping method) never leaves
half-applied totals behind.  Ledger writes all go through
``_post_tax`` which is also what drops the cached ``total_tax``.

Missing items and malformed quantities are reported through the
injected ``ErrorPolicy``: strict policies raise, lenient ones log and
the operation returns ``None`` without touching the order.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Tuple,
    Union,
)

import structlog

from modules.core.errors import ErrorPolicy, StrictErrorPolicy
from modules.customers.entities import Guest, RegisteredCustomer
from modules.orders.constants import OrderStatus
from modules.orders.dtos import (
    OrderItemStateDTO,
    OrderStateDTO,
    ProductStateDTO,
    ShippingStateDTO,
    StatusChangeDTO,
)
from modules.orders.events import OrderCompleted, OrderStatusChanged
from modules.orders.exceptions import InvalidArgument, InvalidOrderState, ItemNotFound
from modules.orders.items import OrderItem, StatusChange
from modules.products.entities import Product
from modules.shipping.methods import restore_shipping_method
from shared.domain.events import DomainEventMixin

if TYPE_CHECKING:
    from modules.orders.ports import ShippingMethod, TaxService

logger = structlog.get_logger(__name__)

ZERO = Decimal("0.00")

# Fields rolled back by ``Order._atomic`` when a mutation fails midway.
_LEDGER_FIELDS = (
    "_items",
    "_shipping_method",
    "_shipping_price",
    "_product_subtotal",
    "_subtotal",
    "_total",
    "_discount",
    "_tax",
    "_shipping_tax",
    "_total_tax",
)


def _coerce_quantity(value: Any) -> int:
    """Turn ``value`` into a whole-number quantity.

    Accepts ints, decimals and numeric strings (``"3"``, ``"3.0"``).
    """
    if isinstance(value, bool):
        raise InvalidArgument("Quantity has to be a numeric value.")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidArgument("Quantity has to be a numeric value.") from None
    if not number.is_finite() or number != number.to_integral_value():
        raise InvalidArgument("Quantity has to be a whole number.")
    return int(number)


def _to_money(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidArgument(f"{value!r} is not a monetary amount.") from None
    if not amount.is_finite():
        raise InvalidArgument(f"{value!r} is not a monetary amount.")
    return amount


def _timestamp(moment: Optional[datetime]) -> int:
    return int(moment.timestamp()) if moment else 0


def _from_timestamp(value: int) -> datetime:
    return datetime.fromtimestamp(value, tz=timezone.utc)


class Order(DomainEventMixin):
    """Order aggregate root.

    ``tax_classes`` seeds both tax ledgers with a zero entry per class so
    their key sets stay stable; classes met later (on items or shipping)
    are added as they appear.
    """

    def __init__(
        self,
        tax_classes: Iterable[str] = (),
        error_policy: Optional[ErrorPolicy] = None,
    ) -> None:
        now = datetime.now(timezone.utc)

        self.id: Optional[int] = None
        self._number: Optional[str] = None
        self.created_at: datetime = now
        self.updated_at: datetime = now
        self.completed_at: Optional[datetime] = None
        self.customer: Union[Guest, RegisteredCustomer] = Guest()
        self.payment_method: Optional[str] = None
        self.customer_note: Optional[str] = None

        self._items: Dict[str, OrderItem] = {}
        self._shipping_method: Optional[ShippingMethod] = None
        self._shipping_price = ZERO
        self._product_subtotal = ZERO
        self._subtotal = ZERO
        self._total = ZERO
        self._discount = ZERO
        self._tax: Dict[str, Decimal] = {name: ZERO for name in tax_classes}
        self._shipping_tax: Dict[str, Decimal] = dict.fromkeys(self._tax, ZERO)
        self._total_tax: Optional[Decimal] = None

        self._status: str = OrderStatus.PENDING
        self._update_messages: List[StatusChange] = []
        self._policy: ErrorPolicy = error_policy or StrictErrorPolicy()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def number(self) -> Optional[str]:
        return self._number

    @number.setter
    def number(self, value: str) -> None:
        if self._number is not None and value != self._number:
            raise InvalidOrderState(
                f"Order {self.id} already has number {self._number}."
            )
        self._number = value

    @property
    def title(self) -> str:
        return f"Order {self._number or ''}".strip()

    def set_completed_at(self) -> None:
        """Stamp the completion time; an order completes only once."""
        if self.completed_at is not None:
            raise InvalidOrderState(f"Order {self.id} is already completed.")
        self.completed_at = datetime.now(timezone.utc)
        self.add_domain_event(OrderCompleted(aggregate_id=self.id))

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def items(self) -> Dict[str, OrderItem]:
        return dict(self._items)

    @property
    def shipping_method(self) -> Optional[ShippingMethod]:
        return self._shipping_method

    @property
    def shipping_price(self) -> Decimal:
        return self._shipping_price

    @property
    def product_subtotal(self) -> Decimal:
        return self._product_subtotal

    @property
    def subtotal(self) -> Decimal:
        return self._subtotal

    @property
    def total(self) -> Decimal:
        return self._total

    @property
    def discount(self) -> Decimal:
        return self._discount

    @property
    def tax(self) -> Dict[str, Decimal]:
        return dict(self._tax)

    @property
    def shipping_tax(self) -> Dict[str, Decimal]:
        return dict(self._shipping_tax)

    @property
    def status(self) -> str:
        return self._status

    @property
    def update_messages(self) -> Tuple[StatusChange, ...]:
        return tuple(self._update_messages)

    @property
    def total_tax(self) -> Decimal:
        """Sum of the item tax ledger, recomputed after ledger changes."""
        if self._total_tax is None:
            self._total_tax = sum(self._tax.values(), ZERO)
        return self._total_tax

    @property
    def combined_tax(self) -> Dict[str, Decimal]:
        """Item tax plus shipping tax, per class."""
        combined = dict(self._tax)
        for tax_class, amount in self._shipping_tax.items():
            combined[tax_class] = combined.get(tax_class, ZERO) + amount
        return combined

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _post_tax(
        self,
        ledger: Dict[str, Decimal],
        amounts: Mapping[str, Decimal],
        *,
        replace: bool = False,
    ) -> None:
        """Add (or with ``replace`` set) per-class amounts in a tax ledger."""
        for tax_class, amount in amounts.items():
            base = ZERO if replace else ledger.get(tax_class, ZERO)
            ledger[tax_class] = base + amount
        self._total_tax = None

    def _post_item(self, item: OrderItem, sign: int) -> None:
        cost = item.cost * sign
        self._product_subtotal += cost
        self._subtotal += cost
        self._total += cost + item.total_tax * sign
        self._post_tax(
            self._tax,
            {
                tax_class: amount * item.quantity * sign
                for tax_class, amount in item.tax.items()
            },
        )

    @contextmanager
    def _atomic(self) -> Iterator[None]:
        saved = {
            name: dict(value) if isinstance(value, dict) else value
            for name, value in ((n, getattr(self, n)) for n in _LEDGER_FIELDS)
        }
        try:
            yield
        except Exception:
            for name, value in saved.items():
                setattr(self, name, value)
            logger.debug("order.mutation_rolled_back", order_id=self.id)
            raise

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def get_item(self, key: str) -> Optional[OrderItem]:
        item = self._items.get(key)
        if item is None:
            return self._policy.handle(
                ItemNotFound(f"No item with key {key!r} in order {self.id}."),
                order_id=self.id,
                key=key,
            )
        return item

    def add_item(self, item: OrderItem) -> None:
        """Add ``item``, replacing any item stored under the same key."""
        previous = self._items.get(item.key)
        with self._atomic():
            if previous is not None:
                self._post_item(previous, -1)
            self._post_item(item, 1)
        self._items[item.key] = item
        logger.debug(
            "order.item_added",
            order_id=self.id,
            key=item.key,
            quantity=item.quantity,
            replaced=previous is not None,
        )

    def remove_item(self, key: str) -> Optional[OrderItem]:
        """Remove and return the item stored under ``key``."""
        item = self._items.get(key)
        if item is None:
            return self._policy.handle(
                ItemNotFound(f"No item with key {key!r} in order {self.id}."),
                order_id=self.id,
                key=key,
            )
        with self._atomic():
            self._post_item(item, -1)
        del self._items[key]
        logger.debug("order.item_removed", order_id=self.id, key=key)
        return item

    def remove_items(self) -> None:
        """Drop every item, the shipping method and all item tax."""
        with self._atomic():
            self.remove_shipping_method()
            self._product_subtotal = ZERO
            self._subtotal = ZERO
            self._total = ZERO
            self._post_tax(self._tax, dict.fromkeys(self._tax, ZERO), replace=True)
        self._items = {}
        logger.debug("order.items_cleared", order_id=self.id)

    def update_quantity(self, key: str, quantity: Any, tax_service: TaxService) -> None:
        """Set the quantity of the item under ``key``.

        A quantity of zero or less removes the item.  Tax is adjusted with
        the rates ``tax_service`` reports now, not with the per-unit tax
        stored on the item.
        """
        if key not in self._items:
            return self._policy.handle(
                InvalidArgument(f"Item {key!r} does not exist in order {self.id}."),
                order_id=self.id,
                key=key,
            )
        try:
            new_quantity = _coerce_quantity(quantity)
        except InvalidArgument as exc:
            return self._policy.handle(
                exc, order_id=self.id, key=key, quantity=repr(quantity)
            )

        if new_quantity <= 0:
            self.remove_item(key)
            return None

        item = self._items[key]
        difference = new_quantity - item.quantity
        tax_deltas = {
            tax_class: tax_service.get(item.product, tax_class) * difference
            for tax_class in item.product.get_tax_classes()
        }
        price_delta = item.price * difference

        self._product_subtotal += price_delta
        self._subtotal += price_delta
        self._total += price_delta + sum(tax_deltas.values(), ZERO)
        self._post_tax(self._tax, tax_deltas)
        self._items[key] = replace(item, quantity=new_quantity)
        logger.debug(
            "order.quantity_updated",
            order_id=self.id,
            key=key,
            quantity=new_quantity,
            difference=difference,
        )
        return None

    # ------------------------------------------------------------------
    # Shipping
    # ------------------------------------------------------------------

    def set_shipping_method(self, method: ShippingMethod, tax_service: TaxService) -> None:
        """Select ``method``, replacing the current one."""
        with self._atomic():
            self.remove_shipping_method()
            price = method.calculate(self)
            shipping_tax = {
                tax_class: tax_service.get_shipping(
                    method, price, tax_class, self.customer
                )
                for tax_class in method.get_tax_classes()
            }
            total_shipping_tax = tax_service.calculate_shipping(
                method, price, self.customer
            )

            self._shipping_method = method
            self._shipping_price = price
            self._subtotal += price
            self._total += price + total_shipping_tax
            self._post_tax(self._shipping_tax, shipping_tax, replace=True)
        logger.debug(
            "order.shipping_selected",
            order_id=self.id,
            method=method.get_id(),
            price=str(price),
        )

    def remove_shipping_method(self) -> None:
        """Reverse the shipping selection; ledger keys are kept at zero."""
        self._subtotal -= self._shipping_price
        self._total -= self._shipping_price + sum(self._shipping_tax.values(), ZERO)
        self._shipping_method = None
        self._shipping_price = ZERO
        self._post_tax(
            self._shipping_tax,
            dict.fromkeys(self._shipping_tax, ZERO),
            replace=True,
        )

    def has_shipping_method(self, method: ShippingMethod) -> bool:
        if self._shipping_method is None:
            return False
        return self._shipping_method.get_id() == method.get_id()

    # ------------------------------------------------------------------
    # Discount & tax
    # ------------------------------------------------------------------

    def set_discount(self, discount: Any) -> None:
        try:
            amount = _to_money(discount)
            if amount < 0:
                raise InvalidArgument("Discount cannot be negative.")
        except InvalidArgument as exc:
            return self._policy.handle(exc, order_id=self.id, discount=repr(discount))
        self._total -= amount - self._discount
        self._discount = amount
        return None

    def update_taxes(self, amounts: Mapping[str, Decimal]) -> None:
        """Add per-class tax amounts on top of the item tax ledger."""
        self._post_tax(self._tax, amounts)
        self._total += sum(amounts.values(), ZERO)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def set_status(self, status: str, message: str = "") -> None:
        """Move to ``status``, logging the change in the history."""
        if status not in OrderStatus.values:
            return self._policy.handle(
                InvalidArgument(f"Unknown order status {status!r}."),
                order_id=self.id,
                status=status,
            )
        new_status = OrderStatus(status)
        if new_status == self._status:
            return None

        old_status = self._status
        self._update_messages.append(
            StatusChange(message=message, old_status=old_status, new_status=new_status)
        )
        self._status = new_status
        self.add_domain_event(
            OrderStatusChanged(
                aggregate_id=self.id,
                old_status=old_status,
                new_status=new_status,
                message=message,
            )
        )
        logger.debug(
            "order.status_changed",
            order_id=self.id,
            old_status=old_status,
            new_status=new_status,
        )
        return None

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def get_state_to_save(self) -> Dict[str, Any]:
        """Return the flat, JSON-ready snapshot of the order."""
        method = self._shipping_method
        state = OrderStateDTO(
            id=self.id,
            number=self._number,
            created_at=_timestamp(self.created_at),
            updated_at=_timestamp(self.updated_at),
            completed_at=_timestamp(self.completed_at),
            items=[
                OrderItemStateDTO(
                    key=item.key,
                    product=ProductStateDTO(
                        id=item.product.id,
                        name=getattr(item.product, "name", ""),
                        price=item.product.price,
                        tax_classes=sorted(item.product.get_tax_classes()),
                    ),
                    quantity=item.quantity,
                    price=item.price,
                    tax=item.tax,
                )
                for item in self._items.values()
            ],
            customer=self.customer,
            customer_id=self.customer.id or 0,
            shipping=ShippingStateDTO(
                method=method.get_state() if method is not None else None,
                price=self._shipping_price,
            ),
            payment=self.payment_method,
            customer_note=self.customer_note,
            total=self._total,
            subtotal=self._subtotal,
            product_subtotal=self._product_subtotal,
            discount=self._discount,
            shipping_tax=self._shipping_tax,
            status=str(self._status),
            update_messages=[
                StatusChangeDTO(
                    message=change.message,
                    old_status=str(change.old_status),
                    new_status=str(change.new_status),
                )
                for change in self._update_messages
            ],
        )
        return state.model_dump(mode="json")

    def restore_state(self, state: Mapping[str, Any]) -> None:
        """Load a snapshot into a freshly constructed order.

        Only fields present in ``state`` are applied.  ``total`` is never
        read from the snapshot; it is recomputed from the subtotal, both
        tax ledgers and the discount.  Without a stored ``subtotal`` it is
        derived from the product subtotal and the shipping price.

        Raises:
            pydantic.ValidationError: the snapshot is malformed.
            InvalidOrderState: the order already holds items, so restoring
                would count them twice.
        """
        snapshot = OrderStateDTO.model_validate(state)
        if self._items and snapshot.provided("items"):
            raise InvalidOrderState(
                f"Cannot restore a snapshot into order {self.id} which already has items."
            )

        if snapshot.provided("id"):
            self.id = snapshot.id
        if snapshot.provided("number"):
            self._number = snapshot.number
        if snapshot.provided("created_at"):
            self.created_at = _from_timestamp(snapshot.created_at)
        if snapshot.provided("updated_at"):
            self.updated_at = _from_timestamp(snapshot.updated_at)
        if snapshot.provided("completed_at") and snapshot.completed_at:
            self.completed_at = _from_timestamp(snapshot.completed_at)
        if snapshot.provided("status"):
            self._status = OrderStatus(snapshot.status)
        if snapshot.provided("update_messages"):
            self._update_messages = [
                StatusChange(
                    message=entry.message,
                    old_status=entry.old_status,
                    new_status=entry.new_status,
                )
                for entry in snapshot.update_messages
            ]
        if snapshot.provided("items"):
            for entry in snapshot.items:
                self.add_item(
                    OrderItem(
                        key=entry.key,
                        product=Product(
                            id=entry.product.id,
                            name=entry.product.name,
                            price=entry.product.price,
                            tax_classes=frozenset(entry.product.tax_classes),
                        ),
                        quantity=entry.quantity,
                        price=entry.price,
                        tax=dict(entry.tax),
                    )
                )
        if snapshot.provided("customer"):
            self.customer = snapshot.customer
        if snapshot.provided("shipping"):
            shipping = snapshot.shipping
            self._shipping_method = (
                restore_shipping_method(shipping.method)
                if shipping.method is not None
                else None
            )
            self._shipping_price = shipping.price
        if snapshot.provided("payment"):
            self.payment_method = snapshot.payment
        if snapshot.provided("customer_note"):
            self.customer_note = snapshot.customer_note
        if snapshot.provided("shipping_tax"):
            self._post_tax(self._shipping_tax, snapshot.shipping_tax)
        if snapshot.provided("product_subtotal"):
            self._product_subtotal = snapshot.product_subtotal
        if snapshot.provided("subtotal"):
            self._subtotal = snapshot.subtotal
        else:
            self._subtotal = self._product_subtotal + self._shipping_price
        if snapshot.provided("discount"):
            self._discount = snapshot.discount

        self._total = (
            self._subtotal
            + sum(self._tax.values(), ZERO)
            + sum(self._shipping_tax.values(), ZERO)
            - self._discount
        )

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self._number} status={self._status}>"
