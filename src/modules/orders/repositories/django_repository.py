"""Django ORM implementation of the Order repository.

Satisfies ``IOrderRepository`` by storing each order's snapshot in an
``OrderRecord`` row and restoring the aggregate from it on read.  Writes
are wrapped in ``transaction.atomic()``; updates lock the row with
``select_for_update()`` so two saves of the same order serialize
(last write wins).
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from modules.core.errors import ErrorPolicy, error_policy_from_settings
from modules.orders.constants import ORDER_NUMBER_MAX_RETRIES
from modules.orders.entities import Order
from modules.orders.exceptions import OrderNotFound
from modules.orders.models import OrderRecord
from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class OrderDjangoRepository(IOrderRepository):
    """Concrete Order repository backed by Django ORM."""

    def __init__(
        self,
        tax_classes: Optional[Iterable[str]] = None,
        error_policy: Optional[ErrorPolicy] = None,
    ) -> None:
        self._tax_classes = tuple(
            tax_classes if tax_classes is not None else settings.TAX_CLASSES
        )
        self._error_policy = error_policy or error_policy_from_settings()

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    def new_order(self) -> Order:
        return Order(self._tax_classes, error_policy=self._error_policy)

    def _to_entity(self, record: OrderRecord) -> Order:
        order = self.new_order()
        order.restore_state({**record.state, "id": record.id})
        return order

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_by_id(self, id: int) -> Optional[Order]:
        """Restore a live order by ID.

        Returns ``None`` for non-existent, soft-deleted or invalid IDs.
        """
        record = OrderRecord.objects.live(id)
        return self._to_entity(record) if record else None

    def get_for_update(self, id: int) -> Optional[Order]:
        """Restore a live order while holding a row-level lock (SELECT FOR UPDATE).

        Must be called inside a transaction.
        """
        record = OrderRecord.objects.select_for_update().live(id)
        return self._to_entity(record) if record else None

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Order]:
        """List live orders with optional filters.

        Supported filter keys are any ``OrderRecord`` look-ups, e.g.
        ``status``, ``customer_id`` or ``created_at__range``.
        """
        queryset = OrderRecord.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return [self._to_entity(record) for record in queryset]

    # ------------------------------------------------------------------
    # Save / Delete (IRepository contract)
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Order) -> Order:
        """Persist (create or update) an order snapshot.

        Assigns ``entity.id`` on first save.

        Raises:
            OrderNotFound: ``entity`` has an id with no live record.
        """
        entity.updated_at = timezone.now()

        if entity.id is None:
            record = OrderRecord()
        else:
            record = OrderRecord.objects.select_for_update().live(entity.id)
            if not record:
                raise OrderNotFound(f"Order {entity.id} not found.")

        is_new = record.pk is None
        if is_new:
            record.save()
            entity.id = record.id

        state = entity.get_state_to_save()
        record.number = entity.number
        record.customer_id = state["customer_id"] or None
        record.status = state["status"]
        record.total = entity.total
        record.state = state
        record.save()

        logger.info(
            "order.saved",
            order_id=record.id,
            is_new=is_new,
            status=record.status,
            item_count=len(state["items"]),
        )
        return entity

    @transaction.atomic
    def delete(self, id: int) -> bool:
        """Soft-delete an order by ID."""
        record = OrderRecord.objects.live(id)
        if not record:
            return False
        record.delete()
        logger.info("order.soft_deleted", order_id=id)
        return True

    # ------------------------------------------------------------------
    # Order-specific queries
    # ------------------------------------------------------------------

    def next_order_number(self) -> str:
        for _attempt in range(ORDER_NUMBER_MAX_RETRIES):
            candidate = OrderRecord.generate_order_number()
            if not OrderRecord.objects.filter(number=candidate).exists():
                return candidate
        raise RuntimeError(
            f"Failed to generate unique order number after "
            f"{ORDER_NUMBER_MAX_RETRIES} attempts"
        )
