"""Order persistence model.

The ``Order`` aggregate lives in memory (``modules.orders.entities``);
this table stores its flat snapshot in ``state`` plus a few columns
copied out of it for querying:

- ``number``: human-readable identifier assigned at checkout
  (format: ``ORD-YYYYMMDD-XXXXXX``), unique once set.
- ``customer``: FK to the stored customer, ``NULL`` for guests.  Uses
  PROTECT to preserve financial history.
- ``status`` / ``total``: mirrors of the snapshot values.
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel).
"""

from __future__ import annotations

import secrets
from decimal import Decimal

from django.db import models
from django.utils import timezone

from modules.core.models import SoftDeleteModel
from modules.orders.constants import OrderStatus


class OrderRecord(SoftDeleteModel):
    """Stored order snapshot."""

    number: models.CharField = models.CharField(
        max_length=20, unique=True, null=True, blank=True
    )
    customer: models.ForeignKey = models.ForeignKey(
        "customers.Customer",
        on_delete=models.PROTECT,
        related_name="orders",
        null=True,
        blank=True,
    )
    status: models.CharField = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    total: models.DecimalField = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )
    state: models.JSONField = models.JSONField(default=dict)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="orders_status_idx"),
        ]

    # ------------------------------------------------------------------
    # Order number generation
    # ------------------------------------------------------------------

    @staticmethod
    def generate_order_number() -> str:
        """Generate a human-readable order number: ``ORD-YYYYMMDD-XXXXXX``."""
        now = timezone.now()
        suffix = secrets.token_hex(3).upper()
        return f"ORD-{now:%Y%m%d}-{suffix}"

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return f"{self.number or self.id} ({self.status})"
