"""Customer model with soft delete.

Business rules implemented:
- Email must be unique in the system.
- Soft delete via ``deleted_at`` (inherited from SoftDeleteModel).
- Email is masked in ``__str__`` so it never leaks into logs.

The tax jurisdiction (``country`` / ``state`` / ``postcode``) is what the
tax service reads when pricing shipping for the customer's orders.
"""

from __future__ import annotations

import structlog
from django.db import models

from modules.core.models import SoftDeleteModel

logger = structlog.get_logger(__name__)


class Customer(SoftDeleteModel):
    """Stored customer account.

    Orders reference customers by id; a missing reference means the order
    was placed by a guest.
    """

    name = models.CharField(max_length=255)
    email = models.EmailField(max_length=254, unique=True)
    login = models.CharField(max_length=60, blank=True, default="")
    country = models.CharField(max_length=2, blank=True, default="")
    state = models.CharField(max_length=100, blank=True, default="")
    postcode = models.CharField(max_length=20, blank=True, default="")

    class Meta:
        db_table = "customers"
        ordering = ["-created_at"]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, *args, **kwargs) -> None:
        if self.email:
            self.email = self.email.strip().lower()
        if self.country:
            self.country = self.country.upper()
        super().save(*args, **kwargs)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        local, _, domain = (self.email or "").partition("@")
        masked = f"{local[:1]}***@{domain}" if domain else "***"
        return f"{self.name} ({masked})"
