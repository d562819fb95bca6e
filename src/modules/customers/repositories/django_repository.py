"""Django ORM implementation of the Customer repository.

Satisfies ``ICustomerRepository`` using Django's QuerySet API.
Error handling follows the Null Object pattern: methods return ``None``
instead of raising, and the Service Layer decides what a missing
customer means for the caller.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from django.db import transaction

from modules.customers.models import Customer
from modules.customers.repositories.interfaces import ICustomerRepository

logger = structlog.get_logger(__name__)


class CustomerDjangoRepository(ICustomerRepository):
    """Concrete Customer repository backed by Django ORM."""

    def get_by_id(self, id: int) -> Optional[Customer]:
        """Retrieve a live customer by primary key.

        Returns ``None`` for non-existent, soft-deleted or malformed IDs.
        """
        return Customer.objects.live(id)

    def list(self, filters: Optional[Dict[str, Any]] = None) -> List[Customer]:
        """List live customers with optional Django ORM look-ups.

        Examples of valid filters::

            {"country": "PL"}
            {"name__icontains": "acme"}
        """
        queryset = Customer.objects.alive()
        if filters:
            queryset = queryset.filter(**filters)
        return list(queryset)

    @transaction.atomic
    def save(self, entity: Customer) -> Customer:
        """Persist (create or update) a customer."""
        is_new = entity._state.adding
        entity.save()
        logger.info("customer.saved", customer_id=entity.id, is_new=is_new)
        return entity

    @transaction.atomic
    def delete(self, id: int) -> bool:
        """Soft-delete a customer by ID.

        Returns ``True`` if the customer was found and soft-deleted,
        ``False`` if no customer exists with the given ID.
        """
        customer = self.get_by_id(id)
        if not customer:
            return False
        customer.delete()
        logger.info("customer.soft_deleted", customer_id=id)
        return True

    def get_by_email(self, email: str) -> Optional[Customer]:
        """Retrieve a customer by email address (case-insensitive)."""
        return Customer.objects.filter(email__iexact=email.strip()).first()
