"""Customer service layer.

Fetches and stores customer accounts by id and hands them out as the
value objects orders carry (``Guest`` / ``RegisteredCustomer``).

Business rules enforced here:
- Id ``0`` always resolves to the guest customer.
- Email must be unique.
- Guests cannot be saved.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Optional, Union

import structlog
from django.db import transaction

from modules.core.errors import ErrorPolicy, error_policy_from_settings
from modules.customers.entities import GUEST_ID, Guest, RegisteredCustomer
from modules.customers.exceptions import (
    CustomerAlreadyExists,
    CustomerNotFound,
    GuestNotSaveable,
)
from modules.customers.models import Customer

if TYPE_CHECKING:
    from modules.customers.repositories.interfaces import ICustomerRepository

logger = structlog.get_logger(__name__)


class CustomerService:
    """Application service for customer look-ups.

    Receives an ``ICustomerRepository`` via constructor injection (DIP).
    Unknown ids are reported through the injected ``ErrorPolicy``.
    """

    def __init__(
        self,
        repository: ICustomerRepository,
        error_policy: Optional[ErrorPolicy] = None,
    ) -> None:
        self._repo = repository
        self._policy = error_policy or error_policy_from_settings()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find(self, id: int) -> Optional[Union[Guest, RegisteredCustomer]]:
        """Return the customer with the given id.

        Id ``0`` is the guest.  A missing customer raises
        ``CustomerNotFound`` in strict mode and returns ``None`` otherwise.
        """
        if id == GUEST_ID:
            return Guest()
        customer = self._repo.get_by_id(id)
        if not customer:
            return self._policy.handle(
                CustomerNotFound(f"Customer {id} not found."),
                customer_id=id,
            )
        return RegisteredCustomer.from_model(customer)

    def find_all(self) -> Dict[int, Union[Guest, RegisteredCustomer]]:
        """Return every customer keyed by id, the guest first."""
        customers: Dict[int, Union[Guest, RegisteredCustomer]] = {GUEST_ID: Guest()}
        for customer in self._repo.list():
            customers[customer.id] = RegisteredCustomer.from_model(customer)
        return customers

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def save(self, entity: Union[Guest, RegisteredCustomer]) -> RegisteredCustomer:
        """Create or update the account behind ``entity``.

        Returns the stored customer (with its id assigned).

        Raises:
            GuestNotSaveable: ``entity`` is the guest.
            CustomerNotFound: ``entity`` has an id that is not stored.
            CustomerAlreadyExists: the email belongs to another customer.
        """
        if isinstance(entity, Guest):
            raise GuestNotSaveable("Trying to save a guest customer.")

        log = logger.bind(customer_id=entity.id)

        existing = self._repo.get_by_email(entity.email)
        if existing and existing.id != entity.id:
            log.warning("customer.duplicate_email")
            raise CustomerAlreadyExists("Email already registered.")

        if entity.id is None:
            customer = Customer()
        else:
            customer = self._repo.get_by_id(entity.id)
            if not customer:
                raise CustomerNotFound(f"Customer {entity.id} not found.")

        for field in ("name", "email", "login", "country", "state", "postcode"):
            setattr(customer, field, getattr(entity, field))

        customer = self._repo.save(customer)
        log.info("customer.stored", customer_id=customer.id)
        return RegisteredCustomer.from_model(customer)
