"""Customer domain exceptions.

Raised by the Service Layer when business rules are violated.
"""

from __future__ import annotations


class CustomerNotFound(LookupError):
    """The requested customer does not exist or has been soft-deleted."""

    code = "customer.not_found"


class CustomerAlreadyExists(Exception):
    """A customer with the same email already exists."""

    code = "customer.already_exists"


class GuestNotSaveable(Exception):
    """Guests have no account; they cannot be persisted."""

    code = "customer.guest_not_saveable"
