"""Order domain exceptions.

``ItemNotFound`` and ``InvalidArgument`` are reported through the
order's ``ErrorPolicy`` (raised in strict mode, logged otherwise).
``InvalidOrderState`` is always raised: it means the caller tried to
apply something twice and the ledger would no longer add up.
"""

from __future__ import annotations


class OrderError(Exception):
    """Base class for order domain errors."""

    code = "order.error"


class ItemNotFound(OrderError, LookupError):
    """The referenced item key is not part of the order."""

    code = "order.item_not_found"


class InvalidArgument(OrderError, ValueError):
    """A malformed value was passed (e.g. a non-numeric quantity)."""

    code = "order.invalid_argument"


class InvalidOrderState(OrderError):
    """The operation would break the order's invariants."""

    code = "order.invalid_state"


class OrderNotFound(OrderError, LookupError):
    """The requested order does not exist or has been soft-deleted."""

    code = "order.not_found"
