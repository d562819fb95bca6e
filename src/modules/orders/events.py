"""Domain events for the Orders bounded context."""

from __future__ import annotations

from dataclasses import dataclass

from shared.domain.events import DomainEvent


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    """Raised when an order moves to a different status."""

    old_status: str = ""
    new_status: str = ""
    message: str = ""


@dataclass(frozen=True)
class OrderCompleted(DomainEvent):
    """Raised when an order is stamped as completed."""
