"""Domain events raised by the order aggregate and published by its services."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4


@dataclass(frozen=True)
class DomainEvent:
    """Immutable record of something that happened to an aggregate.

    Orders get their id on first save, so events recorded before that
    carry ``aggregate_id=None`` until ``for_aggregate`` binds them.
    """

    aggregate_id: Optional[int]
    event_id: UUID = field(default_factory=uuid4)
    occurred_on: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_name: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "event_name", type(self).__name__)

    def for_aggregate(self, aggregate_id: int) -> DomainEvent:
        """Same event (same ``event_id``) bound to ``aggregate_id``."""
        if self.aggregate_id == aggregate_id:
            return self
        return replace(self, aggregate_id=aggregate_id)


class DomainEventMixin:
    """Collects events on an aggregate until the service publishes them."""

    _domain_events: List[DomainEvent]

    def add_domain_event(self, event: DomainEvent) -> None:
        self.__dict__.setdefault("_domain_events", []).append(event)

    def clear_domain_events(self) -> None:
        self.__dict__.pop("_domain_events", None)

    @property
    def domain_events(self) -> List[DomainEvent]:
        return list(self.__dict__.get("_domain_events", ()))
