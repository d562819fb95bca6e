"""Error-handling policies injected into aggregates and services.

Missing items, malformed quantities and unknown customers are reported
through an ``ErrorPolicy`` instead of being raised directly:

- ``StrictErrorPolicy`` raises the error (development / debug mode).
- ``LenientErrorPolicy`` logs a warning and hands back ``None`` so the
  caller can return a neutral result (production mode).

The policy is chosen once, when the aggregate or service is built, via
``error_policy_from_settings()``.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)


class ErrorPolicy(Protocol):
    """Decides what happens when a precondition is violated."""

    def handle(self, error: Exception, **context: Any) -> None: ...


class StrictErrorPolicy:
    """Raise every reported error immediately."""

    def handle(self, error: Exception, **context: Any) -> None:
        raise error

    def __repr__(self) -> str:
        return "StrictErrorPolicy()"


class LenientErrorPolicy:
    """Downgrade reported errors to a logged warning."""

    def __init__(self, log: Optional[Any] = None) -> None:
        self._log = log if log is not None else logger

    def handle(self, error: Exception, **context: Any) -> None:
        event = getattr(error, "code", type(error).__name__)
        self._log.warning(event, error=str(error), **context)
        return None

    def __repr__(self) -> str:
        return "LenientErrorPolicy()"


def error_policy_from_settings() -> ErrorPolicy:
    """Build the policy selected by ``settings.ORDERS_STRICT_MODE``."""
    from django.conf import settings

    if getattr(settings, "ORDERS_STRICT_MODE", settings.DEBUG):
        return StrictErrorPolicy()
    return LenientErrorPolicy()
