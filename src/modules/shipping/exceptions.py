"""Shipping domain exceptions."""

from __future__ import annotations


class ShippingNotAvailable(Exception):
    """The selected shipping method cannot ship the order as it stands."""

    code = "shipping.not_available"
