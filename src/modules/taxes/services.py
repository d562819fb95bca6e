"""Rate-table tax service.

Tax amounts are the taxed price times the configured rate of a tax
class, rounded to cents (``ROUND_HALF_UP``).  Shipping tax may use a
country-specific rate taken from the customer's jurisdiction; product
tax always uses the base rate.

Rates are configured as ``class:rate`` entries, optionally prefixed with
a country code (``PL/standard:0.23``), see ``settings.TAX_RATES``.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Dict, Iterable, Mapping, Optional, Tuple

import structlog

if TYPE_CHECKING:
    from modules.orders.ports import ShippingMethod, TaxableProduct

logger = structlog.get_logger(__name__)

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_tax_rates(
    entries: Iterable[str],
) -> Tuple[Dict[str, Decimal], Dict[Tuple[str, str], Decimal]]:
    """Split ``class:rate`` / ``CC/class:rate`` entries into rate tables.

    Raises:
        ValueError: an entry is malformed or its rate is not a number.
    """
    rates: Dict[str, Decimal] = {}
    country_rates: Dict[Tuple[str, str], Decimal] = {}
    for entry in entries:
        entry = entry.strip()
        if not entry:
            continue
        name, sep, raw_rate = entry.partition(":")
        if not sep or not name:
            raise ValueError(f"Malformed tax rate entry {entry!r}.")
        try:
            rate = Decimal(raw_rate.strip())
        except InvalidOperation:
            raise ValueError(f"Tax rate in {entry!r} is not a number.") from None
        country, slash, tax_class = name.strip().rpartition("/")
        if slash:
            country_rates[(country.upper(), tax_class)] = rate
        else:
            rates[tax_class] = rate
    return rates, country_rates


class RateTableTaxService:
    """Tax service backed by fixed per-class rates."""

    def __init__(
        self,
        rates: Mapping[str, Decimal],
        country_rates: Optional[Mapping[Tuple[str, str], Decimal]] = None,
    ) -> None:
        self._rates = {name: Decimal(str(rate)) for name, rate in rates.items()}
        self._country_rates = {
            key: Decimal(str(rate)) for key, rate in (country_rates or {}).items()
        }

    @classmethod
    def from_settings(cls) -> RateTableTaxService:
        from django.conf import settings

        rates, country_rates = parse_tax_rates(settings.TAX_RATES)
        return cls(rates, country_rates)

    @property
    def tax_classes(self) -> Tuple[str, ...]:
        return tuple(self._rates)

    def _rate(self, tax_class: str, customer: Any = None) -> Decimal:
        country = getattr(customer, "country", "") or ""
        if country and (country.upper(), tax_class) in self._country_rates:
            return self._country_rates[(country.upper(), tax_class)]
        if tax_class not in self._rates:
            logger.debug("tax.unknown_class", tax_class=tax_class)
        return self._rates.get(tax_class, ZERO)

    def get(self, product: TaxableProduct, tax_class: str) -> Decimal:
        """Per-unit tax of ``product`` in ``tax_class``."""
        if tax_class not in product.get_tax_classes():
            return ZERO
        return _cents(product.price * self._rate(tax_class))

    def get_shipping(
        self,
        method: ShippingMethod,
        price: Decimal,
        tax_class: str,
        customer: Any,
    ) -> Decimal:
        """Tax on a shipping ``price`` in one class, for the customer's country."""
        if tax_class not in method.get_tax_classes():
            return ZERO
        return _cents(Decimal(price) * self._rate(tax_class, customer))

    def calculate_shipping(
        self,
        method: ShippingMethod,
        price: Decimal,
        customer: Any,
    ) -> Decimal:
        """Total tax on a shipping ``price`` across the method's classes."""
        return sum(
            (
                self.get_shipping(method, price, tax_class, customer)
                for tax_class in method.get_tax_classes()
            ),
            ZERO,
        )
