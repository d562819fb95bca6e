"""Unit tests for the rate-table tax service."""

from __future__ import annotations

from decimal import Decimal

import pytest

from modules.customers.entities import Guest, RegisteredCustomer
from modules.shipping.methods import FlatRate, FreeShipping
from modules.taxes.services import RateTableTaxService, parse_tax_rates

pytestmark = pytest.mark.unit


class TestParseTaxRates:
    def test_base_and_country_rates(self):
        rates, country_rates = parse_tax_rates(
            ["standard:0.23", " reduced : 0.08 ", "de/standard:0.19", ""]
        )

        assert rates == {"standard": Decimal("0.23"), "reduced": Decimal("0.08")}
        assert country_rates == {("DE", "standard"): Decimal("0.19")}

    @pytest.mark.parametrize("entry", ["standard", ":0.1", "standard:abc"])
    def test_malformed_entry(self, entry):
        with pytest.raises(ValueError):
            parse_tax_rates([entry])


class TestProductTax:
    def test_rate_applied_per_unit(self, tax_service, book):
        assert tax_service.get(book, "standard") == Decimal("1.00")

    def test_class_not_on_product_is_zero(self, tax_service, book):
        assert tax_service.get(book, "reduced") == Decimal("0")

    def test_rounds_half_up_to_cents(self, tax_service, mug):
        assert tax_service.get(mug, "reduced") == Decimal("0.23")

    def test_unknown_class_is_zero(self, book):
        service = RateTableTaxService({})
        assert service.get(book, "standard") == Decimal("0")


class TestShippingTax:
    def test_base_rate_for_guest(self, tax_service):
        method = FlatRate(Decimal("10.00"), {"standard"})
        assert tax_service.get_shipping(
            method, Decimal("10.00"), "standard", Guest()
        ) == Decimal("1.00")

    def test_country_rate_overrides(self, tax_service):
        method = FlatRate(Decimal("10.00"), {"standard"})
        customer = RegisteredCustomer(name="Max", email="max@example.com", country="de")

        assert tax_service.get_shipping(
            method, Decimal("10.00"), "standard", customer
        ) == Decimal("2.00")

    def test_calculate_sums_method_classes(self, tax_service):
        method = FlatRate(Decimal("10.00"), {"standard", "reduced"})
        assert tax_service.calculate_shipping(
            method, Decimal("10.00"), Guest()
        ) == Decimal("1.50")

    def test_untaxed_method(self, tax_service):
        assert tax_service.calculate_shipping(
            FreeShipping(), Decimal("0"), Guest()
        ) == Decimal("0")


class TestFromSettings:
    def test_reads_settings(self, settings, book):
        settings.TAX_RATES = ["standard:0.5", "reduced:0.1"]

        service = RateTableTaxService.from_settings()

        assert service.tax_classes == ("standard", "reduced")
        assert service.get(book, "standard") == Decimal("5.00")
