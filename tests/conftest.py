from decimal import Decimal

import pytest

from modules.core.errors import LenientErrorPolicy, StrictErrorPolicy
from modules.orders.entities import Order
from modules.products.entities import Product
from modules.taxes.services import RateTableTaxService

TAX_CLASSES = ("standard", "reduced")


@pytest.fixture(autouse=True)
def _use_db(db):
    """Automatically use the test database for all tests."""


@pytest.fixture()
def tax_service():
    """10% standard, 5% reduced; shipping to DE is taxed at 20% standard."""
    return RateTableTaxService(
        {"standard": Decimal("0.10"), "reduced": Decimal("0.05")},
        {("DE", "standard"): Decimal("0.20")},
    )


@pytest.fixture()
def order():
    """Empty order in strict mode."""
    return Order(TAX_CLASSES, error_policy=StrictErrorPolicy())


@pytest.fixture()
def lenient_order():
    """Empty order in lenient mode."""
    return Order(TAX_CLASSES, error_policy=LenientErrorPolicy())


@pytest.fixture()
def book():
    return Product(id=1, name="Book", price=Decimal("10.00"), tax_classes={"standard"})


@pytest.fixture()
def mug():
    return Product(
        id=2,
        name="Mug",
        price=Decimal("4.50"),
        tax_classes={"standard", "reduced"},
    )


@pytest.fixture()
def bread():
    return Product(id=3, name="Bread", price=Decimal("2.00"), tax_classes={"reduced"})
