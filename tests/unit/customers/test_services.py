"""Unit tests for CustomerService.

Covers:
- find: guest id, stored customer, not found (strict and lenient).
- find_all: guest first, then stored customers.
- save: create, update, duplicate email, unknown id, guest rejected.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from modules.core.errors import LenientErrorPolicy, StrictErrorPolicy
from modules.customers.entities import GUEST_ID, Guest, RegisteredCustomer
from modules.customers.exceptions import (
    CustomerAlreadyExists,
    CustomerNotFound,
    GuestNotSaveable,
)
from modules.customers.models import Customer
from modules.customers.services import CustomerService

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_repo():
    repo = MagicMock()
    repo.get_by_email.return_value = None
    repo.save.side_effect = lambda customer: customer
    return repo


@pytest.fixture()
def service(mock_repo):
    return CustomerService(repository=mock_repo, error_policy=StrictErrorPolicy())


def _make_customer(**overrides) -> Customer:
    defaults = {
        "id": 5,
        "name": "Jan Kowalski",
        "email": "jan@example.com",
        "country": "PL",
    }
    defaults.update(overrides)
    return Customer(**defaults)


# ---------------------------------------------------------------------------
# find
# ---------------------------------------------------------------------------


class TestFind:
    def test_guest_id_returns_guest(self, service, mock_repo):
        customer = service.find(GUEST_ID)

        assert isinstance(customer, Guest)
        mock_repo.get_by_id.assert_not_called()

    def test_stored_customer(self, service, mock_repo):
        mock_repo.get_by_id.return_value = _make_customer()

        customer = service.find(5)

        assert isinstance(customer, RegisteredCustomer)
        assert customer.id == 5
        assert customer.email == "jan@example.com"
        assert customer.country == "PL"

    def test_not_found_strict(self, service, mock_repo):
        mock_repo.get_by_id.return_value = None

        with pytest.raises(CustomerNotFound):
            service.find(99)

    def test_not_found_lenient(self, mock_repo):
        mock_repo.get_by_id.return_value = None
        service = CustomerService(mock_repo, error_policy=LenientErrorPolicy())

        assert service.find(99) is None


class TestFindAll:
    def test_guest_first(self, service, mock_repo):
        mock_repo.list.return_value = [
            _make_customer(id=3, email="a@example.com"),
            _make_customer(id=4, email="b@example.com"),
        ]

        customers = service.find_all()

        assert list(customers) == [GUEST_ID, 3, 4]
        assert isinstance(customers[GUEST_ID], Guest)
        assert customers[4].email == "b@example.com"


# ---------------------------------------------------------------------------
# save
# ---------------------------------------------------------------------------


class TestSave:
    def test_create(self, service, mock_repo):
        def _assign_id(customer):
            customer.id = 11
            return customer

        mock_repo.save.side_effect = _assign_id

        stored = service.save(
            RegisteredCustomer(name="Ola", email="ola@example.com", country="PL")
        )

        assert stored.id == 11
        assert stored.name == "Ola"
        saved = mock_repo.save.call_args.args[0]
        assert isinstance(saved, Customer)
        assert saved.email == "ola@example.com"

    def test_update(self, service, mock_repo):
        existing = _make_customer()
        mock_repo.get_by_id.return_value = existing
        mock_repo.get_by_email.return_value = existing

        stored = service.save(
            RegisteredCustomer(id=5, name="Jan K.", email="jan@example.com", country="DE")
        )

        assert stored.name == "Jan K."
        assert existing.country == "DE"
        mock_repo.save.assert_called_once_with(existing)

    def test_duplicate_email(self, service, mock_repo):
        mock_repo.get_by_email.return_value = _make_customer(id=8)

        with pytest.raises(CustomerAlreadyExists):
            service.save(RegisteredCustomer(name="Other", email="jan@example.com"))
        mock_repo.save.assert_not_called()

    def test_unknown_id(self, service, mock_repo):
        mock_repo.get_by_id.return_value = None

        with pytest.raises(CustomerNotFound):
            service.save(RegisteredCustomer(id=77, name="Ghost", email="g@example.com"))

    def test_guest_cannot_be_saved(self, service, mock_repo):
        with pytest.raises(GuestNotSaveable):
            service.save(Guest())
        mock_repo.save.assert_not_called()
