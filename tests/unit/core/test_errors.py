"""Unit tests for the strict / lenient error policies."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from modules.core.errors import (
    LenientErrorPolicy,
    StrictErrorPolicy,
    error_policy_from_settings,
)
from modules.orders.exceptions import ItemNotFound

pytestmark = pytest.mark.unit


class TestStrictErrorPolicy:
    def test_raises(self):
        error = ItemNotFound("missing")

        with pytest.raises(ItemNotFound) as exc_info:
            StrictErrorPolicy().handle(error, key="k")
        assert exc_info.value is error


class TestLenientErrorPolicy:
    def test_logs_warning_with_code_and_context(self):
        log = MagicMock()

        result = LenientErrorPolicy(log).handle(ItemNotFound("missing"), key="k")

        assert result is None
        log.warning.assert_called_once_with(
            "order.item_not_found", error="missing", key="k"
        )

    def test_falls_back_to_class_name(self):
        log = MagicMock()
        LenientErrorPolicy(log).handle(ValueError("bad"))
        assert log.warning.call_args.args[0] == "ValueError"

    def test_default_logger(self, caplog):
        with caplog.at_level(logging.WARNING, logger="modules.core.errors"):
            LenientErrorPolicy().handle(ItemNotFound("missing"), key="k")

        assert any("order.item_not_found" in r.getMessage() for r in caplog.records)


class TestFromSettings:
    def test_strict_mode(self, settings):
        settings.ORDERS_STRICT_MODE = True
        assert isinstance(error_policy_from_settings(), StrictErrorPolicy)

    def test_lenient_mode(self, settings):
        settings.ORDERS_STRICT_MODE = False
        assert isinstance(error_policy_from_settings(), LenientErrorPolicy)
