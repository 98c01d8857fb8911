# Overview: Pytest coverage for stock status derivation.

import pytest

from wholesale.services.stock_status import available_quantity, derive_status


class TestAvailableQuantity:
    def test_subtracts_damaged(self):
        assert available_quantity(10, 2) == 8

    def test_never_negative(self):
        assert available_quantity(3, 5) == 0
        assert available_quantity(-4, 0) == 0

    def test_nulls_count_as_zero(self):
        assert available_quantity(None, None) == 0
        assert available_quantity(7, None) == 7


class TestDeriveStatus:
    @pytest.mark.parametrize("quantity,expected", [
        (0, "out_of_stock"),
        (1, "low_stock"),
        (5, "low_stock"),
        (6, "in_stock"),
        (500, "in_stock"),
    ])
    def test_threshold_boundaries(self, quantity, expected):
        """quantity == threshold is low; threshold + 1 is in stock."""
        assert derive_status(quantity, 0, 5, True) == expected

    @pytest.mark.parametrize("quantity", [None, -3, 0, 4, 1000])
    def test_untracked_is_unlimited_regardless_of_quantity(self, quantity):
        assert derive_status(quantity, 0, 5, False) == "unlimited"

    def test_damaged_reduces_availability(self):
        assert derive_status(10, 2, 5, True) == "in_stock"
        assert derive_status(7, 2, 5, True) == "low_stock"
        assert derive_status(2, 2, 5, True) == "out_of_stock"

    def test_oversold_is_out_of_stock(self):
        assert derive_status(-5, 0, 5, True) == "out_of_stock"

    def test_missing_threshold_defaults_to_ten(self):
        assert derive_status(10, 0, None, True) == "low_stock"
        assert derive_status(11, 0, None, True) == "in_stock"

    def test_default_threshold_follows_config(self, app):
        app.config["DEFAULT_LOW_STOCK_THRESHOLD"] = 3
        try:
            with app.app_context():
                assert derive_status(4, 0, None, True) == "in_stock"
                assert derive_status(3, 0, None, True) == "low_stock"
        finally:
            app.config["DEFAULT_LOW_STOCK_THRESHOLD"] = 10

    def test_zero_threshold(self):
        assert derive_status(1, 0, 0, True) == "in_stock"
