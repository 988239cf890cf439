"""Tests for money and week display formatting."""

from decimal import Decimal

import pytest

from scopeflow.utils.formatting import (
    format_cost_delta,
    format_money,
    format_weeks,
    format_weeks_delta,
)


class TestFormatMoney:

    @pytest.mark.parametrize("value,expected", [
        (5000, "$5,000"),
        (Decimal("72000.00"), "$72,000"),
        (1250.5, "$1,250.50"),
        (0, "$0"),
        (-300, "-$300"),
        (1234567.891, "$1,234,567.89"),
    ])
    def test_format_money(self, value, expected):
        assert format_money(value) == expected


class TestFormatCostDelta:

    @pytest.mark.parametrize("value,expected", [
        (5000, "+$5,000"),
        (-1250.5, "$1,250.50"),
        (0, "+$0"),
        (Decimal("99.99"), "+$99.99"),
    ])
    def test_signed(self, value, expected):
        assert format_cost_delta(value) == expected

    def test_reduction_has_no_sign(self):
        assert format_cost_delta(Decimal("-3000")) == "$3,000"
        assert not format_cost_delta(-0.5).startswith(("-", "+"))


class TestFormatWeeks:

    @pytest.mark.parametrize("value,expected", [
        (2, "2 weeks"),
        (1, "1 week"),
        (1.5, "1.5 weeks"),
        (Decimal("12.0"), "12 weeks"),
        (0, "0 weeks"),
        (2.25, "2.2 weeks"),
    ])
    def test_format_weeks(self, value, expected):
        assert format_weeks(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (2, "+2 weeks"),
        (-1.5, "-1.5 weeks"),
        (1, "+1 week"),
        (-1, "-1 week"),
        (0, "+0 weeks"),
    ])
    def test_format_weeks_delta(self, value, expected):
        assert format_weeks_delta(value) == expected
