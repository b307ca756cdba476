"""
Tests for money and count token parsing.
"""

from decimal import Decimal

import pytest

from shiftscan.utils.money import decimal_to_str, parse_count, parse_money, str_to_decimal


class TestParseMoney:
    """Register money formats."""

    @pytest.mark.parametrize("raw,expected", [
        ("$1,245.67", Decimal('1245.67')),
        ("1245.67", Decimal('1245.67')),
        ("$ 72.23", Decimal('72.23')),
        ("1234", Decimal('1234')),
        ("12.", Decimal('12')),
    ])
    def test_positive_amounts(self, raw, expected):
        assert parse_money(raw) == expected

    @pytest.mark.parametrize("raw", ["($12.50)", "-12.50", "12.50-", "( 12.50 )"])
    def test_negative_notations(self, raw):
        assert parse_money(raw, allow_negative=True) == Decimal('-12.50')

    def test_negative_rejected_unless_allowed(self):
        assert parse_money("($12.50)") is None
        assert parse_money("-12.50") is None

    @pytest.mark.parametrize("raw", [None, "", "abc", "12.34.56", "$", 12.5])
    def test_invalid(self, raw):
        assert parse_money(raw) is None

    def test_ocr_merged_numbers_are_rejected(self):
        assert parse_money("12456789.00") is None


class TestCounts:
    def test_parse_count(self):
        assert parse_count("1,024") == 1024
        assert parse_count("12") == 12
        assert parse_count("1.5") is None
        assert parse_count(None) is None

    def test_decimal_round_trip(self):
        assert decimal_to_str(Decimal('12.50')) == '12.50'
        assert decimal_to_str(None) is None
        assert str_to_decimal('12.50') == Decimal('12.50')
        assert str_to_decimal(12.5) == Decimal('12.5')
        assert str_to_decimal('') is None
