"""Tests for amount parsing."""

import pytest
from decimal import Decimal
from condopay.utils.amount_parser import parse_amount, to_money


def test_parse_plain_amount():
    assert parse_amount("123.45") == Decimal("123.45")


def test_parse_integer_amount_is_quantized():
    result = parse_amount("100")
    assert result == Decimal("100.00")
    assert str(result) == "100.00"


def test_parse_bolivar_prefix_with_decimal_comma():
    assert parse_amount("Bs 1.234,56") == Decimal("1234.56")
    assert parse_amount("123,45 Bs.") == Decimal("123.45")


def test_parse_dollar_with_thousands_comma():
    assert parse_amount("$1,234.56") == Decimal("1234.56")
    assert parse_amount("1,234") == Decimal("1234.00")


def test_parse_empty_amount():
    with pytest.raises(ValueError):
        parse_amount("   ")


def test_parse_garbage_amount():
    with pytest.raises(ValueError):
        parse_amount("abc")


def test_to_money_rounds_half_up():
    assert to_money(Decimal("10.005")) == Decimal("10.01")
    assert to_money(0.1) == Decimal("0.10")
    assert to_money(7) == Decimal("7.00")
