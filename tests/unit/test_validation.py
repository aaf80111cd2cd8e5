import pytest
from decimal import Decimal
from cli.validation import (
    INVALID_PRICE, INVALID_QUANTITY, parse_price, parse_quantity, validate_price, validate_quantity,
)


@pytest.mark.parametrize("text", ["25", "25.5", "25.50", "0.99", ""])
def test_valid_prices(text):
    assert validate_price(text).valid


@pytest.mark.parametrize("text", ["25.555", "abc", "-5", "$25", "1,000", "25."])
def test_invalid_prices(text):
    result = validate_price(text)
    assert not result.valid
    assert result.message == INVALID_PRICE


@pytest.mark.parametrize("text", ["0", "-1", "1.5", "two"])
def test_invalid_quantities(text):
    result = validate_quantity(text)
    assert not result.valid
    assert result.message == INVALID_QUANTITY


def test_quantity_within_available():
    assert validate_quantity("3", available=3).valid
    result = validate_quantity("4", available=3)
    assert not result.valid
    assert result.message == "Only 3 available in inventory"


def test_quantity_unknown_available():
    assert validate_quantity("40").valid


def test_empty_quantity_is_valid():
    assert validate_quantity("  ", available=0).valid


def test_parse_price():
    assert parse_price("$1,250.00") == Decimal("1250.00")
    assert parse_price("abc") is None
    assert parse_price("NaN") is None


def test_parse_quantity():
    assert parse_quantity("") == 1
    assert parse_quantity(" 4 ") == 4
    assert parse_quantity("x") is None
