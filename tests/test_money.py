from quoteflow.shared.money import calculate_totals, line_amount, round_amount, round_integer
from quoteflow.shared.validators import is_valid_tax_id, validate_currency


def test_rounding_is_half_up():
    assert round_amount(2.675) == 2.68
    assert round_amount(0.125) == 0.13
    assert round_integer(2.5) == 3
    assert round_integer(3.5) == 4
    assert round_amount(None) == 0.0


def test_line_amount_applies_discount():
    assert line_amount(3, 19.99) == 59.97
    assert line_amount(4, 100, 10) == 360.0


def test_calculate_totals():
    assert calculate_totals([100, 200.5], 5, 10) == {
        "subtotal": 300.5,
        "tax_amount": 15.03,
        "total_amount": 305.53,
    }
    assert calculate_totals([], 5)["total_amount"] == 0


def test_tax_id_checksum():
    assert is_valid_tax_id("04595257")
    assert is_valid_tax_id("10458574")  # seventh digit 7 accepts total + 1
    assert not is_valid_tax_id("04595258")
    assert not is_valid_tax_id("1234567")


def test_currency_validation():
    assert validate_currency(" twd ") == "TWD"
    try:
        validate_currency("GBP")
    except ValueError as e:
        assert "GBP" in str(e)
    else:
        raise AssertionError("GBP should be rejected")
