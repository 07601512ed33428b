"""Input parsing and money formatting helpers."""

from decimal import Decimal

import pytest

from onestop.errors import ValidationError
from onestop.money import quantize_money, to_money_str, to_qty_str
from onestop.models import BalanceSheet
from onestop.services.kasa_service import SHEET_POLICY
from onestop.validation import parse_decimal, parse_int, parse_pagination, validate_payload


class TestParseDecimal:
    @pytest.mark.parametrize("raw, expected", [
        ("12.50", Decimal("12.50")),
        (12.5, Decimal("12.5")),
        (0.1, Decimal("0.1")),
        (7, Decimal("7")),
    ])
    def test_accepts_numbers_and_numeric_strings(self, raw, expected):
        assert parse_decimal(raw, "amount") == expected

    @pytest.mark.parametrize("raw", ["abc", True, "NaN", "Infinity", "99999999999"])
    def test_rejects_garbage(self, raw):
        with pytest.raises(ValidationError):
            parse_decimal(raw, "amount")

    def test_blank_returns_default(self):
        assert parse_decimal("  ", "amount", default=Decimal("1")) == Decimal("1")


class TestParseInt:
    @pytest.mark.parametrize("raw", ["1.5", "1e3", 2.0, False])
    def test_rejects_non_integers(self, raw):
        with pytest.raises(ValidationError):
            parse_int(raw, "customer_id")

    def test_accepts_digit_strings(self):
        assert parse_int(" 42 ", "customer_id") == 42


def test_pagination_defaults_and_clamping():
    assert parse_pagination({}) == (100, 0)
    assert parse_pagination({"limit": "100000", "offset": "-4"}) == (500, 0)


def test_money_serialization():
    assert to_money_str(Decimal("10")) == "10.00"
    assert to_money_str(2.675) == "2.68"
    assert to_qty_str(Decimal("7.5")) == "7.500"
    assert quantize_money("0.005") == Decimal("0.01")
    assert to_money_str(None) is None


class TestValidatePayload:
    def test_coerces_writable_columns_and_ignores_the_rest(self):
        patch = validate_payload(
            model=BalanceSheet,
            payload={"date": "2026-10-18", "opening_balance": "150.5", "items": [], "notes": "  ok  ", "owner_id": 9},
            policy=SHEET_POLICY,
            partial=True,
        )
        assert patch == {"opening_balance": Decimal("150.5"), "items": [], "notes": "ok"}

    def test_json_column_requires_list_or_object(self):
        with pytest.raises(ValidationError) as exc:
            validate_payload(model=BalanceSheet, payload={"items": "x"}, policy=SHEET_POLICY, partial=True)
        assert exc.value.message == "items must be a JSON array or object"
