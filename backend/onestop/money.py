from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

MONEY_EXP = Decimal("0.01")
QTY_EXP = Decimal("0.001")

ZERO = Decimal("0")


def as_decimal(value) -> Decimal:
    """Coerce a stored numeric (Decimal, float from SQLite, int, None) to Decimal."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def quantize_money(value) -> Decimal:
    return as_decimal(value).quantize(MONEY_EXP, rounding=ROUND_HALF_UP)


def quantize_qty(value) -> Decimal:
    return as_decimal(value).quantize(QTY_EXP, rounding=ROUND_HALF_UP)


def to_money_str(value) -> Optional[str]:
    """Serialize a money column the way NUMERIC(12,2) renders: "10.00"."""
    if value is None:
        return None
    return str(quantize_money(value))


def to_qty_str(value) -> Optional[str]:
    """Serialize a stock / quantity column: "7.500"."""
    if value is None:
        return None
    return str(quantize_qty(value))
