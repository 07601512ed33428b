from __future__ import annotations
from datetime import date, datetime

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .time_utils import parse_iso_date


# NUMERIC(12,2): keeps a fat-fingered amount from overflowing the column
MAX_AMOUNT = Decimal("9999999999.99")

DEFAULT_PAGE_LIMIT = 100
MAX_PAGE_LIMIT = 500


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def parse_decimal(
    value: Any,
    field: str,
    *,
    default: Decimal | None = None,
    positive: bool = False,
    non_negative: bool = False,
) -> Decimal | None:
    """
    Parse a client-supplied number into Decimal.

    Accepts ints, floats and numeric strings ("12.50"). Rejects booleans,
    NaN / infinity and anything over MAX_AMOUNT. None or "" returns default.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        if isinstance(value, float):
            parsed = Decimal(repr(value))
        else:
            parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not parsed.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(parsed) > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    if positive and parsed <= 0:
        raise ValidationError(f"{field} must be a positive number")
    if non_negative and parsed < 0:
        raise ValidationError(f"{field} must be >= 0")
    return parsed


def parse_int(value: Any, field: str, *, default: int | None = None) -> int | None:
    """Strict integer parsing: rejects floats, decimals and scientific notation."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if 'e' in stripped.lower() or '.' in stripped:
            raise ValidationError(f"{field} must be a plain integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def parse_date(value: Any, field: str) -> date | None:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be a YYYY-MM-DD date")


def parse_pagination(args) -> tuple[int, int]:
    """limit / offset query params with the legacy defaults (100 / 0)."""
    limit = parse_int(args.get("limit"), "limit", default=DEFAULT_PAGE_LIMIT)
    offset = parse_int(args.get("offset"), "offset", default=0)
    limit = max(1, min(limit, MAX_PAGE_LIMIT))
    offset = max(offset, 0)
    return limit, offset


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_int(value, col.key)

    if isinstance(coltype, Numeric):
        return parse_decimal(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    if isinstance(coltype, JSON):
        if not isinstance(value, (list, dict)):
            raise ValidationError(f"{col.key} must be a JSON array or object")
        return value

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Unknown keys are ignored rather than rejected: the POS front end posts
    whole form objects that carry display-only fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys, None means "keep")
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            continue
        col = cols[k]

        if raw is None:
            if partial:
                continue
            if not col.nullable and col.default is None:
                raise ValidationError(f"{k} cannot be null")
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        # Optional text left blank is stored as NULL
        if isinstance(val, str) and val == "" and col.nullable:
            val = None

        patch[k] = val

    return patch


def enforce_non_negative(patch: dict, *fields: str) -> None:
    for field in fields:
        if field in patch and patch[field] is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")
