# Overview: Service-layer operations for kasa; expense products and the daily balance sheet upsert.

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import BalanceSheet, ExpenseProduct
from ..models.kasa import EXPENSE_CATEGORIES
from ..validation import ModelValidationPolicy, parse_date, validate_payload
from .concurrency import begin_write, lock_for_update, run_with_retry

EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "description", "is_active"},
    required_on_create={"name", "category"},
)

SHEET_POLICY = ModelValidationPolicy(
    writable_fields={
        "items", "opening_balance", "total_sales", "total_expenses",
        "total_card_sales", "total_cash_sales", "closing_balance", "notes",
    },
)

CATEGORY_ERROR = "Category must be one of: kasa, kart, devir"


# =============================================================================
# Expense products
# =============================================================================

def list_expense_products(owner_id: int, category: str | None = None) -> list[ExpenseProduct]:
    query = db.session.query(ExpenseProduct).filter_by(owner_id=owner_id, is_active=True)
    if category in EXPENSE_CATEGORIES:
        query = query.filter(ExpenseProduct.category == category)
    return query.order_by(ExpenseProduct.category.asc(), ExpenseProduct.name.asc()).all()


def get_expense_product(owner_id: int, product_id: int) -> ExpenseProduct:
    row = db.session.query(ExpenseProduct).filter_by(id=product_id, owner_id=owner_id).first()
    if not row:
        raise NotFoundError("Expense product not found")
    return row


def create_expense_product(owner_id: int, payload: dict) -> ExpenseProduct:
    if not isinstance(payload, dict) or not payload.get("name"):
        raise ValidationError("Expense product name is required")
    if payload.get("category") not in EXPENSE_CATEGORIES:
        raise ValidationError(CATEGORY_ERROR)
    patch = validate_payload(model=ExpenseProduct, payload=payload, policy=EXPENSE_POLICY, partial=False)
    patch.pop("is_active", None)

    row = ExpenseProduct(owner_id=owner_id, **patch)
    db.session.add(row)
    db.session.commit()
    return row


def update_expense_product(owner_id: int, product_id: int, payload: dict) -> ExpenseProduct:
    if isinstance(payload, dict) and payload.get("category") is not None \
            and payload["category"] not in EXPENSE_CATEGORIES:
        raise ValidationError(CATEGORY_ERROR)
    patch = validate_payload(model=ExpenseProduct, payload=payload, policy=EXPENSE_POLICY, partial=True)

    row = get_expense_product(owner_id, product_id)
    for key, value in patch.items():
        setattr(row, key, value)
    db.session.commit()
    return row


def delete_expense_product(owner_id: int, product_id: int) -> ExpenseProduct:
    row = get_expense_product(owner_id, product_id)
    row.is_active = False
    db.session.commit()
    return row


# =============================================================================
# Balance sheets
# =============================================================================

def list_balance_sheets(owner_id: int, *, start_date=None, end_date=None, limit: int, offset: int) -> dict:
    query = db.session.query(BalanceSheet).filter(BalanceSheet.owner_id == owner_id)
    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date")
    if start:
        query = query.filter(BalanceSheet.date >= start)
    if end:
        query = query.filter(BalanceSheet.date <= end)

    total = query.count()
    rows = query.order_by(BalanceSheet.date.desc()).limit(limit).offset(offset).all()
    return {
        "data": [s.to_dict() for s in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


def _sheet_date(value) -> date:
    sheet_date = parse_date(value, "date")
    if sheet_date is None:
        raise ValidationError("Date is required")
    return sheet_date


def get_balance_sheet(owner_id: int, sheet_date) -> BalanceSheet:
    sheet = db.session.query(BalanceSheet).filter_by(
        owner_id=owner_id, date=_sheet_date(sheet_date)
    ).first()
    if not sheet:
        raise NotFoundError("Balance sheet not found for this date")
    return sheet


def delete_balance_sheet(owner_id: int, sheet_date) -> None:
    sheet = get_balance_sheet(owner_id, sheet_date)
    db.session.delete(sheet)
    db.session.commit()


def upsert_balance_sheet(owner_id: int, payload: dict) -> tuple[BalanceSheet, bool]:
    """
    Insert or update the sheet for (owner, date).

    The existence check and the write share one atomic unit. If a concurrent
    request inserts the same date first, the unique key rejects our insert
    and the retry finds the row and updates it instead.

    Returns (sheet, created).
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    sheet_date = _sheet_date(payload.get("date"))
    patch = validate_payload(model=BalanceSheet, payload=payload, policy=SHEET_POLICY, partial=True)

    def _op():
        begin_write()
        sheet = lock_for_update(
            db.session.query(BalanceSheet).filter_by(owner_id=owner_id, date=sheet_date)
        ).first()

        created = sheet is None
        if created:
            sheet = BalanceSheet(owner_id=owner_id, date=sheet_date, items=[])
            db.session.add(sheet)

        for key, value in patch.items():
            setattr(sheet, key, value)

        db.session.commit()
        return sheet, created

    sheet, created = run_with_retry(_op, retry_on=(IntegrityError,))
    current_app.logger.info(
        "%s balance sheet %s for owner %s",
        "Created" if created else "Updated", sheet_date.isoformat(), owner_id,
    )
    return sheet, created
