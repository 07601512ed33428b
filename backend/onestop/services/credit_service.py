# Overview: Service-layer operations for store credit ("verisiye"); customers, ledger postings, reversals.

"""
Store credit service.

BALANCE INVARIANT: for every customer,
    current_balance == sum(credit amounts) - sum(payment amounts)
over that customer's ledger entries. Balances start at 0, every posting
adds one entry and applies its delta, and every reversal deletes one entry
and applies the inverse delta, all inside one atomic unit holding the
customer row lock. reconcile_balances() checks the invariant.
"""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import case, func, or_

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import CreditCustomer, CreditLedgerEntry
from ..models.credit import ENTRY_CREDIT, ENTRY_PAYMENT, ENTRY_TYPES
from ..money import ZERO, as_decimal, quantize_money, to_money_str
from ..validation import (
    ModelValidationPolicy,
    enforce_non_negative,
    parse_date,
    parse_decimal,
    parse_int,
    validate_payload,
)
from .concurrency import begin_write, lock_for_update, run_with_retry


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "house_no", "phone", "address", "email", "credit_limit", "notes", "is_active"},
    required_on_create={"name"},
)


# =============================================================================
# Ledger balance calculator
# =============================================================================

def compute_balance(prior: Decimal, entry_type: str, amount: Decimal) -> Decimal:
    """
    New running balance after one ledger entry.

    credit raises what the customer owes, payment lowers it. No clamping:
    a balance may go negative (overpaid) or past the advisory credit limit.
    """
    if entry_type not in ENTRY_TYPES:
        raise ValidationError('Type must be either "credit" or "payment"')
    amount = as_decimal(amount)
    if amount <= 0:
        raise ValidationError("Amount must be a positive number")
    prior = as_decimal(prior)
    if entry_type == ENTRY_CREDIT:
        return prior + amount
    return prior - amount


def reversal_delta(entry_type: str, amount: Decimal) -> Decimal:
    """Delta that undoes an entry: compute_balance(b, t, a) + reversal_delta(t, a) == b."""
    if entry_type not in ENTRY_TYPES:
        raise ValidationError('Type must be either "credit" or "payment"')
    amount = as_decimal(amount)
    if entry_type == ENTRY_CREDIT:
        return -amount
    return amount


# =============================================================================
# Ledger postings
# =============================================================================

def validate_credit_payload(payload: dict) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    customer_id = parse_int(payload.get("customer_id"), "customer_id")
    if customer_id is None:
        raise ValidationError("Customer ID is required")

    entry_type = payload.get("type")
    if entry_type not in ENTRY_TYPES:
        raise ValidationError('Type must be either "credit" or "payment"')

    amount = parse_decimal(payload.get("amount"), "amount")
    if amount is None or amount <= 0:
        raise ValidationError("Amount must be a positive number")

    description = payload.get("description")
    if description is not None:
        description = str(description).strip() or None

    return {
        "customer_id": customer_id,
        "type": entry_type,
        "amount": quantize_money(amount),
        "description": description,
        "reference_id": parse_int(payload.get("reference_id"), "reference_id"),
    }


def post_credit_transaction(owner_id: int, payload: dict) -> CreditLedgerEntry:
    """
    Post one credit or payment against a customer's running balance.

    Validation happens before any transaction opens. The customer row is read
    under lock, so two concurrent postings serialize and neither can apply
    its delta to a stale balance.
    """
    data = validate_credit_payload(payload)

    def _op():
        begin_write()
        customer = lock_for_update(
            db.session.query(CreditCustomer).filter_by(
                id=data["customer_id"], owner_id=owner_id, is_active=True
            )
        ).first()
        if not customer:
            raise NotFoundError("Customer not found")

        new_balance = quantize_money(
            compute_balance(customer.current_balance, data["type"], data["amount"])
        )

        entry = CreditLedgerEntry(
            owner_id=owner_id,
            customer_id=customer.id,
            type=data["type"],
            amount=data["amount"],
            description=data["description"],
            reference_id=data["reference_id"],
            balance_after=new_balance,
        )
        db.session.add(entry)
        customer.current_balance = new_balance
        db.session.commit()

        limit = as_decimal(customer.credit_limit)
        if data["type"] == ENTRY_CREDIT and limit > 0 and new_balance > limit:
            current_app.logger.warning(
                "Credit customer %s balance %s exceeds credit limit %s",
                customer.id, new_balance, limit,
            )
        current_app.logger.info(
            "Posted %s of %s for credit customer %s (owner %s), balance now %s",
            data["type"], data["amount"], customer.id, owner_id, new_balance,
        )
        return entry

    return run_with_retry(_op)


def reverse_credit_transaction(owner_id: int, entry_id: int) -> None:
    """
    Delete a ledger entry and apply its inverse delta to the customer.

    The balance change is written as an in-database increment
    (current_balance = current_balance + delta) rather than recomputed from
    the remaining ledger.
    """
    def _op():
        begin_write()
        entry = lock_for_update(
            db.session.query(CreditLedgerEntry).filter_by(id=entry_id, owner_id=owner_id)
        ).first()
        if not entry:
            raise NotFoundError("Transaction not found")

        customer = lock_for_update(
            db.session.query(CreditCustomer).filter_by(id=entry.customer_id, owner_id=owner_id)
        ).first()
        entry_type, amount, customer_id = entry.type, entry.amount, entry.customer_id
        delta = reversal_delta(entry_type, amount)
        if customer is not None:
            customer.current_balance = CreditCustomer.current_balance + delta

        db.session.delete(entry)
        db.session.commit()

        current_app.logger.info(
            "Reversed credit entry %s (%s %s) for customer %s (owner %s)",
            entry_id, entry_type, to_money_str(amount), customer_id, owner_id,
        )

    run_with_retry(_op)


# =============================================================================
# Ledger reads
# =============================================================================

def list_entries(owner_id: int, *, filters: dict, limit: int, offset: int) -> dict:
    """Paginated ledger, newest first; filters: customer_id, house_no, name, start_date, end_date."""
    query = (
        db.session.query(CreditLedgerEntry)
        .join(CreditCustomer, CreditLedgerEntry.customer_id == CreditCustomer.id)
        .filter(CreditLedgerEntry.owner_id == owner_id)
    )

    customer_id = parse_int(filters.get("customer_id"), "customer_id")
    if customer_id is not None:
        query = query.filter(CreditLedgerEntry.customer_id == customer_id)
    if filters.get("house_no"):
        query = query.filter(CreditCustomer.house_no == filters["house_no"])
    if filters.get("name"):
        query = query.filter(CreditCustomer.name.ilike(f"%{filters['name']}%"))

    start = parse_date(filters.get("start_date"), "start_date")
    end = parse_date(filters.get("end_date"), "end_date")
    if start:
        query = query.filter(func.date(CreditLedgerEntry.created_at) >= start.isoformat())
    if end:
        query = query.filter(func.date(CreditLedgerEntry.created_at) <= end.isoformat())

    total = query.count()
    rows = (
        query.order_by(CreditLedgerEntry.created_at.desc(), CreditLedgerEntry.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
    return {
        "data": [e.to_dict(with_customer=True) for e in rows],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


def get_entry(owner_id: int, entry_id: int) -> CreditLedgerEntry:
    entry = db.session.query(CreditLedgerEntry).filter_by(id=entry_id, owner_id=owner_id).first()
    if not entry:
        raise NotFoundError("Transaction not found")
    return entry


def recent_entries(owner_id: int, customer_id: int, limit: int = 5) -> list[CreditLedgerEntry]:
    return (
        db.session.query(CreditLedgerEntry)
        .filter_by(owner_id=owner_id, customer_id=customer_id)
        .order_by(CreditLedgerEntry.created_at.desc(), CreditLedgerEntry.id.desc())
        .limit(limit)
        .all()
    )


# =============================================================================
# Customers
# =============================================================================

def list_customers(owner_id: int, search: str | None = None) -> list[CreditCustomer]:
    query = db.session.query(CreditCustomer).filter_by(owner_id=owner_id, is_active=True)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            CreditCustomer.name.ilike(like),
            CreditCustomer.house_no.ilike(like),
            CreditCustomer.phone.ilike(like),
        ))
    return query.order_by(CreditCustomer.name.asc(), CreditCustomer.id.asc()).all()


def get_customer(owner_id: int, customer_id: int) -> CreditCustomer:
    customer = db.session.query(CreditCustomer).filter_by(id=customer_id, owner_id=owner_id).first()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def create_customer(owner_id: int, payload: dict) -> CreditCustomer:
    patch = validate_payload(model=CreditCustomer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    enforce_non_negative(patch, "credit_limit")
    patch.pop("is_active", None)

    customer = CreditCustomer(owner_id=owner_id, current_balance=ZERO, **patch)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(owner_id: int, customer_id: int, payload: dict) -> CreditCustomer:
    """Partial update; current_balance is not client-writable."""
    patch = validate_payload(model=CreditCustomer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    enforce_non_negative(patch, "credit_limit")

    def _op():
        customer = get_customer(owner_id, customer_id)
        for key, value in patch.items():
            setattr(customer, key, value)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def deactivate_customer(owner_id: int, customer_id: int) -> CreditCustomer:
    def _op():
        customer = get_customer(owner_id, customer_id)
        customer.is_active = False
        db.session.commit()
        return customer

    return run_with_retry(_op)


# =============================================================================
# Reconciliation
# =============================================================================

def ledger_balances(owner_id: int | None = None) -> dict[int, Decimal]:
    """customer_id -> sum(credit) - sum(payment), straight from the ledger."""
    signed = case(
        (CreditLedgerEntry.type == ENTRY_PAYMENT, -CreditLedgerEntry.amount),
        else_=CreditLedgerEntry.amount,
    )
    query = db.session.query(
        CreditLedgerEntry.customer_id,
        func.coalesce(func.sum(signed), 0),
    ).group_by(CreditLedgerEntry.customer_id)
    if owner_id is not None:
        query = query.filter(CreditLedgerEntry.owner_id == owner_id)
    return {customer_id: quantize_money(total) for customer_id, total in query.all()}


def _drift_rows(customers: list[CreditCustomer], sums: dict[int, Decimal]) -> list[dict]:
    drifted = []
    for customer in customers:
        cached = quantize_money(customer.current_balance)
        expected = sums.get(customer.id, quantize_money(ZERO))
        if cached != expected:
            drifted.append({
                "customer_id": customer.id,
                "owner_id": customer.owner_id,
                "name": customer.name,
                "cached_balance": str(cached),
                "ledger_balance": str(expected),
                "drift": str(cached - expected),
            })
    return drifted


def reconcile_balances(owner_id: int | None = None, fix: bool = False) -> dict:
    """
    Compare every customer's cached balance with the ledger sum.

    With fix=True the drifted balances are rewritten from the ledger inside
    one write transaction, so no posting can interleave with the repair.
    """
    def _customers(locked: bool) -> list[CreditCustomer]:
        query = db.session.query(CreditCustomer)
        if owner_id is not None:
            query = query.filter(CreditCustomer.owner_id == owner_id)
        query = query.order_by(CreditCustomer.id.asc())
        if locked:
            query = lock_for_update(query)
        return query.all()

    if fix:
        def _op():
            begin_write()
            customers = _customers(locked=True)
            found = _drift_rows(customers, ledger_balances(owner_id))
            by_id = {c.id: c for c in customers}
            for row in found:
                by_id[row["customer_id"]].current_balance = Decimal(row["ledger_balance"])
            db.session.commit()
            return found, len(customers)

        drifted, checked = run_with_retry(_op)
    else:
        customers = _customers(locked=False)
        drifted = _drift_rows(customers, ledger_balances(owner_id))
        checked = len(customers)

    for row in drifted:
        current_app.logger.warning(
            "Credit balance drift for customer %s: cached %s, ledger %s%s",
            row["customer_id"], row["cached_balance"], row["ledger_balance"],
            " (fixed)" if fix else "",
        )

    return {
        "checked": checked,
        "drifted": drifted,
        "fixed": bool(fix and drifted),
    }
