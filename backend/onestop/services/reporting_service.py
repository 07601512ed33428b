# Overview: Service-layer operations for reporting; sale-item stats, credit reports and kasa reports.

"""
Read-only reports. Every query is owner scoped; sales figures exclude voided
sales unless stated otherwise. Money leaves this module as "0.00" strings.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import and_, case, func

from ..errors import NotFoundError
from ..extensions import db
from ..models import BalanceSheet, CreditCustomer, CreditLedgerEntry, Sale, SaleItem
from ..models.credit import ENTRY_CREDIT, ENTRY_PAYMENT
from ..models.sales import SALE_VOIDED
from ..money import ZERO, as_decimal, quantize_money, to_money_str, to_qty_str
from ..time_utils import to_utc_z, today_utc
from ..validation import parse_date


def _day_range(query, column, start_date, end_date):
    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date")
    if start:
        query = query.filter(func.date(column) >= start.isoformat())
    if end:
        query = query.filter(func.date(column) <= end.isoformat())
    return query


def _sum(expr):
    return func.coalesce(func.sum(expr), 0)


def _margin(revenue: Decimal, profit: Decimal) -> str:
    if revenue > 0:
        return str(quantize_money(profit / revenue * 100))
    return "0.00"


# =============================================================================
# Sale items
# =============================================================================

def _line_with_sale(item: SaleItem, sale: Sale) -> dict:
    data = item.to_dict()
    data["transaction_date"] = to_utc_z(sale.created_at)
    data["payment_method"] = sale.payment_method
    data["status"] = sale.status
    return data


def list_sale_items(owner_id: int, *, sale_id=None, product_id=None, limit: int, offset: int) -> list[dict]:
    query = (
        db.session.query(SaleItem, Sale)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(Sale.owner_id == owner_id)
    )
    if sale_id is not None:
        query = query.filter(SaleItem.sale_id == sale_id)
    if product_id is not None:
        query = query.filter(SaleItem.product_id == product_id)

    rows = query.order_by(Sale.created_at.desc(), SaleItem.id.asc()).limit(limit).offset(offset).all()
    return [_line_with_sale(item, sale) for item, sale in rows]


def _product_rollup(owner_id: int, start_date, end_date):
    line_cost = SaleItem.cost * SaleItem.quantity
    query = (
        db.session.query(
            SaleItem.product_id,
            SaleItem.product_name,
            _sum(SaleItem.quantity).label("total_quantity"),
            _sum(SaleItem.subtotal).label("total_revenue"),
            _sum(line_cost).label("total_cost"),
            func.count(func.distinct(SaleItem.sale_id)).label("transaction_count"),
        )
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(Sale.owner_id == owner_id, Sale.status != SALE_VOIDED)
    )
    query = _day_range(query, Sale.created_at, start_date, end_date)
    return query.group_by(SaleItem.product_id, SaleItem.product_name)


def _rollup_row(row) -> dict:
    revenue = quantize_money(row.total_revenue)
    cost = quantize_money(row.total_cost)
    profit = revenue - cost
    return {
        "product_id": row.product_id,
        "product_name": row.product_name,
        "total_quantity": to_qty_str(row.total_quantity),
        "total_revenue": str(revenue),
        "total_cost": str(cost),
        "total_profit": str(profit),
        "profit_margin_percent": _margin(revenue, profit),
        "transaction_count": row.transaction_count,
    }


def top_selling(owner_id: int, *, start_date=None, end_date=None, limit: int = 10) -> list[dict]:
    rows = [_rollup_row(r) for r in _product_rollup(owner_id, start_date, end_date).all()]
    rows.sort(key=lambda r: Decimal(r["total_quantity"]), reverse=True)
    return rows[:limit]


def profit_by_product(owner_id: int, *, start_date=None, end_date=None) -> dict:
    rows = [_rollup_row(r) for r in _product_rollup(owner_id, start_date, end_date).all()]
    rows.sort(key=lambda r: Decimal(r["total_profit"]), reverse=True)

    revenue = sum((Decimal(r["total_revenue"]) for r in rows), ZERO)
    cost = sum((Decimal(r["total_cost"]) for r in rows), ZERO)
    return {
        "products": rows,
        "totals": {
            "total_revenue": to_money_str(revenue),
            "total_cost": to_money_str(cost),
            "total_profit": to_money_str(revenue - cost),
        },
    }


def items_for_sale(owner_id: int, sale_id: int) -> list[dict]:
    sale = db.session.query(Sale).filter_by(id=sale_id, owner_id=owner_id).first()
    if not sale:
        raise NotFoundError("Transaction not found")
    return [line.to_dict() for line in sale.line_items]


def items_for_product(owner_id: int, product_id: int, *, limit: int, offset: int) -> dict:
    rows = list_sale_items(owner_id, product_id=product_id, limit=limit, offset=offset)

    stats = (
        db.session.query(
            func.count(SaleItem.id),
            _sum(SaleItem.quantity),
            _sum(SaleItem.subtotal),
            _sum(SaleItem.cost * SaleItem.quantity),
        )
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(
            Sale.owner_id == owner_id,
            Sale.status != SALE_VOIDED,
            SaleItem.product_id == product_id,
        )
        .one()
    )
    count, quantity, revenue, cost = stats
    revenue, cost = quantize_money(revenue), quantize_money(cost)
    return {
        "data": rows,
        "stats": {
            "total_sales": count,
            "total_quantity_sold": to_qty_str(quantity),
            "total_revenue": str(revenue),
            "total_cost": str(cost),
            "total_profit": str(revenue - cost),
        },
        "limit": limit,
        "offset": offset,
    }


# =============================================================================
# Store credit
# =============================================================================

def _credit_totals(query):
    return query.with_entities(
        func.count(case((CreditLedgerEntry.type == ENTRY_CREDIT, 1))),
        func.count(case((CreditLedgerEntry.type == ENTRY_PAYMENT, 1))),
        _sum(case((CreditLedgerEntry.type == ENTRY_CREDIT, CreditLedgerEntry.amount), else_=0)),
        _sum(case((CreditLedgerEntry.type == ENTRY_PAYMENT, CreditLedgerEntry.amount), else_=0)),
    ).one()


def credit_daily(owner_id: int, report_date=None) -> dict:
    day = parse_date(report_date, "date") or today_utc()
    base = db.session.query(CreditLedgerEntry).filter(
        CreditLedgerEntry.owner_id == owner_id,
        func.date(CreditLedgerEntry.created_at) == day.isoformat(),
    )

    credit_count, payment_count, total_credit, total_payments = _credit_totals(base)
    total_credit, total_payments = quantize_money(total_credit), quantize_money(total_payments)

    entries = base.order_by(CreditLedgerEntry.created_at.desc(), CreditLedgerEntry.id.desc()).all()
    return {
        "date": day.isoformat(),
        "summary": {
            "credit_count": credit_count,
            "payment_count": payment_count,
            "total_credit": str(total_credit),
            "total_payments": str(total_payments),
            "net_credit": str(total_credit - total_payments),
        },
        "transactions": [e.to_dict(with_customer=True) for e in entries],
    }


def credit_by_customer(owner_id: int, *, house_no=None, name=None, start_date=None, end_date=None) -> dict:
    """Per-customer credit and payment totals; the date range narrows the entries, not the customers."""
    join_on = [CreditLedgerEntry.customer_id == CreditCustomer.id]
    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date")
    if start:
        join_on.append(func.date(CreditLedgerEntry.created_at) >= start.isoformat())
    if end:
        join_on.append(func.date(CreditLedgerEntry.created_at) <= end.isoformat())

    query = (
        db.session.query(
            CreditCustomer,
            _sum(case((CreditLedgerEntry.type == ENTRY_CREDIT, CreditLedgerEntry.amount), else_=0)),
            _sum(case((CreditLedgerEntry.type == ENTRY_PAYMENT, CreditLedgerEntry.amount), else_=0)),
            func.count(CreditLedgerEntry.id),
            func.max(CreditLedgerEntry.created_at),
        )
        .outerjoin(CreditLedgerEntry, and_(*join_on))
        .filter(CreditCustomer.owner_id == owner_id, CreditCustomer.is_active.is_(True))
    )
    if house_no:
        query = query.filter(CreditCustomer.house_no.ilike(f"%{house_no}%"))
    if name:
        query = query.filter(CreditCustomer.name.ilike(f"%{name}%"))

    rows = query.group_by(CreditCustomer.id).all()

    customers = []
    outstanding = given = received = ZERO
    for customer, total_credit, total_payments, count, last_at in rows:
        total_credit, total_payments = quantize_money(total_credit), quantize_money(total_payments)
        balance = quantize_money(customer.current_balance)
        outstanding += balance
        given += total_credit
        received += total_payments
        customers.append({
            "id": customer.id,
            "name": customer.name,
            "house_no": customer.house_no,
            "phone": customer.phone,
            "current_balance": str(balance),
            "total_credit": str(total_credit),
            "total_payments": str(total_payments),
            "transaction_count": count,
            "last_transaction_date": to_utc_z(last_at),
        })
    customers.sort(key=lambda c: Decimal(c["current_balance"]), reverse=True)

    return {
        "totals": {
            "total_customers": len(customers),
            "total_outstanding": to_money_str(outstanding),
            "total_credit_given": to_money_str(given),
            "total_payments_received": to_money_str(received),
        },
        "customers": customers,
    }


# =============================================================================
# Kasa
# =============================================================================

def kasa_daily_profit(owner_id: int, *, start_date=None, end_date=None) -> dict:
    query = db.session.query(BalanceSheet).filter(BalanceSheet.owner_id == owner_id)
    start = parse_date(start_date, "start_date")
    end = parse_date(end_date, "end_date")
    if start:
        query = query.filter(BalanceSheet.date >= start)
    if end:
        query = query.filter(BalanceSheet.date <= end)
    sheets = query.order_by(BalanceSheet.date.desc()).all()

    fields = ("total_sales", "total_expenses", "total_card_sales", "total_cash_sales")
    totals = {f: ZERO for f in fields}
    gross_total = ZERO
    daily = []
    for sheet in sheets:
        gross = as_decimal(sheet.total_sales) - as_decimal(sheet.total_expenses)
        gross_total += gross
        for f in fields:
            totals[f] += as_decimal(getattr(sheet, f))
        daily.append({
            "date": sheet.date.isoformat(),
            "total_sales": to_money_str(sheet.total_sales),
            "total_expenses": to_money_str(sheet.total_expenses),
            "total_card_sales": to_money_str(sheet.total_card_sales),
            "total_cash_sales": to_money_str(sheet.total_cash_sales),
            "gross_profit": to_money_str(gross),
            "closing_balance": to_money_str(sheet.closing_balance),
        })

    summary = {f: to_money_str(v) for f, v in totals.items()}
    summary["total_gross_profit"] = to_money_str(gross_total)
    summary["days_count"] = len(sheets)
    return {"summary": summary, "daily_data": daily}


def kasa_summary(owner_id: int, report_date=None) -> dict:
    """Balance sheet, sales figures and store credit figures for one day."""
    day = parse_date(report_date, "date") or today_utc()
    day_iso = day.isoformat()

    sheet = db.session.query(BalanceSheet).filter_by(owner_id=owner_id, date=day).first()

    day_sales = db.session.query(Sale).filter(
        Sale.owner_id == owner_id,
        func.date(Sale.created_at) == day_iso,
    )

    def _by_method(method: str):
        return _sum(case((Sale.payment_method == method, Sale.total), else_=0))

    count, total, cash, card, credit = day_sales.filter(Sale.status != SALE_VOIDED).with_entities(
        func.count(Sale.id),
        _sum(Sale.total),
        _by_method("cash"),
        _by_method("card"),
        _by_method("credit"),
    ).one()
    voided = day_sales.filter(Sale.status == SALE_VOIDED).count()

    _, _, credit_given, payments_received = _credit_totals(
        db.session.query(CreditLedgerEntry).filter(
            CreditLedgerEntry.owner_id == owner_id,
            func.date(CreditLedgerEntry.created_at) == day_iso,
        )
    )
    credit_given, payments_received = quantize_money(credit_given), quantize_money(payments_received)

    return {
        "date": day_iso,
        "balance_sheet": sheet.to_dict() if sheet else None,
        "transactions": {
            "count": count,
            "total_sales": to_money_str(total),
            "cash_sales": to_money_str(cash),
            "card_sales": to_money_str(card),
            "credit_sales": to_money_str(credit),
            "voided_count": voided,
        },
        "verisiye": {
            "credit_given": str(credit_given),
            "payments_received": str(payments_received),
            "net": str(credit_given - payments_received),
        },
    }
