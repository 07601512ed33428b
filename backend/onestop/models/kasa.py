from __future__ import annotations

from ..extensions import db
from ..money import to_money_str
from ..time_utils import to_utc_z
from .inventory import MONEY

# kasa = cash drawer, kart = card terminal, devir = carried over
EXPENSE_CATEGORIES = ("kasa", "kart", "devir")


class ExpenseProduct(db.Model):
    """Predefined expense line the cashier picks when filling the daily sheet."""
    __tablename__ = "expense_products"
    __table_args__ = (
        db.CheckConstraint("category IN ('kasa', 'kart', 'devir')", name="ck_expense_products_category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(50), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class BalanceSheet(db.Model):
    """
    Daily cash-register ("kasa") balance sheet.

    One row per owner per calendar day; writes go through the upsert in
    kasa_service. Figures are what the cashier entered, not derived.
    """
    __tablename__ = "balance_sheets"
    __table_args__ = (
        db.UniqueConstraint("owner_id", "date", name="uq_balance_sheets_owner_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)

    items = db.Column(db.JSON, nullable=False, default=list)

    opening_balance = db.Column(MONEY, nullable=False, default=0)
    total_sales = db.Column(MONEY, nullable=False, default=0)
    total_expenses = db.Column(MONEY, nullable=False, default=0)
    total_card_sales = db.Column(MONEY, nullable=False, default=0)
    total_cash_sales = db.Column(MONEY, nullable=False, default=0)
    closing_balance = db.Column(MONEY, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "date": self.date.isoformat() if self.date else None,
            "items": self.items or [],
            "opening_balance": to_money_str(self.opening_balance),
            "total_sales": to_money_str(self.total_sales),
            "total_expenses": to_money_str(self.total_expenses),
            "total_card_sales": to_money_str(self.total_card_sales),
            "total_cash_sales": to_money_str(self.total_cash_sales),
            "closing_balance": to_money_str(self.closing_balance),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
