from __future__ import annotations

from ..extensions import db
from ..money import to_money_str, to_qty_str
from ..time_utils import to_utc_z
from .inventory import MONEY, QUANTITY

SALE_COMPLETED = "completed"
SALE_VOIDED = "voided"

# Only legal status transitions; voided is terminal.
SALE_TRANSITIONS = {
    SALE_COMPLETED: {SALE_VOIDED},
    SALE_VOIDED: set(),
}


class Sale(db.Model):
    """
    Posted sale (a "transaction" in the POS front end).

    `items` is the denormalized line summary the cashier screen sent, kept for
    display. The authoritative per-line record, including the cost snapshot,
    lives in SaleItem.

    LIFECYCLE: completed -> voided. Sales are never hard-deleted; voiding
    restores stock and keeps the row for history.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.CheckConstraint("status IN ('completed', 'voided')", name="ck_sales_status"),
        db.Index("ix_sales_owner_created", "owner_id", "created_at"),
        db.Index("ix_sales_owner_status", "owner_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    items = db.Column(db.JSON, nullable=False, default=list)

    subtotal = db.Column(MONEY, nullable=False, default=0)
    discount = db.Column(MONEY, nullable=False, default=0)
    tax = db.Column(MONEY, nullable=False, default=0)
    total = db.Column(MONEY, nullable=False, default=0)

    payment_method = db.Column(db.String(50), nullable=False, default="cash")
    amount_paid = db.Column(MONEY, nullable=False, default=0)
    change_amount = db.Column(MONEY, nullable=False, default=0)

    status = db.Column(db.String(20), nullable=False, default=SALE_COMPLETED, index=True)
    notes = db.Column(db.Text, nullable=True)
    cashier_id = db.Column(db.Integer, nullable=True)

    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    line_items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def can_transition_to(self, status: str) -> bool:
        return status in SALE_TRANSITIONS.get(self.status, set())

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "owner_id": self.owner_id,
            "items": self.items or [],
            "subtotal": to_money_str(self.subtotal),
            "discount": to_money_str(self.discount),
            "tax": to_money_str(self.tax),
            "total": to_money_str(self.total),
            "payment_method": self.payment_method,
            "amount_paid": to_money_str(self.amount_paid),
            "change_amount": to_money_str(self.change_amount),
            "status": self.status,
            "notes": self.notes,
            "cashier_id": self.cashier_id,
            "voided_at": to_utc_z(self.voided_at),
            "created_at": to_utc_z(self.created_at),
        }
        if include_lines:
            data["line_items"] = [line.to_dict() for line in self.line_items]
        return data


class SaleItem(db.Model):
    """
    One product sold within one sale.

    `cost` is the product's cost captured when the sale was posted. It is a
    point-in-time snapshot and never follows later product cost edits.
    `product_id` is optional: free-text items and products that no longer
    resolve are recorded with cost 0.
    """
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(QUANTITY, nullable=False)
    unit_price = db.Column(MONEY, nullable=False, default=0)
    cost = db.Column(MONEY, nullable=False, default=0)
    subtotal = db.Column(MONEY, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": to_qty_str(self.quantity),
            "unit_price": to_money_str(self.unit_price),
            "cost": to_money_str(self.cost),
            "subtotal": to_money_str(self.subtotal),
            "created_at": to_utc_z(self.created_at),
        }
