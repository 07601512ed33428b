from __future__ import annotations

from ..extensions import db
from ..money import to_money_str
from ..time_utils import to_utc_z
from .inventory import MONEY

ENTRY_CREDIT = "credit"
ENTRY_PAYMENT = "payment"
ENTRY_TYPES = (ENTRY_CREDIT, ENTRY_PAYMENT)


class CreditCustomer(db.Model):
    """
    Store-credit ("verisiye") customer.

    current_balance is a cached running total (positive = customer owes).
    Its only writers are credit_service.post_credit_transaction and
    credit_service.reverse_credit_transaction, both under a row lock; the
    reconciliation check compares it against the summed ledger.

    credit_limit is advisory: postings beyond it are logged, not refused.
    """
    __tablename__ = "credit_customers"
    __table_args__ = (
        db.Index("ix_credit_customers_owner_active", "owner_id", "is_active"),
        db.Index("ix_credit_customers_house_no", "house_no"),
        db.Index("ix_credit_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    house_no = db.Column(db.String(50), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    address = db.Column(db.Text, nullable=True)
    email = db.Column(db.String(255), nullable=True)

    credit_limit = db.Column(MONEY, nullable=False, default=0)
    current_balance = db.Column(MONEY, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "house_no": self.house_no,
            "phone": self.phone,
            "address": self.address,
            "email": self.email,
            "credit_limit": to_money_str(self.credit_limit),
            "current_balance": to_money_str(self.current_balance),
            "notes": self.notes,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CreditLedgerEntry(db.Model):
    """
    One credit or payment posted against a credit customer.

    balance_after is the customer's balance immediately after this entry was
    posted and is never rewritten. Reversal removes the entry and applies the
    inverse delta to the customer's cached balance.
    """
    __tablename__ = "credit_ledger_entries"
    __table_args__ = (
        db.CheckConstraint("type IN ('credit', 'payment')", name="ck_credit_ledger_entries_type"),
        db.CheckConstraint("amount > 0", name="ck_credit_ledger_entries_amount_positive"),
        db.Index("ix_credit_ledger_entries_owner_created", "owner_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    customer_id = db.Column(
        db.Integer,
        db.ForeignKey("credit_customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    type = db.Column(db.String(20), nullable=False)
    amount = db.Column(MONEY, nullable=False)
    description = db.Column(db.Text, nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)
    balance_after = db.Column(MONEY, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    customer = db.relationship("CreditCustomer", backref=db.backref("ledger_entries", lazy=True, passive_deletes=True))

    def to_dict(self, with_customer: bool = False) -> dict:
        data = {
            "id": self.id,
            "owner_id": self.owner_id,
            "customer_id": self.customer_id,
            "type": self.type,
            "amount": to_money_str(self.amount),
            "description": self.description,
            "reference_id": self.reference_id,
            "balance_after": to_money_str(self.balance_after),
            "created_at": to_utc_z(self.created_at),
        }
        if with_customer and self.customer is not None:
            data["customer_name"] = self.customer.name
            data["customer_house_no"] = self.customer.house_no
            data["customer_phone"] = self.customer.phone
        return data
