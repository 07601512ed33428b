from __future__ import annotations

from ..extensions import db
from ..money import to_money_str, to_qty_str
from ..time_utils import to_utc_z

MONEY = db.Numeric(12, 2)
QUANTITY = db.Numeric(12, 3)


class Product(db.Model):
    """
    Product master data.

    MULTI-TENANT: Products are scoped to their owner via owner_id.

    STOCK: stock is a decimal so weighed goods (2.5 kg) sell in fractional
    units. Only two kinds of writer touch it: sale posting / voiding (under a
    row lock, inside the sale's transaction) and explicit stock adjustment.
    Stock may go negative; oversell is a business concern, not a constraint.

    BARCODE: unique per owner when present; lookups are owner scoped.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("owner_id", "barcode", name="uq_products_owner_barcode"),
        db.Index("ix_products_owner_name", "owner_id", "name"),
        db.Index("ix_products_owner_active", "owner_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    barcode = db.Column(db.String(100), nullable=True, index=True)
    price = db.Column(MONEY, nullable=False, default=0)
    cost = db.Column(MONEY, nullable=False, default=0)
    stock = db.Column(QUANTITY, nullable=False, default=0)
    category = db.Column(db.String(100), nullable=True, index=True)
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(500), nullable=True)
    unit = db.Column(db.String(20), nullable=False, default="pcs")

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} owner_id={self.owner_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "barcode": self.barcode,
            "price": to_money_str(self.price),
            "cost": to_money_str(self.cost),
            "stock": to_qty_str(self.stock),
            "category": self.category,
            "description": self.description,
            "image_url": self.image_url,
            "unit": self.unit,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
