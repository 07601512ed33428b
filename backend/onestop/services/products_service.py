# Overview: Service-layer operations for products; catalog CRUD, barcode lookup and stock adjustment.

"""
Products Service with Multi-Tenant Support

MULTI-TENANT: every query is filtered by owner_id; a product of another
owner is reported as not found.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from ..money import as_decimal, quantize_qty, to_qty_str
from ..validation import ModelValidationPolicy, enforce_non_negative, parse_decimal, validate_payload
from .concurrency import begin_write, lock_for_update, run_with_retry

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "barcode", "price", "cost", "stock", "category",
        "description", "image_url", "unit", "is_active",
    },
    required_on_create={"name"},
)


def list_products(owner_id: int, search: str | None = None) -> list[Product]:
    """Active products ordered by name; search matches name, barcode or category."""
    query = db.session.query(Product).filter_by(owner_id=owner_id, is_active=True)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Product.name.ilike(like),
            Product.barcode.ilike(like),
            Product.category.ilike(like),
        ))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(owner_id: int, product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, owner_id=owner_id).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def get_product_by_barcode(owner_id: int, barcode: str) -> Product:
    product = db.session.query(Product).filter_by(
        owner_id=owner_id, barcode=barcode, is_active=True
    ).first()
    if not product:
        raise NotFoundError("Product not found")
    return product


def _barcode_taken(owner_id: int, barcode: str | None, exclude_id: int | None = None) -> bool:
    if not barcode:
        return False
    query = db.session.query(Product.id).filter_by(owner_id=owner_id, barcode=barcode)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    return query.first() is not None


def create_product(owner_id: int, payload: dict) -> Product:
    """
    Create a product. Raises ConflictError if the barcode is already used
    by another of this owner's products.
    """
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_non_negative(patch, "price", "cost")

    if _barcode_taken(owner_id, patch.get("barcode")):
        raise ConflictError("Barcode already exists")

    product = Product(owner_id=owner_id, **patch)
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Barcode already exists")
    return product


def update_product(owner_id: int, product_id: int, payload: dict) -> Product:
    """Partial update; omitted or null fields keep their stored value."""
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_non_negative(patch, "price", "cost")

    def _op():
        product = get_product(owner_id, product_id)
        if "barcode" in patch and _barcode_taken(owner_id, patch["barcode"], exclude_id=product.id):
            raise ConflictError("Barcode already exists")
        for key, value in patch.items():
            setattr(product, key, value)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("Barcode already exists")
        return product

    return run_with_retry(_op)


def delete_product(owner_id: int, product_id: int) -> Product:
    """Soft delete: sale history keeps pointing at the row."""
    def _op():
        product = get_product(owner_id, product_id)
        product.is_active = False
        db.session.commit()
        return product

    return run_with_retry(_op)


def adjust_stock(owner_id: int, product_id: int, quantity) -> Product:
    """
    Apply a signed stock delta (receiving, shrinkage, manual count fix)
    under the product row lock.
    """
    delta = parse_decimal(quantity, "quantity")
    if delta is None:
        raise ValidationError("quantity is required")
    delta = quantize_qty(delta)

    def _op():
        begin_write()
        product = lock_for_update(
            db.session.query(Product).filter_by(id=product_id, owner_id=owner_id)
        ).first()
        if not product:
            raise NotFoundError("Product not found")
        product.stock = quantize_qty(as_decimal(product.stock) + delta)
        db.session.commit()
        current_app.logger.info(
            "Adjusted stock of product %s by %s (owner %s), now %s",
            product.id, to_qty_str(delta), owner_id, to_qty_str(product.stock),
        )
        return product

    return run_with_retry(_op)
