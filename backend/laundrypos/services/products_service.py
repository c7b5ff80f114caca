# backend/laundrypos/services/products_service.py
"""
Product catalog service.

Products carry three service rates and a unique barcode. Stock is optional
(NULL = not tracked) and is only ever changed with atomic UPDATE statements
so checkout and returns cannot lose each other's adjustments.
"""
from __future__ import annotations

import uuid

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..mapping import normalize_payload
from ..models import OrderItem, Product, ReturnItem
from ..validation import ModelValidationPolicy, enforce_rules_product, validate_payload

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "category", "barcode", "description",
        "iron_rate", "wash_and_iron_rate", "dry_clean_rate", "stock",
    },
    required_on_create={
        "name", "category", "barcode",
        "iron_rate", "wash_and_iron_rate", "dry_clean_rate",
    },
)


def _clean(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(
        model=Product,
        payload=normalize_payload("product", payload),
        policy=PRODUCT_POLICY,
        partial=partial,
    )
    enforce_rules_product(patch)
    return patch


def _ensure_barcode_free(barcode: str, exclude_id: str | None = None) -> None:
    query = db.session.query(Product.id).filter(Product.barcode == barcode)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"Barcode {barcode} is already assigned to another product",
                            kind="duplicate_barcode")


def list_products(q: str | None = None) -> list[Product]:
    query = db.session.query(Product)
    if q and q.strip():
        term = f"%{q.strip().lower()}%"
        query = query.filter(or_(
            db.func.lower(Product.name).like(term),
            db.func.lower(Product.category).like(term),
            db.func.lower(Product.barcode).like(term),
            Product.id == q.strip(),
        ))
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def get_product(product_id: str) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def find_by_barcode(barcode: str) -> Product | None:
    if not barcode:
        return None
    return db.session.query(Product).filter_by(barcode=str(barcode).strip()).first()


def get_by_barcode(barcode: str) -> Product:
    product = find_by_barcode(barcode)
    if product is None:
        raise NotFoundError(f"No product with barcode {barcode}")
    return product


def create_product(payload: dict) -> Product:
    """
    Raises:
        ValidationError: missing name/category/barcode or a bad rate
        ConflictError: barcode already in use
    """
    patch = _clean(payload, partial=False)
    _ensure_barcode_free(patch["barcode"])

    product_id = str(payload.get("id") or "").strip() or uuid.uuid4().hex
    if db.session.get(Product, product_id) is not None:
        raise ConflictError(f"Product {product_id} already exists")

    product = Product(id=product_id, **patch)
    db.session.add(product)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"Barcode {patch['barcode']} is already assigned to another product",
                            kind="duplicate_barcode")
    return product


def update_product(product_id: str, payload: dict) -> Product:
    product = get_product(product_id)
    patch = _clean(payload, partial=True)
    if "barcode" in patch:
        _ensure_barcode_free(patch["barcode"], exclude_id=product_id)

    for key, value in patch.items():
        setattr(product, key, value)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Barcode is already assigned to another product", kind="duplicate_barcode")
    return product


def delete_product(product_id: str) -> None:
    """Products referenced by orders or returns stay, so history keeps resolving."""
    product = get_product(product_id)

    if db.session.query(OrderItem.id).filter_by(product_id=product_id).first():
        raise ConflictError(
            "This product is referenced in existing orders and cannot be deleted.",
            kind="product_in_use",
        )
    if db.session.query(ReturnItem.id).filter_by(product_id=product_id).first():
        raise ConflictError(
            "This product is referenced in existing returns and cannot be deleted.",
            kind="product_in_use",
        )

    db.session.delete(product)
    db.session.commit()


def adjust_stock(product_id: str, delta: int) -> bool:
    """
    Atomically add ``delta`` to a tracked product's stock (negative to consume).

    Returns False when the product does not track stock. Does not commit.
    """
    if not isinstance(delta, int) or isinstance(delta, bool):
        raise ValidationError("stock delta must be an integer")
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock.isnot(None))
        .values(stock=Product.stock + delta)
        .execution_options(synchronize_session=False)
    )
    return bool(result.rowcount)
