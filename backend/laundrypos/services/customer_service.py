"""Customer directory. Ids come from the "C" sequence (C00001, C00002, ...)."""

from __future__ import annotations

from sqlalchemy import or_

from ..errors import NotFoundError
from ..extensions import db
from ..mapping import normalize_payload
from ..models import Customer
from ..validation import ModelValidationPolicy, validate_payload
from .sequence_service import next_id

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "contact_name", "phone", "email", "place", "emirate"},
    required_on_create={"name"},
)


def list_customers(q: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    if q and q.strip():
        term = f"%{q.strip().lower()}%"
        query = query.filter(or_(
            db.func.lower(Customer.name).like(term),
            db.func.lower(Customer.code).like(term),
            Customer.phone.like(term),
            Customer.id == q.strip(),
        ))
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(customer_id: str) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found")
    return customer


def create_customer(payload: dict) -> Customer:
    patch = validate_payload(
        model=Customer,
        payload=normalize_payload("customer", payload),
        policy=CUSTOMER_POLICY,
        partial=False,
    )
    # Allocate before staging the row: the counter store commits
    customer = Customer(id=next_id("customer"), **patch)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(customer_id: str, payload: dict) -> Customer:
    customer = get_customer(customer_id)
    patch = validate_payload(
        model=Customer,
        payload=normalize_payload("customer", payload),
        policy=CUSTOMER_POLICY,
        partial=True,
    )
    for key, value in patch.items():
        setattr(customer, key, value)
    db.session.commit()
    return customer
