"""
Return Processing Service

A return refunds some or all of an order's lines and closes the order.

REFUND PRICING:
- each returned unit is priced from the ORIGINAL order line: its snapshotted
  unit rate, service tier and line discount (never from today's catalog or
  from client-supplied amounts)
- cart-level discount and tax are refunded in proportion: line refunds are
  scaled by order.total / sum(line subtotals)
- a complete return (every line at full quantity) refunds exactly
  order.total; the cent remainder from per-line rounding lands on the last line

VALIDATION (no side effects on failure):
1. order exists and is neither returned nor cancelled
2. at least one requested item
3. every item resolves to a product (id, barcode, or a generic ref) that is on the order
4. quantities are positive and, per line and per product, never exceed what was ordered
5. every refund is >= 0

SIDE EFFECTS, in order:
1. allocate Return (R) and ReturnItem (RI) ids
2. write the Return, then its items; if the items fail the Return is
   deleted again (best effort, not a transaction)
3. give returned units back to tracked stock
4. move the order to returned (guarded so a concurrent return cannot also win)

Retrying a failed call is safe when the error says ``retryable``; passing an
``idempotency_key`` also makes a retry after an unseen success return the
stored Return instead of writing a second one.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import ConflictError, ConsistencyWarning, NotFoundError, PersistenceError, ValidationError
from ..extensions import db
from ..mapping import return_item_from_payload
from ..models import Order, OrderItem, Product, Return, ReturnItem
from ..money import ZERO, quantize_money
from ..time_utils import day_bounds
from ..validation import require_positive_int
from . import products_service
from .order_service import ORDER_STATUS_CANCELLED, ORDER_STATUS_RETURNED, TERMINAL_STATUSES, order_line_items
from .pricing import line_subtotal
from .sequence_service import next_id

logger = logging.getLogger(__name__)


class ReturnValidationError(ValidationError):
    """Precondition failure; ``index`` points at the offending requested item."""

    def __init__(self, message: str, *, kind: str, index: int | None = None):
        details = {"index": index} if index is not None else None
        super().__init__(message, kind=kind, details=details)
        self.index = index


@dataclass
class PlannedReturnItem:
    order_item: OrderItem
    quantity: int
    refund_amount: Decimal
    request_index: int


@dataclass
class ReturnPlan:
    order: Order
    items: list[PlannedReturnItem] = field(default_factory=list)
    is_complete: bool = False

    @property
    def refund_amount(self) -> Decimal:
        return sum((item.refund_amount for item in self.items), ZERO)

    def to_dict(self) -> dict:
        return {
            "order_id": self.order.id,
            "is_complete": self.is_complete,
            "refund_amount": float(self.refund_amount),
            "items": [
                {
                    "order_item_id": item.order_item.id,
                    "product_id": item.order_item.product_id,
                    "service": item.order_item.service,
                    "quantity": item.quantity,
                    "refund_amount": float(item.refund_amount),
                }
                for item in self.items
            ],
        }


# =============================================================================
# VALIDATION / PLANNING (read-only)
# =============================================================================

def _load_returnable_order(order_id: str) -> Order:
    if not order_id:
        raise ReturnValidationError("order_id is required", kind="missing_order")
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    if order.status == ORDER_STATUS_RETURNED:
        raise ConflictError(f"Order {order_id} has already been returned", kind="already_returned")
    if order.status == ORDER_STATUS_CANCELLED:
        raise ConflictError(f"Order {order_id} was cancelled and cannot be returned", kind="order_cancelled")
    return order


def _resolve_product(item: dict, index: int) -> Product | None:
    if item.get("product_id"):
        return db.session.get(Product, str(item["product_id"]))
    if item.get("barcode"):
        return products_service.find_by_barcode(item["barcode"])
    ref = item.get("product_ref")
    if ref:
        return db.session.get(Product, str(ref)) or products_service.find_by_barcode(ref)
    raise ReturnValidationError(
        f"Missing product reference in item at position {index + 1}",
        kind="missing_product", index=index,
    )


def _refund_scale(order: Order) -> Decimal:
    """Share of the line subtotals that was actually charged (cart discount, tax)."""
    lines_total = sum((line.subtotal for line in order_line_items(order)), ZERO)
    if lines_total <= 0:
        return ZERO
    return Decimal(order.total) / lines_total


def plan_return(order: Order, requested_items) -> ReturnPlan:
    """
    Validate a return request against ``order`` and price it.

    Items either name a specific ``order_item_id`` or just a product; product
    requests are spread over that product's lines in line order.
    """
    if not isinstance(requested_items, list) or not requested_items:
        raise ReturnValidationError("At least one item must be returned", kind="empty_request")

    order_items = list(order.items)
    remaining = {oi.id: oi.quantity for oi in order_items}
    line_rates = dict(zip((oi.id for oi in order_items), order_line_items(order)))
    scale = _refund_scale(order)
    planned: list[PlannedReturnItem] = []

    for index, raw in enumerate(requested_items):
        if not isinstance(raw, dict):
            raise ReturnValidationError(
                f"Item at position {index + 1} must be an object",
                kind="invalid_item", index=index,
            )
        item = return_item_from_payload(raw)
        product = _resolve_product(item, index)
        if product is None:
            raise ReturnValidationError(
                f"Product in item at position {index + 1} could not be found",
                kind="unresolved_product", index=index,
            )

        candidates = [oi for oi in order_items if oi.product_id == product.id]
        if item.get("order_item_id"):
            candidates = [oi for oi in candidates if oi.id == item["order_item_id"]]
        if not candidates:
            raise ReturnValidationError(
                f"Product {product.id} is not part of order {order.id}",
                kind="product_not_in_order", index=index,
            )

        try:
            quantity = require_positive_int(item.get("quantity"), field="quantity")
        except ValidationError:
            raise ReturnValidationError(
                f"Invalid quantity in item at position {index + 1}",
                kind="invalid_quantity", index=index,
            )

        available = sum(remaining[oi.id] for oi in candidates)
        if quantity > available:
            ordered = sum(oi.quantity for oi in candidates)
            raise ReturnValidationError(
                f"Cannot return {quantity} of product {product.id}: "
                f"ordered {ordered}, still returnable {available}",
                kind="quantity_exceeds_original", index=index,
            )

        to_place = quantity
        for oi in candidates:
            if to_place == 0:
                break
            take = min(remaining[oi.id], to_place)
            if take == 0:
                continue
            remaining[oi.id] -= take
            to_place -= take

            line = line_rates[oi.id]
            refund = quantize_money(
                line_subtotal(take, line.unit_rate, line.discount_percent) * scale
            )
            if refund < 0:
                raise ReturnValidationError(
                    f"Computed refund for item at position {index + 1} is negative",
                    kind="invalid_refund", index=index,
                )
            planned.append(PlannedReturnItem(order_item=oi, quantity=take,
                                             refund_amount=refund, request_index=index))

    plan = ReturnPlan(order=order, items=planned)
    plan.is_complete = all(remaining[oi.id] == 0 for oi in order_items)

    if plan.is_complete and planned:
        # Reconcile per-line rounding so a full return refunds exactly what was paid
        remainder = Decimal(order.total) - plan.refund_amount
        if remainder:
            last = planned[-1]
            last.refund_amount = last.refund_amount + remainder
            if last.refund_amount < 0:
                raise ReturnValidationError("Computed refund is negative", kind="invalid_refund",
                                            index=last.request_index)
    return plan


def preview_return(order_id: str, requested_items) -> ReturnPlan:
    """Validate and price a return without writing anything."""
    return plan_return(_load_returnable_order(order_id), requested_items)


# =============================================================================
# PROCESSING
# =============================================================================

def _find_by_idempotency_key(key: str, order_id: str) -> Return | None:
    existing = db.session.query(Return).filter_by(idempotency_key=key).first()
    if existing is not None and existing.order_id != order_id:
        raise ConflictError("idempotency_key was already used for a different order",
                            kind="idempotency_key_reused")
    return existing


def _delete_orphan_return(return_id: str, stage: str, cause: Exception) -> PersistenceError:
    """Best-effort removal of a Return whose later steps failed."""
    try:
        db.session.query(ReturnItem).filter_by(return_id=return_id).delete(synchronize_session=False)
        db.session.query(Return).filter_by(id=return_id).delete(synchronize_session=False)
        db.session.commit()
    except SQLAlchemyError as cleanup_exc:
        db.session.rollback()
        message = (
            f"Return {return_id} was written but {stage} failed and cleanup also failed; "
            "manual reconciliation required"
        )
        logger.error("%s (cause: %s; cleanup error: %s)", message, cause, cleanup_exc)
        warnings.warn(ConsistencyWarning(message), stacklevel=3)
        return PersistenceError(
            f"Return processing failed while {stage}",
            details={"return_id": return_id, "stage": stage},
            retryable=False,
            needs_reconciliation=True,
        )

    logger.warning("Return %s rolled back after %s failed: %s", return_id, stage, cause)
    return PersistenceError(
        f"Return processing failed while {stage}",
        details={"stage": stage},
        retryable=True,
    )


def process_return(
    order_id: str,
    items,
    reason: str | None = None,
    idempotency_key: str | None = None,
) -> Return:
    """
    Validate, price and record a return; close the order.

    Raises:
        ReturnValidationError: a precondition failed (nothing written)
        NotFoundError: order does not exist
        ConflictError: order already returned/cancelled, or lost a race with
            a concurrent return of the same order
        PersistenceError: storage failed after validation
    """
    if idempotency_key:
        existing = _find_by_idempotency_key(idempotency_key, order_id)
        if existing is not None:
            logger.info("Return %s replayed for idempotency key", existing.id)
            return existing

    order = _load_returnable_order(order_id)
    plan = plan_return(order, items)

    # 1. ids (sequence allocation commits its counters, nothing else is pending)
    return_id = next_id("return")
    item_ids = [next_id("return_item") for _ in plan.items]

    # 2a. header
    return_doc = Return(
        id=return_id,
        order_id=order_id,
        reason=(reason or "").strip(),
        refund_amount=quantize_money(plan.refund_amount),
        is_complete=plan.is_complete,
        idempotency_key=idempotency_key or None,
    )
    db.session.add(return_doc)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        if idempotency_key:
            existing = _find_by_idempotency_key(idempotency_key, order_id)
            if existing is not None:
                return existing
        raise PersistenceError("Failed to record return", details={"stage": "return"},
                               retryable=True) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Failed to write return %s", return_id)
        raise PersistenceError("Failed to record return", details={"stage": "return"},
                               retryable=True) from exc

    # 2b. items
    try:
        for item_id, planned in zip(item_ids, plan.items):
            db.session.add(ReturnItem(
                id=item_id,
                return_id=return_id,
                product_id=planned.order_item.product_id,
                order_item_id=planned.order_item.id,
                quantity=planned.quantity,
                refund_amount=planned.refund_amount,
            ))
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise _delete_orphan_return(return_id, "recording return items", exc) from exc

    # 3 + 4. stock, then the order status flip
    try:
        for planned in plan.items:
            products_service.adjust_stock(planned.order_item.product_id, planned.quantity)
        result = db.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.status.notin_(TERMINAL_STATUSES))
            .values(status=ORDER_STATUS_RETURNED, version_id=Order.version_id + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            error = _delete_orphan_return(return_id, "closing the order", RuntimeError("order already closed"))
            if error.needs_reconciliation:
                raise error
            raise ConflictError(f"Order {order_id} was returned or cancelled concurrently",
                                kind="already_returned")
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise _delete_orphan_return(return_id, "restocking and closing the order", exc) from exc

    db.session.expire_all()
    return_doc = db.session.get(Return, return_id)
    logger.info(
        "Return %s recorded for order %s: refund=%s complete=%s",
        return_id, order_id, return_doc.refund_amount, plan.is_complete,
    )
    return return_doc


# =============================================================================
# QUERIES
# =============================================================================

def get_return(return_id: str) -> Return:
    return_doc = db.session.get(Return, return_id)
    if return_doc is None:
        raise NotFoundError(f"Return {return_id} not found")
    return return_doc


def get_order_returns(order_id: str) -> list[Return]:
    return (
        db.session.query(Return)
        .filter_by(order_id=order_id)
        .order_by(Return.created_at.desc())
        .all()
    )


def list_returns(from_day: date | None = None, to_day: date | None = None) -> list[Return]:
    query = db.session.query(Return)
    if from_day:
        query = query.filter(Return.created_at >= day_bounds(from_day)[0])
    if to_day:
        query = query.filter(Return.created_at < day_bounds(to_day)[1])
    return query.order_by(Return.created_at.desc(), Return.id.desc()).all()
