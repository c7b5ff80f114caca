# Overview: Service-layer operations for orders (checkout, status updates, billing redisplay).

"""
Order Service

Checkout turns a cart into an Order with immutable OrderItems:
- each line snapshots its service tier and unit rate
- totals come from pricing.compute_totals with the checkout tax convention
- ids are allocated (TRX / ITM) before any order row is staged, so a failed
  id allocation never leaves a half-written order
- tracked stock is decremented atomically in the same transaction

STATUS RULES:
- cod orders start pending (delivery pending, payment unpaid); all other
  payment methods start completed
- cancelled and returned are terminal
- returned is only reachable through return processing
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import ConflictError, NotFoundError, PersistenceError, ValidationError
from ..extensions import db
from ..mapping import order_item_from_payload
from ..models import Customer, Order, OrderItem, Product, Return
from ..money import ZERO, quantize_money, to_decimal
from ..time_utils import day_bounds
from ..validation import require_positive_int
from . import products_service, settings_service
from .pricing import (
    SERVICE_TIERS,
    TAX_CONVENTIONS,
    TAX_EXCLUSIVE,
    TAX_INCLUSIVE,
    CartDiscount,
    LineItem,
    Totals,
    compute_totals,
    rate_for_service,
    validate_line_discount,
)
from .retry import lock_for_update, policy_from_config, run_with_retry
from .sequence_service import next_id

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("cash", "card", "both", "cod", "credit")

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_CANCELLED = "cancelled"
ORDER_STATUS_RETURNED = "returned"
TERMINAL_STATUSES = {ORDER_STATUS_CANCELLED, ORDER_STATUS_RETURNED}
# Statuses a caller may set directly; returned is reserved for return processing
SETTABLE_STATUSES = (ORDER_STATUS_PENDING, ORDER_STATUS_COMPLETED, ORDER_STATUS_CANCELLED)

DELIVERY_STATUSES = ("pending", "in-transit", "delivered")
PAYMENT_STATUSES = ("unpaid", "paid")
SETTLEMENT_METHODS = ("cash", "card")


def _convention(config_key: str, default: str) -> str:
    convention = current_app.config.get(config_key, default)
    if convention not in TAX_CONVENTIONS:
        raise ValueError(f"{config_key} must be one of {TAX_CONVENTIONS}, got {convention!r}")
    return convention


def _resolve_lines(items) -> list[dict]:
    """Validate cart lines and attach the Product and unit rate to each."""
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list", kind="empty_cart")

    resolved = []
    for index, raw in enumerate(items):
        details = {"index": index}
        if not isinstance(raw, dict):
            raise ValidationError(f"Item at position {index + 1} must be an object",
                                  kind="invalid_item", details=details)
        item = order_item_from_payload(raw)

        product = None
        if item.get("product_id"):
            product = db.session.get(Product, str(item["product_id"]))
        elif item.get("barcode"):
            product = products_service.find_by_barcode(item["barcode"])
        if product is None:
            raise ValidationError(f"Unknown product in item at position {index + 1}",
                                  kind="unknown_product", details=details)

        service = item.get("service")
        if service not in SERVICE_TIERS:
            raise ValidationError(
                f"service must be one of: {', '.join(SERVICE_TIERS)} (item at position {index + 1})",
                kind="invalid_service", details=details,
            )

        quantity = require_positive_int(item.get("quantity"), field="quantity", details=details)

        try:
            discount = to_decimal(item.get("discount") or 0, field="discount")
        except ValueError as e:
            raise ValidationError(str(e), details=details)
        validate_line_discount(discount, index=index)

        # Price with exactly what the OrderItem row will store (two decimals)
        resolved.append({
            "product": product,
            "service": service,
            "quantity": quantity,
            "discount": quantize_money(discount),
            "unit_rate": quantize_money(rate_for_service(product, service)),
        })
    return resolved


def _check_stock(lines: list[dict]) -> None:
    wanted: dict[str, int] = defaultdict(int)
    for line in lines:
        wanted[line["product"].id] += line["quantity"]

    short = []
    for line in lines:
        product = line["product"]
        if product.stock is not None and product.stock < wanted[product.id]:
            short.append({"product_id": product.id, "requested": wanted[product.id], "stock": product.stock})
    if short:
        raise ConflictError("Insufficient stock", kind="insufficient_stock", details={"items": short})


def _split_payment(payment_method: str, total, cash_amount, card_amount):
    if payment_method != "both":
        return None, None
    if cash_amount is None or card_amount is None:
        raise ValidationError("cash_amount and card_amount are required for split payments",
                              kind="invalid_payment")
    try:
        cash = to_decimal(cash_amount, field="cash_amount")
        card = to_decimal(card_amount, field="card_amount")
    except ValueError as e:
        raise ValidationError(str(e), kind="invalid_payment")
    if cash < 0 or card < 0:
        raise ValidationError("split payment amounts must be >= 0", kind="invalid_payment")
    if quantize_money(cash + card) != quantize_money(total):
        raise ValidationError(
            f"cash_amount + card_amount must equal the order total ({quantize_money(total)})",
            kind="invalid_payment",
        )
    return quantize_money(cash), quantize_money(card)


def create_order(
    *,
    items,
    payment_method: str = "cash",
    customer_id: str | None = None,
    cart_discount=None,
    cash_amount=None,
    card_amount=None,
) -> Order:
    """
    Checkout.

    Raises:
        ValidationError: bad lines, discount, payment method or split amounts
        NotFoundError: unknown customer
        ConflictError: tracked stock would go negative
        PersistenceError: id allocation or the order write failed (nothing committed)
    """
    if payment_method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
                              kind="invalid_payment")

    if customer_id and db.session.get(Customer, customer_id) is None:
        raise NotFoundError(f"Customer {customer_id} not found")

    discount = cart_discount if isinstance(cart_discount, CartDiscount) else CartDiscount.from_payload(cart_discount)
    # Same scale as Order.discount_value / Order.tax_rate so redisplay reprices identically
    discount = CartDiscount(type=discount.type, value=quantize_money(discount.value))
    lines = _resolve_lines(items)
    tax_rate = quantize_money(settings_service.current_tax_rate())
    totals = compute_totals(
        [LineItem(l["unit_rate"], l["quantity"], l["discount"]) for l in lines],
        discount,
        tax_rate,
        _convention("CHECKOUT_TAX_CONVENTION", TAX_EXCLUSIVE),
    )
    cash, card = _split_payment(payment_method, totals.total, cash_amount, card_amount)
    _check_stock(lines)

    # Ids first: allocation commits the counter rows
    order_id = next_id("order")
    item_ids = [next_id("order_item") for _ in lines]

    is_cod = payment_method == "cod"
    order = Order(
        id=order_id,
        customer_id=customer_id or None,
        subtotal=quantize_money(totals.subtotal),
        discount=quantize_money(totals.discount),
        tax=quantize_money(totals.tax),
        total=quantize_money(totals.total),
        tax_rate=tax_rate,
        discount_type=discount.type,
        discount_value=discount.value,
        payment_method=payment_method,
        cash_amount=cash,
        card_amount=card,
        status=ORDER_STATUS_PENDING if is_cod else ORDER_STATUS_COMPLETED,
        delivery_status="pending" if is_cod else None,
        payment_status="unpaid" if is_cod else None,
    )
    for item_id, line in zip(item_ids, lines):
        order.items.append(OrderItem(
            id=item_id,
            product_id=line["product"].id,
            service=line["service"],
            quantity=line["quantity"],
            unit_rate=line["unit_rate"],
            discount=line["discount"],
            subtotal=quantize_money(
                LineItem(line["unit_rate"], line["quantity"], line["discount"]).subtotal
            ),
        ))

    try:
        db.session.add(order)
        for line in lines:
            products_service.adjust_stock(line["product"].id, -line["quantity"])
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Failed to persist order %s", order_id)
        raise PersistenceError("Failed to create order", retryable=True) from exc

    logger.info("Order %s created: total=%s method=%s", order.id, order.total, payment_method)
    return order


def get_order(order_id: str) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(
    *,
    status: str | None = None,
    payment_method: str | None = None,
    from_day: date | None = None,
    to_day: date | None = None,
    limit: int | None = None,
) -> list[Order]:
    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    if payment_method:
        query = query.filter(Order.payment_method == payment_method)
    if from_day:
        query = query.filter(Order.created_at >= day_bounds(from_day)[0])
    if to_day:
        query = query.filter(Order.created_at < day_bounds(to_day)[1])
    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def _locked_order(order_id: str) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found")
    return order


def _ensure_mutable(order: Order) -> None:
    if order.status in TERMINAL_STATUSES:
        raise ConflictError(f"Order {order.id} is {order.status} and can no longer change",
                            kind="order_closed")


def _restock(order: Order) -> None:
    for item in order.items:
        products_service.adjust_stock(item.product_id, item.quantity)


def _retry_policy():
    return policy_from_config(current_app.config)


def update_order_status(order_id: str, status: str) -> Order:
    if status == ORDER_STATUS_RETURNED:
        raise ValidationError("Orders are marked returned by processing a return", kind="invalid_status")
    if status not in SETTABLE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(SETTABLE_STATUSES)}",
                              kind="invalid_status")

    def _op():
        order = _locked_order(order_id)
        _ensure_mutable(order)
        if status == ORDER_STATUS_CANCELLED:
            _restock(order)
        order.status = status
        db.session.commit()
        return order

    return run_with_retry(_op, policy=_retry_policy())


def _require_cod(order: Order) -> None:
    if order.payment_method != "cod":
        raise ConflictError(f"Order {order.id} is not a cash-on-delivery order", kind="not_cod")


def _settle_cod(order: Order) -> None:
    """A COD order is completed exactly while it is both delivered and paid."""
    if order.delivery_status == "delivered" and order.payment_status == "paid":
        order.status = ORDER_STATUS_COMPLETED
    else:
        order.status = ORDER_STATUS_PENDING


def update_delivery_status(order_id: str, delivery_status: str) -> Order:
    if delivery_status not in DELIVERY_STATUSES:
        raise ValidationError(f"delivery_status must be one of: {', '.join(DELIVERY_STATUSES)}",
                              kind="invalid_status")

    def _op():
        order = _locked_order(order_id)
        _require_cod(order)
        _ensure_mutable(order)
        order.delivery_status = delivery_status
        _settle_cod(order)
        db.session.commit()
        return order

    return run_with_retry(_op, policy=_retry_policy())


def update_payment_status(order_id: str, payment_status: str, settled_with: str | None = None) -> Order:
    """
    Mark a COD order paid/unpaid. ``settled_with`` (cash or card) records how
    the courier collected the money so the day's cash total stays right.
    """
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(f"payment_status must be one of: {', '.join(PAYMENT_STATUSES)}",
                              kind="invalid_status")
    if settled_with is not None and settled_with not in SETTLEMENT_METHODS:
        raise ValidationError(f"payment method must be one of: {', '.join(SETTLEMENT_METHODS)}",
                              kind="invalid_payment")

    def _op():
        order = _locked_order(order_id)
        _require_cod(order)
        _ensure_mutable(order)
        order.payment_status = payment_status
        if payment_status == "paid":
            method = settled_with or "cash"
            order.cash_amount = order.total if method == "cash" else None
            order.card_amount = order.total if method == "card" else None
        else:
            order.cash_amount = None
            order.card_amount = None
        _settle_cod(order)
        db.session.commit()
        return order

    return run_with_retry(_op, policy=_retry_policy())


def delete_order(order_id: str) -> None:
    order = get_order(order_id)
    if db.session.query(Return.id).filter_by(order_id=order_id).first():
        raise ConflictError(f"Order {order_id} has returns and cannot be deleted", kind="order_has_returns")
    if order.status != ORDER_STATUS_CANCELLED:
        _restock(order)
    db.session.delete(order)
    db.session.commit()


def order_line_items(order: Order) -> list[LineItem]:
    """Pricing lines for a saved order; rows without a rate snapshot use today's rate."""
    lines = []
    for item in order.items:
        rate = item.unit_rate if item.unit_rate is not None else rate_for_service(item.product, item.service)
        lines.append(LineItem(to_decimal(rate), item.quantity, to_decimal(item.discount or ZERO)))
    return lines


def billing_breakdown(order_id: str) -> Totals:
    """Redisplay a saved order's bill using the billing tax convention."""
    order = get_order(order_id)
    discount = CartDiscount(type=order.discount_type, value=to_decimal(order.discount_value or ZERO))
    return compute_totals(
        order_line_items(order),
        discount,
        to_decimal(order.tax_rate or ZERO),
        _convention("BILLING_TAX_CONVENTION", TAX_INCLUSIVE),
    )


def preview_totals(items, cart_discount=None, tax_rate=None, convention: str | None = None) -> Totals:
    """Quote a cart without writing anything. Defaults to the shop tax rate and checkout convention."""
    discount = cart_discount if isinstance(cart_discount, CartDiscount) else CartDiscount.from_payload(cart_discount)
    lines = _resolve_lines(items)
    if tax_rate is None:
        tax_rate = settings_service.current_tax_rate()
    return compute_totals(
        [LineItem(l["unit_rate"], l["quantity"], l["discount"]) for l in lines],
        discount,
        tax_rate,
        convention or _convention("CHECKOUT_TAX_CONVENTION", TAX_EXCLUSIVE),
    )
