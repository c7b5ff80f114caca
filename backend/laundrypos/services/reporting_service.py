from __future__ import annotations

from collections import Counter
from datetime import date
from decimal import Decimal

from ..extensions import db
from ..models import Order, OrderItem, Return
from ..money import ZERO, as_float, quantize_money, to_decimal
from ..time_utils import day_bounds
from .order_service import ORDER_STATUS_CANCELLED

TOP_PRODUCTS_LIMIT = 5


def _cash_part(order: Order) -> Decimal:
    if order.payment_method == "cash":
        return to_decimal(order.total)
    if order.payment_method == "both":
        return to_decimal(order.cash_amount or 0)
    if order.payment_method == "cod" and order.payment_status == "paid":
        return to_decimal(order.cash_amount or 0)
    return ZERO


def daily_summary(day: date, opening_cash=0) -> dict:
    """
    End-of-day figures for one UTC calendar day.

    Cancelled orders are left out. Refunds are the returns recorded that day,
    whichever day their order was placed. They are reported in refund_total
    but not deducted from closing_balance, which is opening cash plus cash sales.
    """
    opening = to_decimal(opening_cash, field="opening_cash")
    start, end = day_bounds(day)

    orders = (
        db.session.query(Order)
        .filter(Order.created_at >= start, Order.created_at < end)
        .filter(Order.status != ORDER_STATUS_CANCELLED)
        .order_by(Order.created_at.asc())
        .all()
    )
    refunds = (
        db.session.query(db.func.coalesce(db.func.sum(Return.refund_amount), 0))
        .filter(Return.created_at >= start, Return.created_at < end)
        .scalar()
    )

    sales_total = sum((to_decimal(o.total) for o in orders), ZERO)
    cash_sales = sum((_cash_part(o) for o in orders), ZERO)
    by_method = Counter()
    for order in orders:
        by_method[order.payment_method] += 1

    order_ids = [o.id for o in orders]
    quantities = Counter()
    names = {}
    if order_ids:
        for item in db.session.query(OrderItem).filter(OrderItem.order_id.in_(order_ids)).all():
            quantities[item.product_id] += item.quantity
            names[item.product_id] = item.product.name if item.product else item.product_id

    return {
        "date": day.isoformat(),
        "order_count": len(orders),
        "sales_total": as_float(quantize_money(sales_total)),
        "refund_total": as_float(quantize_money(to_decimal(refunds))),
        "customer_count": len({o.customer_id for o in orders if o.customer_id}),
        "orders_by_payment_method": dict(by_method),
        "opening_cash": as_float(quantize_money(opening)),
        "cash_collected": as_float(quantize_money(cash_sales)),
        "closing_balance": as_float(quantize_money(opening + cash_sales)),
        "top_products": [
            {"product_id": product_id, "name": names[product_id], "quantity": qty}
            for product_id, qty in quantities.most_common(TOP_PRODUCTS_LIMIT)
        ],
    }
