from decimal import Decimal

from laundrypos.services import order_service, reporting_service, return_service
from laundrypos.time_utils import utcnow


def test_closing_balance_does_not_deduct_refunds(sample_order):
    order, shirt, _ = sample_order
    return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": 1}])

    summary = reporting_service.daily_summary(utcnow().date(), opening_cash=Decimal("50"))

    assert summary["refund_total"] == 20.0
    assert summary["cash_collected"] == 105.0
    assert summary["closing_balance"] == 155.0


def test_cancelled_orders_are_left_out(make_product):
    shirt = make_product(wash=20)
    order_service.create_order(items=[{"product_id": shirt.id, "service": "washAndIron", "quantity": 1}])
    dropped = order_service.create_order(items=[{"product_id": shirt.id, "service": "washAndIron", "quantity": 2}])
    order_service.update_order_status(dropped.id, "cancelled")

    summary = reporting_service.daily_summary(utcnow().date())

    assert summary["order_count"] == 1
    assert summary["sales_total"] == 20.0
    assert summary["cash_collected"] == 20.0
    assert summary["top_products"] == [{"product_id": shirt.id, "name": shirt.name, "quantity": 1}]
