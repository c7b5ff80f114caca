from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from laundrypos.errors import ConflictError, ConsistencyWarning, NotFoundError, PersistenceError
from laundrypos.extensions import db
from laundrypos.models import Order, Product, Return, ReturnItem
from laundrypos.services import order_service, return_service, settings_service
from laundrypos.services.return_service import ReturnValidationError
from laundrypos.services.sequence_service import EXTENSION_KEY, InMemoryCounterStore


def _stock(product_id):
    db.session.expire_all()
    return db.session.get(Product, product_id).stock


def _status(order_id):
    db.session.expire_all()
    return db.session.get(Order, order_id).status


def test_complete_return_refunds_order_total(sample_order):
    order, shirt, suit = sample_order
    assert order.total == Decimal("105.00")

    return_doc = return_service.process_return(order.id, [
        {"product_id": shirt.id, "quantity": 3},
        {"product_id": suit.id, "quantity": 1},
    ], reason="Customer changed mind")

    assert return_doc.id == "R00001"
    assert return_doc.refund_amount == Decimal("105.00")
    assert return_doc.is_complete is True
    assert [item.id for item in return_doc.items] == ["RI000001", "RI000002"]
    assert [item.refund_amount for item in return_doc.items] == [Decimal("60.00"), Decimal("45.00")]
    assert _status(order.id) == "returned"
    assert _stock(shirt.id) == 10
    assert _stock(suit.id) == 4


def test_over_quantity_is_rejected_with_item_index(sample_order):
    order, shirt, _ = sample_order

    with pytest.raises(ReturnValidationError) as excinfo:
        return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": 5}])

    assert excinfo.value.kind == "quantity_exceeds_original"
    assert excinfo.value.index == 0
    assert excinfo.value.to_dict()["details"] == {"index": 0}
    assert db.session.query(Return).count() == 0
    assert _status(order.id) == "completed"
    assert _stock(shirt.id) == 7


def test_quantities_are_checked_cumulatively_per_product(sample_order):
    order, shirt, _ = sample_order

    with pytest.raises(ReturnValidationError) as excinfo:
        return_service.process_return(order.id, [
            {"product_id": shirt.id, "quantity": 2},
            {"barcode": shirt.barcode, "quantity": 2},
        ])

    assert excinfo.value.kind == "quantity_exceeds_original"
    assert excinfo.value.index == 1


def test_partial_return_closes_the_order(sample_order):
    order, shirt, suit = sample_order

    return_doc = return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": 1}])

    assert return_doc.is_complete is False
    assert return_doc.refund_amount == Decimal("20.00")
    assert _status(order.id) == "returned"
    assert _stock(shirt.id) == 8
    assert _stock(suit.id) == 3


def test_second_return_of_same_order_is_a_conflict(sample_order):
    order, shirt, _ = sample_order
    return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": 1}])

    with pytest.raises(ConflictError) as excinfo:
        return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": 1}])

    assert excinfo.value.kind == "already_returned"
    assert db.session.query(Return).count() == 1
    assert _stock(shirt.id) == 8


def test_idempotency_key_replays_the_stored_return(sample_order):
    order, shirt, _ = sample_order
    first = return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": 1}],
                                          idempotency_key="req-1")
    again = return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": 1}],
                                          idempotency_key="req-1")

    assert again.id == first.id
    assert db.session.query(Return).count() == 1
    assert _stock(shirt.id) == 8


@pytest.mark.parametrize("items, kind", [
    ([], "empty_request"),
    ([{"quantity": 1}], "missing_product"),
    ([{"product_id": "nope", "quantity": 1}], "unresolved_product"),
    ([{"product_ref": "NO-SUCH-CODE", "quantity": 1}], "unresolved_product"),
])
def test_request_shape_errors(sample_order, items, kind):
    order, _, _ = sample_order
    with pytest.raises(ReturnValidationError) as excinfo:
        return_service.process_return(order.id, items)
    assert excinfo.value.kind == kind


@pytest.mark.parametrize("quantity", [0, -1, 1.5, "two", None, True])
def test_invalid_quantities(sample_order, quantity):
    order, shirt, _ = sample_order
    with pytest.raises(ReturnValidationError) as excinfo:
        return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": quantity}])
    assert excinfo.value.kind == "invalid_quantity"
    assert excinfo.value.index == 0


def test_product_not_on_order_is_rejected(sample_order, make_product):
    order, shirt, _ = sample_order
    towel = make_product(name="Towel")

    with pytest.raises(ReturnValidationError) as excinfo:
        return_service.process_return(order.id, [
            {"product_id": shirt.id, "quantity": 1},
            {"product_id": towel.id, "quantity": 1},
        ])

    assert excinfo.value.kind == "product_not_in_order"
    assert excinfo.value.index == 1


def test_unknown_order(db_session):
    with pytest.raises(NotFoundError):
        return_service.process_return("TRX999999", [{"product_id": "x", "quantity": 1}])


def test_cancelled_order_cannot_be_returned(sample_order):
    order, shirt, _ = sample_order
    order_service.update_order_status(order.id, "cancelled")

    with pytest.raises(ConflictError) as excinfo:
        return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": 1}])
    assert excinfo.value.kind == "order_cancelled"


def test_items_resolve_by_nested_product_barcode_and_generic_ref(sample_order):
    order, shirt, suit = sample_order

    return_doc = return_service.process_return(order.id, [
        {"products": {"id": shirt.id}, "quantity": 1},
        {"sku": shirt.barcode, "quantity": 1},
        {"productRef": suit.barcode, "quantity": 1},
    ])

    assert sorted(item.product_id for item in return_doc.items) == sorted([shirt.id, shirt.id, suit.id])
    assert return_doc.refund_amount == Decimal("85.00")


def test_refund_uses_rates_charged_at_checkout(sample_order):
    order, shirt, _ = sample_order
    shirt.wash_and_iron_rate = 99
    db.session.commit()

    return_doc = return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": 2}])
    assert return_doc.refund_amount == Decimal("40.00")


def test_cart_discount_and_tax_are_refunded_proportionally(make_product):
    settings_service.update_settings({"tax_rate": 5})
    shirt = make_product(name="Shirt", wash=20)
    suit = make_product(name="Suit", dry=50)
    order = order_service.create_order(
        items=[
            {"product_id": shirt.id, "service": "washAndIron", "quantity": 3},
            {"product_id": suit.id, "service": "dryClean", "quantity": 1, "discount": 10},
        ],
        cart_discount={"type": "flat", "value": 15},
    )
    # (105 - 15) * 1.05, so every line refunds 90% of its subtotal
    assert order.total == Decimal("94.50")

    partial = return_service.preview_return(order.id, [{"product_id": shirt.id, "quantity": 1}])
    assert partial.refund_amount == Decimal("18.00")

    full = return_service.process_return(order.id, [
        {"product_id": suit.id, "quantity": 1},
        {"product_id": shirt.id, "quantity": 3},
    ])
    assert full.is_complete is True
    assert full.refund_amount == order.total
    assert sum(item.refund_amount for item in full.items) == order.total


def test_complete_return_absorbs_rounding(make_product):
    settings_service.update_settings({"tax_rate": 5})
    products = [make_product(name=f"Item {i}", iron=Decimal("3.33")) for i in range(3)]
    order = order_service.create_order(
        items=[{"product_id": p.id, "service": "iron", "quantity": 1} for p in products],
        cart_discount={"type": "percentage", "value": 7},
    )

    return_doc = return_service.process_return(
        order.id, [{"product_id": p.id, "quantity": 1} for p in products]
    )

    assert return_doc.refund_amount == order.total
    assert sum(item.refund_amount for item in return_doc.items) == order.total
    assert all(item.refund_amount >= 0 for item in return_doc.items)


def test_same_product_on_two_lines_is_allocated_in_line_order(make_product):
    shirt = make_product(name="Shirt", iron=5, wash=20)
    order = order_service.create_order(items=[
        {"product_id": shirt.id, "service": "iron", "quantity": 2},
        {"product_id": shirt.id, "service": "washAndIron", "quantity": 1},
    ])

    plan = return_service.preview_return(order.id, [{"product_id": shirt.id, "quantity": 3}])

    assert plan.is_complete is True
    assert [(i.order_item.service, i.quantity) for i in plan.items] == [("iron", 2), ("washAndIron", 1)]
    assert plan.refund_amount == Decimal("30.00")


def test_preview_writes_nothing(sample_order):
    order, shirt, _ = sample_order
    plan = return_service.preview_return(order.id, [{"product_id": shirt.id, "quantity": 2}])

    assert plan.to_dict()["refund_amount"] == 40.0
    assert db.session.query(Return).count() == 0
    assert _status(order.id) == "completed"


class _FailingCommits:
    """Makes chosen db.session.commit() calls (1-based) raise, passes the rest through."""

    def __init__(self, monkeypatch, fail_on):
        self.calls = 0
        session_cls = type(db.session)
        real_commit = session_cls.commit

        def commit(session):
            self.calls += 1
            if self.calls in fail_on:
                raise OperationalError("COMMIT", {}, Exception("database is locked"))
            return real_commit(session)

        monkeypatch.setattr(session_cls, "commit", commit)


@pytest.fixture
def memory_ids(app, monkeypatch):
    # In-memory ids so the only commits left are the return's own
    monkeypatch.setitem(app.extensions, EXTENSION_KEY, InMemoryCounterStore())


def test_failed_item_write_removes_the_return(sample_order, memory_ids, monkeypatch):
    order, shirt, _ = sample_order
    commits = _FailingCommits(monkeypatch, fail_on=[2])

    with pytest.raises(PersistenceError) as excinfo:
        return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": 1}])

    monkeypatch.undo()
    assert commits.calls == 3
    assert excinfo.value.retryable is True
    assert excinfo.value.needs_reconciliation is False
    assert db.session.query(Return).count() == 0
    assert db.session.query(ReturnItem).count() == 0
    assert _status(order.id) == "completed"
    assert _stock(shirt.id) == 7


def test_failed_cleanup_is_flagged_for_reconciliation(sample_order, memory_ids, monkeypatch):
    order, shirt, _ = sample_order
    _FailingCommits(monkeypatch, fail_on=[2, 3])

    with pytest.warns(ConsistencyWarning):
        with pytest.raises(PersistenceError) as excinfo:
            return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": 1}])

    monkeypatch.undo()
    assert excinfo.value.needs_reconciliation is True
    assert excinfo.value.retryable is False
    orphan = db.session.query(Return).one()
    assert excinfo.value.details["return_id"] == orphan.id
    assert _status(order.id) == "completed"


def test_list_and_get_returns(sample_order):
    order, shirt, _ = sample_order
    created = return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": 1}])

    assert [r.id for r in return_service.list_returns()] == [created.id]
    assert return_service.get_return(created.id).order_id == order.id
    assert [r.id for r in return_service.get_order_returns(order.id)] == [created.id]
    with pytest.raises(NotFoundError):
        return_service.get_return("R99999")


def test_non_object_item_reports_its_index(sample_order):
    order, shirt, _ = sample_order

    with pytest.raises(ReturnValidationError) as excinfo:
        return_service.process_return(order.id, [{"product_id": shirt.id, "quantity": 1}, "junk"])

    assert excinfo.value.kind == "invalid_item"
    assert excinfo.value.to_dict()["details"] == {"index": 1}
    assert db.session.query(Return).count() == 0
    assert _status(order.id) == "completed"
