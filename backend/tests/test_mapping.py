import pytest

from laundrypos.errors import ValidationError
from laundrypos.mapping import normalize_payload, order_item_from_payload, return_item_from_payload


def test_camel_case_keys_become_canonical():
    data = normalize_payload("product", {"name": "Shirt", "ironRate": 5, "dryCleanRate": "12.5"})
    assert data == {"name": "Shirt", "iron_rate": 5, "dry_clean_rate": "12.5"}


def test_canonical_key_wins_over_alias():
    data = normalize_payload("order", {"customer_id": "C00001", "customerId": "C00009"})
    assert data == {"customer_id": "C00001"}


def test_none_payload_is_empty_and_non_dict_is_rejected():
    assert normalize_payload("settings", None) == {}
    with pytest.raises(ValidationError):
        normalize_payload("settings", ["taxRate", 5])


@pytest.mark.parametrize("raw", [
    {"productId": "P1", "serviceType": "iron", "quantity": 2},
    {"product": {"id": "P1"}, "service": "iron", "quantity": 2},
    {"products": {"id": "P1", "name": "Shirt"}, "serviceType": "iron", "quantity": 2},
])
def test_order_item_shapes(raw):
    assert order_item_from_payload(raw) == {"product_id": "P1", "service": "iron", "quantity": 2}


def test_return_item_from_nested_product_keeps_id_and_barcode():
    item = return_item_from_payload({"products": {"id": "P1", "barcode": "BC1"}, "quantity": 1})
    assert item == {"product_id": "P1", "barcode": "BC1", "quantity": 1}


def test_return_item_sku_and_generic_ref():
    assert return_item_from_payload({"sku": "BC1", "quantity": 1}) == {"barcode": "BC1", "quantity": 1}
    assert return_item_from_payload({"productRef": "P1", "quantity": 1}) == {"product_ref": "P1", "quantity": 1}
    # A generic ref is dropped once a concrete id is present
    assert return_item_from_payload({"productId": "P1", "productRef": "X", "quantity": 1}) == {
        "product_id": "P1", "quantity": 1,
    }
