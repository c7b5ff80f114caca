# Overview: Translation between client/storage key spellings and canonical field names.

"""
Every inbound payload passes through here once. Clients (and older rows
exported from the previous backend) use camelCase keys and sometimes nest the
product under ``product`` or ``products``; services only ever see the
canonical snake_case names below.
"""

from __future__ import annotations

from .errors import ValidationError

FIELD_ALIASES: dict[str, dict[str, str]] = {
    "product": {
        "ironRate": "iron_rate",
        "washAndIronRate": "wash_and_iron_rate",
        "dryCleanRate": "dry_clean_rate",
    },
    "customer": {
        "contactName": "contact_name",
    },
    "order": {
        "customerId": "customer_id",
        "paymentMethod": "payment_method",
        "cashAmount": "cash_amount",
        "cardAmount": "card_amount",
        "cartDiscount": "cart_discount",
        "deliveryStatus": "delivery_status",
        "paymentStatus": "payment_status",
        "taxRate": "tax_rate",
    },
    "order_item": {
        "productId": "product_id",
        "serviceType": "service",
    },
    "return": {
        "orderId": "order_id",
        "idempotencyKey": "idempotency_key",
    },
    "return_item": {
        "productId": "product_id",
        "sku": "barcode",
        "orderItemId": "order_item_id",
    },
    "settings": {
        "taxRate": "tax_rate",
        "businessName": "business_name",
        "businessAddress": "business_address",
        "businessPhone": "business_phone",
        "barcodeScannerEnabled": "barcode_scanner_enabled",
    },
}

# Nested product objects may arrive under either key depending on query shape
PRODUCT_KEYS = ("product", "products")


def normalize_payload(entity: str, payload) -> dict:
    """
    Return a copy of ``payload`` with aliased keys renamed to canonical ones.

    When both spellings are present the canonical key wins.
    """
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    aliases = FIELD_ALIASES[entity]
    result = {k: v for k, v in payload.items() if k not in aliases}
    for alias, canonical in aliases.items():
        if alias in payload and canonical not in result:
            result[canonical] = payload[alias]
    return result


def _nested_product(payload: dict) -> dict | None:
    for key in PRODUCT_KEYS:
        nested = payload.get(key)
        if isinstance(nested, dict):
            return nested
    return None


def order_item_from_payload(payload) -> dict:
    """Canonical order line: product_id, service, quantity, discount."""
    item = normalize_payload("order_item", payload)
    nested = _nested_product(item)
    if not item.get("product_id") and nested:
        item["product_id"] = nested.get("id")
    for key in PRODUCT_KEYS:
        item.pop(key, None)
    return item


def return_item_from_payload(payload) -> dict:
    """Canonical return line: product_id and/or barcode, quantity, order_item_id."""
    item = normalize_payload("return_item", payload)
    nested = _nested_product(item)
    if nested:
        item.setdefault("product_id", nested.get("id"))
        item.setdefault("barcode", nested.get("barcode"))
    ref = item.pop("product_ref", None) or item.pop("productRef", None)
    if ref is not None and not item.get("product_id") and not item.get("barcode"):
        item["product_ref"] = ref
    for key in PRODUCT_KEYS:
        item.pop(key, None)
    return item
