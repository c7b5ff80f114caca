# Overview: Cart/order total calculation; pure functions, no database access.

"""
Order totals.

    line subtotal      = quantity * rate(service) * (1 - line discount / 100)
    subtotal           = sum(line subtotals)
    discount           = subtotal * value / 100   (percentage)
                       = value                    (flat)
                         clamped to [0, subtotal]
    discounted         = subtotal - discount

Two tax conventions exist and each call site picks one explicitly:

- exclusive (checkout): tax = discounted * rate / 100, total = discounted + tax
- inclusive (redisplay of a saved order): discounted already contains tax,
  pre_tax = discounted / (1 + rate / 100), tax = discounted - pre_tax,
  total = discounted

Everything is Decimal and nothing is rounded here; callers quantize when
persisting and when presenting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ..errors import ValidationError
from ..money import HUNDRED, ZERO, quantize_money, to_decimal

logger = logging.getLogger(__name__)

SERVICE_IRON = "iron"
SERVICE_WASH_AND_IRON = "washAndIron"
SERVICE_DRY_CLEAN = "dryClean"

# Service tier -> Product column holding its unit rate
SERVICE_RATE_FIELDS = {
    SERVICE_IRON: "iron_rate",
    SERVICE_WASH_AND_IRON: "wash_and_iron_rate",
    SERVICE_DRY_CLEAN: "dry_clean_rate",
}
SERVICE_TIERS = tuple(SERVICE_RATE_FIELDS)

DISCOUNT_FLAT = "flat"
DISCOUNT_PERCENTAGE = "percentage"
DISCOUNT_TYPES = (DISCOUNT_FLAT, DISCOUNT_PERCENTAGE)

TAX_EXCLUSIVE = "exclusive"
TAX_INCLUSIVE = "inclusive"
TAX_CONVENTIONS = (TAX_EXCLUSIVE, TAX_INCLUSIVE)


@dataclass(frozen=True)
class LineItem:
    unit_rate: Decimal
    quantity: int
    discount_percent: Decimal = ZERO

    @property
    def subtotal(self) -> Decimal:
        return line_subtotal(self.quantity, self.unit_rate, self.discount_percent)


@dataclass(frozen=True)
class CartDiscount:
    type: str = DISCOUNT_PERCENTAGE
    value: Decimal = ZERO

    @classmethod
    def from_payload(cls, payload) -> "CartDiscount":
        """Build from {"type": ..., "value": ...}; None means no discount."""
        if payload is None:
            return cls()
        if not isinstance(payload, dict):
            raise ValidationError("cart_discount must be an object with type and value")
        discount_type = payload.get("type") or DISCOUNT_PERCENTAGE
        try:
            value = to_decimal(payload.get("value", 0) or 0, field="cart_discount.value")
        except ValueError as e:
            raise ValidationError(str(e))
        discount = cls(type=discount_type, value=value)
        discount.validate()
        return discount

    def validate(self) -> None:
        if self.type not in DISCOUNT_TYPES:
            raise ValidationError(
                f"cart_discount.type must be one of: {', '.join(DISCOUNT_TYPES)}",
                kind="invalid_discount",
            )
        if self.value < 0:
            raise ValidationError("cart_discount.value must be >= 0", kind="invalid_discount")
        if self.type == DISCOUNT_PERCENTAGE and self.value > HUNDRED:
            raise ValidationError("percentage cart discount must be between 0 and 100", kind="invalid_discount")

    def amount_for(self, subtotal: Decimal) -> Decimal:
        if self.type == DISCOUNT_PERCENTAGE:
            amount = subtotal * (self.value / HUNDRED)
        else:
            amount = self.value
        # Never more than the subtotal, never negative
        return max(ZERO, min(amount, subtotal))


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    discounted_subtotal: Decimal
    pre_tax_amount: Decimal
    tax_rate: Decimal
    convention: str

    def to_dict(self) -> dict:
        return {
            "subtotal": float(quantize_money(self.subtotal)),
            "discount": float(quantize_money(self.discount)),
            "tax": float(quantize_money(self.tax)),
            "total": float(quantize_money(self.total)),
            "discounted_subtotal": float(quantize_money(self.discounted_subtotal)),
            "pre_tax_amount": float(quantize_money(self.pre_tax_amount)),
            "tax_rate": float(self.tax_rate),
            "convention": self.convention,
        }


def _read_field(source, name: str):
    if isinstance(source, dict):
        return source.get(name)
    return getattr(source, name, None)


def rate_for_service(product, service: str) -> Decimal:
    """
    Unit rate of ``product`` for ``service``.

    Fails closed to 0 for an unknown tier or a missing/non-numeric rate so a
    cart can always be rendered; the defect is logged for follow-up.
    """
    field_name = SERVICE_RATE_FIELDS.get(service)
    if field_name is None:
        logger.warning("Unknown service tier %r for product %s; using rate 0",
                       service, _read_field(product, "id"))
        return ZERO

    raw = _read_field(product, field_name)
    if raw is None:
        logger.warning("Product %s has no %s; using rate 0", _read_field(product, "id"), field_name)
        return ZERO
    try:
        return to_decimal(raw, field=field_name)
    except ValueError:
        logger.warning("Product %s has non-numeric %s=%r; using rate 0",
                       _read_field(product, "id"), field_name, raw)
        return ZERO


def validate_line_discount(discount_percent: Decimal, *, index: int | None = None) -> None:
    if discount_percent < 0 or discount_percent > HUNDRED:
        details = {"index": index} if index is not None else None
        raise ValidationError("line discount must be between 0 and 100", kind="invalid_discount", details=details)


def line_subtotal(quantity: int, unit_rate: Decimal, discount_percent: Decimal = ZERO) -> Decimal:
    return Decimal(quantity) * unit_rate * (1 - discount_percent / HUNDRED)


def compute_totals(
    line_items: Iterable[LineItem],
    cart_discount: CartDiscount | None = None,
    tax_rate_percent=0,
    convention: str = TAX_EXCLUSIVE,
) -> Totals:
    """Pure: identical inputs always produce identical Totals."""
    if convention not in TAX_CONVENTIONS:
        raise ValidationError(f"convention must be one of: {', '.join(TAX_CONVENTIONS)}")

    try:
        tax_rate = to_decimal(tax_rate_percent, field="tax_rate")
    except ValueError as e:
        raise ValidationError(str(e))
    if tax_rate < 0:
        raise ValidationError("tax_rate must be >= 0")

    cart_discount = cart_discount or CartDiscount()
    cart_discount.validate()

    subtotal = ZERO
    for index, item in enumerate(line_items):
        if item.quantity < 0:
            raise ValidationError("quantity must be >= 0", details={"index": index})
        if item.unit_rate < 0:
            raise ValidationError("rates must be >= 0", details={"index": index})
        validate_line_discount(item.discount_percent, index=index)
        subtotal += item.subtotal

    discount = cart_discount.amount_for(subtotal)
    discounted = subtotal - discount

    if convention == TAX_EXCLUSIVE:
        pre_tax = discounted
        tax = discounted * (tax_rate / HUNDRED)
        total = discounted + tax
    else:
        pre_tax = discounted / (1 + tax_rate / HUNDRED)
        tax = discounted - pre_tax
        total = discounted

    return Totals(
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        total=total,
        discounted_subtotal=discounted,
        pre_tax_amount=pre_tax,
        tax_rate=tax_rate,
        convention=convention,
    )
