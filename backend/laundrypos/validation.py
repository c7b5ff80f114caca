from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .money import HUNDRED, MAX_AMOUNT, to_decimal
from .time_utils import parse_iso_datetime

RATE_FIELDS = ("iron_rate", "wash_and_iron_rate", "dry_clean_rate")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] | None = None


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be a plain integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        raise ValidationError(f"{col.key} must be an integer")

    # Decimals (money, percentages); numeric strings are accepted
    if isinstance(coltype, Numeric):
        if isinstance(value, str) and not value.strip():
            raise ValidationError(f"{col.key} must be a number")
        try:
            return to_decimal(value, field=col.key)
        except ValueError as e:
            raise ValidationError(str(e))

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("true", "1", "yes"):
                return True
            if lowered in ("false", "0", "no"):
                return False
            raise ValidationError(f"{col.key} must be a boolean")
        return bool(value)

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Unknown keys are ignored rather than rejected: the POS client sends whole
    objects back (ids, timestamps, joined names) on update.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(
            f for f in required
            if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload[f].strip())
        )
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}",
                                  details={"missing": missing})

    cols = _columns_by_key(model)
    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            continue
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """Rates are always present on create (policy) and always sane numbers."""
    for field in RATE_FIELDS:
        if field not in patch:
            continue
        rate = patch[field]
        if rate is None:
            raise ValidationError(f"{field} is required")
        if rate < 0:
            raise ValidationError(f"{field} must be >= 0")
        if rate > MAX_AMOUNT:
            raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")

    if patch.get("stock") is not None and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0")


def enforce_rules_settings(patch: dict) -> None:
    if "tax_rate" in patch:
        rate = patch["tax_rate"]
        if rate is None or rate < 0 or rate > HUNDRED:
            raise ValidationError("tax_rate must be between 0 and 100")
    if "currency" in patch and not patch["currency"]:
        raise ValidationError("currency cannot be blank")


def require_positive_int(value, *, field: str, details: dict | None = None) -> int:
    """Quantities: ints (or integral strings) > 0; bools and floats are rejected."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a positive integer", details=details)
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{field} must be a positive integer", details=details)
    return value
