"""Shop settings (single row). Defaults come from app config on first access."""

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..mapping import normalize_payload
from ..models import POSSettings
from ..money import to_decimal
from ..validation import ModelValidationPolicy, enforce_rules_settings, validate_payload

SETTINGS_ID = 1

SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields={
        "tax_rate", "currency", "business_name", "business_address",
        "business_phone", "barcode_scanner_enabled",
    },
)


def _defaults() -> dict:
    config = current_app.config
    return {
        "tax_rate": to_decimal(config.get("DEFAULT_TAX_RATE", 0)),
        "currency": config.get("DEFAULT_CURRENCY", "AED"),
        "business_name": config.get("DEFAULT_BUSINESS_NAME", ""),
        "barcode_scanner_enabled": True,
    }


def get_settings() -> POSSettings:
    settings = db.session.get(POSSettings, SETTINGS_ID)
    if settings is not None:
        return settings

    settings = POSSettings(id=SETTINGS_ID, **_defaults())
    db.session.add(settings)
    try:
        db.session.commit()
    except IntegrityError:
        # Another request created the row first
        db.session.rollback()
        settings = db.session.get(POSSettings, SETTINGS_ID)
    return settings


def current_tax_rate() -> Decimal:
    return to_decimal(get_settings().tax_rate)


def update_settings(payload: dict) -> POSSettings:
    patch = validate_payload(
        model=POSSettings,
        payload=normalize_payload("settings", payload),
        policy=SETTINGS_POLICY,
        partial=True,
    )
    enforce_rules_settings(patch)

    settings = get_settings()
    for key, value in patch.items():
        setattr(settings, key, value)
    db.session.commit()
    return settings
