# backend/laundrypos/config.py
from __future__ import annotations
import os


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw not in (None, "") else default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/laundrypos.sqlite3 unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///laundrypos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # "database" persists counters in id_sequences; "memory" is the per-process
    # fallback and is only valid for isolated test harnesses.
    SEQUENCE_STORE = os.environ.get("SEQUENCE_STORE", "database")
    SEQUENCE_RETRY_ATTEMPTS = _env_int("SEQUENCE_RETRY_ATTEMPTS", 5)
    SEQUENCE_RETRY_BASE_DELAY = _env_float("SEQUENCE_RETRY_BASE_DELAY", 0.05)

    DB_RETRY_ATTEMPTS = _env_int("DB_RETRY_ATTEMPTS", 3)
    DB_RETRY_BASE_DELAY = _env_float("DB_RETRY_BASE_DELAY", 0.1)

    # Used until the settings row has been saved once
    DEFAULT_TAX_RATE = _env_float("DEFAULT_TAX_RATE", 5.0)
    DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "AED")
    DEFAULT_BUSINESS_NAME = os.environ.get("DEFAULT_BUSINESS_NAME", "Laundry POS")

    # "exclusive": tax added on top of the discounted subtotal (checkout).
    # "inclusive": tax carved out of it (billing redisplay of a saved order).
    CHECKOUT_TAX_CONVENTION = os.environ.get("CHECKOUT_TAX_CONVENTION", "exclusive")
    BILLING_TAX_CONVENTION = os.environ.get("BILLING_TAX_CONVENTION", "inclusive")

    SESSION_TTL_HOURS = _env_int("SESSION_TTL_HOURS", 24)

    CORS_ALLOWED_ORIGINS = os.environ.get(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:8080",
    )
