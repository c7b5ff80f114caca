# Overview: Error taxonomy shared by services and routes.

"""
Service errors carry a machine-readable ``kind`` and an HTTP status so routes
can translate them without knowing which service raised them.

- ValidationError: bad input, never retried, no side effects
- NotFoundError: referenced row does not exist
- ConflictError: business rule conflict (duplicate barcode, double return)
- PersistenceError: storage call failed; ``retryable`` tells the caller
  whether a blind retry is safe, ``needs_reconciliation`` flags partial writes
"""

from __future__ import annotations


class POSError(Exception):
    """Base class for errors surfaced to API callers."""

    http_status = 500
    default_kind = "error"

    def __init__(self, message: str, *, kind: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.kind = kind or self.default_kind
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "kind": self.kind}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(POSError, ValueError):
    """400-level input problem."""

    http_status = 400
    default_kind = "validation_error"


class NotFoundError(POSError, LookupError):
    http_status = 404
    default_kind = "not_found"


class ConflictError(POSError, ValueError):
    """409-level business rule conflict (e.g., duplicate barcode, order already returned)."""

    http_status = 409
    default_kind = "conflict"


class PersistenceError(POSError):
    """Storage failure, with enough context to decide between retry and manual repair."""

    http_status = 500
    default_kind = "processing_failed"

    def __init__(
        self,
        message: str,
        *,
        kind: str | None = None,
        details: dict | None = None,
        retryable: bool = False,
        needs_reconciliation: bool = False,
    ):
        super().__init__(message, kind=kind, details=details)
        self.retryable = retryable
        self.needs_reconciliation = needs_reconciliation

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["retryable"] = self.retryable
        payload["needs_reconciliation"] = self.needs_reconciliation
        return payload


class ConsistencyWarning(UserWarning):
    """Non-fatal: a multi-step write partially succeeded and cleanup did not finish."""


def register_error_handlers(app) -> None:
    """JSON bodies for service errors that escape a route, and for unknown URLs."""
    from flask import jsonify

    @app.errorhandler(POSError)
    def handle_pos_error(e: POSError):
        if e.http_status >= 500:
            app.logger.error("%s: %s", type(e).__name__, e.message)
        return jsonify(e.to_dict()), e.http_status

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify({"error": "Method not allowed"}), 405
