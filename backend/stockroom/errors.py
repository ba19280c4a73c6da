"""
Domain error taxonomy.

Every failure a caller can act on is one of these. Lookups raise
NotFoundError instead of returning None, so "absent" and "forbidden by a
business rule" can never be confused.
"""
from __future__ import annotations


class StockroomError(Exception):
    """Base class: carries a stable code, an HTTP status and details."""

    code = "error"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class InvalidInputError(StockroomError, ValueError):
    """Non-positive quantity, identical transfer locations, empty sale, bad field."""

    code = "invalid_input"
    http_status = 400


class MissingConversionError(StockroomError):
    """No UOM path between a transaction-time unit and the product's base unit."""

    code = "missing_conversion"
    http_status = 422


class InsufficientStockError(StockroomError):
    """Requested quantity exceeds what a location holds."""

    code = "insufficient_stock"
    http_status = 409


class InvalidStateTransitionError(StockroomError):
    """Approving an approved row, rejecting a rejected one, editing a deleted one."""

    code = "invalid_state_transition"
    http_status = 409


class NotFoundError(StockroomError):
    code = "not_found"
    http_status = 404
