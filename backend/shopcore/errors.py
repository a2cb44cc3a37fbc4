# Overview: Domain error taxonomy shared by the stock, sales and purchasing services.

"""
Every error the engine raises on purpose derives from InventoryError and
carries a human-readable message plus a details dict (affected entity,
requested vs. available quantities). Callers render them; nothing here is
retried automatically.
"""

from __future__ import annotations


class InventoryError(Exception):
    """Base class for domain errors surfaced to callers."""

    code = "inventory_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class NotFoundError(InventoryError):
    """Product, customer, supplier, order or item missing (or in another shop)."""

    code = "not_found"


class InsufficientStockError(InventoryError):
    """Requested quantity exceeds the product's on-hand stock."""

    code = "insufficient_stock"


class InvalidInputError(InventoryError):
    """Malformed or empty request."""

    code = "invalid_input"


class InvalidStateError(InventoryError):
    """Operation not allowed from the purchase order's current status."""

    code = "invalid_state"


class ExceedsOrderedError(InventoryError):
    """Receiving more than the remaining ordered quantity."""

    code = "exceeds_ordered"
