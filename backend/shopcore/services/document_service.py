# Overview: Human-readable document numbers for sales and purchase orders.

"""
Order numbers are <PREFIX>-<base36 millisecond timestamp>-<random base36>,
upper-cased, e.g. ORD-M2K9QX1A-7F3KD and PO-M2K9QX1A-Z8Q.

The random suffix keeps collisions negligible; the unique constraints on
sales.order_id / purchase_orders.po_number remain the final guard, and
allocation re-draws when a candidate is already taken.
"""

from __future__ import annotations

import secrets
import string

from ..extensions import db
from ..models import Sale, PurchaseOrder
from ..time_utils import utcnow_millis

BASE36_ALPHABET = string.digits + string.ascii_uppercase

ORDER_ID_PREFIX = "ORD"
ORDER_ID_SUFFIX_LENGTH = 5
PO_NUMBER_PREFIX = "PO"
PO_NUMBER_SUFFIX_LENGTH = 3

MAX_ALLOCATION_ATTEMPTS = 5


class DocumentNumberError(Exception):
    """Raised when no free document number could be allocated."""
    pass


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def _random_base36(length: int) -> str:
    return "".join(secrets.choice(BASE36_ALPHABET) for _ in range(length))


def format_document_number(prefix: str, suffix_length: int, millis: int | None = None) -> str:
    if millis is None:
        millis = utcnow_millis()
    return f"{prefix}-{to_base36(millis)}-{_random_base36(suffix_length)}".upper()


def generate_order_id() -> str:
    """Allocate an unused sale order id."""
    return _allocate(
        lambda: format_document_number(ORDER_ID_PREFIX, ORDER_ID_SUFFIX_LENGTH),
        Sale.order_id,
    )


def generate_po_number() -> str:
    """Allocate an unused purchase order number."""
    return _allocate(
        lambda: format_document_number(PO_NUMBER_PREFIX, PO_NUMBER_SUFFIX_LENGTH),
        PurchaseOrder.po_number,
    )


def _allocate(make_candidate, column) -> str:
    for _ in range(MAX_ALLOCATION_ATTEMPTS):
        candidate = make_candidate()
        taken = db.session.query(column).filter(column == candidate).first()
        if taken is None:
            return candidate
    raise DocumentNumberError(f"Could not allocate a unique {column.key}")
