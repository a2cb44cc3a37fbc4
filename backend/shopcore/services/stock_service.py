# Overview: Stock ledger; the only code allowed to change Product.stock.

"""
Stock Ledger Invariants (authoritative)

- Product.stock is the single source of truth for on-hand quantity.
- Every change goes through decrement_stock / increment_stock, scoped to a
  shop: a product from another shop is reported as not found.
- Decrements are conditional UPDATEs (`... WHERE stock >= :qty`), so the
  check and the write are one statement and stock can never go negative,
  whatever the isolation level. The CHECK constraint on products.stock
  backs this up.
- Neither function commits. They run inside the caller's transaction so a
  sale or receive either applies every line or none.
"""

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..errors import InsufficientStockError, InvalidInputError, InvalidStateError, NotFoundError
from ..models import Product, PurchaseOrder, PurchaseOrderItem, SaleItem

# Statuses whose items still expect stock to arrive
OPEN_PURCHASE_ORDER_STATUSES = ("draft", "sent", "partial")


def _require_positive_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidInputError(
            "Quantity must be a positive integer",
            details={"quantity": quantity},
        )
    return quantity


def get_product_in_shop(product_id: int, shop_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id, shop_id=shop_id).first()
    if product is None:
        raise NotFoundError(
            f"Product {product_id} not found",
            details={"product_id": product_id},
        )
    return product


def get_stock(product_id: int, shop_id: int) -> int:
    return get_product_in_shop(product_id, shop_id).stock


def decrement_stock(product_id: int, shop_id: int, quantity: int) -> Product:
    """
    Remove `quantity` units from a product's stock.

    Raises:
        NotFoundError: product missing or owned by another shop
        InsufficientStockError: quantity exceeds current stock
    """
    _require_positive_quantity(quantity)

    stmt = (
        update(Product)
        .where(
            Product.id == product_id,
            Product.shop_id == shop_id,
            Product.stock >= quantity,
        )
        .values(stock=Product.stock - quantity)
    )
    result = db.session.execute(stmt, execution_options={"synchronize_session": False})

    if result.rowcount != 1:
        product = get_product_in_shop(product_id, shop_id)
        db.session.refresh(product)
        raise InsufficientStockError(
            f"Insufficient stock for product {product.name}. "
            f"Available: {product.stock}, Requested: {quantity}",
            details={
                "product_id": product.id,
                "product_name": product.name,
                "available": product.stock,
                "requested": quantity,
            },
        )

    return _reload(product_id)


def increment_stock(product_id: int, shop_id: int, quantity: int) -> Product:
    """
    Add `quantity` units to a product's stock. No upper bound.

    Raises:
        NotFoundError: product missing or owned by another shop
    """
    _require_positive_quantity(quantity)

    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.shop_id == shop_id)
        .values(stock=Product.stock + quantity)
    )
    result = db.session.execute(stmt, execution_options={"synchronize_session": False})

    if result.rowcount != 1:
        raise NotFoundError(
            f"Product {product_id} not found",
            details={"product_id": product_id},
        )

    return _reload(product_id)


def _reload(product_id: int) -> Product:
    # The UPDATE bypassed the identity map; re-read so callers see the new stock
    return db.session.get(Product, product_id, populate_existing=True)


def has_open_purchase_order_items(product_id: int, shop_id: int) -> bool:
    return db.session.query(PurchaseOrderItem.id).join(PurchaseOrder).filter(
        PurchaseOrderItem.product_id == product_id,
        PurchaseOrder.shop_id == shop_id,
        PurchaseOrder.status.in_(OPEN_PURCHASE_ORDER_STATUSES),
    ).first() is not None


def has_stock_history(product_id: int) -> bool:
    """True when any sale line or purchase order line references the product."""
    if db.session.query(SaleItem.id).filter(SaleItem.product_id == product_id).first() is not None:
        return True
    return db.session.query(PurchaseOrderItem.id).filter(
        PurchaseOrderItem.product_id == product_id,
    ).first() is not None


def remove_product(product_id: int, shop_id: int) -> None:
    """
    Delete a product that no order has ever referenced.

    Sale lines and closed purchase order lines keep their product reference,
    so a product with history stays in place.

    Raises:
        NotFoundError: product missing or owned by another shop
        InvalidStateError: product is on a draft, sent or partial purchase order,
            or has sales or purchase order history
    """
    product = get_product_in_shop(product_id, shop_id)
    details = {"product_id": product.id, "product_name": product.name}

    if has_open_purchase_order_items(product_id, shop_id):
        raise InvalidStateError(
            f"Cannot remove product {product.name}: it is on an open purchase order",
            details=details,
        )

    if has_stock_history(product_id):
        raise InvalidStateError(
            f"Cannot remove product {product.name}: it has sales or purchase order history",
            details=details,
        )

    db.session.delete(product)
    db.session.commit()
