# Overview: Sale recorder; validates a cart, records the sale and takes the stock out.

"""
Sales Service

record_sale is all-or-nothing:
1. Validate the cart, the customer and every product's stock before any write.
2. In one transaction: create the Sale and its SaleItems, decrement each
   product's stock (conditional UPDATE, re-checked at write time) and
   append the activity row.
3. After commit, best-effort side effects: customer statistics, the
   sale-recorded notification and low-stock notifications. Their failures
   are logged and reported in SaleResult.side_effects, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..errors import InsufficientStockError, InvalidInputError, NotFoundError
from ..models import Customer, Product, Sale, SaleItem
from .activity_service import append_activity
from .concurrency import begin_write_transaction, run_with_retry
from .document_service import generate_order_id
from .hooks import HookResult, run_post_commit
from .stock_service import decrement_stock
from . import notification_service, stats_service


@dataclass(frozen=True)
class SaleItemInput:
    product_id: int
    quantity: int
    price_cents: int
    discount_bps: int = 0


@dataclass
class SaleResult:
    sale: Sale
    side_effects: list[HookResult] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [f"{r.name}: {r.error}" for r in self.side_effects if not r.ok]


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def discount_percent_to_bps(value) -> int:
    """Convert a 0-100 percentage (int, float or numeric string) to basis points."""
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise InvalidInputError("discount_percent must be a number", details={"discount_percent": value})
    try:
        percent = Decimal(str(value))
    except InvalidOperation:
        raise InvalidInputError("discount_percent must be a number", details={"discount_percent": value})
    if not percent.is_finite() or percent < 0 or percent > 100:
        raise InvalidInputError(
            "discount_percent must be between 0 and 100",
            details={"discount_percent": value},
        )
    return int((percent * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def line_total_cents(price_cents: int, quantity: int, discount_bps: int = 0) -> int:
    """price x quantity less the percentage discount, rounded half-up to the cent."""
    gross = Decimal(price_cents) * quantity
    net = gross * (Decimal(10000 - discount_bps) / Decimal(10000))
    return int(net.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_sale_items(raw_items) -> list[SaleItemInput]:
    """
    Validate cart lines as submitted by a client:
    [{"product_id", "quantity", "price_cents", "discount_percent"?}, ...]
    """
    if not raw_items or not isinstance(raw_items, (list, tuple)):
        raise InvalidInputError("At least one item is required")

    parsed = []
    for index, raw in enumerate(raw_items):
        if isinstance(raw, SaleItemInput):
            raw = {
                "product_id": raw.product_id,
                "quantity": raw.quantity,
                "price_cents": raw.price_cents,
                "discount_percent": raw.discount_bps / 100,
            }
        if not isinstance(raw, dict):
            raise InvalidInputError("Each item must be an object", details={"line": index})

        product_id = raw.get("product_id")
        quantity = raw.get("quantity")
        price_cents = raw.get("price_cents")

        if not _is_int(product_id):
            raise InvalidInputError("Each item requires a product_id", details={"line": index})
        if not _is_int(quantity) or quantity <= 0:
            raise InvalidInputError(
                "Each item requires a positive integer quantity",
                details={"line": index, "product_id": product_id, "quantity": quantity},
            )
        if not _is_int(price_cents) or price_cents < 0:
            raise InvalidInputError(
                "Each item requires a non-negative price_cents",
                details={"line": index, "product_id": product_id, "price_cents": price_cents},
            )

        try:
            discount_bps = discount_percent_to_bps(raw.get("discount_percent"))
        except InvalidInputError as exc:
            exc.details["line"] = index
            raise

        parsed.append(SaleItemInput(
            product_id=product_id,
            quantity=quantity,
            price_cents=price_cents,
            discount_bps=discount_bps,
        ))
    return parsed


def _validate_customer(shop_id: int, customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id, shop_id=shop_id).first()
    if customer is None:
        raise NotFoundError("Customer not found", details={"customer_id": customer_id})
    return customer


def _validate_stock(shop_id: int, items: list[SaleItemInput]) -> dict[int, Product]:
    """
    Check every product before anything is written.

    Quantities are summed per product, so two lines for the same product
    are checked against its stock together.
    """
    requested: dict[int, int] = {}
    first_line: dict[int, int] = {}
    for index, item in enumerate(items):
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity
        first_line.setdefault(item.product_id, index)

    products: dict[int, Product] = {}
    for product_id, quantity in requested.items():
        product = db.session.query(Product).filter_by(id=product_id, shop_id=shop_id).first()
        if product is None:
            raise NotFoundError(
                f"Product {product_id} not found",
                details={"product_id": product_id, "line": first_line[product_id]},
            )
        if product.stock < quantity:
            raise InsufficientStockError(
                f"Insufficient stock for product {product.name}. "
                f"Available: {product.stock}, Requested: {quantity}",
                details={
                    "product_id": product.id,
                    "product_name": product.name,
                    "available": product.stock,
                    "requested": quantity,
                    "line": first_line[product_id],
                },
            )
        products[product_id] = product
    return products


def record_sale(
    *,
    shop_id: int,
    staff_id: int,
    items,
    customer_id: int | None = None,
    note: str | None = None,
) -> SaleResult:
    """
    Record a point-of-sale transaction.

    Args:
        shop_id: Shop making the sale
        staff_id: Staff member recording it (already authorized by the caller)
        items: Cart lines (dicts or SaleItemInput)
        customer_id: Optional customer; must belong to the shop
        note: Optional free-text note

    Returns:
        SaleResult with the committed Sale and post-commit side-effect results

    Raises:
        InvalidInputError: empty or malformed cart
        NotFoundError: customer or product missing from the shop
        InsufficientStockError: a product lacks stock (names product, available, requested)
    """
    parsed_items = parse_sale_items(items)

    def _op() -> int:
        begin_write_transaction()

        if customer_id is not None:
            _validate_customer(shop_id, customer_id)

        _validate_stock(shop_id, parsed_items)

        sale = Sale(
            order_id=generate_order_id(),
            shop_id=shop_id,
            staff_id=staff_id,
            customer_id=customer_id,
            note=note,
        )
        db.session.add(sale)

        total = 0
        for item in parsed_items:
            line_total = line_total_cents(item.price_cents, item.quantity, item.discount_bps)
            total += line_total
            sale.items.append(SaleItem(
                product_id=item.product_id,
                quantity=item.quantity,
                price_cents=item.price_cents,
                discount_bps=item.discount_bps,
                line_total_cents=line_total,
            ))
        sale.total_amount_cents = total
        db.session.flush()

        for item in parsed_items:
            decrement_stock(item.product_id, shop_id, item.quantity)

        append_activity(
            shop_id=shop_id,
            staff_id=staff_id,
            action="record_sale",
            entity_type="sale",
            entity_id=sale.id,
            details={
                "order_id": sale.order_id,
                "total_amount_cents": total,
                "item_count": len(parsed_items),
            },
        )

        db.session.commit()
        return sale.id

    sale_id = run_with_retry(_op)
    sale = db.session.get(Sale, sale_id)

    current_app.logger.info(
        "Recorded sale %s in shop %s: %s line(s), total %sc",
        sale.order_id, shop_id, len(sale.items), sale.total_amount_cents,
    )

    return SaleResult(sale=sale, side_effects=_after_sale(sale, staff_id))


def _after_sale(sale: Sale, staff_id: int) -> list[HookResult]:
    results = []

    if sale.customer_id is not None:
        results.append(run_post_commit(
            "customer_stats",
            stats_service.on_sale_completed,
            sale.customer_id,
            sale.total_amount_cents,
            sale.created_at,
        ))

    results.append(run_post_commit(
        "sale_notification",
        notification_service.notify_sale_recorded,
        sale,
        user_id=staff_id,
    ))

    threshold = current_app.config.get("LOW_STOCK_THRESHOLD", 10)
    seen = set()
    for item in sale.items:
        if item.product_id in seen:
            continue
        seen.add(item.product_id)
        product = db.session.get(Product, item.product_id, populate_existing=True)
        if product is not None and product.stock <= threshold:
            results.append(run_post_commit(
                f"low_stock:{product.id}",
                notification_service.notify_low_stock,
                product,
                sale_id=sale.id,
                user_id=staff_id,
            ))

    return results


def get_sale(sale_id: int, shop_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, shop_id=shop_id).first()
    if sale is None:
        raise NotFoundError("Sale not found", details={"sale_id": sale_id})
    return sale


def get_sale_by_order_id(order_id: str, shop_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(order_id=order_id.upper(), shop_id=shop_id).first()
    if sale is None:
        raise NotFoundError("Sale not found", details={"order_id": order_id})
    return sale


def list_sales(shop_id: int, *, limit: int = 100, offset: int = 0) -> tuple[list[Sale], int]:
    """Newest first. Returns (page, total count)."""
    query = db.session.query(Sale).filter(Sale.shop_id == shop_id)
    total = query.count()
    sales = query.order_by(Sale.created_at.desc(), Sale.id.desc()).offset(offset).limit(limit).all()
    return sales, total
