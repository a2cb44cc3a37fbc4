# Overview: Purchase order lifecycle; drafts, sending, partial/full receiving and cancellation.

"""
Purchase Order Service

LIFECYCLE:
    draft   --update-->  draft
    draft   --send-->    sent
    draft   --cancel-->  cancelled
    sent    --cancel-->  cancelled
    sent    --receive--> partial | received
    partial --receive--> partial | received

received and cancelled are terminal. Every (status, action) pair not listed
above fails with InvalidStateError; ALLOWED_SOURCE_STATUSES is the single
table the checks read from.

RECEIVING:
- receive_partial takes explicit {item_id, quantity_received} lines.
- receive_all takes every item's outstanding quantity.
- Either way, the stock increments, quantity_received updates and the new
  status are written in one transaction; a single bad line fails the whole
  call with nothing applied.

Supplier statistics, supplier notices and in-app notifications run after
commit and never undo a transition.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from flask import current_app

from ..extensions import db
from ..errors import ExceedsOrderedError, InvalidInputError, InvalidStateError, NotFoundError
from ..models import Product, PurchaseOrder, PurchaseOrderItem, Supplier
from ..time_utils import utcnow
from .activity_service import append_activity
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .document_service import generate_po_number
from .hooks import HookResult, run_post_commit
from .stock_service import increment_stock
from . import notification_service, stats_service, supplier_notification_service


STATUS_DRAFT = "draft"
STATUS_SENT = "sent"
STATUS_PARTIAL = "partial"
STATUS_RECEIVED = "received"
STATUS_CANCELLED = "cancelled"

PO_STATUSES = (STATUS_DRAFT, STATUS_SENT, STATUS_PARTIAL, STATUS_RECEIVED, STATUS_CANCELLED)

ACTION_UPDATE = "update"
ACTION_SEND = "send"
ACTION_RECEIVE = "receive"
ACTION_CANCEL = "cancel"

ALLOWED_SOURCE_STATUSES = {
    ACTION_UPDATE: frozenset({STATUS_DRAFT}),
    ACTION_SEND: frozenset({STATUS_DRAFT}),
    ACTION_RECEIVE: frozenset({STATUS_SENT, STATUS_PARTIAL}),
    ACTION_CANCEL: frozenset({STATUS_DRAFT, STATUS_SENT}),
}


@dataclass(frozen=True)
class OrderItemInput:
    product_id: int
    quantity_ordered: int
    unit_cost_cents: int | None = None


@dataclass(frozen=True)
class ReceiveLineInput:
    item_id: int
    quantity_received: int


@dataclass(frozen=True)
class ReceivedLine:
    item_id: int
    product_id: int
    product_name: str
    quantity_received: int
    unit_cost_cents: int

    @property
    def cost_cents(self) -> int:
        return self.quantity_received * self.unit_cost_cents

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity_received": self.quantity_received,
            "unit_cost_cents": self.unit_cost_cents,
        }


@dataclass
class SendResult:
    purchase_order: PurchaseOrder
    supplier_notification: dict | None = None
    side_effects: list[HookResult] = field(default_factory=list)


@dataclass
class ReceiveResult:
    purchase_order: PurchaseOrder
    received_lines: list[ReceivedLine]
    is_fully_received: bool
    side_effects: list[HookResult] = field(default_factory=list)

    @property
    def received_cost_cents(self) -> int:
        return sum(line.cost_cents for line in self.received_lines)

    def to_dict(self) -> dict:
        return {
            "purchase_order": self.purchase_order.to_dict(),
            "received": [line.to_dict() for line in self.received_lines],
            "is_fully_received": self.is_fully_received,
        }


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def require_transition(purchase_order: PurchaseOrder, action: str) -> None:
    """Raise InvalidStateError unless `action` is allowed from the order's status."""
    allowed = ALLOWED_SOURCE_STATUSES[action]
    if purchase_order.status in allowed:
        return
    raise InvalidStateError(
        f"Cannot {action} {purchase_order.status} purchase order {purchase_order.po_number}. "
        f"Allowed from: {', '.join(sorted(allowed))}",
        details={
            "purchase_order_id": purchase_order.id,
            "status": purchase_order.status,
            "action": action,
        },
    )


def parse_order_items(raw_items) -> list[OrderItemInput]:
    """
    Validate order lines as submitted by a client:
    [{"product_id", "quantity_ordered", "unit_cost_cents"?}, ...]
    """
    if not raw_items or not isinstance(raw_items, (list, tuple)):
        raise InvalidInputError("At least one item is required")

    parsed = []
    for index, raw in enumerate(raw_items):
        if isinstance(raw, OrderItemInput):
            parsed.append(raw)
            continue
        if not isinstance(raw, dict):
            raise InvalidInputError("Each item must be an object", details={"line": index})

        product_id = raw.get("product_id")
        quantity = raw.get("quantity_ordered")
        unit_cost = raw.get("unit_cost_cents")

        if not _is_int(product_id):
            raise InvalidInputError("Each item requires a product_id", details={"line": index})
        if not _is_int(quantity) or quantity <= 0:
            raise InvalidInputError(
                "Each item must have productId and positive quantityOrdered",
                details={"line": index, "product_id": product_id, "quantity_ordered": quantity},
            )
        if unit_cost is not None and (not _is_int(unit_cost) or unit_cost < 0):
            raise InvalidInputError(
                "unit_cost_cents must be a non-negative integer",
                details={"line": index, "product_id": product_id, "unit_cost_cents": unit_cost},
            )

        parsed.append(OrderItemInput(
            product_id=product_id,
            quantity_ordered=quantity,
            unit_cost_cents=unit_cost,
        ))
    return parsed


def parse_receive_lines(raw_lines) -> list[ReceiveLineInput]:
    """Validate [{"item_id", "quantity_received"}, ...] for a targeted receive."""
    if not isinstance(raw_lines, (list, tuple)):
        raise InvalidInputError("items must be a list")

    parsed = []
    for index, raw in enumerate(raw_lines):
        if isinstance(raw, ReceiveLineInput):
            raw = {"item_id": raw.item_id, "quantity_received": raw.quantity_received}
        if not isinstance(raw, dict):
            raise InvalidInputError("Each item must be an object", details={"line": index})

        item_id = raw.get("item_id")
        quantity = raw.get("quantity_received")

        if not _is_int(item_id):
            raise InvalidInputError("Each item requires an item_id", details={"line": index})
        if not _is_int(quantity) or quantity <= 0:
            raise InvalidInputError(
                "Each item must have itemId and positive quantityReceived",
                details={"line": index, "item_id": item_id, "quantity_received": quantity},
            )
        parsed.append(ReceiveLineInput(item_id=item_id, quantity_received=quantity))
    return parsed


def _get_supplier_in_shop(supplier_id: int, shop_id: int) -> Supplier:
    supplier = db.session.query(Supplier).filter_by(id=supplier_id, shop_id=shop_id).first()
    if supplier is None:
        raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})
    return supplier


def _build_items(shop_id: int, items: list[OrderItemInput]) -> tuple[list[PurchaseOrderItem], int]:
    """
    Resolve products and unit costs. A missing unit cost defaults to the
    product's current price, fixed at this moment.
    """
    built = []
    total = 0
    for index, item in enumerate(items):
        product = db.session.query(Product).filter_by(id=item.product_id, shop_id=shop_id).first()
        if product is None:
            raise NotFoundError(
                f"Product {item.product_id} not found",
                details={"product_id": item.product_id, "line": index},
            )

        unit_cost = item.unit_cost_cents if item.unit_cost_cents is not None else product.price_cents
        total += unit_cost * item.quantity_ordered
        built.append(PurchaseOrderItem(
            product_id=product.id,
            quantity_ordered=item.quantity_ordered,
            quantity_received=0,
            unit_cost_cents=unit_cost,
        ))
    return built, total


def _load_for_update(purchase_order_id: int, shop_id: int) -> PurchaseOrder:
    po = lock_for_update(
        db.session.query(PurchaseOrder).filter_by(id=purchase_order_id, shop_id=shop_id)
    ).first()
    if po is None:
        raise NotFoundError("Purchase order not found", details={"purchase_order_id": purchase_order_id})
    return po


def get_purchase_order(purchase_order_id: int, shop_id: int) -> PurchaseOrder:
    po = db.session.query(PurchaseOrder).filter_by(id=purchase_order_id, shop_id=shop_id).first()
    if po is None:
        raise NotFoundError("Purchase order not found", details={"purchase_order_id": purchase_order_id})
    return po


def list_purchase_orders(
    shop_id: int,
    *,
    status: str | None = None,
    supplier_id: int | None = None,
) -> list[PurchaseOrder]:
    if status is not None and status not in PO_STATUSES:
        raise InvalidInputError(
            f"Invalid status. Must be one of: {', '.join(PO_STATUSES)}",
            details={"status": status},
        )

    query = db.session.query(PurchaseOrder).filter(PurchaseOrder.shop_id == shop_id)
    if status:
        query = query.filter(PurchaseOrder.status == status)
    if supplier_id:
        query = query.filter(PurchaseOrder.supplier_id == supplier_id)
    return query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()


def create_purchase_order(
    *,
    shop_id: int,
    supplier_id: int,
    items,
    notes: str | None = None,
    staff_id: int | None = None,
) -> PurchaseOrder:
    """
    Create a draft purchase order.

    Raises:
        InvalidInputError: no items, or a non-positive quantity
        NotFoundError: supplier or product not in this shop
    """
    parsed_items = parse_order_items(items)

    def _op() -> int:
        begin_write_transaction()
        _get_supplier_in_shop(supplier_id, shop_id)
        built_items, total = _build_items(shop_id, parsed_items)

        po = PurchaseOrder(
            po_number=generate_po_number(),
            shop_id=shop_id,
            supplier_id=supplier_id,
            total_amount_cents=total,
            status=STATUS_DRAFT,
            notes=notes or None,
            created_by_staff_id=staff_id,
        )
        po.items = built_items
        db.session.add(po)
        db.session.flush()

        append_activity(
            shop_id=shop_id,
            staff_id=staff_id,
            action="purchase_order.created",
            entity_type="purchase_order",
            entity_id=po.id,
            details={"po_number": po.po_number, "total_amount_cents": total},
        )

        db.session.commit()
        return po.id

    po_id = run_with_retry(_op)
    po = db.session.get(PurchaseOrder, po_id)
    current_app.logger.info("Created purchase order %s in shop %s", po.po_number, shop_id)
    return po


def update_purchase_order(
    *,
    purchase_order_id: int,
    shop_id: int,
    items=None,
    notes: str | None = None,
    staff_id: int | None = None,
) -> PurchaseOrder:
    """
    Edit a draft purchase order.

    When `items` is given the whole item set is replaced and the total
    recomputed; otherwise only `notes` changes. The status check runs
    before the items are validated.

    Raises:
        InvalidStateError: order is not a draft
        InvalidInputError / NotFoundError: as for create_purchase_order
    """
    def _op() -> int:
        begin_write_transaction()
        po = _load_for_update(purchase_order_id, shop_id)
        require_transition(po, ACTION_UPDATE)

        items_replaced = items is not None
        if items_replaced:
            built_items, total = _build_items(shop_id, parse_order_items(items))
            po.items = built_items
            po.total_amount_cents = total

        if notes is not None:
            po.notes = notes or None

        # Always write the order row so version_id moves with every edit
        po.updated_at = utcnow()
        db.session.flush()

        append_activity(
            shop_id=shop_id,
            staff_id=staff_id,
            action="purchase_order.updated",
            entity_type="purchase_order",
            entity_id=po.id,
            details={
                "items_replaced": items_replaced,
                "total_amount_cents": po.total_amount_cents,
            },
        )

        db.session.commit()
        return po.id

    po_id = run_with_retry(_op)
    return db.session.get(PurchaseOrder, po_id)


def send_purchase_order(
    *,
    purchase_order_id: int,
    shop_id: int,
    staff_id: int | None = None,
) -> SendResult:
    """
    Lock a draft order and send it to the supplier.

    The supplier notice is informational: the transition to `sent` commits
    first and stands whether or not the notice goes out.

    Raises:
        InvalidStateError: order is not a draft
    """
    def _op() -> int:
        begin_write_transaction()
        po = _load_for_update(purchase_order_id, shop_id)
        require_transition(po, ACTION_SEND)

        po.status = STATUS_SENT
        po.sent_at = utcnow()
        db.session.flush()

        append_activity(
            shop_id=shop_id,
            staff_id=staff_id,
            action="purchase_order.sent",
            entity_type="purchase_order",
            entity_id=po.id,
            details={"po_number": po.po_number},
        )

        db.session.commit()
        return po.id

    po_id = run_with_retry(_op)
    po = db.session.get(PurchaseOrder, po_id)
    current_app.logger.info("Sent purchase order %s to supplier %s", po.po_number, po.supplier_id)

    side_effects = []
    notice = run_post_commit(
        "supplier_notification",
        supplier_notification_service.send_purchase_order_to_supplier,
        po,
    )
    side_effects.append(notice)
    side_effects.append(run_post_commit(
        "supplier_stats",
        stats_service.on_purchase_order_sent,
        po.supplier_id,
        po.sent_at,
    ))
    side_effects.append(run_post_commit(
        "purchase_order_notification",
        notification_service.notify_purchase_order_sent,
        po,
        supplier_notification=notice.value if notice.ok else {"success": False, "message": notice.error},
        user_id=staff_id,
    ))

    return SendResult(
        purchase_order=po,
        supplier_notification=notice.value if notice.ok else None,
        side_effects=side_effects,
    )


def _resolve_targeted(po: PurchaseOrder, lines: list[ReceiveLineInput]) -> list[tuple[PurchaseOrderItem, int]]:
    items_by_id = {item.id: item for item in po.items}

    requested: dict[int, int] = {}
    for line in lines:
        item = items_by_id.get(line.item_id)
        if item is None:
            raise NotFoundError(
                f"Item {line.item_id} not found in this PO",
                details={"item_id": line.item_id, "purchase_order_id": po.id},
            )
        requested[item.id] = requested.get(item.id, 0) + line.quantity_received

    resolved = []
    for item_id, quantity in requested.items():
        item = items_by_id[item_id]
        remaining = item.quantity_remaining
        if quantity > remaining:
            raise ExceedsOrderedError(
                f"Cannot receive more than ordered. Item {item.product.name}: "
                f"ordered {item.quantity_ordered}, already received {item.quantity_received}, "
                f"remaining {remaining}",
                details={
                    "item_id": item.id,
                    "product_id": item.product_id,
                    "product_name": item.product.name,
                    "quantity_ordered": item.quantity_ordered,
                    "quantity_received": item.quantity_received,
                    "remaining": remaining,
                    "requested": quantity,
                },
            )
        resolved.append((item, quantity))
    return resolved


def _resolve_all(po: PurchaseOrder) -> list[tuple[PurchaseOrderItem, int]]:
    return [(item, item.quantity_remaining) for item in po.items if item.quantity_remaining > 0]


def _receive(
    purchase_order_id: int,
    shop_id: int,
    resolve: Callable[[PurchaseOrder], list[tuple[PurchaseOrderItem, int]]],
    staff_id: int | None,
) -> ReceiveResult:
    def _op() -> tuple[int, list[ReceivedLine]]:
        begin_write_transaction()
        po = _load_for_update(purchase_order_id, shop_id)
        require_transition(po, ACTION_RECEIVE)

        to_receive = resolve(po)
        if not to_receive:
            raise InvalidInputError(
                "No items to receive",
                details={"purchase_order_id": po.id},
            )

        received = []
        for item, quantity in to_receive:
            increment_stock(item.product_id, po.shop_id, quantity)
            item.quantity_received = item.quantity_received + quantity
            received.append(ReceivedLine(
                item_id=item.id,
                product_id=item.product_id,
                product_name=item.product.name,
                quantity_received=quantity,
                unit_cost_cents=item.unit_cost_cents,
            ))

        if po.is_fully_received:
            po.status = STATUS_RECEIVED
            po.received_at = utcnow()
        else:
            po.status = STATUS_PARTIAL
        db.session.flush()

        append_activity(
            shop_id=shop_id,
            staff_id=staff_id,
            action="purchase_order.received",
            entity_type="purchase_order",
            entity_id=po.id,
            details={
                "status": po.status,
                "lines": [line.to_dict() for line in received],
            },
        )

        db.session.commit()
        return po.id, received

    po_id, received_lines = run_with_retry(_op)
    po = db.session.get(PurchaseOrder, po_id)
    fully = po.status == STATUS_RECEIVED

    current_app.logger.info(
        "Received %s line(s) on purchase order %s; status now %s",
        len(received_lines), po.po_number, po.status,
    )

    result = ReceiveResult(
        purchase_order=po,
        received_lines=received_lines,
        is_fully_received=fully,
    )
    result.side_effects = [
        run_post_commit(
            "supplier_stats",
            stats_service.on_purchase_order_received,
            po.supplier_id,
            result.received_cost_cents,
        ),
        run_post_commit(
            "supplier_shipment_notice",
            supplier_notification_service.notify_shipment_received,
            po,
            received_lines,
        ),
        run_post_commit(
            "purchase_order_notification",
            notification_service.notify_purchase_order_received,
            po,
            received_units=sum(line.quantity_received for line in received_lines),
            user_id=staff_id,
        ),
    ]
    return result


def receive_partial(
    *,
    purchase_order_id: int,
    shop_id: int,
    lines,
    staff_id: int | None = None,
) -> ReceiveResult:
    """
    Receive specific quantities against specific items.

    Lines are validated only after the order is found and its status
    allows receiving.

    Raises:
        InvalidStateError: order is not sent or partial
        InvalidInputError: non-positive quantity, or empty line list
        NotFoundError: item not on this order
        ExceedsOrderedError: more than an item's remaining quantity
    """
    return _receive(
        purchase_order_id,
        shop_id,
        lambda po: _resolve_targeted(po, parse_receive_lines(lines)),
        staff_id,
    )


def receive_all(
    *,
    purchase_order_id: int,
    shop_id: int,
    staff_id: int | None = None,
) -> ReceiveResult:
    """
    Receive every item's outstanding quantity.

    Raises:
        InvalidStateError: order is not sent or partial
        InvalidInputError: nothing left to receive
    """
    return _receive(purchase_order_id, shop_id, _resolve_all, staff_id)


def receive_purchase_order(
    *,
    purchase_order_id: int,
    shop_id: int,
    items=None,
    staff_id: int | None = None,
) -> ReceiveResult:
    """Request-shaped entry point: omitted `items` means receive everything outstanding."""
    if items is None:
        return receive_all(purchase_order_id=purchase_order_id, shop_id=shop_id, staff_id=staff_id)
    return receive_partial(
        purchase_order_id=purchase_order_id,
        shop_id=shop_id,
        lines=items,
        staff_id=staff_id,
    )


def cancel_purchase_order(
    *,
    purchase_order_id: int,
    shop_id: int,
    staff_id: int | None = None,
    reason: str | None = None,
) -> PurchaseOrder:
    """
    Cancel a draft or sent order. No stock or supplier statistics change.

    Raises:
        InvalidStateError: order is partial, received or already cancelled
    """
    def _op() -> int:
        begin_write_transaction()
        po = _load_for_update(purchase_order_id, shop_id)
        require_transition(po, ACTION_CANCEL)

        po.status = STATUS_CANCELLED
        po.cancelled_at = utcnow()
        db.session.flush()

        append_activity(
            shop_id=shop_id,
            staff_id=staff_id,
            action="purchase_order.cancelled",
            entity_type="purchase_order",
            entity_id=po.id,
            details={"po_number": po.po_number, "reason": reason},
        )

        db.session.commit()
        return po.id

    po_id = run_with_retry(_op)
    po = db.session.get(PurchaseOrder, po_id)
    current_app.logger.info("Cancelled purchase order %s", po.po_number)
    return po
