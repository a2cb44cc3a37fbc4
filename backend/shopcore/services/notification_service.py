# Overview: In-app notifications emitted after sales and purchase order transitions.

from __future__ import annotations

from ..extensions import db
from ..models import Notification

TYPE_SALE = "sale"
TYPE_LOW_STOCK = "low_stock"
TYPE_PURCHASE_ORDER_SENT = "purchase_order_sent"
TYPE_PURCHASE_ORDER_RECEIVED = "purchase_order_received"


def _format_cents(cents: int) -> str:
    return f"{cents / 100:,.2f}"


def create_notification(
    *,
    shop_id: int,
    type: str,
    title: str,
    message: str,
    user_id: int | None = None,
    data: dict | None = None,
) -> Notification:
    notification = Notification(
        shop_id=shop_id,
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        data=data,
        is_read=False,
    )
    db.session.add(notification)
    db.session.commit()
    return notification


def notify_sale_recorded(sale, user_id: int | None = None) -> Notification:
    item_count = len(sale.items)
    return create_notification(
        shop_id=sale.shop_id,
        user_id=user_id,
        type=TYPE_SALE,
        title="New Sale Recorded",
        message=(
            f"Sale #{sale.order_id} completed for {_format_cents(sale.total_amount_cents)} "
            f"with {item_count} item(s)."
        ),
        data={
            "sale_id": sale.id,
            "order_id": sale.order_id,
            "total_amount_cents": sale.total_amount_cents,
            "item_count": item_count,
        },
    )


def notify_low_stock(product, *, sale_id: int | None = None, user_id: int | None = None) -> Notification:
    return create_notification(
        shop_id=product.shop_id,
        user_id=user_id,
        type=TYPE_LOW_STOCK,
        title="Low Stock Alert",
        message=(
            f'Product "{product.name}" is running low on stock after recent sale. '
            f"Current quantity: {product.stock} units."
        ),
        data={
            "product_id": product.id,
            "product_name": product.name,
            "stock": product.stock,
            "sale_id": sale_id,
        },
    )


def notify_purchase_order_sent(
    purchase_order,
    *,
    supplier_notification: dict | None = None,
    user_id: int | None = None,
) -> Notification:
    supplier_name = purchase_order.supplier.name if purchase_order.supplier else "supplier"
    return create_notification(
        shop_id=purchase_order.shop_id,
        user_id=user_id,
        type=TYPE_PURCHASE_ORDER_SENT,
        title="Purchase Order Sent",
        message=(
            f"Purchase order {purchase_order.po_number} sent to {supplier_name} "
            f"for {_format_cents(purchase_order.total_amount_cents)}."
        ),
        data={
            "purchase_order_id": purchase_order.id,
            "po_number": purchase_order.po_number,
            "supplier_id": purchase_order.supplier_id,
            "supplier_notification": supplier_notification,
        },
    )


def notify_purchase_order_received(
    purchase_order,
    *,
    received_units: int,
    user_id: int | None = None,
) -> Notification:
    state = "fully received" if purchase_order.status == "received" else "partially received"
    return create_notification(
        shop_id=purchase_order.shop_id,
        user_id=user_id,
        type=TYPE_PURCHASE_ORDER_RECEIVED,
        title="Shipment Received",
        message=f"Purchase order {purchase_order.po_number} {state}: {received_units} unit(s) added to stock.",
        data={
            "purchase_order_id": purchase_order.id,
            "po_number": purchase_order.po_number,
            "status": purchase_order.status,
            "received_units": received_units,
        },
    )


def list_notifications(
    shop_id: int,
    *,
    user_id: int | None = None,
    unread_only: bool = False,
    limit: int = 20,
) -> tuple[list[Notification], int]:
    """
    Return (newest notifications, unread count) for a shop.

    user_id narrows to one recipient; shop-wide notifications (user_id NULL)
    are always included.
    """
    query = db.session.query(Notification).filter(Notification.shop_id == shop_id)
    if user_id is not None:
        query = query.filter(
            (Notification.user_id == user_id) | (Notification.user_id.is_(None))
        )

    unread_count = query.filter(Notification.is_read.is_(False)).count()

    if unread_only:
        query = query.filter(Notification.is_read.is_(False))

    items = query.order_by(Notification.id.desc()).limit(limit).all()
    return items, unread_count


def mark_notifications_read(shop_id: int, notification_ids: list[int] | None = None) -> int:
    """Mark the given notifications (or all of the shop's) as read. Returns rows changed."""
    query = db.session.query(Notification).filter(
        Notification.shop_id == shop_id,
        Notification.is_read.is_(False),
    )
    if notification_ids is not None:
        query = query.filter(Notification.id.in_(notification_ids))

    changed = query.update({Notification.is_read: True}, synchronize_session=False)
    db.session.commit()
    return changed
