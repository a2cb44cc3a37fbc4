# Overview: Outbound notices to suppliers (purchase order placed, shipment received).

"""
Supplier Notification Sender

Fire-and-forget from the engine's point of view. The only method wired up
is "log", which writes the purchase order to the application log; an email
or webhook sender would plug in behind the same functions.
"""

from __future__ import annotations

from flask import current_app

METHOD_LOG = "log"


def _method() -> str:
    return current_app.config.get("SUPPLIER_NOTIFICATION_METHOD", METHOD_LOG)


def send_purchase_order_to_supplier(purchase_order) -> dict:
    """Deliver a newly sent purchase order. Returns {success, method, message}."""
    method = _method()
    if method != METHOD_LOG:
        raise ValueError(f"Unsupported supplier notification method: {method}")

    supplier = purchase_order.supplier
    lines = [
        f"  {index}. {item.product.name} - Qty: {item.quantity_ordered} @ {item.unit_cost_cents}c"
        for index, item in enumerate(purchase_order.items, start=1)
    ]
    current_app.logger.info(
        "Sending purchase order %s to supplier %s <%s> (contact: %s), total %sc\n%s",
        purchase_order.po_number,
        supplier.name,
        supplier.email or "N/A",
        supplier.contact_person or "N/A",
        purchase_order.total_amount_cents,
        "\n".join(lines),
    )

    return {
        "success": True,
        "method": method,
        "message": f"PO #{purchase_order.po_number} logged (no email sent in log mode)",
    }


def notify_shipment_received(purchase_order, received_lines) -> dict:
    """Tell the supplier which products arrived in one receive call."""
    method = _method()
    if method != METHOD_LOG:
        raise ValueError(f"Unsupported supplier notification method: {method}")

    lines = [
        f"  {index}. {line.product_name} - Qty Received: {line.quantity_received}"
        for index, line in enumerate(received_lines, start=1)
    ]
    current_app.logger.info(
        "Shipment received for purchase order %s from supplier %s\n%s",
        purchase_order.po_number,
        purchase_order.supplier.name,
        "\n".join(lines),
    )

    return {
        "success": True,
        "method": method,
        "message": f"Receipt of PO #{purchase_order.po_number} logged",
    }
