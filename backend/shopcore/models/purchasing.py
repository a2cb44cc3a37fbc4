from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class PurchaseOrder(db.Model):
    """
    Purchase order placed with a supplier.

    LIFECYCLE (purchase_order_service owns every transition):
        draft -> sent -> partial -> received
        draft/sent -> cancelled
    received and cancelled are terminal.

    INVARIANT: total_amount_cents == sum(unit_cost_cents * quantity_ordered)
    over items. It is recomputed whenever the item set is replaced and never
    re-derived from current product prices.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.UniqueConstraint("po_number", name="uq_purchase_orders_po_number"),
        db.Index("ix_purchase_orders_shop_status", "shop_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    po_number = db.Column(db.String(64), nullable=False)

    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=False, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    notes = db.Column(db.Text, nullable=True)

    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_by_staff_id = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    shop = db.relationship("Shop", backref=db.backref("purchase_orders", lazy=True))
    supplier = db.relationship("Supplier", backref=db.backref("purchase_orders", lazy=True))
    items = db.relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        order_by="PurchaseOrderItem.id",
        cascade="all, delete-orphan",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_fully_received(self) -> bool:
        return bool(self.items) and all(
            item.quantity_received >= item.quantity_ordered for item in self.items
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "po_number": self.po_number,
            "shop_id": self.shop_id,
            "supplier_id": self.supplier_id,
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "notes": self.notes,
            "sent_at": to_utc_z(self.sent_at) if self.sent_at else None,
            "received_at": to_utc_z(self.received_at) if self.received_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "created_by_staff_id": self.created_by_staff_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "supplier": self.supplier.to_summary() if self.supplier else None,
            "items": [item.to_dict() for item in self.items],
        }


class PurchaseOrderItem(db.Model):
    """
    One ordered product on a purchase order.

    quantity_ordered is fixed once the order leaves draft; quantity_received
    only grows, and never past quantity_ordered.
    """
    __tablename__ = "purchase_order_items"
    __table_args__ = (
        db.CheckConstraint("quantity_ordered > 0", name="ck_po_items_quantity_ordered_positive"),
        db.CheckConstraint(
            "quantity_received >= 0 AND quantity_received <= quantity_ordered",
            name="ck_po_items_quantity_received_range",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_order_id = db.Column(
        db.Integer, db.ForeignKey("purchase_orders.id"), nullable=False, index=True
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_ordered = db.Column(db.Integer, nullable=False)
    quantity_received = db.Column(db.Integer, nullable=False, default=0)
    unit_cost_cents = db.Column(db.Integer, nullable=False)

    purchase_order = db.relationship("PurchaseOrder", back_populates="items")
    product = db.relationship("Product")

    @property
    def quantity_remaining(self) -> int:
        return self.quantity_ordered - (self.quantity_received or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_order_id": self.purchase_order_id,
            "product_id": self.product_id,
            "quantity_ordered": self.quantity_ordered,
            "quantity_received": self.quantity_received,
            "quantity_remaining": self.quantity_remaining,
            "unit_cost_cents": self.unit_cost_cents,
            "line_cost_cents": self.unit_cost_cents * self.quantity_ordered,
            "product": self.product.to_summary() if self.product else None,
        }
