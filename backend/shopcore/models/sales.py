from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Sale(db.Model):
    """
    Point-of-sale transaction.

    Created once, atomically with its SaleItems and the matching stock
    decrements (sales_service.record_sale). Never mutated afterwards.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("order_id", name="uq_sales_order_id"),
        db.Index("ix_sales_shop_created", "shop_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable, globally unique (e.g. "ORD-M1ABCDEF-4K2ZQ")
    order_id = db.Column(db.String(64), nullable=False)

    shop_id = db.Column(db.Integer, db.ForeignKey("shops.id"), nullable=False, index=True)
    staff_id = db.Column(db.Integer, nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    shop = db.relationship("Shop", backref=db.backref("sales", lazy=True))
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "shop_id": self.shop_id,
            "staff_id": self.staff_id,
            "customer_id": self.customer_id,
            "total_amount_cents": self.total_amount_cents,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
            "customer": self.customer.to_summary() if self.customer else None,
        }


class SaleItem(db.Model):
    """
    One line of a sale.

    price_cents is the unit price charged, copied from the request rather
    than referenced from the product, so later price edits do not rewrite
    history.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        db.CheckConstraint(
            "discount_bps >= 0 AND discount_bps <= 10000",
            name="ck_sale_items_discount_range",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)

    # Discount in basis points (1250 = 12.5%)
    discount_bps = db.Column(db.Integer, nullable=False, default=0)
    line_total_cents = db.Column(db.Integer, nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    @property
    def discount_percent(self) -> float:
        return (self.discount_bps or 0) / 100

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "discount_percent": self.discount_percent,
            "line_total_cents": self.line_total_cents,
            "product": self.product.to_summary() if self.product else None,
        }
