# Overview: Derived customer/supplier statistics maintained after sales and purchase orders commit.

"""
Statistics Updater

Best-effort by policy: these counters are analytics, not stock. They run
after the primary transaction commits (see hooks.run_post_commit) and a
failure here never rolls back a sale or a purchase order transition.

Counters are bumped with single UPDATE ... SET col = col + :n statements so
two concurrent sales for the same customer cannot lose an increment.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update

from ..extensions import db
from ..errors import NotFoundError
from ..models import Customer, LoyaltyAccount, Supplier
from ..time_utils import utcnow

# 1 loyalty point per 100 currency units spent
CENTS_PER_LOYALTY_POINT = 100 * 100

# Minimum points for each tier, highest first
LOYALTY_TIERS = (
    ("platinum", 10000),
    ("gold", 5000),
    ("silver", 1000),
    ("bronze", 0),
)


def tier_for_points(points: int) -> str:
    for tier, threshold in LOYALTY_TIERS:
        if points >= threshold:
            return tier
    return "bronze"


def _bump(model, entity_id: int, label: str, **values) -> None:
    result = db.session.execute(
        update(model).where(model.id == entity_id).values(**values),
        execution_options={"synchronize_session": False},
    )
    if result.rowcount != 1:
        raise NotFoundError(f"{label} {entity_id} not found", details={f"{label.lower()}_id": entity_id})


def on_sale_completed(
    customer_id: int,
    amount_cents: int,
    occurred_at: datetime | None = None,
) -> Customer:
    """
    Record a completed sale against a customer: total spent, visit count,
    last visit and, when the customer has a loyalty account, points and tier.
    """
    occurred_at = occurred_at or utcnow()

    _bump(
        Customer,
        customer_id,
        "Customer",
        total_spent_cents=Customer.total_spent_cents + amount_cents,
        visit_count=Customer.visit_count + 1,
        last_visit_at=occurred_at,
    )

    points_earned = max(amount_cents, 0) // CENTS_PER_LOYALTY_POINT
    account = db.session.query(LoyaltyAccount).filter_by(customer_id=customer_id).first()
    if account is not None and points_earned:
        db.session.execute(
            update(LoyaltyAccount)
            .where(LoyaltyAccount.id == account.id)
            .values(points=LoyaltyAccount.points + points_earned),
            execution_options={"synchronize_session": False},
        )
        db.session.refresh(account)
        account.tier = tier_for_points(account.points)

    db.session.commit()
    return db.session.get(Customer, customer_id, populate_existing=True)


def on_purchase_order_sent(supplier_id: int, sent_at: datetime | None = None) -> Supplier:
    """One more order placed with the supplier."""
    _bump(
        Supplier,
        supplier_id,
        "Supplier",
        total_orders=Supplier.total_orders + 1,
        last_order_at=sent_at or utcnow(),
    )
    db.session.commit()
    return db.session.get(Supplier, supplier_id, populate_existing=True)


def on_purchase_order_received(supplier_id: int, amount_cents: int) -> Supplier:
    """Add the cost of goods received in one receive call to the supplier's total."""
    _bump(
        Supplier,
        supplier_id,
        "Supplier",
        total_spent_cents=Supplier.total_spent_cents + amount_cents,
    )
    db.session.commit()
    return db.session.get(Supplier, supplier_id, populate_existing=True)
