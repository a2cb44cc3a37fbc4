import pytest

from shopcore.errors import NotFoundError
from shopcore.models import Customer, LoyaltyAccount, Supplier
from shopcore.services import stats_service
from shopcore.services.stats_service import tier_for_points


class TestLoyaltyTiers:

    @pytest.mark.parametrize("points,tier", [
        (0, "bronze"),
        (999, "bronze"),
        (1000, "silver"),
        (4999, "silver"),
        (5000, "gold"),
        (9999, "gold"),
        (10000, "platinum"),
        (250000, "platinum"),
    ])
    def test_tier_thresholds(self, points, tier):
        assert tier_for_points(points) == tier


class TestCustomerStats:

    def test_sale_updates_customer_aggregates(self, db_session, customer):
        stats_service.on_sale_completed(customer.id, 4550)
        stats_service.on_sale_completed(customer.id, 1000)

        refreshed = db_session.get(Customer, customer.id, populate_existing=True)
        assert refreshed.total_spent_cents == 5550
        assert refreshed.visit_count == 2
        assert refreshed.last_visit_at is not None

    def test_points_floor_per_hundred_units(self, db_session, customer):
        # 199.99 spent -> 1 point
        stats_service.on_sale_completed(customer.id, 19999)

        account = db_session.query(LoyaltyAccount).filter_by(customer_id=customer.id).one()
        assert account.points == 1

    def test_crossing_tier_threshold_promotes(self, db_session, customer):
        account = db_session.query(LoyaltyAccount).filter_by(customer_id=customer.id).one()
        account.points = 995
        db_session.commit()

        stats_service.on_sale_completed(customer.id, 100000)

        account = db_session.get(LoyaltyAccount, account.id, populate_existing=True)
        assert account.points == 1005
        assert account.tier == "silver"

    def test_customer_without_loyalty_account(self, db_session, shop_a):
        walk_in = Customer(shop_id=shop_a.id, name="Walk-in")
        db_session.add(walk_in)
        db_session.commit()

        stats_service.on_sale_completed(walk_in.id, 500000)

        refreshed = db_session.get(Customer, walk_in.id, populate_existing=True)
        assert refreshed.total_spent_cents == 500000
        assert refreshed.loyalty_account is None

    def test_unknown_customer(self, db_session):
        with pytest.raises(NotFoundError):
            stats_service.on_sale_completed(99999, 100)


class TestSupplierStats:

    def test_sent_and_received(self, db_session, supplier):
        stats_service.on_purchase_order_sent(supplier.id)
        stats_service.on_purchase_order_sent(supplier.id)
        stats_service.on_purchase_order_received(supplier.id, 12345)

        refreshed = db_session.get(Supplier, supplier.id, populate_existing=True)
        assert refreshed.total_orders == 2
        assert refreshed.total_spent_cents == 12345
        assert refreshed.last_order_at is not None

    def test_unknown_supplier(self, db_session):
        with pytest.raises(NotFoundError):
            stats_service.on_purchase_order_received(99999, 1)
