# Overview: Pytest coverage for the sale recorder.

"""
Sale Recorder Tests

Covers:
- Successful sale: stock decremented, sale + items persisted, activity appended
- Insufficient stock: nothing written, stock untouched
- All-or-nothing across lines, including failures found at write time
- Discount arithmetic and input validation
- Post-commit side effects: customer stats, loyalty, notifications, and
  that their failure never rolls back a committed sale
"""

import re

import pytest

from conftest import sale_line
from shopcore.errors import InsufficientStockError, InvalidInputError, NotFoundError
from shopcore.models import ActivityLog, Customer, Notification, Product, Sale, SaleItem
from shopcore.services import sales_service, stats_service
from shopcore.services.sales_service import discount_percent_to_bps, line_total_cents


ORDER_ID_PATTERN = re.compile(r"^ORD-[0-9A-Z]+-[0-9A-Z]{5}$")


class TestRecordSale:
    """record_sale writes the sale and the stock movement together."""

    def test_sale_decrements_stock_and_persists_items(self, db_session, shop_a, product_a, product_b):
        result = sales_service.record_sale(
            shop_id=shop_a.id,
            staff_id=7,
            items=[sale_line(product_a, 2), sale_line(product_b, 1)],
        )

        sale = result.sale
        assert ORDER_ID_PATTERN.match(sale.order_id)
        assert sale.shop_id == shop_a.id
        assert sale.staff_id == 7
        assert sale.total_amount_cents == 2 * 1000 + 500
        assert [item.quantity for item in sale.items] == [2, 1]

        assert db_session.get(Product, product_a.id).stock == 3
        assert db_session.get(Product, product_b.id).stock == 2

    def test_sale_appends_activity_row(self, db_session, shop_a, product_a):
        result = sales_service.record_sale(
            shop_id=shop_a.id, staff_id=3, items=[sale_line(product_a, 1)]
        )

        entries = db_session.query(ActivityLog).filter_by(action="record_sale").all()
        assert len(entries) == 1
        assert entries[0].entity_id == result.sale.id
        assert entries[0].staff_id == 3
        assert entries[0].details["order_id"] == result.sale.order_id

    def test_sale_exceeding_stock_fails_and_writes_nothing(self, db_session, shop_a, product_a):
        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.record_sale(
                shop_id=shop_a.id, staff_id=1, items=[sale_line(product_a, 6)]
            )

        assert exc_info.value.details["available"] == 5
        assert exc_info.value.details["requested"] == 6
        assert db_session.get(Product, product_a.id).stock == 5
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(ActivityLog).count() == 0

    def test_one_bad_line_fails_the_whole_sale(self, db_session, shop_a, product_a, product_b):
        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.record_sale(
                shop_id=shop_a.id,
                staff_id=1,
                items=[sale_line(product_a, 1), sale_line(product_b, 4)],
            )

        assert exc_info.value.details["product_id"] == product_b.id
        assert exc_info.value.details["line"] == 1
        assert db_session.get(Product, product_a.id).stock == 5
        assert db_session.get(Product, product_b.id).stock == 3
        assert db_session.query(Sale).count() == 0

    def test_write_time_shortage_rolls_back_earlier_lines(
        self, db_session, shop_a, product_a, product_b, monkeypatch
    ):
        """A shortage that slips past validation still undoes the sale and earlier decrements."""
        monkeypatch.setattr(sales_service, "_validate_stock", lambda shop_id, items: {})

        with pytest.raises(InsufficientStockError):
            sales_service.record_sale(
                shop_id=shop_a.id,
                staff_id=1,
                items=[sale_line(product_a, 2), sale_line(product_b, 4)],
            )

        assert db_session.get(Product, product_a.id).stock == 5
        assert db_session.get(Product, product_b.id).stock == 3
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0

    def test_duplicate_lines_are_checked_together(self, db_session, shop_a, product_a):
        with pytest.raises(InsufficientStockError) as exc_info:
            sales_service.record_sale(
                shop_id=shop_a.id,
                staff_id=1,
                items=[sale_line(product_a, 3), sale_line(product_a, 3)],
            )

        assert exc_info.value.details["requested"] == 6
        assert db_session.get(Product, product_a.id).stock == 5

    def test_product_from_other_shop_not_found(self, db_session, shop_a, product_a, foreign_product):
        with pytest.raises(NotFoundError):
            sales_service.record_sale(
                shop_id=shop_a.id,
                staff_id=1,
                items=[sale_line(product_a, 1), sale_line(foreign_product, 1)],
            )

        assert db_session.get(Product, product_a.id).stock == 5
        assert db_session.get(Product, foreign_product.id).stock == 50

    def test_customer_from_other_shop_not_found(self, db_session, shop_a, shop_b, product_a):
        outsider = Customer(shop_id=shop_b.id, name="Outsider")
        db_session.add(outsider)
        db_session.commit()

        with pytest.raises(NotFoundError):
            sales_service.record_sale(
                shop_id=shop_a.id,
                staff_id=1,
                customer_id=outsider.id,
                items=[sale_line(product_a, 1)],
            )

        assert db_session.get(Product, product_a.id).stock == 5

    def test_empty_cart_rejected(self, db_session, shop_a):
        with pytest.raises(InvalidInputError):
            sales_service.record_sale(shop_id=shop_a.id, staff_id=1, items=[])

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity_rejected(self, db_session, shop_a, product_a, quantity):
        with pytest.raises(InvalidInputError):
            sales_service.record_sale(
                shop_id=shop_a.id, staff_id=1, items=[sale_line(product_a, quantity)]
            )
        assert db_session.get(Product, product_a.id).stock == 5

    def test_note_is_stored(self, db_session, shop_a, product_a):
        result = sales_service.record_sale(
            shop_id=shop_a.id, staff_id=1, items=[sale_line(product_a, 1)], note="gift wrap"
        )
        assert result.sale.note == "gift wrap"


class TestDiscounts:
    """Percentage discounts are applied per line and rounded half-up to the cent."""

    def test_discounted_line_total(self, db_session, shop_a, product_a):
        result = sales_service.record_sale(
            shop_id=shop_a.id,
            staff_id=1,
            items=[sale_line(product_a, 3, price_cents=1000, discount_percent=12.5)],
        )

        item = result.sale.items[0]
        assert item.discount_bps == 1250
        assert item.discount_percent == 12.5
        assert item.line_total_cents == 2625
        assert result.sale.total_amount_cents == 2625

    @pytest.mark.parametrize("value,expected", [
        (None, 0),
        (0, 0),
        (10, 1000),
        ("12.5", 1250),
        (33.333, 3333),
        (100, 10000),
    ])
    def test_discount_percent_to_bps(self, value, expected):
        assert discount_percent_to_bps(value) == expected

    @pytest.mark.parametrize("value", [-1, 100.01, "abc", True])
    def test_discount_out_of_range_rejected(self, value):
        with pytest.raises(InvalidInputError):
            discount_percent_to_bps(value)

    def test_line_total_rounds_half_up(self):
        # 333 * 1 * 0.85 = 283.05 -> 283; 999 * 0.5 = 499.5 -> 500
        assert line_total_cents(333, 1, 1500) == 283
        assert line_total_cents(999, 1, 5000) == 500


class TestSaleSideEffects:
    """Statistics and notifications run after commit and never undo the sale."""

    def test_customer_stats_and_loyalty_updated(self, db_session, shop_a, customer):
        product = Product(shop_id=shop_a.id, name="Espresso Machine", price_cents=125000, stock=4)
        db_session.add(product)
        db_session.commit()

        result = sales_service.record_sale(
            shop_id=shop_a.id,
            staff_id=1,
            customer_id=customer.id,
            items=[sale_line(product, 2)],
        )

        assert result.warnings == []
        refreshed = db_session.get(Customer, customer.id, populate_existing=True)
        assert refreshed.total_spent_cents == 250000
        assert refreshed.visit_count == 1
        assert refreshed.last_visit_at is not None
        # 2500.00 spent -> 25 points
        assert refreshed.loyalty_account.points == 25
        assert refreshed.loyalty_account.tier == "bronze"

    def test_sale_notification_created(self, db_session, shop_a, product_a):
        result = sales_service.record_sale(
            shop_id=shop_a.id, staff_id=9, items=[sale_line(product_a, 1)]
        )

        sale_notes = db_session.query(Notification).filter_by(type="sale").all()
        assert len(sale_notes) == 1
        assert sale_notes[0].data["order_id"] == result.sale.order_id
        assert sale_notes[0].user_id == 9

    def test_low_stock_notification_once_per_product(self, db_session, shop_a, product_a):
        sales_service.record_sale(
            shop_id=shop_a.id,
            staff_id=1,
            items=[sale_line(product_a, 1), sale_line(product_a, 2)],
        )

        low = db_session.query(Notification).filter_by(type="low_stock").all()
        assert len(low) == 1
        assert low[0].data["product_id"] == product_a.id
        assert low[0].data["stock"] == 2

    def test_no_low_stock_notification_above_threshold(self, db_session, shop_a):
        product = Product(shop_id=shop_a.id, name="Bulk Item", price_cents=100, stock=50)
        db_session.add(product)
        db_session.commit()

        sales_service.record_sale(shop_id=shop_a.id, staff_id=1, items=[sale_line(product, 5)])

        assert db_session.query(Notification).filter_by(type="low_stock").count() == 0

    def test_stats_failure_does_not_undo_sale(self, db_session, shop_a, product_a, customer, monkeypatch):
        def _boom(*args, **kwargs):
            raise RuntimeError("stats store unavailable")

        monkeypatch.setattr(stats_service, "on_sale_completed", _boom)

        result = sales_service.record_sale(
            shop_id=shop_a.id,
            staff_id=1,
            customer_id=customer.id,
            items=[sale_line(product_a, 2)],
        )

        failed = [r for r in result.side_effects if not r.ok]
        assert [r.name for r in failed] == ["customer_stats"]
        assert "stats store unavailable" in result.warnings[0]

        assert db_session.query(Sale).count() == 1
        assert db_session.get(Product, product_a.id).stock == 3
        refreshed = db_session.get(Customer, customer.id, populate_existing=True)
        assert refreshed.visit_count == 0
        # Later hooks still ran
        assert db_session.query(Notification).filter_by(type="sale").count() == 1


class TestSaleQueries:
    """Sales are looked up within their shop only."""

    def test_get_sale_by_order_id(self, db_session, shop_a, product_a):
        result = sales_service.record_sale(
            shop_id=shop_a.id, staff_id=1, items=[sale_line(product_a, 1)]
        )

        found = sales_service.get_sale_by_order_id(result.sale.order_id.lower(), shop_a.id)
        assert found.id == result.sale.id

    def test_get_sale_other_shop_not_found(self, db_session, shop_a, shop_b, product_a):
        result = sales_service.record_sale(
            shop_id=shop_a.id, staff_id=1, items=[sale_line(product_a, 1)]
        )

        with pytest.raises(NotFoundError):
            sales_service.get_sale(result.sale.id, shop_b.id)

    def test_list_sales_newest_first(self, db_session, shop_a, product_a):
        first = sales_service.record_sale(shop_id=shop_a.id, staff_id=1, items=[sale_line(product_a, 1)])
        second = sales_service.record_sale(shop_id=shop_a.id, staff_id=1, items=[sale_line(product_a, 1)])

        sales, total = sales_service.list_sales(shop_a.id)

        assert total == 2
        assert [s.id for s in sales] == [second.sale.id, first.sale.id]
