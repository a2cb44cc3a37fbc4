# Overview: Pytest coverage for the flask CLI command groups.

import json

from shopcore.models import Product, PurchaseOrder, Shop


def _json(result):
    return json.loads(result.output)


class TestSalesCommands:

    def test_record_sale(self, db_session, cli_runner, shop_a, product_a):
        result = cli_runner.invoke(args=[
            "sales", "record",
            "--shop-id", str(shop_a.id),
            "--staff-id", "1",
            "--item", f"{product_a.id}:2:1000:10",
        ])

        assert result.exit_code == 0, result.output
        payload = _json(result)
        assert payload["total_amount_cents"] == 1800
        assert payload["items"][0]["discount_percent"] == 10
        assert db_session.get(Product, product_a.id, populate_existing=True).stock == 3

    def test_record_sale_insufficient_stock_exits_nonzero(self, db_session, cli_runner, shop_a, product_a):
        result = cli_runner.invoke(args=[
            "sales", "record",
            "--shop-id", str(shop_a.id),
            "--staff-id", "1",
            "--item", f"{product_a.id}:6:1000",
        ])

        assert result.exit_code == 1
        payload = _json(result)
        assert payload["code"] == "insufficient_stock"
        assert payload["details"]["available"] == 5

    def test_malformed_item_rejected(self, db_session, cli_runner, shop_a):
        result = cli_runner.invoke(args=[
            "sales", "record", "--shop-id", str(shop_a.id), "--staff-id", "1", "--item", "abc",
        ])
        assert result.exit_code != 0

    def test_list_sales(self, db_session, cli_runner, shop_a, product_a):
        cli_runner.invoke(args=[
            "sales", "record", "--shop-id", str(shop_a.id), "--staff-id", "1",
            "--item", f"{product_a.id}:1:1000",
        ])

        result = cli_runner.invoke(args=["sales", "list", "--shop-id", str(shop_a.id)])

        assert result.exit_code == 0
        assert "1 sale(s)" in result.output


class TestPurchaseOrderCommands:

    def test_full_lifecycle(self, db_session, cli_runner, shop_a, supplier, product_a):
        shop = str(shop_a.id)
        created = cli_runner.invoke(args=[
            "po", "create", "--shop-id", shop, "--supplier-id", str(supplier.id),
            "--item", f"{product_a.id}:10:400",
        ])
        assert created.exit_code == 0, created.output
        po = _json(created)
        item_id = po["items"][0]["id"]

        sent = cli_runner.invoke(args=["po", "send", "--shop-id", shop, str(po["id"])])
        assert sent.exit_code == 0, sent.output
        assert _json(sent)["purchase_order"]["status"] == "sent"

        partial = cli_runner.invoke(args=[
            "po", "receive", "--shop-id", shop, str(po["id"]), "--item", f"{item_id}:4",
        ])
        assert partial.exit_code == 0, partial.output
        assert _json(partial)["purchase_order"]["status"] == "partial"

        rest = cli_runner.invoke(args=["po", "receive", "--shop-id", shop, str(po["id"])])
        assert rest.exit_code == 0, rest.output
        assert _json(rest)["is_fully_received"] is True

        assert db_session.get(Product, product_a.id, populate_existing=True).stock == 15

    def test_cancel_received_order_fails(self, db_session, cli_runner, shop_a, supplier, product_a):
        po = PurchaseOrder(
            po_number="PO-CLI-1", shop_id=shop_a.id, supplier_id=supplier.id, status="received",
        )
        db_session.add(po)
        db_session.commit()

        result = cli_runner.invoke(args=["po", "cancel", "--shop-id", str(shop_a.id), str(po.id)])

        assert result.exit_code == 1
        assert _json(result)["code"] == "invalid_state"


class TestSystemCommands:

    def test_seed_demo(self, db_session, cli_runner):
        result = cli_runner.invoke(args=["system", "seed-demo", "--shop-name", "Seeded"])

        assert result.exit_code == 0, result.output
        shop = db_session.query(Shop).filter_by(name="Seeded").one()
        assert db_session.query(Product).filter_by(shop_id=shop.id).count() == 3
