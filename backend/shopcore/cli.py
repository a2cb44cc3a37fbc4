# Overview: Flask CLI command groups for bootstrap, sales and purchase order operations.

# backend/shopcore/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to shopcore (PowerShell: $env:FLASK_APP="shopcore").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (development; use `flask db upgrade` with migrations otherwise).
# - python -m flask system seed-demo
#   Create a demo shop with products, a supplier and a customer.
#
# Sales:
# - python -m flask sales record --shop-id 1 --staff-id 1 --item 3:2:1500 --item 4:1:900:10
#   Record a sale. --item is PRODUCT_ID:QTY:PRICE_CENTS[:DISCOUNT_PERCENT].
# - python -m flask sales show --shop-id 1 ORD-XXXX-XXXXX
# - python -m flask sales list --shop-id 1 --limit 20
#
# Purchase orders:
# - python -m flask po create --shop-id 1 --supplier-id 1 --item 3:10 --item 4:5:700
#   --item is PRODUCT_ID:QTY_ORDERED[:UNIT_COST_CENTS].
# - python -m flask po update --shop-id 1 7 --notes "Deliver Tuesday"
# - python -m flask po send --shop-id 1 7
# - python -m flask po receive --shop-id 1 7 --item 12:4
#   --item is ITEM_ID:QTY_RECEIVED; omit --item to receive everything outstanding.
# - python -m flask po cancel --shop-id 1 7
# - python -m flask po show --shop-id 1 7
# - python -m flask po list --shop-id 1 --status sent
#
# Stock / notifications:
# - python -m flask stock show --shop-id 1 3
# - python -m flask notifications list --shop-id 1 --unread-only
# - python -m flask notifications mark-read --shop-id 1

import json

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import InventoryError
from .models import Shop, Product, Supplier, Customer, LoyaltyAccount
from .services import (
    notification_service,
    purchase_order_service,
    sales_service,
    stock_service,
)
from .services.hooks import failed_hooks
from .services.purchase_order_service import PO_STATUSES


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


def _fail(exc: InventoryError) -> None:
    _echo_json(exc.to_dict())
    raise SystemExit(1)


def _split_ints(value: str, minimum: int, maximum: int, label: str) -> list[str]:
    parts = value.split(":")
    if not (minimum <= len(parts) <= maximum):
        raise click.BadParameter(f"expected {label}, got {value!r}")
    return parts


def _parse_sale_item(value: str) -> dict:
    parts = _split_ints(value, 3, 4, "PRODUCT_ID:QTY:PRICE_CENTS[:DISCOUNT_PERCENT]")
    try:
        item = {
            "product_id": int(parts[0]),
            "quantity": int(parts[1]),
            "price_cents": int(parts[2]),
        }
    except ValueError:
        raise click.BadParameter(f"non-integer value in {value!r}")
    if len(parts) == 4:
        item["discount_percent"] = parts[3]
    return item


def _parse_order_item(value: str) -> dict:
    parts = _split_ints(value, 2, 3, "PRODUCT_ID:QTY_ORDERED[:UNIT_COST_CENTS]")
    try:
        item = {"product_id": int(parts[0]), "quantity_ordered": int(parts[1])}
        if len(parts) == 3:
            item["unit_cost_cents"] = int(parts[2])
    except ValueError:
        raise click.BadParameter(f"non-integer value in {value!r}")
    return item


def _parse_receive_line(value: str) -> dict:
    parts = _split_ints(value, 2, 2, "ITEM_ID:QTY_RECEIVED")
    try:
        return {"item_id": int(parts[0]), "quantity_received": int(parts[1])}
    except ValueError:
        raise click.BadParameter(f"non-integer value in {value!r}")


def _report_side_effects(results) -> None:
    for result in failed_hooks(results):
        click.echo(f"WARN  {result.name} failed: {result.error}", err=True)


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the current DATABASE_URL."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed-demo')
@click.option('--shop-name', default='Demo Shop', help='Shop name')
@with_appcontext
def seed_demo(shop_name):
    """Create a demo shop with three products, a supplier and a loyalty customer."""
    shop = Shop(name=shop_name)
    db.session.add(shop)
    db.session.flush()

    products = [
        Product(shop_id=shop.id, name="Espresso Beans 1kg", category_name="Coffee", price_cents=2450, stock=40),
        Product(shop_id=shop.id, name="Paper Filters", category_name="Supplies", price_cents=399, stock=12),
        Product(shop_id=shop.id, name="Ceramic Mug", category_name="Merch", price_cents=1200, stock=5),
    ]
    db.session.add_all(products)

    supplier = Supplier(shop_id=shop.id, name="Roastery Wholesale", email="orders@roastery.example")
    db.session.add(supplier)

    customer = Customer(shop_id=shop.id, name="Ada Customer", phone="555-0100")
    db.session.add(customer)
    db.session.flush()
    db.session.add(LoyaltyAccount(customer_id=customer.id))
    db.session.commit()

    click.echo(f"PASS Created shop: {shop.name} (ID: {shop.id})")
    for product in products:
        click.echo(f"PASS Product {product.id}: {product.name} stock={product.stock} price={product.price_cents}c")
    click.echo(f"PASS Supplier {supplier.id}: {supplier.name}")
    click.echo(f"PASS Customer {customer.id}: {customer.name}")


@click.group('sales')
def sales_group():
    """Point-of-sale commands."""


@sales_group.command('record')
@click.option('--shop-id', type=int, required=True)
@click.option('--staff-id', type=int, required=True)
@click.option('--customer-id', type=int, default=None)
@click.option('--item', 'items', multiple=True, required=True,
              help='PRODUCT_ID:QTY:PRICE_CENTS[:DISCOUNT_PERCENT]')
@click.option('--note', default=None)
@with_appcontext
def record_sale_cmd(shop_id, staff_id, customer_id, items, note):
    """Record a sale and take the stock out."""
    try:
        result = sales_service.record_sale(
            shop_id=shop_id,
            staff_id=staff_id,
            customer_id=customer_id,
            items=[_parse_sale_item(v) for v in items],
            note=note,
        )
    except InventoryError as e:
        _fail(e)
    _report_side_effects(result.side_effects)
    _echo_json(result.sale.to_dict())


@sales_group.command('show')
@click.option('--shop-id', type=int, required=True)
@click.argument('order_id')
@with_appcontext
def show_sale_cmd(shop_id, order_id):
    """Show one sale by its order id."""
    try:
        sale = sales_service.get_sale_by_order_id(order_id, shop_id)
    except InventoryError as e:
        _fail(e)
    _echo_json(sale.to_dict())


@sales_group.command('list')
@click.option('--shop-id', type=int, required=True)
@click.option('--limit', type=int, default=20)
@with_appcontext
def list_sales_cmd(shop_id, limit):
    """List recent sales."""
    sales, total = sales_service.list_sales(shop_id, limit=limit)
    click.echo(f"{total} sale(s)")
    for sale in sales:
        click.echo(f"{sale.order_id}  {sale.total_amount_cents:>10}c  {len(sale.items)} line(s)")


@click.group('po')
def po_group():
    """Purchase order lifecycle commands."""


@po_group.command('create')
@click.option('--shop-id', type=int, required=True)
@click.option('--supplier-id', type=int, required=True)
@click.option('--staff-id', type=int, default=None)
@click.option('--item', 'items', multiple=True, required=True,
              help='PRODUCT_ID:QTY_ORDERED[:UNIT_COST_CENTS]')
@click.option('--notes', default=None)
@with_appcontext
def create_po_cmd(shop_id, supplier_id, staff_id, items, notes):
    """Create a draft purchase order."""
    try:
        po = purchase_order_service.create_purchase_order(
            shop_id=shop_id,
            supplier_id=supplier_id,
            items=[_parse_order_item(v) for v in items],
            notes=notes,
            staff_id=staff_id,
        )
    except InventoryError as e:
        _fail(e)
    _echo_json(po.to_dict())


@po_group.command('update')
@click.option('--shop-id', type=int, required=True)
@click.option('--staff-id', type=int, default=None)
@click.option('--item', 'items', multiple=True, help='Replaces all items: PRODUCT_ID:QTY_ORDERED[:UNIT_COST_CENTS]')
@click.option('--notes', default=None)
@click.argument('purchase_order_id', type=int)
@with_appcontext
def update_po_cmd(shop_id, staff_id, items, notes, purchase_order_id):
    """Edit a draft purchase order."""
    try:
        po = purchase_order_service.update_purchase_order(
            purchase_order_id=purchase_order_id,
            shop_id=shop_id,
            items=[_parse_order_item(v) for v in items] if items else None,
            notes=notes,
            staff_id=staff_id,
        )
    except InventoryError as e:
        _fail(e)
    _echo_json(po.to_dict())


@po_group.command('send')
@click.option('--shop-id', type=int, required=True)
@click.option('--staff-id', type=int, default=None)
@click.argument('purchase_order_id', type=int)
@with_appcontext
def send_po_cmd(shop_id, staff_id, purchase_order_id):
    """Send a draft purchase order to its supplier."""
    try:
        result = purchase_order_service.send_purchase_order(
            purchase_order_id=purchase_order_id,
            shop_id=shop_id,
            staff_id=staff_id,
        )
    except InventoryError as e:
        _fail(e)
    _report_side_effects(result.side_effects)
    _echo_json({
        "purchase_order": result.purchase_order.to_dict(),
        "notification": result.supplier_notification,
    })


@po_group.command('receive')
@click.option('--shop-id', type=int, required=True)
@click.option('--staff-id', type=int, default=None)
@click.option('--item', 'items', multiple=True, help='ITEM_ID:QTY_RECEIVED; omit to receive everything')
@click.argument('purchase_order_id', type=int)
@with_appcontext
def receive_po_cmd(shop_id, staff_id, items, purchase_order_id):
    """Receive a shipment against a sent or partial purchase order."""
    try:
        result = purchase_order_service.receive_purchase_order(
            purchase_order_id=purchase_order_id,
            shop_id=shop_id,
            items=[_parse_receive_line(v) for v in items] if items else None,
            staff_id=staff_id,
        )
    except InventoryError as e:
        _fail(e)
    _report_side_effects(result.side_effects)
    _echo_json(result.to_dict())


@po_group.command('cancel')
@click.option('--shop-id', type=int, required=True)
@click.option('--staff-id', type=int, default=None)
@click.option('--reason', default=None)
@click.argument('purchase_order_id', type=int)
@with_appcontext
def cancel_po_cmd(shop_id, staff_id, reason, purchase_order_id):
    """Cancel a draft or sent purchase order."""
    try:
        po = purchase_order_service.cancel_purchase_order(
            purchase_order_id=purchase_order_id,
            shop_id=shop_id,
            staff_id=staff_id,
            reason=reason,
        )
    except InventoryError as e:
        _fail(e)
    _echo_json(po.to_dict())


@po_group.command('show')
@click.option('--shop-id', type=int, required=True)
@click.argument('purchase_order_id', type=int)
@with_appcontext
def show_po_cmd(shop_id, purchase_order_id):
    """Show one purchase order with its items."""
    try:
        po = purchase_order_service.get_purchase_order(purchase_order_id, shop_id)
    except InventoryError as e:
        _fail(e)
    _echo_json(po.to_dict())


@po_group.command('list')
@click.option('--shop-id', type=int, required=True)
@click.option('--status', type=click.Choice(PO_STATUSES), default=None)
@click.option('--supplier-id', type=int, default=None)
@with_appcontext
def list_po_cmd(shop_id, status, supplier_id):
    """List purchase orders, newest first."""
    orders = purchase_order_service.list_purchase_orders(shop_id, status=status, supplier_id=supplier_id)
    if not orders:
        click.echo("No purchase orders found.")
        return
    for po in orders:
        click.echo(f"{po.id:>5}  {po.po_number:<24} {po.status:<10} {po.total_amount_cents:>10}c")


@click.group('stock')
def stock_group():
    """Stock inspection commands."""


@stock_group.command('show')
@click.option('--shop-id', type=int, required=True)
@click.argument('product_id', type=int)
@with_appcontext
def show_stock_cmd(shop_id, product_id):
    """Show a product's on-hand stock."""
    try:
        product = stock_service.get_product_in_shop(product_id, shop_id)
    except InventoryError as e:
        _fail(e)
    click.echo(f"{product.name}: {product.stock}")


@click.group('notifications')
def notifications_group():
    """Shop notification commands."""


@notifications_group.command('list')
@click.option('--shop-id', type=int, required=True)
@click.option('--unread-only', is_flag=True, default=False)
@click.option('--limit', type=int, default=20)
@with_appcontext
def list_notifications_cmd(shop_id, unread_only, limit):
    """List recent notifications."""
    items, unread = notification_service.list_notifications(
        shop_id, unread_only=unread_only, limit=limit
    )
    click.echo(f"{unread} unread")
    for n in items:
        marker = " " if n.is_read else "*"
        click.echo(f"{marker} [{n.type}] {n.title}: {n.message}")


@notifications_group.command('mark-read')
@click.option('--shop-id', type=int, required=True)
@click.option('--id', 'notification_ids', type=int, multiple=True)
@with_appcontext
def mark_read_cmd(shop_id, notification_ids):
    """Mark notifications read (all of the shop's when no --id is given)."""
    changed = notification_service.mark_notifications_read(
        shop_id, list(notification_ids) if notification_ids else None
    )
    click.echo(f"PASS Marked {changed} notification(s) read")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(sales_group)
    app.cli.add_command(po_group)
    app.cli.add_command(stock_group)
    app.cli.add_command(notifications_group)
