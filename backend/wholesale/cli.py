# Overview: Flask CLI command groups for bootstrap, stock administration and order lifecycle.

# backend/wholesale/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system seed-demo [--code HAF]
#   Create a demo restaurant with one item per tracking mode.
#
# Stock administration (every change writes an audit row):
# - python -m flask inventory status --restaurant-id 1 --item-id 3
#   Show tracking mode, quantities and stock status for an item.
# - python -m flask inventory restock --restaurant-id 1 --entity option --id 7 --quantity 24
# - python -m flask inventory adjust --restaurant-id 1 --entity item --id 3 --delta -2 --reason "Cycle count"
# - python -m flask inventory damage --restaurant-id 1 --entity variant --id 5 --quantity 1
# - python -m flask inventory audit-trail --restaurant-id 1 --item-id 3 [--limit 50]
#
# Catalog:
# - python -m flask catalog generate-variants --restaurant-id 1 --item-id 3
#
# Orders:
# - python -m flask orders transition --restaurant-id 1 --order-id 12 --status fulfilled
# - python -m flask orders refund --restaurant-id 1 --order-id 12

import click
from flask.cli import with_appcontext

from .errors import InventoryError
from .extensions import db
from .models import Restaurant, User
from .models.orders import ORDER_STATUSES
from .services import catalog_service, order_service, stock_ledger, tracking


ENTITY_CHOICE = click.Choice(sorted(stock_ledger.ENTITY_MODELS))


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for a fresh database."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('seed-demo')
@click.option('--name', default='Demo Restaurant', show_default=True, help='Restaurant name')
@click.option('--code', default='DEMO', show_default=True, help='Order number prefix')
@with_appcontext
def seed_demo(name, code):
    """
    Seed a demo restaurant with one item per tracking mode:

    - Cases of Water     item-level stock
    - Flour Sack         option-level stock on "Weight"
    - Chef Jacket        variant-level stock over "Size" x "Color"
    - Gift Card          untracked
    """
    click.echo("START Seeding demo data...")

    restaurant = db.session.query(Restaurant).filter_by(code=code).first()
    if restaurant:
        click.echo(f"PASS Using existing restaurant: {restaurant.name} (ID: {restaurant.id})")
        return

    restaurant = Restaurant(name=name, code=code, is_active=True)
    db.session.add(restaurant)
    db.session.flush()
    admin = User(restaurant_id=restaurant.id, name="Demo Admin", email="admin@demo.local")
    db.session.add(admin)
    db.session.commit()
    rid = restaurant.id
    click.echo(f"PASS Created restaurant: {restaurant.name} (ID: {rid}, Code: {restaurant.code})")

    water = catalog_service.create_item(restaurant_id=rid, name="Cases of Water", price_cents=1299, sku="WATER-24")
    tracking.set_item_tracking(
        restaurant_id=rid, item_id=water.id, enabled=True, quantity=40,
        low_stock_threshold=5, actor_user_id=admin.id,
    )

    flour = catalog_service.create_item(restaurant_id=rid, name="Flour Sack", price_cents=2500, sku="FLOUR")
    weight = catalog_service.create_option_group(
        restaurant_id=rid, item_id=flour.id, name="Weight", min_select=1, max_select=1, required=True,
    )
    small = catalog_service.add_option(restaurant_id=rid, option_group_id=weight.id, name="10 kg")
    large = catalog_service.add_option(
        restaurant_id=rid, option_group_id=weight.id, name="25 kg", additional_price_cents=2000,
    )
    tracking.enable_option_tracking(
        restaurant_id=rid, option_group_id=weight.id,
        initial_quantities={small.id: 30, large.id: 12}, actor_user_id=admin.id,
    )

    jacket = catalog_service.create_item(restaurant_id=rid, name="Chef Jacket", price_cents=3900, sku="JACKET")
    size = catalog_service.create_option_group(
        restaurant_id=rid, item_id=jacket.id, name="Size", min_select=1, required=True,
    )
    color = catalog_service.create_option_group(
        restaurant_id=rid, item_id=jacket.id, name="Color", min_select=1, required=True,
    )
    for label in ("S", "M", "L"):
        catalog_service.add_option(restaurant_id=rid, option_group_id=size.id, name=label)
    for label in ("White", "Black"):
        catalog_service.add_option(restaurant_id=rid, option_group_id=color.id, name=label)
    tracking.enable_variant_tracking(restaurant_id=rid, item_id=jacket.id, actor_user_id=admin.id)
    for variant in jacket.variants:
        stock_ledger.restock(
            restaurant_id=rid, entity_type="variant", entity_id=variant.id,
            quantity=6, reason="Demo stock", actor_user_id=admin.id,
        )

    catalog_service.create_item(restaurant_id=rid, name="Gift Card", price_cents=5000, sku="GIFT")

    click.echo("PASS Seeded 4 items (item, option, variant and untracked modes).")


@click.group('inventory')
def inventory_group():
    """Stock administration commands."""


@inventory_group.command('status')
@click.option('--restaurant-id', type=int, required=True)
@click.option('--item-id', type=int, required=True)
@with_appcontext
def inventory_status(restaurant_id, item_id):
    """Show tracking mode and stock levels for an item."""
    try:
        summary = stock_ledger.get_item_inventory_summary(restaurant_id=restaurant_id, item_id=item_id)
    except InventoryError as e:
        raise click.ClickException(e.message)

    click.echo(f"\n{summary['item_name']} (ID: {summary['item_id']}), tracking: {summary['tracking_mode']}")
    click.echo("=" * 80)
    rows = [summary["item"]] if summary["tracking_mode"] in ("item", "untracked") else (
        summary["options"] or summary["variants"]
    )
    click.echo(f"{'ID':<6} {'Name':<40} {'Stock':>6} {'Dmg':>5} {'Avail':>6}  Status")
    for row in rows:
        click.echo(
            f"{row['id']:<6} {row['name'][:40]:<40} {str(row['stock_quantity']):>6} "
            f"{str(row['damaged_quantity']):>5} {str(row['available_quantity']):>6}  {row['stock_status']}"
        )
    click.echo("=" * 80 + "\n")


def _run_stock_command(func, **kwargs):
    try:
        entity = func(**kwargs)
    except (InventoryError, ValueError) as e:
        raise click.ClickException(getattr(e, "message", str(e)))
    click.echo(
        f"PASS {entity.display_name}: stock={entity.stock_quantity} "
        f"damaged={entity.damaged_quantity} status={entity.stock_status}"
    )


@inventory_group.command('restock')
@click.option('--restaurant-id', type=int, required=True)
@click.option('--entity', 'entity_type', type=ENTITY_CHOICE, required=True)
@click.option('--id', 'entity_id', type=int, required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--reason', default=None)
@click.option('--actor-id', type=int, default=None, help='User ID recorded on the audit row')
@with_appcontext
def inventory_restock(restaurant_id, entity_type, entity_id, quantity, reason, actor_id):
    """Add received stock."""
    _run_stock_command(
        stock_ledger.restock, restaurant_id=restaurant_id, entity_type=entity_type,
        entity_id=entity_id, quantity=quantity, reason=reason, actor_user_id=actor_id,
    )


@inventory_group.command('adjust')
@click.option('--restaurant-id', type=int, required=True)
@click.option('--entity', 'entity_type', type=ENTITY_CHOICE, required=True)
@click.option('--id', 'entity_id', type=int, required=True)
@click.option('--delta', type=int, required=True)
@click.option('--reason', default=None)
@click.option('--actor-id', type=int, default=None, help='User ID recorded on the audit row')
@with_appcontext
def inventory_adjust(restaurant_id, entity_type, entity_id, delta, reason, actor_id):
    """Apply a signed manual adjustment."""
    _run_stock_command(
        stock_ledger.adjust_stock, restaurant_id=restaurant_id, entity_type=entity_type,
        entity_id=entity_id, delta=delta, reason=reason, actor_user_id=actor_id,
    )


@inventory_group.command('damage')
@click.option('--restaurant-id', type=int, required=True)
@click.option('--entity', 'entity_type', type=ENTITY_CHOICE, required=True)
@click.option('--id', 'entity_id', type=int, required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--reason', default=None)
@click.option('--actor-id', type=int, default=None, help='User ID recorded on the audit row')
@with_appcontext
def inventory_damage(restaurant_id, entity_type, entity_id, quantity, reason, actor_id):
    """Mark units as damaged (stock is kept, availability drops)."""
    _run_stock_command(
        stock_ledger.damage_stock, restaurant_id=restaurant_id, entity_type=entity_type,
        entity_id=entity_id, quantity=quantity, reason=reason, actor_user_id=actor_id,
    )


@inventory_group.command('audit-trail')
@click.option('--restaurant-id', type=int, required=True)
@click.option('--item-id', type=int, required=True)
@click.option('--limit', type=int, default=50, show_default=True)
@with_appcontext
def inventory_audit_trail(restaurant_id, item_id, limit):
    """List stock audit rows for an item, its options and variants (newest first)."""
    try:
        rows = stock_ledger.get_audit_trail(restaurant_id=restaurant_id, item_id=item_id, limit=limit)
    except InventoryError as e:
        raise click.ClickException(e.message)

    click.echo("\n" + "=" * 110)
    click.echo(f"{'When':<22} {'Entity':<12} {'Type':<18} {'Change':>7} {'Prev':>6} {'New':>6}  Reason")
    click.echo("=" * 110)
    for row in rows:
        when = row.created_at.strftime("%Y-%m-%d %H:%M:%S") if row.created_at else "-"
        entity = f"{row.entity_type}:{row.entity_id}"
        click.echo(
            f"{when:<22} {entity:<12} {row.audit_type:<18} {row.quantity_change:>+7} "
            f"{row.previous_quantity:>6} {row.new_quantity:>6}  {row.reason or ''}"
        )
    click.echo(f"\n Total: {len(rows)} rows\n")


@click.group('catalog')
def catalog_group():
    """Catalog commands."""


@catalog_group.command('generate-variants')
@click.option('--restaurant-id', type=int, required=True)
@click.option('--item-id', type=int, required=True)
@with_appcontext
def catalog_generate_variants(restaurant_id, item_id):
    """Create any missing variant rows for an item's option combinations."""
    try:
        created = catalog_service.generate_variants(restaurant_id=restaurant_id, item_id=item_id)
    except InventoryError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created {len(created)} variants.")
    for variant in created:
        click.echo(f"  {variant.variant_key:<30} {variant.variant_name}")


@click.group('orders')
def orders_group():
    """Order lifecycle commands."""


@orders_group.command('transition')
@click.option('--restaurant-id', type=int, required=True)
@click.option('--order-id', type=int, required=True)
@click.option('--status', 'new_status', type=click.Choice(ORDER_STATUSES), required=True)
@click.option('--actor-id', type=int, default=None)
@with_appcontext
def orders_transition(restaurant_id, order_id, new_status, actor_id):
    """Move an order to a new status (cancelling restores stock)."""
    try:
        order = order_service.transition(
            restaurant_id=restaurant_id, order_id=order_id,
            new_status=new_status, actor_user_id=actor_id,
        )
    except InventoryError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Order {order.order_number} is now {order.status}")


@orders_group.command('refund')
@click.option('--restaurant-id', type=int, required=True)
@click.option('--order-id', type=int, required=True)
@click.option('--reason', default=None)
@click.option('--actor-id', type=int, default=None)
@with_appcontext
def orders_refund(restaurant_id, order_id, reason, actor_id):
    """Refund an order: restore stock and reverse sales counters."""
    try:
        order = order_service.refund_order(
            restaurant_id=restaurant_id, order_id=order_id,
            actor_user_id=actor_id, reason=reason,
        )
    except InventoryError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Order {order.order_number} refunded ({order.total_cents} cents)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(orders_group)
