"""Wholesale catalog, stock audits and orders

Revision ID: 20261017_wholesale_inventory
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_wholesale_inventory"
down_revision = None
branch_labels = None
depends_on = None


def _stock_columns():
    return [
        sa.Column("stock_quantity", sa.Integer(), nullable=True),
        sa.Column("damaged_quantity", sa.Integer(), nullable=True),
        sa.Column("low_stock_threshold", sa.Integer(), nullable=True),
        sa.Column("stock_status", sa.String(16), nullable=False, server_default="unlimited"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
    ]


def _audit_columns():
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("audit_type", sa.String(32), nullable=False),
        sa.Column("quantity_change", sa.Integer(), nullable=False),
        sa.Column("previous_quantity", sa.Integer(), nullable=False),
        sa.Column("new_quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("order_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["order_id"], ["wholesale_orders.id"]),
        sa.PrimaryKeyConstraint("id"),
    ]


def upgrade():
    op.create_table(
        "restaurants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("restaurants", schema=None) as batch_op:
        batch_op.create_index("ix_restaurants_code", ["code"], unique=True)
        batch_op.create_index("ix_restaurants_is_active", ["is_active"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("restaurant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("restaurant_id", "email", name="uq_users_restaurant_email"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index("ix_users_restaurant_id", ["restaurant_id"], unique=False)

    op.create_table(
        "wholesale_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("restaurant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(64), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("track_inventory", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("track_variants", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("allow_sale_with_no_stock", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        *_stock_columns(),
        sa.Column("last_restocked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("restaurant_id", "sku", name="uq_wholesale_items_restaurant_sku"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wholesale_items", schema=None) as batch_op:
        batch_op.create_index("ix_wholesale_items_restaurant_id", ["restaurant_id"], unique=False)
        batch_op.create_index("ix_wholesale_items_restaurant_active", ["restaurant_id", "active"], unique=False)
        batch_op.create_index("ix_wholesale_items_stock_status", ["stock_status"], unique=False)

    op.create_table(
        "wholesale_option_groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("min_select", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("max_select", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("enable_inventory_tracking", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.CheckConstraint("min_select >= 0", name="ck_option_groups_min_select"),
        sa.CheckConstraint("max_select >= 1", name="ck_option_groups_max_select"),
        sa.ForeignKeyConstraint(["item_id"], ["wholesale_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wholesale_option_groups", schema=None) as batch_op:
        batch_op.create_index("ix_wholesale_option_groups_item_id", ["item_id"], unique=False)

    op.create_table(
        "wholesale_options",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("option_group_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("additional_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_ordered", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_revenue_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_stock_columns(),
        sa.ForeignKeyConstraint(["option_group_id"], ["wholesale_option_groups.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("option_group_id", "name", name="uq_wholesale_options_group_name"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wholesale_options", schema=None) as batch_op:
        batch_op.create_index("ix_wholesale_options_option_group_id", ["option_group_id"], unique=False)
        batch_op.create_index("ix_wholesale_options_stock_status", ["stock_status"], unique=False)

    op.create_table(
        "wholesale_item_variants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("variant_key", sa.String(255), nullable=False),
        sa.Column("variant_name", sa.String(255), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("total_ordered", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_revenue_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_stock_columns(),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["wholesale_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("item_id", "variant_key", name="uq_wholesale_item_variants_item_key"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wholesale_item_variants", schema=None) as batch_op:
        batch_op.create_index("ix_wholesale_item_variants_item_id", ["item_id"], unique=False)
        batch_op.create_index("ix_wholesale_item_variants_stock_status", ["stock_status"], unique=False)

    op.create_table(
        "wholesale_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("restaurant_id", sa.Integer(), nullable=False),
        sa.Column("order_number", sa.String(64), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="unpaid"),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("inventory_released_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"]),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("restaurant_id", "order_number", name="uq_wholesale_orders_restaurant_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wholesale_orders", schema=None) as batch_op:
        batch_op.create_index("ix_wholesale_orders_restaurant_id", ["restaurant_id"], unique=False)
        batch_op.create_index("ix_wholesale_orders_status", ["status"], unique=False)
        batch_op.create_index("ix_wholesale_orders_payment_status", ["payment_status"], unique=False)
        batch_op.create_index(
            "ix_wholesale_orders_restaurant_status_created",
            ["restaurant_id", "status", "created_at"],
            unique=False,
        )

    op.create_table(
        "wholesale_order_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("selected_options", sa.JSON(), nullable=False),
        sa.Column("variant_key", sa.String(255), nullable=True),
        sa.CheckConstraint("quantity > 0", name="ck_wholesale_order_items_quantity"),
        sa.ForeignKeyConstraint(["order_id"], ["wholesale_orders.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["wholesale_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("wholesale_order_items", schema=None) as batch_op:
        batch_op.create_index("ix_wholesale_order_items_order_id", ["order_id"], unique=False)
        batch_op.create_index("ix_wholesale_order_items_item_id", ["item_id"], unique=False)

    op.create_table(
        "wholesale_order_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("restaurant_id", sa.Integer(), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["restaurant_id"], ["restaurants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("restaurant_id", name="uq_wholesale_order_sequences_restaurant"),
        sqlite_autoincrement=True,
    )

    for table, fk_name, fk_target in (
        ("wholesale_item_stock_audits", "item_id", "wholesale_items.id"),
        ("wholesale_option_stock_audits", "option_id", "wholesale_options.id"),
        ("wholesale_variant_stock_audits", "variant_id", "wholesale_item_variants.id"),
    ):
        op.create_table(
            table,
            *_audit_columns(),
            sa.Column(fk_name, sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint([fk_name], [fk_target]),
            sqlite_autoincrement=True,
        )
        with op.batch_alter_table(table, schema=None) as batch_op:
            batch_op.create_index(f"ix_{table}_{fk_name}", [fk_name], unique=False)
            batch_op.create_index(f"ix_{table}_audit_type", ["audit_type"], unique=False)
            batch_op.create_index(f"ix_{table}_order_id", ["order_id"], unique=False)
            batch_op.create_index(f"ix_{table}_actor_user_id", ["actor_user_id"], unique=False)
            batch_op.create_index(f"ix_{table}_created_at", ["created_at"], unique=False)

    op.create_index("ix_item_stock_audits_item_created", "wholesale_item_stock_audits", ["item_id", "created_at"])
    op.create_index("ix_option_stock_audits_option_created", "wholesale_option_stock_audits", ["option_id", "created_at"])
    op.create_index("ix_variant_stock_audits_variant_created", "wholesale_variant_stock_audits", ["variant_id", "created_at"])


def downgrade():
    op.drop_table("wholesale_variant_stock_audits")
    op.drop_table("wholesale_option_stock_audits")
    op.drop_table("wholesale_item_stock_audits")
    op.drop_table("wholesale_order_sequences")
    op.drop_table("wholesale_order_items")
    op.drop_table("wholesale_orders")
    op.drop_table("wholesale_item_variants")
    op.drop_table("wholesale_options")
    op.drop_table("wholesale_option_groups")
    op.drop_table("wholesale_items")
    op.drop_table("users")
    op.drop_table("restaurants")
