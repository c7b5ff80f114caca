"""Initial laundry POS schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated=True):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now())]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()))
    return cols


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=120), nullable=False),
        sa.Column("barcode", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("iron_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("wash_and_iron_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("dry_clean_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_products_barcode", "products", ["barcode"], unique=True)
    op.create_index("ix_products_category_name", "products", ["category", "name"])

    op.create_table(
        "customers",
        sa.Column("id", sa.String(length=16), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=True),
        sa.Column("contact_name", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("place", sa.String(length=255), nullable=True),
        sa.Column("emirate", sa.String(length=64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_customers_name", "customers", ["name"])
    op.create_index("ix_customers_phone", "customers", ["phone"])

    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=16), primary_key=True),
        sa.Column("customer_id", sa.String(length=16), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount", sa.Numeric(12, 2), nullable=False),
        sa.Column("tax", sa.Numeric(12, 2), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("discount_type", sa.String(length=16), nullable=False),
        sa.Column("discount_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(length=16), nullable=False),
        sa.Column("cash_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("card_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("delivery_status", sa.String(length=16), nullable=True),
        sa.Column("payment_status", sa.String(length=16), nullable=True),
        *_timestamps(),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
    )
    op.create_index("ix_orders_customer_id", "orders", ["customer_id"])
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_created_at", "orders", ["created_at"])
    op.create_index("ix_orders_status_created", "orders", ["status", "created_at"])
    op.create_index("ix_orders_payment_method", "orders", ["payment_method"])

    op.create_table(
        "order_items",
        sa.Column("id", sa.String(length=16), primary_key=True),
        sa.Column("order_id", sa.String(length=16), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("product_id", sa.String(length=32), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("service", sa.String(length=16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_rate", sa.Numeric(12, 2), nullable=True),
        sa.Column("discount", sa.Numeric(5, 2), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])
    op.create_index("ix_order_items_product_id", "order_items", ["product_id"])

    op.create_table(
        "returns",
        sa.Column("id", sa.String(length=16), primary_key=True),
        sa.Column("order_id", sa.String(length=16), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("refund_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("is_complete", sa.Boolean(), nullable=False),
        sa.Column("idempotency_key", sa.String(length=64), nullable=True, unique=True),
        *_timestamps(updated=False),
    )
    op.create_index("ix_returns_order_id", "returns", ["order_id"])
    op.create_index("ix_returns_created_at", "returns", ["created_at"])

    op.create_table(
        "return_items",
        sa.Column("id", sa.String(length=16), primary_key=True),
        sa.Column("return_id", sa.String(length=16), sa.ForeignKey("returns.id"), nullable=False),
        sa.Column("product_id", sa.String(length=32), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("order_item_id", sa.String(length=16), sa.ForeignKey("order_items.id"), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("refund_amount", sa.Numeric(12, 2), nullable=False),
    )
    op.create_index("ix_return_items_return_id", "return_items", ["return_id"])
    op.create_index("ix_return_items_product_id", "return_items", ["product_id"])

    op.create_table(
        "id_sequences",
        sa.Column("prefix", sa.String(length=16), primary_key=True),
        sa.Column("counter_value", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tax_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("business_name", sa.String(length=255), nullable=False),
        sa.Column("business_address", sa.String(length=255), nullable=True),
        sa.Column("business_phone", sa.String(length=64), nullable=True),
        sa.Column("barcode_scanner_enabled", sa.Boolean(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "session_tokens",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("token_hash", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("user_agent", sa.String(length=255), nullable=True),
        sa.Column("ip_address", sa.String(length=64), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_session_tokens_user_id", "session_tokens", ["user_id"])
    op.create_index("ix_session_tokens_token_hash", "session_tokens", ["token_hash"], unique=True)
    op.create_index("ix_session_tokens_expires_at", "session_tokens", ["expires_at"])
    op.create_index("ix_session_tokens_user_active", "session_tokens", ["user_id", "is_revoked"])


def downgrade():
    for table in (
        "session_tokens", "users", "settings", "id_sequences",
        "return_items", "returns", "order_items", "orders", "customers", "products",
    ):
        op.drop_table(table)
