"""Initial schema: catalog, salesmen, customers, sales, sale items, returns

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


def _sellable_columns():
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shop_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("batch_no", sa.String(64), nullable=False),
        sa.Column("rack_no", sa.String(32), nullable=True),
        sa.Column("supplier", sa.String(255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("selling_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("purchase_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("manufacturing_date", sa.Date(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade():
    op.create_table(
        "medicines",
        *_sellable_columns(),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("selling_type", sa.String(16), nullable=False, server_default="per_unit"),
        sa.Column("units_per_pack", sa.Integer(), nullable=True),
        sa.Column("price_per_pack", sa.Numeric(12, 2), nullable=True),
        sa.Column("is_narcotic", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_fridge_item", sa.Boolean(), nullable=False, server_default=sa.false()),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_medicines_shop_id", "medicines", ["shop_id"])
    op.create_index("ix_medicines_name", "medicines", ["name"])
    op.create_index("ix_medicines_shop_name", "medicines", ["shop_id", "name"])

    op.create_table(
        "cosmetics",
        *_sellable_columns(),
        sa.Column("brand", sa.String(255), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_cosmetics_shop_id", "cosmetics", ["shop_id"])
    op.create_index("ix_cosmetics_name", "cosmetics", ["name"])
    op.create_index("ix_cosmetics_shop_name", "cosmetics", ["shop_id", "name"])

    op.create_table(
        "salesmen",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shop_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact", sa.String(32), nullable=True),
        sa.Column("assigned_counter", sa.String(64), nullable=True),
        sa.Column("joining_date", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_salesmen_shop_id", "salesmen", ["shop_id"])

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shop_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("loyalty_points", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_purchases", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_spent", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_customers_shop_id", "customers", ["shop_id"])
    op.create_index("ix_customers_shop_phone", "customers", ["shop_id", "phone"])

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shop_id", sa.Integer(), nullable=True),
        sa.Column("receipt_number", sa.String(64), nullable=False),
        sa.Column("salesman_id", sa.Integer(), sa.ForeignKey("salesmen.id"), nullable=False),
        sa.Column("salesman_name", sa.String(255), nullable=False),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("customers.id"), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("sale_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("tax", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_profit", sa.Numeric(12, 2), nullable=False),
        sa.Column("loyalty_points_earned", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("return_status", sa.String(16), nullable=False, server_default="none"),
        sa.Column("return_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("return_reason", sa.String(255), nullable=True),
        sa.Column("return_processed_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("receipt_number", name="uq_sales_receipt_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sales_shop_id", "sales", ["shop_id"])
    op.create_index("ix_sales_salesman_id", "sales", ["salesman_id"])
    op.create_index("ix_sales_customer_id", "sales", ["customer_id"])
    op.create_index("ix_sales_sale_date", "sales", ["sale_date"])
    op.create_index("ix_sales_return_status", "sales", ["return_status"])
    op.create_index("ix_sales_shop_sale_date", "sales", ["shop_id", "sale_date"])

    op.create_table(
        "sale_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=False),
        sa.Column("shop_id", sa.Integer(), nullable=True),
        sa.Column("item_type", sa.String(16), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("batch_no", sa.String(64), nullable=False),
        sa.Column("selling_mode", sa.String(16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 4), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("profit", sa.Numeric(12, 2), nullable=False),
        sa.Column("units_per_pack", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("total_base_units", sa.Integer(), nullable=False),
        sa.Column("total_packs", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_fridge_item", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_controlled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("return_status", sa.String(16), nullable=False, server_default="none"),
        sa.Column("return_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("return_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("return_quantity >= 0", name="ck_sale_items_return_qty_nonneg"),
        sa.CheckConstraint("return_quantity <= quantity", name="ck_sale_items_return_qty_max"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sale_items_sale_id", "sale_items", ["sale_id"])
    op.create_index("ix_sale_items_shop_id", "sale_items", ["shop_id"])

    op.create_table(
        "returns",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shop_id", sa.Integer(), nullable=True),
        sa.Column("sale_id", sa.Integer(), sa.ForeignKey("sales.id"), nullable=False),
        sa.Column("sale_item_id", sa.Integer(), sa.ForeignKey("sale_items.id"), nullable=False),
        sa.Column("return_type", sa.String(16), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("refund_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("processed_by", sa.String(255), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_returns_shop_id", "returns", ["shop_id"])
    op.create_index("ix_returns_sale_id", "returns", ["sale_id"])
    op.create_index("ix_returns_sale_item_id", "returns", ["sale_item_id"])
    op.create_index("ix_returns_return_type", "returns", ["return_type"])
    op.create_index("ix_returns_processed_at", "returns", ["processed_at"])
    op.create_index("ix_returns_shop_processed", "returns", ["shop_id", "processed_at"])


def downgrade():
    op.drop_table("returns")
    op.drop_table("sale_items")
    op.drop_table("sales")
    op.drop_table("customers")
    op.drop_table("salesmen")
    op.drop_table("cosmetics")
    op.drop_table("medicines")
