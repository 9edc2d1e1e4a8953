"""stock ledger: master data, warehouse/catalog stock, restocks, orders

Revision ID: 0001_stock_ledger
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001_stock_ledger"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

USER_ROLE = sa.Enum("customer", "employee", "manager", name="user_role")
ORDER_STATUS = sa.Enum("CREATED", "SHIPPED", "DELIVERED", "CANCELLED", "COMPLETED", name="order_status")


def upgrade() -> None:
    # ---------- MASTER DATA ----------
    op.create_table(
        "products",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("brand", sa.String(128)),
        sa.Column("category_id", sa.String(64)),
    )
    op.create_index("ix_products_category_id", "products", ["category_id"])

    op.create_table(
        "shelves",
        sa.Column("id", ID, primary_key=True),
        sa.Column("name", sa.String(128), nullable=False, unique=True),
        sa.Column("description", sa.Text()),
    )

    op.create_table(
        "suppliers",
        sa.Column("id", ID, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("phone", sa.String(32)),
        sa.Column("email", sa.String(255)),
        sa.Column("address", sa.String(255)),
    )

    op.create_table(
        "users",
        sa.Column("id", ID, primary_key=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", USER_ROLE, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # ---------- STOCK LEDGER ----------
    op.create_table(
        "restock_orders",
        sa.Column("id", ID, primary_key=True),
        sa.Column("product_id", sa.String(64), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("supplier_id", ID, sa.ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity_ordered", sa.Integer(), nullable=False),
        sa.Column("ordered_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expected_arrival_at", sa.DateTime(timezone=True)),
        sa.Column("actual_arrival_at", sa.DateTime(timezone=True)),
        sa.Column("arrived", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("responsible_id", ID, sa.ForeignKey("users.id", ondelete="SET NULL")),
        sa.CheckConstraint("quantity_ordered > 0", name="ck_restock_qty_pos"),
    )
    op.create_index("ix_restock_orders_pending", "restock_orders", ["arrived", "ordered_at"])

    op.create_table(
        "warehouse_stock",
        sa.Column("product_id", sa.String(64), sa.ForeignKey("products.id", ondelete="RESTRICT"), primary_key=True),
        sa.Column("quantity_available", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "last_arrived_restock_id",
            ID,
            sa.ForeignKey("restock_orders.id", ondelete="SET NULL"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("quantity_available >= 0", name="ck_warehouse_qty_nonneg"),
    )

    op.create_table(
        "catalog_entries",
        sa.Column("id", ID, primary_key=True),
        sa.Column("product_id", sa.String(64), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("shelf_id", ID, sa.ForeignKey("shelves.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity_available", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("old_price", sa.Numeric(10, 2)),
        sa.UniqueConstraint("product_id", "shelf_id", name="uq_catalog_product_shelf"),
        sa.CheckConstraint("quantity_available >= 0", name="ck_catalog_qty_nonneg"),
        sa.CheckConstraint("price >= 0", name="ck_catalog_price_nonneg"),
    )

    # ---------- ORDERS ----------
    op.create_table(
        "orders",
        sa.Column("id", ID, primary_key=True),
        sa.Column("user_id", ID, sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("placed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", ORDER_STATUS, nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False, server_default="0"),
    )
    op.create_index("ix_orders_user_id", "orders", ["user_id"])

    op.create_table(
        "order_lines",
        sa.Column("id", ID, primary_key=True),
        sa.Column("order_id", ID, sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.String(64), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("line_total", sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_order_line_qty_pos"),
    )
    op.create_index("ix_order_lines_order_id", "order_lines", ["order_id"])


def downgrade() -> None:
    op.drop_index("ix_order_lines_order_id", table_name="order_lines")
    op.drop_table("order_lines")
    op.drop_index("ix_orders_user_id", table_name="orders")
    op.drop_table("orders")
    op.drop_table("catalog_entries")
    op.drop_table("warehouse_stock")
    op.drop_index("ix_restock_orders_pending", table_name="restock_orders")
    op.drop_table("restock_orders")
    op.drop_table("users")
    op.drop_table("suppliers")
    op.drop_table("shelves")
    op.drop_index("ix_products_category_id", table_name="products")
    op.drop_table("products")

    # Postgres : les types ENUM survivent aux tables
    bind = op.get_bind()
    ORDER_STATUS.drop(bind, checkfirst=True)
    USER_ROLE.drop(bind, checkfirst=True)
