"""Initial stockroom schema

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

NOW = sa.text("(CURRENT_TIMESTAMP)")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
    ]


def _adjustment_columns():
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("uom_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Numeric(18, 6), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("pic", sa.String(128), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("applied_product_id", sa.Integer(), nullable=True),
        sa.Column("applied_location_id", sa.Integer(), nullable=True),
        sa.Column("applied_quantity", sa.Numeric(18, 6), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.ForeignKeyConstraint(["uom_id"], ["uoms.id"]),
        sa.PrimaryKeyConstraint("id"),
    ]


def _adjustment_indexes(table: str):
    with op.batch_alter_table(table, schema=None) as batch_op:
        batch_op.create_index(f"ix_{table}_product_id", ["product_id"], unique=False)
        batch_op.create_index(f"ix_{table}_location_id", ["location_id"], unique=False)
        batch_op.create_index(f"ix_{table}_status", ["status"], unique=False)
        batch_op.create_index(f"ix_{table}_deleted_at", ["deleted_at"], unique=False)


def upgrade():
    op.create_table(
        "uoms",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("abbreviation", sa.String(16), nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sa.UniqueConstraint("abbreviation"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "uom_conversions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("from_uom_id", sa.Integer(), nullable=False),
        sa.Column("to_uom_id", sa.Integer(), nullable=False),
        sa.Column("rate", sa.Numeric(18, 6), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["from_uom_id"], ["uoms.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["to_uom_id"], ["uoms.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("from_uom_id", "to_uom_id", name="uq_uom_conversions_pair"),
        sa.CheckConstraint("rate > 0", name="ck_uom_conversions_rate_positive"),
        sa.CheckConstraint("from_uom_id <> to_uom_id", name="ck_uom_conversions_distinct"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("uom_conversions", schema=None) as batch_op:
        batch_op.create_index("ix_uom_conversions_from_uom_id", ["from_uom_id"], unique=False)
        batch_op.create_index("ix_uom_conversions_to_uom_id", ["to_uom_id"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("barcode", sa.String(64), nullable=True),
        sa.Column("price_cents", sa.Integer(), nullable=True),
        sa.Column("uom_id", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["uom_id"], ["uoms.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("barcode"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_name", ["name"], unique=False)
        batch_op.create_index("ix_products_uom_id", ["uom_id"], unique=False)

    op.create_table(
        "locations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "product_location_stocks",
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("stock", sa.Numeric(18, 6), nullable=False, server_default=sa.text("0")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("product_id", "location_id"),
        sa.CheckConstraint("stock >= 0", name="ck_product_location_stocks_non_negative"),
    )
    with op.batch_alter_table("product_location_stocks", schema=None) as batch_op:
        batch_op.create_index("ix_pls_location", ["location_id"], unique=False)

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("movement_type", sa.String(16), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 6), nullable=False),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("reference_type", sa.String(32), nullable=True),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "movement_type IN ('procurement', 'sale', 'disposal', 'adjustment', 'transfer')",
            name="ck_stock_movements_type",
        ),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_movements", schema=None) as batch_op:
        batch_op.create_index("ix_stock_movements_product_location", ["product_id", "location_id"], unique=False)
        batch_op.create_index("ix_stock_movements_reference", ["reference_type", "reference_id"], unique=False)
        batch_op.create_index("ix_stock_movements_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_stock_movements_location_id", ["location_id"], unique=False)
        batch_op.create_index("ix_stock_movements_movement_type", ["movement_type"], unique=False)
        batch_op.create_index("ix_stock_movements_created_at", ["created_at"], unique=False)

    op.create_table(
        "procurements",
        *_adjustment_columns(),
        sa.Column("unit_price_cents", sa.Integer(), nullable=True),
        sa.Column("supplier", sa.String(255), nullable=True),
        sa.CheckConstraint("quantity > 0", name="ck_procurements_quantity_positive"),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_procurements_status"),
        sqlite_autoincrement=True,
    )
    _adjustment_indexes("procurements")

    op.create_table(
        "disposals",
        *_adjustment_columns(),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.CheckConstraint("quantity > 0", name="ck_disposals_quantity_positive"),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name="ck_disposals_status"),
        sqlite_autoincrement=True,
    )
    _adjustment_indexes("disposals")

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("invoice_number", sa.String(32), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_type", sa.String(16), nullable=True),
        sa.Column("discount_value", sa.Numeric(12, 2), nullable=True),
        sa.Column("discount_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("sold_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number", name="uq_sales_invoice_number"),
        sa.CheckConstraint("total_amount_cents >= 0", name="ck_sales_total_non_negative"),
        sa.CheckConstraint(
            "discount_type IS NULL OR discount_type IN ('percentage', 'fixed')",
            name="ck_sales_discount_type",
        ),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_location_created", ["location_id", "created_at"], unique=False)
        batch_op.create_index("ix_sales_location_id", ["location_id"], unique=False)
        batch_op.create_index("ix_sales_deleted_at", ["deleted_at"], unique=False)

    op.create_table(
        "sales_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Numeric(18, 6), nullable=False),
        sa.Column("uom_id", sa.Integer(), nullable=True),
        sa.Column("base_quantity", sa.Numeric(18, 6), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["uom_id"], ["uoms.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("quantity > 0", name="ck_sales_items_quantity_positive"),
        sa.CheckConstraint("unit_price_cents >= 0", name="ck_sales_items_price_non_negative"),
        sa.CheckConstraint("subtotal_cents >= 0", name="ck_sales_items_subtotal_non_negative"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales_items", schema=None) as batch_op:
        batch_op.create_index("ix_sales_items_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_sales_items_product_id", ["product_id"], unique=False)

    op.create_table(
        "stock_counts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("location_id", sa.Integer(), nullable=False),
        sa.Column("counted_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["location_id"], ["locations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("status IN ('draft', 'completed', 'cancelled')", name="ck_stock_counts_status"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_counts", schema=None) as batch_op:
        batch_op.create_index("ix_stock_counts_location_id", ["location_id"], unique=False)
        batch_op.create_index("ix_stock_counts_status", ["status"], unique=False)

    op.create_table(
        "stock_count_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("stock_count_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("system_quantity", sa.Numeric(18, 6), nullable=False),
        sa.Column("actual_quantity", sa.Numeric(18, 6), nullable=False),
        sa.Column("difference", sa.Numeric(18, 6), nullable=False),
        sa.Column("posted_delta", sa.Numeric(18, 6), nullable=True),
        sa.Column("notes", sa.String(255), nullable=True),
        sa.ForeignKeyConstraint(["stock_count_id"], ["stock_counts.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("stock_count_id", "product_id", name="uq_stock_count_items_count_product"),
        sa.CheckConstraint("actual_quantity >= 0", name="ck_stock_count_items_actual_non_negative"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("stock_count_items", schema=None) as batch_op:
        batch_op.create_index("ix_stock_count_items_stock_count_id", ["stock_count_id"], unique=False)

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(32), nullable=False),
        sa.Column("period", sa.String(16), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("document_type", "period", name="uq_doc_sequences_type_period"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("document_sequences", schema=None) as batch_op:
        batch_op.create_index("ix_document_sequences_document_type", ["document_type"], unique=False)

    op.create_table(
        "audit_trail",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(32), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(16), nullable=False),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=NOW, nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "action IN ('create', 'update', 'delete', 'restore', 'approve', 'reject')",
            name="ck_audit_trail_action",
        ),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("audit_trail", schema=None) as batch_op:
        batch_op.create_index("ix_audit_trail_entity", ["entity_type", "entity_id"], unique=False)
        batch_op.create_index("ix_audit_trail_action", ["action"], unique=False)
        batch_op.create_index("ix_audit_trail_created_at", ["created_at"], unique=False)


def downgrade():
    for table in (
        "audit_trail",
        "document_sequences",
        "stock_count_items",
        "stock_counts",
        "sales_items",
        "sales",
        "disposals",
        "procurements",
        "stock_movements",
        "product_location_stocks",
        "locations",
        "products",
        "uom_conversions",
        "uoms",
    ):
        op.drop_table(table)
