"""Initial orderflow schema

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


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    op.create_table(
        "parties",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=16), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("email", name="uq_parties_email"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_parties_role_active", "parties", ["role", "is_active"])

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("depot_id", sa.Integer(), sa.ForeignKey("parties.id", name="fk_products_depot_id_parties"), nullable=False),
        sa.Column("barcode", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=64), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("unit_cost_cents", sa.Integer(), nullable=True),
        sa.Column("quantity_on_hand", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("depot_id", "barcode", name="uq_products_depot_barcode"),
        sa.CheckConstraint("quantity_on_hand >= 0", name=op.f("ck_products_quantity_non_negative")),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_depot_id", "products", ["depot_id"])
    op.create_index("ix_products_depot_name", "products", ["depot_id", "name"])
    op.create_index("ix_products_depot_active", "products", ["depot_id", "is_active"])

    op.create_table(
        "product_linkages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_a_id", sa.Integer(), sa.ForeignKey("products.id", name="fk_product_linkages_product_a_id_products"), nullable=False),
        sa.Column("product_b_id", sa.Integer(), sa.ForeignKey("products.id", name="fk_product_linkages_product_b_id_products"), nullable=False),
        sa.Column("depot_id", sa.Integer(), sa.ForeignKey("parties.id", name="fk_product_linkages_depot_id_parties"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("product_a_id <> product_b_id", name=op.f("ck_product_linkages_no_self_link")),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_product_linkages_product_a_id", "product_linkages", ["product_a_id"])
    op.create_index("ix_product_linkages_product_b_id", "product_linkages", ["product_b_id"])
    op.create_index("ix_product_linkages_depot_active", "product_linkages", ["depot_id", "is_active"])

    op.create_table(
        "alternate_barcodes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", name="fk_alternate_barcodes_product_id_products"), nullable=False),
        sa.Column("depot_id", sa.Integer(), sa.ForeignKey("parties.id", name="fk_alternate_barcodes_depot_id_parties"), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_alternate_barcodes_product_id", "alternate_barcodes", ["product_id"])
    op.create_index("ix_alternate_barcodes_depot_code", "alternate_barcodes", ["depot_id", "code"])

    op.create_table(
        "document_sequences",
        sa.Column("document_type", sa.String(length=32), primary_key=True),
        sa.Column("next_number", sa.Integer(), nullable=False),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("buyer_id", sa.Integer(), sa.ForeignKey("parties.id", name="fk_orders_buyer_id_parties"), nullable=False),
        sa.Column("depot_id", sa.Integer(), sa.ForeignKey("parties.id", name="fk_orders_depot_id_parties"), nullable=False),
        sa.Column("delivery_mode", sa.String(length=16), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("state", sa.String(length=16), nullable=False),
        sa.Column("priority", sa.String(length=16), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("estimated_delivery_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("sequence_number", name="uq_orders_sequence_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_orders_buyer_state", "orders", ["buyer_id", "state"])
    op.create_index("ix_orders_depot_state", "orders", ["depot_id", "state"])

    op.create_table(
        "order_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", name="fk_order_lines_order_id_orders"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", name="fk_order_lines_product_id_products"), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name=op.f("ck_order_lines_quantity_positive")),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_order_lines_order_id", "order_lines", ["order_id"])
    op.create_index("ix_order_lines_product_id", "order_lines", ["product_id"])

    op.create_table(
        "shipments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", name="fk_shipments_order_id_orders"), nullable=False),
        sa.Column("carrier_id", sa.Integer(), sa.ForeignKey("parties.id", name="fk_shipments_carrier_id_parties"), nullable=True),
        sa.Column("vehicle", sa.String(length=128), nullable=True),
        sa.Column("driver", sa.String(length=128), nullable=True),
        sa.Column("state", sa.String(length=16), nullable=False),
        sa.Column("departed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("estimated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_location", sa.JSON(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("order_id", name="uq_shipments_order_id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_shipments_carrier_state", "shipments", ["carrier_id", "state"])

    op.create_table(
        "delivery_receipts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=96), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", name="fk_delivery_receipts_order_id_orders"), nullable=False),
        sa.Column("buyer_id", sa.Integer(), sa.ForeignKey("parties.id", name="fk_delivery_receipts_buyer_id_parties"), nullable=False),
        sa.Column("depot_id", sa.Integer(), sa.ForeignKey("parties.id", name="fk_delivery_receipts_depot_id_parties"), nullable=False),
        sa.Column("line_snapshot", sa.JSON(), nullable=False),
        sa.Column("total_cents", sa.Integer(), nullable=False),
        sa.Column("confirmed", sa.Boolean(), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_by_id", sa.Integer(), sa.ForeignKey("parties.id", name="fk_delivery_receipts_confirmed_by_id_parties"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("code", name="uq_delivery_receipts_code"),
        sa.UniqueConstraint("order_id", name="uq_delivery_receipts_order_id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_delivery_receipts_buyer_confirmed", "delivery_receipts", ["buyer_id", "confirmed"])

    op.create_table(
        "personal_stock_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("parties.id", name="fk_personal_stock_entries_owner_id_parties"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=True),
        sa.Column("barcode", sa.String(length=64), nullable=True),
        sa.Column("category", sa.String(length=64), nullable=True),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("source_receipt_id", sa.Integer(), sa.ForeignKey("delivery_receipts.id", name="fk_personal_stock_entries_source_receipt_id_delivery_receipts"), nullable=True),
        sa.Column("source_order_id", sa.Integer(), sa.ForeignKey("orders.id", name="fk_personal_stock_entries_source_order_id_orders"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 0", name=op.f("ck_personal_stock_entries_quantity_non_negative")),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_personal_stock_entries_owner_id", "personal_stock_entries", ["owner_id"])
    op.create_index("ix_personal_stock_owner_name_created", "personal_stock_entries", ["owner_id", "name", "created_at"])
    op.create_index("ix_personal_stock_owner_barcode", "personal_stock_entries", ["owner_id", "barcode"])

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("parties.id", name="fk_ledger_entries_owner_id_parties"), nullable=False),
        sa.Column("kind", sa.String(length=8), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("category", sa.String(length=16), nullable=False),
        sa.Column("related_order_id", sa.Integer(), sa.ForeignKey("orders.id", name="fk_ledger_entries_related_order_id_orders"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name=op.f("ck_ledger_entries_amount_positive")),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_ledger_entries_owner_id", "ledger_entries", ["owner_id"])
    op.create_index("ix_ledger_entries_related_order_id", "ledger_entries", ["related_order_id"])
    op.create_index("ix_ledger_entries_created_at", "ledger_entries", ["created_at"])
    op.create_index("ix_ledger_entries_owner_created", "ledger_entries", ["owner_id", "created_at"])


def downgrade():
    for table in (
        "ledger_entries",
        "personal_stock_entries",
        "delivery_receipts",
        "shipments",
        "order_lines",
        "orders",
        "document_sequences",
        "alternate_barcodes",
        "product_linkages",
        "products",
        "parties",
    ):
        op.drop_table(table)
