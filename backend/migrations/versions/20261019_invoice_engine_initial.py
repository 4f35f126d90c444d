"""Initial schema: items, parties, invoices, payments, sequences

Revision ID: 20261019_invoice_engine
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_invoice_engine"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
    ]


def _contact_columns():
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("city", sa.String(128), nullable=True),
        *_timestamps(),
    ]


def _party_total_columns():
    return [
        sa.Column("total_commission", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_paid", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_remaining", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False, server_default="unpaid"),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
    ]


def _line_columns(invoice_table: str, price_column: str):
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=True),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("net_weight", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("gross_weight", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("packaging_cost", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(price_column, sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_price", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["invoice_id"], [f"{invoice_table}.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.PrimaryKeyConstraint("id"),
    ]


def _payment_columns():
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.String(16), nullable=False, server_default="cash"),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
    ]


def _invoice_columns():
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_number", sa.String(32), nullable=False),
        sa.Column("invoice_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("subtotal", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("remaining_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False, server_default="unpaid"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
    ]


def _trade_columns():
    return [
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("labour_transport_cost", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_paid_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
    ]


def _index(table: str, *columns: str, unique: bool = False):
    with op.batch_alter_table(table, schema=None) as batch_op:
        for column in columns:
            batch_op.create_index(f"ix_{table}_{column}", [column], unique=unique)


def upgrade():
    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("item_code", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("shop_quantity", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("shop_net_weight", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("shop_gross_weight", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("cold_quantity", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("cold_net_weight", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("cold_gross_weight", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("item_code", name="uq_items_item_code"),
        sa.UniqueConstraint("name", name="uq_items_name"),
        sqlite_autoincrement=True,
    )
    _index("items", "item_code")

    for table in ("customers", "vendors"):
        op.create_table(table, *_contact_columns(), sa.PrimaryKeyConstraint("id"), sqlite_autoincrement=True)
        _index(table, "name")

    for table in ("brokers", "commissioners"):
        op.create_table(
            table,
            *_contact_columns(),
            *_party_total_columns(),
            sa.PrimaryKeyConstraint("id"),
            sqlite_autoincrement=True,
        )
        _index(table, "name")

    op.create_table(
        "broker_payments",
        *_payment_columns(),
        sa.Column("broker_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["broker_id"], ["brokers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    _index("broker_payments", "broker_id")

    op.create_table(
        "customer_invoices",
        *_invoice_columns(),
        *_trade_columns(),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=False),
        sa.Column("broker_id", sa.Integer(), nullable=True),
        sa.Column("broker_name", sa.String(255), nullable=True),
        sa.Column("broker_commission_percentage", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("broker_commission_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["broker_id"], ["brokers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number"),
        sqlite_autoincrement=True,
    )
    _index("customer_invoices", "status", "due_date", "customer_id", "broker_id")

    op.create_table(
        "vendor_invoices",
        *_invoice_columns(),
        *_trade_columns(),
        sa.Column("vendor_id", sa.Integer(), nullable=True),
        sa.Column("vendor_name", sa.String(255), nullable=False),
        sa.Column("broker_id", sa.Integer(), nullable=True),
        sa.Column("broker_name", sa.String(255), nullable=True),
        sa.ForeignKeyConstraint(["vendor_id"], ["vendors.id"]),
        sa.ForeignKeyConstraint(["broker_id"], ["brokers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number"),
        sqlite_autoincrement=True,
    )
    _index("vendor_invoices", "status", "due_date", "vendor_id", "broker_id")

    op.create_table(
        "commissioner_invoices",
        *_invoice_columns(),
        sa.Column("commissioner_id", sa.Integer(), nullable=True),
        sa.Column("commissioner_name", sa.String(255), nullable=False),
        sa.Column("buyer_name", sa.String(255), nullable=True),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("commissioner_percentage", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("commissioner_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("paid_amount", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["commissioner_id"], ["commissioners.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_number"),
        sqlite_autoincrement=True,
    )
    _index("commissioner_invoices", "status", "commissioner_id")

    op.create_table(
        "customer_invoice_lines",
        *_line_columns("customer_invoices", "selling_price"),
        sqlite_autoincrement=True,
    )
    _index("customer_invoice_lines", "invoice_id", "item_id")

    op.create_table(
        "vendor_invoice_lines",
        *_line_columns("vendor_invoices", "purchase_price"),
        sa.Column("storage_type", sa.String(8), nullable=False, server_default="shop"),
        sqlite_autoincrement=True,
    )
    _index("vendor_invoice_lines", "invoice_id", "item_id")

    op.create_table(
        "commissioner_invoice_lines",
        *_line_columns("commissioner_invoices", "sale_price"),
        sqlite_autoincrement=True,
    )
    _index("commissioner_invoice_lines", "invoice_id", "item_id")

    for table, invoice_table in (
        ("customer_invoice_payments", "customer_invoices"),
        ("vendor_invoice_payments", "vendor_invoices"),
    ):
        op.create_table(
            table,
            *_payment_columns(),
            sa.Column("invoice_id", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["invoice_id"], [f"{invoice_table}.id"]),
            sa.PrimaryKeyConstraint("id"),
            sqlite_autoincrement=True,
        )
        _index(table, "invoice_id")

    op.create_table(
        "commissioner_payments",
        *_payment_columns(),
        sa.Column("commissioner_id", sa.Integer(), nullable=True),
        sa.Column("commissioner_invoice_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["commissioner_id"], ["commissioners.id"]),
        sa.ForeignKeyConstraint(["commissioner_invoice_id"], ["commissioner_invoices.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    _index("commissioner_payments", "commissioner_id", "commissioner_invoice_id")

    op.create_table(
        "invoice_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_type", sa.String(32), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("invoice_type", name="uq_invoice_sequences_type"),
        sqlite_autoincrement=True,
    )
    _index("invoice_sequences", "invoice_type")


def downgrade():
    for table in (
        "invoice_sequences",
        "commissioner_payments",
        "vendor_invoice_payments",
        "customer_invoice_payments",
        "commissioner_invoice_lines",
        "vendor_invoice_lines",
        "customer_invoice_lines",
        "commissioner_invoices",
        "vendor_invoices",
        "customer_invoices",
        "broker_payments",
        "commissioners",
        "brokers",
        "vendors",
        "customers",
        "items",
    ):
        op.drop_table(table)
