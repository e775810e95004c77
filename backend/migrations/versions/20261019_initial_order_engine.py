"""initial order engine schema

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the Stockbook schema from scratch:
- locations, contacts: where stock lives and who orders are with
- products, variation_groups, product_variations: catalog
- stock_entries: on-hand quantity per (variation, location), optimistic version_id
- orders, order_lines, packing_records, packing_pieces, order_charges, order_payments
- financial_accounts, account_transactions: accounting sink
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def _money(name, **kwargs):
    return sa.Column(name, sa.Numeric(14, 2), nullable=False, server_default="0", **kwargs)


def upgrade():
    # ============================================================================
    # Reference data
    # ============================================================================
    op.create_table(
        'locations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(120), nullable=False, unique=True),
        sa.Column('code', sa.String(32), nullable=True, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_locations_code', 'locations', ['code'])

    op.create_table(
        'contacts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('contact_type', sa.String(16), nullable=False, server_default='customer'),
        sa.Column('customer_type', sa.String(16), nullable=False, server_default='retail'),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_contacts_type_name', 'contacts', ['contact_type', 'name'])

    # ============================================================================
    # Catalog
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sku', sa.String(64), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('unit', sa.String(16), nullable=True),
        _money('price_buy'),
        _money('price_retail'),
        _money('price_wholesale'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_name', 'products', ['name'])

    op.create_table(
        'variation_groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('name', sa.String(64), nullable=False),
        sa.UniqueConstraint('product_id', 'name', name='uq_variation_groups_product_name'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_variation_groups_product_id', 'variation_groups', ['product_id'])

    op.create_table(
        'product_variations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('variation_groups.id'), nullable=True),
        sa.Column('name', sa.String(64), nullable=False, server_default='default'),
        sa.Column('sku_suffix', sa.String(32), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        _money('price_buy'),
        _money('price_retail'),
        _money('price_wholesale'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_product_variations_product_id', 'product_variations', ['product_id'])
    op.create_index('ix_product_variations_group_id', 'product_variations', ['group_id'])
    op.create_index('ix_product_variations_product_active', 'product_variations', ['product_id', 'is_active'])

    # ============================================================================
    # Stock
    # ============================================================================
    op.create_table(
        'stock_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('variation_id', sa.Integer(), sa.ForeignKey('product_variations.id'), nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id'), nullable=False),
        sa.Column('quantity', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('variation_id', 'location_id', name='uq_stock_entries_variation_location'),
        sa.CheckConstraint('quantity >= 0', name='ck_stock_entries_quantity_non_negative'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_stock_entries_variation_id', 'stock_entries', ['variation_id'])
    op.create_index('ix_stock_entries_location_id', 'stock_entries', ['location_id'])

    # ============================================================================
    # Orders
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_type', sa.String(16), nullable=False),
        sa.Column('location_id', sa.Integer(), sa.ForeignKey('locations.id'), nullable=False),
        sa.Column('contact_id', sa.Integer(), sa.ForeignKey('contacts.id'), nullable=True),
        sa.Column('customer_type', sa.String(16), nullable=False, server_default='retail'),
        sa.Column('document_number', sa.String(64), nullable=False, unique=True),
        sa.Column('document_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='draft'),
        sa.Column('payment_status', sa.String(16), nullable=False, server_default='due'),
        _money('items_subtotal'),
        sa.Column('discount_percent', sa.Numeric(5, 2), nullable=False, server_default='0'),
        _money('discount_amount'),
        _money('extra_charges_amount'),
        _money('shipping_amount'),
        _money('grand_total'),
        _money('total_paid'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('finalized_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_orders_location_id', 'orders', ['location_id'])
    op.create_index('ix_orders_contact_id', 'orders', ['contact_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_type_status', 'orders', ['order_type', 'status'])
    op.create_index('ix_orders_location_date', 'orders', ['location_id', 'document_date'])

    op.create_table(
        'order_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('variation_id', sa.Integer(), sa.ForeignKey('product_variations.id'), nullable=False),
        sa.Column('sku', sa.String(128), nullable=True),
        sa.Column('quantity', sa.Numeric(14, 3), nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), nullable=False),
        _money('line_discount'),
        sa.Column('row_total', sa.Numeric(14, 2), nullable=False),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_order_lines_order_id', 'order_lines', ['order_id'])
    op.create_index('ix_order_lines_product_id', 'order_lines', ['product_id'])
    op.create_index('ix_order_lines_variation_id', 'order_lines', ['variation_id'])

    op.create_table(
        'packing_records',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_line_id', sa.Integer(), sa.ForeignKey('order_lines.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('entry_mode', sa.String(16), nullable=False, server_default='detailed'),
        sa.Column('total_boxes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_pieces', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_measure', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sqlite_autoincrement=True,
    )

    op.create_table(
        'packing_pieces',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('packing_id', sa.Integer(), sa.ForeignKey('packing_records.id', ondelete='CASCADE'), nullable=False),
        sa.Column('box_number', sa.Integer(), nullable=True),
        sa.Column('measure', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_packing_pieces_packing_id', 'packing_pieces', ['packing_id'])

    op.create_table(
        'order_charges',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('label', sa.String(120), nullable=False),
        _money('amount'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_order_charges_order_id', 'order_charges', ['order_id'])

    op.create_table(
        'order_payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('method', sa.String(16), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('reference', sa.String(128), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_order_payments_order_id', 'order_payments', ['order_id'])

    # ============================================================================
    # Accounting
    # ============================================================================
    op.create_table(
        'financial_accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(120), nullable=False, unique=True),
        sa.Column('account_type', sa.String(16), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false()),
        _money('balance'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )

    op.create_table(
        'account_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('financial_accounts.id'), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('direction', sa.String(8), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('method', sa.String(16), nullable=False),
        sa.Column('reference', sa.String(128), nullable=True),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_account_transactions_account_id', 'account_transactions', ['account_id'])
    op.create_index('ix_account_transactions_order_id', 'account_transactions', ['order_id'])
    op.create_index('ix_account_transactions_occurred_at', 'account_transactions', ['occurred_at'])


def downgrade():
    op.drop_table('account_transactions')
    op.drop_table('financial_accounts')
    op.drop_table('order_payments')
    op.drop_table('order_charges')
    op.drop_table('packing_pieces')
    op.drop_table('packing_records')
    op.drop_table('order_lines')
    op.drop_table('orders')
    op.drop_table('stock_entries')
    op.drop_table('product_variations')
    op.drop_table('variation_groups')
    op.drop_table('products')
    op.drop_table('contacts')
    op.drop_table('locations')
