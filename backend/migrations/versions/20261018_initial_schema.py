"""Initial pharmacy POS schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

This migration creates:
1. Operators (staff identity and role)
2. Batches (catalog lots, read-only to the sales engine)
3. Shifts and ShiftEvents (register sessions and their ledger trail)
4. Carts and CartLines (in-progress orders, one line per batch and counting mode)
5. Sales and SaleLines (frozen checkout records with return bookkeeping)
6. Returns and ReturnLines (immutable refund documents)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. OPERATORS
    # ==========================================================================
    op.create_table('operators',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('operators', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_operators_role'), ['role'], unique=False)

    # ==========================================================================
    # 2. BATCHES
    # ==========================================================================
    op.create_table('batches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=200), nullable=False),
        sa.Column('generic_name', sa.String(length=200), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('barcode', sa.String(length=64), nullable=True),
        sa.Column('internal_code', sa.String(length=64), nullable=True),
        sa.Column('stock', sa.Numeric(precision=12, scale=4), nullable=False, server_default='0'),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('cost_price', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('units_per_pack', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('max_discount_percent', sa.Numeric(precision=5, scale=1), nullable=False, server_default='10'),
        sa.Column('expiry_date', sa.Date(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('batches', schema=None) as batch_op:
        batch_op.create_index('ix_batches_product_expiry', ['product_name', 'expiry_date'], unique=False)
        batch_op.create_index(batch_op.f('ix_batches_category'), ['category'], unique=False)
        batch_op.create_index(batch_op.f('ix_batches_barcode'), ['barcode'], unique=False)
        batch_op.create_index(batch_op.f('ix_batches_internal_code'), ['internal_code'], unique=False)

    # ==========================================================================
    # 3. SHIFTS
    # ==========================================================================
    op.create_table('shifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('terminal_code', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
        sa.Column('opened_by_operator_id', sa.Integer(), nullable=False),
        sa.Column('closed_by_operator_id', sa.Integer(), nullable=True),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('opening_cash', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('cash_total', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('card_total', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('cash_deposits', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('returns_total', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('expected_cash', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('closing_cash', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('variance', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['opened_by_operator_id'], ['operators.id'], ),
        sa.ForeignKeyConstraint(['closed_by_operator_id'], ['operators.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('shifts', schema=None) as batch_op:
        batch_op.create_index('ix_shifts_terminal_status', ['terminal_code', 'status'], unique=False)
        batch_op.create_index(batch_op.f('ix_shifts_status'), ['status'], unique=False)

    # ==========================================================================
    # 4. CARTS
    # ==========================================================================
    op.create_table('carts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=64), nullable=True),
        sa.Column('terminal_code', sa.String(length=32), nullable=True),
        sa.Column('operator_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=120), nullable=True),
        sa.Column('customer_code', sa.String(length=64), nullable=True),
        sa.Column('global_discount_percent', sa.Numeric(precision=5, scale=1), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['operator_id'], ['operators.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('carts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_carts_terminal_code'), ['terminal_code'], unique=False)

    op.create_table('cart_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cart_id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_unit_mode', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('line_discount_percent', sa.Numeric(precision=5, scale=1), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['cart_id'], ['carts.id'], ),
        sa.ForeignKeyConstraint(['batch_id'], ['batches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('cart_id', 'batch_id', 'is_unit_mode', name='uq_cart_lines_batch_mode'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('cart_lines', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_cart_lines_cart_id'), ['cart_id'], unique=False)

    # ==========================================================================
    # 5. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_number', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=24), nullable=False, server_default='completed'),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('customer_name', sa.String(length=120), nullable=False, server_default='Guest Customer'),
        sa.Column('customer_code', sa.String(length=64), nullable=True),
        sa.Column('global_discount_percent', sa.Numeric(precision=5, scale=1), nullable=False, server_default='0'),
        sa.Column('subtotal', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('net_total', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('returned_quantities', sa.JSON(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=True),
        sa.Column('terminal_code', sa.String(length=32), nullable=True),
        sa.Column('shift_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['operator_id'], ['operators.id'], ),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_number', name='uq_sales_document_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sales', schema=None) as batch_op:
        batch_op.create_index('ix_sales_created_at', ['created_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_operator_id'), ['operator_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_sales_shift_id'), ['shift_id'], unique=False)

    op.create_table('sale_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=200), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('is_unit_mode', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('units_per_pack', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('pack_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('line_discount_percent', sa.Numeric(precision=5, scale=1), nullable=False, server_default='0'),
        sa.Column('line_total', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['batch_id'], ['batches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sale_id', 'position', name='uq_sale_lines_position'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('sale_lines', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_sale_lines_sale_id'), ['sale_id'], unique=False)

    # ==========================================================================
    # 6. RETURNS
    # ==========================================================================
    op.create_table('returns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_number', sa.String(length=32), nullable=False),
        sa.Column('sale_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('reason', sa.String(length=32), nullable=False, server_default='customer_request'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('total_refund', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['operator_id'], ['operators.id'], ),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_number', name='uq_returns_document_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('returns', schema=None) as batch_op:
        batch_op.create_index('ix_returns_operator_created', ['operator_id', 'created_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_returns_sale_id'), ['sale_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_returns_shift_id'), ['shift_id'], unique=False)

    op.create_table('return_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('return_id', sa.Integer(), nullable=False),
        sa.Column('sale_line_id', sa.Integer(), nullable=False),
        sa.Column('line_key', sa.String(length=32), nullable=False),
        sa.Column('quantity_returned', sa.Integer(), nullable=False),
        sa.Column('unit_price_used', sa.Numeric(precision=12, scale=4), nullable=False),
        sa.Column('refund_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('reason', sa.String(length=32), nullable=True),
        sa.Column('condition', sa.String(length=16), nullable=False, server_default='sellable'),
        sa.ForeignKeyConstraint(['return_id'], ['returns.id'], ),
        sa.ForeignKeyConstraint(['sale_line_id'], ['sale_lines.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('return_lines', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_return_lines_return_id'), ['return_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_return_lines_sale_line_id'), ['sale_line_id'], unique=False)

    # ==========================================================================
    # 7. SHIFT EVENTS
    # ==========================================================================
    op.create_table('shift_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(length=16), nullable=True),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('operator_id', sa.Integer(), nullable=True),
        sa.Column('sale_id', sa.Integer(), nullable=True),
        sa.Column('return_id', sa.Integer(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ),
        sa.ForeignKeyConstraint(['operator_id'], ['operators.id'], ),
        sa.ForeignKeyConstraint(['sale_id'], ['sales.id'], ),
        sa.ForeignKeyConstraint(['return_id'], ['returns.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('shift_events', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_shift_events_shift_id'), ['shift_id'], unique=False)


def downgrade():
    op.drop_table('shift_events')
    op.drop_table('return_lines')
    op.drop_table('returns')
    op.drop_table('sale_lines')
    op.drop_table('sales')
    op.drop_table('cart_lines')
    op.drop_table('carts')
    op.drop_table('shifts')
    op.drop_table('batches')
    op.drop_table('operators')
