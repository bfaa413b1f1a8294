"""Initial ledger schema: counterparties, transactions, items, products, stock adjustments, checks

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. Counterparty (customer/supplier accounts, invoicing fields, payment due day)
2. Product and StockAdjustment (stock is derived, never stored)
3. Transaction and TransactionItem (append-mostly ledger, one correction per entry)
4. CheckNote (checks and promissory notes, weak links to the ledger)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. COUNTERPARTIES
    # ==========================================================================
    op.create_table('counterparties',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('invoiced', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('tax_number', sa.String(length=32), nullable=True),
        sa.Column('tax_office', sa.String(length=128), nullable=True),
        sa.Column('company_title', sa.String(length=255), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('payment_due_day', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint("type IN ('customer', 'supplier')", name='ck_counterparties_type'),
        sa.CheckConstraint(
            'payment_due_day IS NULL OR (payment_due_day BETWEEN 1 AND 31)',
            name='ck_counterparties_due_day',
        ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('counterparties', schema=None) as batch_op:
        batch_op.create_index('ix_counterparties_type_name', ['type', 'name'], unique=False)

    # ==========================================================================
    # 2. PRODUCTS / STOCK ADJUSTMENTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('name_key', sa.String(length=255), nullable=False),
        sa.Column('unit', sa.String(length=8), nullable=False, server_default='kg'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint("unit IN ('kg', 'kasa', 'adet')", name='ck_products_unit'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name_key', name='uq_products_name_key'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('products', schema=None) as batch_op:
        batch_op.create_index('ix_products_active', ['is_active'], unique=False)

    op.create_table('stock_adjustments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('quantity <> 0', name='ck_stock_adjustments_nonzero'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('stock_adjustments', schema=None) as batch_op:
        batch_op.create_index('ix_stock_adjustments_product', ['product_id'], unique=False)

    # ==========================================================================
    # 3. TRANSACTIONS / ITEMS
    # ==========================================================================
    op.create_table('transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('counterparty_id', sa.Integer(), nullable=False),
        sa.Column('tx_type', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('tx_date', sa.Date(), nullable=False),
        sa.Column('reversed_of', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_transactions_amount_positive'),
        sa.CheckConstraint(
            "tx_type IN ('sale', 'collection', 'purchase', 'payment')",
            name='ck_transactions_tx_type',
        ),
        sa.ForeignKeyConstraint(['counterparty_id'], ['counterparties.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['reversed_of'], ['transactions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reversed_of', name='uq_transactions_reversed_of'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.create_index('ix_transactions_counterparty', ['counterparty_id'], unique=False)
        batch_op.create_index('ix_transactions_tx_date', ['tx_date'], unique=False)

    op.create_table('transaction_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.CheckConstraint('quantity > 0', name='ck_transaction_items_quantity_positive'),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('transaction_items', schema=None) as batch_op:
        batch_op.create_index('ix_transaction_items_product', ['product_id'], unique=False)
        batch_op.create_index('ix_transaction_items_transaction', ['transaction_id'], unique=False)

    # ==========================================================================
    # 4. CHECKS / NOTES
    # ==========================================================================
    op.create_table('check_notes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('counterparty_id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=8), nullable=False),
        sa.Column('direction', sa.String(length=16), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('transaction_id', sa.Integer(), nullable=True),
        sa.Column('reversal_transaction_id', sa.Integer(), nullable=True),
        sa.Column('received_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint("kind IN ('check', 'note')", name='ck_check_notes_kind'),
        sa.CheckConstraint("direction IN ('received', 'given')", name='ck_check_notes_direction'),
        sa.CheckConstraint("status IN ('pending', 'paid', 'bounced')", name='ck_check_notes_status'),
        sa.CheckConstraint('amount > 0', name='ck_check_notes_amount_positive'),
        sa.ForeignKeyConstraint(['counterparty_id'], ['counterparties.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['reversal_transaction_id'], ['transactions.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('check_notes', schema=None) as batch_op:
        batch_op.create_index('ix_check_notes_status_due', ['status', 'due_date'], unique=False)
        batch_op.create_index('ix_check_notes_counterparty', ['counterparty_id'], unique=False)


def downgrade():
    # Drop tables in reverse order of creation (respect foreign keys)
    op.drop_table('check_notes')
    op.drop_table('transaction_items')
    op.drop_table('transactions')
    op.drop_table('stock_adjustments')
    op.drop_table('products')
    op.drop_table('counterparties')
