"""Initial OneStop POS schema: users, sessions, products, sales, store credit, kasa

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

Money columns are NUMERIC(12,2); stock and quantities NUMERIC(12,3).
Every business table carries owner_id -> users.id.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(12, 2)
QUANTITY = sa.Numeric(12, 3)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def _owner():
    return sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)


def upgrade():
    # ==========================================================================
    # 1. AUTH
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("role IN ('admin', 'user')", name='ck_users_role'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ==========================================================================
    # 2. PRODUCTS
    # ==========================================================================
    op.create_table('products',
        sa.Column('id', sa.Integer(), primary_key=True),
        _owner(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('barcode', sa.String(length=100), nullable=True),
        sa.Column('price', MONEY, nullable=False, server_default='0'),
        sa.Column('cost', MONEY, nullable=False, server_default='0'),
        sa.Column('stock', QUANTITY, nullable=False, server_default='0'),
        sa.Column('category', sa.String(length=100), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(length=500), nullable=True),
        sa.Column('unit', sa.String(length=20), nullable=False, server_default='pcs'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.UniqueConstraint('owner_id', 'barcode', name='uq_products_owner_barcode'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_products_owner_id', 'products', ['owner_id'])
    op.create_index('ix_products_barcode', 'products', ['barcode'])
    op.create_index('ix_products_category', 'products', ['category'])
    op.create_index('ix_products_owner_name', 'products', ['owner_id', 'name'])
    op.create_index('ix_products_owner_active', 'products', ['owner_id', 'is_active'])

    # ==========================================================================
    # 3. SALES
    # ==========================================================================
    op.create_table('sales',
        sa.Column('id', sa.Integer(), primary_key=True),
        _owner(),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('subtotal', MONEY, nullable=False, server_default='0'),
        sa.Column('discount', MONEY, nullable=False, server_default='0'),
        sa.Column('tax', MONEY, nullable=False, server_default='0'),
        sa.Column('total', MONEY, nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(length=50), nullable=False, server_default='cash'),
        sa.Column('amount_paid', MONEY, nullable=False, server_default='0'),
        sa.Column('change_amount', MONEY, nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='completed'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cashier_id', sa.Integer(), nullable=True),
        sa.Column('voided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.CheckConstraint("status IN ('completed', 'voided')", name='ck_sales_status'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sales_owner_id', 'sales', ['owner_id'])
    op.create_index('ix_sales_status', 'sales', ['status'])
    op.create_index('ix_sales_created_at', 'sales', ['created_at'])
    op.create_index('ix_sales_owner_created', 'sales', ['owner_id', 'created_at'])
    op.create_index('ix_sales_owner_status', 'sales', ['owner_id', 'status'])

    op.create_table('sale_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('sale_id', sa.Integer(), sa.ForeignKey('sales.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer(), sa.ForeignKey('products.id', ondelete='SET NULL'), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', QUANTITY, nullable=False),
        sa.Column('unit_price', MONEY, nullable=False, server_default='0'),
        sa.Column('cost', MONEY, nullable=False, server_default='0'),
        sa.Column('subtotal', MONEY, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_sale_items_sale_id', 'sale_items', ['sale_id'])
    op.create_index('ix_sale_items_product_id', 'sale_items', ['product_id'])

    # ==========================================================================
    # 4. STORE CREDIT (VERISIYE)
    # ==========================================================================
    op.create_table('credit_customers',
        sa.Column('id', sa.Integer(), primary_key=True),
        _owner(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('house_no', sa.String(length=50), nullable=True),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('credit_limit', MONEY, nullable=False, server_default='0'),
        sa.Column('current_balance', MONEY, nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_credit_customers_owner_id', 'credit_customers', ['owner_id'])
    op.create_index('ix_credit_customers_owner_active', 'credit_customers', ['owner_id', 'is_active'])
    op.create_index('ix_credit_customers_house_no', 'credit_customers', ['house_no'])
    op.create_index('ix_credit_customers_name', 'credit_customers', ['name'])

    op.create_table('credit_ledger_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        _owner(),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('credit_customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.Column('balance_after', MONEY, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("type IN ('credit', 'payment')", name='ck_credit_ledger_entries_type'),
        sa.CheckConstraint('amount > 0', name='ck_credit_ledger_entries_amount_positive'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_credit_ledger_entries_owner_id', 'credit_ledger_entries', ['owner_id'])
    op.create_index('ix_credit_ledger_entries_customer_id', 'credit_ledger_entries', ['customer_id'])
    op.create_index('ix_credit_ledger_entries_created_at', 'credit_ledger_entries', ['created_at'])
    op.create_index('ix_credit_ledger_entries_owner_created', 'credit_ledger_entries', ['owner_id', 'created_at'])

    # ==========================================================================
    # 5. KASA
    # ==========================================================================
    op.create_table('expense_products',
        sa.Column('id', sa.Integer(), primary_key=True),
        _owner(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("category IN ('kasa', 'kart', 'devir')", name='ck_expense_products_category'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_expense_products_owner_id', 'expense_products', ['owner_id'])

    op.create_table('balance_sheets',
        sa.Column('id', sa.Integer(), primary_key=True),
        _owner(),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('opening_balance', MONEY, nullable=False, server_default='0'),
        sa.Column('total_sales', MONEY, nullable=False, server_default='0'),
        sa.Column('total_expenses', MONEY, nullable=False, server_default='0'),
        sa.Column('total_card_sales', MONEY, nullable=False, server_default='0'),
        sa.Column('total_cash_sales', MONEY, nullable=False, server_default='0'),
        sa.Column('closing_balance', MONEY, nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('owner_id', 'date', name='uq_balance_sheets_owner_date'),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_balance_sheets_owner_id', 'balance_sheets', ['owner_id'])
    op.create_index('ix_balance_sheets_date', 'balance_sheets', ['date'])


def downgrade():
    for table in (
        'balance_sheets',
        'expense_products',
        'credit_ledger_entries',
        'credit_customers',
        'sale_items',
        'sales',
        'products',
        'session_tokens',
        'users',
    ):
        op.drop_table(table)
