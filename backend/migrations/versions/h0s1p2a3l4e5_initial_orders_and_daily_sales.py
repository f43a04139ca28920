"""initial orders and daily sales schema

Revision ID: h0s1p2a3l4e5
Revises:
Create Date: 2026-10-19 00:00:00.000000

This migration creates the complete schema from scratch:
- establishments: tenant root with embedded sales counters
- orders / order_items: customer orders and their line items
- daily_sales: one ledger row per recognised order
- audit_events: append-only order/sales audit trail

Daily sales idempotency:
- uq_daily_sales_est_order guarantees at most one ledger row per
  (establishment_id, order_id); a concurrent duplicate insert fails
  and is treated as "already posted".
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'h0s1p2a3l4e5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # establishments: tenant root + aggregate sales counters
    # ============================================================================
    op.create_table(
        'establishments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('establishment_type', sa.String(length=32), nullable=False),
        sa.Column('timezone', sa.String(length=64), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('sales_total_revenue', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sales_total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('sales_last_updated', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_establishments_type', 'establishments', ['establishment_type'], unique=False)
    op.create_index('ix_establishments_is_active', 'establishments', ['is_active'], unique=False)

    # ============================================================================
    # orders: customer orders (permissive status lifecycle)
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('establishment_id', sa.Integer(), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('delivery_address', sa.String(length=255), nullable=False),
        sa.Column('notes', sa.Text(), nullable=False),
        sa.Column('total', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['establishment_id'], ['establishments.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_establishment_id', 'orders', ['establishment_id'], unique=False)
    op.create_index('ix_orders_est_status', 'orders', ['establishment_id', 'status'], unique=False)
    op.create_index('ix_orders_est_payment_status', 'orders', ['establishment_id', 'payment_status'], unique=False)
    op.create_index('ix_orders_est_created', 'orders', ['establishment_id', 'created_at'], unique=False)

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('line_total', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'], unique=False)

    # ============================================================================
    # daily_sales: append-only sales ledger, one row per order
    # ============================================================================
    op.create_table(
        'daily_sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('establishment_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('sale_date', sa.Date(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['establishment_id'], ['establishments.id']),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('establishment_id', 'order_id', name='uq_daily_sales_est_order'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_daily_sales_establishment_id', 'daily_sales', ['establishment_id'], unique=False)
    op.create_index('ix_daily_sales_order_id', 'daily_sales', ['order_id'], unique=False)
    op.create_index('ix_daily_sales_est_date', 'daily_sales', ['establishment_id', 'sale_date'], unique=False)

    # ============================================================================
    # audit_events: append-only audit trail
    # ============================================================================
    op.create_table(
        'audit_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('establishment_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('actor', sa.String(length=64), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('payload', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['establishment_id'], ['establishments.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_audit_events_establishment_id', 'audit_events', ['establishment_id'], unique=False)
    op.create_index('ix_audit_events_event_type', 'audit_events', ['event_type'], unique=False)
    op.create_index('ix_audit_events_est_occurred', 'audit_events', ['establishment_id', 'occurred_at'], unique=False)


def downgrade():
    op.drop_table('audit_events')
    op.drop_table('daily_sales')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('establishments')
