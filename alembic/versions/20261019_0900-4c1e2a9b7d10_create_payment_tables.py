"""create_payment_tables

Revision ID: 4c1e2a9b7d10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4c1e2a9b7d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'orders',
        sa.Column('id', sa.String(length=100), nullable=False, comment='Order ID (caller supplied)'),
        sa.Column('customer_id', sa.String(length=100), nullable=True, comment='Processor customer ID'),
        sa.Column('email', sa.String(length=255), nullable=True, comment='Receipt email'),
        sa.Column('amount', sa.Integer(), nullable=False, comment='Amount in minor units'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='usd', comment='ISO-4217, lowercase'),
        sa.Column('payment_status', sa.String(length=20), nullable=False, server_default='pending', comment='pending/paid/failed/refunded'),
        sa.Column('order_status', sa.String(length=20), nullable=False, server_default='pending', comment='pending/confirmed/payment_failed/cancelled'),
        sa.Column('intent_id', sa.String(length=200), nullable=True, comment='Current charge attempt'),
        sa.Column('payment_method_id', sa.String(length=200), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_payment_status', 'orders', ['payment_status'])
    op.create_index('ix_orders_intent_id', 'orders', ['intent_id'])
    op.create_index('ix_orders_status', 'orders', ['payment_status', 'order_status'])

    op.create_table(
        'customers',
        sa.Column('email', sa.String(length=255), nullable=False, comment='Lowercased email'),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('billing_id', sa.String(length=100), nullable=True, comment='Processor customer ID'),
        sa.Column('payment_method_ids', sa.JSON(), nullable=False),
        sa.Column('subscription_ids', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('email'),
    )
    op.create_index('ix_customers_billing_id', 'customers', ['billing_id'], unique=True)

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.String(length=100), nullable=False, comment='Processor subscription ID'),
        sa.Column('customer_id', sa.String(length=100), nullable=True, comment='Processor customer ID'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='incomplete/active/past_due/canceled'),
        sa.Column('price_id', sa.String(length=100), nullable=True),
        sa.Column('product_id', sa.String(length=100), nullable=True),
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('last_event_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_subscriptions_customer_id', 'subscriptions', ['customer_id'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])

    op.create_table(
        'payment_records',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.String(length=100), nullable=False),
        sa.Column('intent_id', sa.String(length=200), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, comment='succeeded/failed'),
        sa.Column('amount', sa.Integer(), nullable=False, comment='Minor units'),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('payment_method_id', sa.String(length=200), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('event_id', sa.String(length=200), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('intent_id', 'status', name='uq_payment_records_intent_status'),
    )
    op.create_index('ix_payment_records_order_id', 'payment_records', ['order_id'])

    op.create_table(
        'orphan_payments',
        sa.Column('intent_id', sa.String(length=200), nullable=False),
        sa.Column('order_id', sa.String(length=100), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('customer_id', sa.String(length=100), nullable=True),
        sa.Column('payment_method_id', sa.String(length=200), nullable=True),
        sa.Column('event_id', sa.String(length=200), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('linked_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('intent_id'),
    )
    op.create_index('ix_orphan_payments_order_id', 'orphan_payments', ['order_id'])
    op.create_index('ix_orphan_payments_linked_at', 'orphan_payments', ['linked_at'])

    op.create_table(
        'processed_events',
        sa.Column('event_id', sa.String(length=200), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='received', comment='received/processed/failed'),
        sa.Column('payload', sa.JSON(), nullable=True, comment='Verified event body, kept for replay'),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('received_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('event_id'),
    )
    op.create_index('ix_processed_events_status_received', 'processed_events', ['status', 'received_at'])


def downgrade() -> None:
    op.drop_index('ix_processed_events_status_received', table_name='processed_events')
    op.drop_table('processed_events')
    op.drop_index('ix_orphan_payments_linked_at', table_name='orphan_payments')
    op.drop_index('ix_orphan_payments_order_id', table_name='orphan_payments')
    op.drop_table('orphan_payments')
    op.drop_index('ix_payment_records_order_id', table_name='payment_records')
    op.drop_table('payment_records')
    op.drop_index('ix_subscriptions_status', table_name='subscriptions')
    op.drop_index('ix_subscriptions_customer_id', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_index('ix_customers_billing_id', table_name='customers')
    op.drop_table('customers')
    op.drop_index('ix_orders_status', table_name='orders')
    op.drop_index('ix_orders_intent_id', table_name='orders')
    op.drop_index('ix_orders_payment_status', table_name='orders')
    op.drop_index('ix_orders_customer_id', table_name='orders')
    op.drop_table('orders')
