"""initial_schema

Revision ID: 5f2c81d0a4b7
Revises:
Create Date: 2026-10-19 09:12:41.208311+00:00

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '5f2c81d0a4b7'
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(precision=12, scale=2)


def upgrade() -> None:
    # Catalog (owned by the administration service, read-only here)
    op.create_table(
        'restaurants',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', name='restaurantstatus'), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_restaurants_status', 'restaurants', ['status'])

    op.create_table(
        'restaurant_tables',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('restaurant_id', sa.Integer(), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('table_number', sa.String(length=50), nullable=False),
        sa.Column('seats', sa.Integer(), nullable=True),
    )
    op.create_index('ix_restaurant_tables_restaurant_id', 'restaurant_tables', ['restaurant_id'])

    op.create_table(
        'food_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('restaurant_id', sa.Integer(), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.Enum('ACTIVE', 'INACTIVE', name='itemstatus'), nullable=False),
    )
    op.create_index('ix_food_items_restaurant_id', 'food_items', ['restaurant_id'])
    op.create_index('ix_food_items_status', 'food_items', ['status'])

    for table in ('food_variants', 'food_addons'):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('food_item_id', sa.Integer(), sa.ForeignKey('food_items.id'), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('price', MONEY, nullable=False),
            sa.Column('is_available', sa.Boolean(), nullable=False),
        )
        op.create_index(f'ix_{table}_food_item_id', table, ['food_item_id'])

    # Orders
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_no', sa.String(length=32), nullable=False),
        sa.Column('restaurant_id', sa.Integer(), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('table_id', sa.Integer(), sa.ForeignKey('restaurant_tables.id'), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=True),
        sa.Column('delivery_type', sa.Enum('DINE_IN', 'PICKUP', 'DELIVERY', name='deliverytype'), nullable=False),
        sa.Column(
            'status',
            sa.Enum(
                'PENDING', 'CONFIRMED', 'PREPARING', 'READY_FOR_PICKUP', 'READY_FOR_DELIVERY',
                'COMPLETED', 'CANCELLED', 'REFUNDED',
                name='orderstatus'
            ),
            nullable=False
        ),
        sa.Column(
            'payment_status',
            sa.Enum('UNPAID', 'PARTIALLY_PAID', 'PAID', 'FAILED', name='orderpaymentstatus'),
            nullable=False
        ),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('tax_amount', MONEY, nullable=False),
        sa.Column('discount_amount', MONEY, nullable=False),
        sa.Column('tips_amount', MONEY, nullable=False),
        sa.Column('net_amount', MONEY, nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('customer_note', sa.String(length=2000), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_orders_order_no', 'orders', ['order_no'], unique=True)
    op.create_index('ix_orders_restaurant_id', 'orders', ['restaurant_id'])
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_payment_status', 'orders', ['payment_status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('food_item_id', sa.Integer(), sa.ForeignKey('food_items.id'), nullable=False),
        sa.Column('variant_id', sa.Integer(), sa.ForeignKey('food_variants.id'), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', MONEY, nullable=False),
        sa.Column('total_price', MONEY, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_food_item_id', 'order_items', ['food_item_id'])

    op.create_table(
        'order_addons',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_item_id', sa.Integer(), sa.ForeignKey('order_items.id'), nullable=False),
        sa.Column('addon_id', sa.Integer(), sa.ForeignKey('food_addons.id'), nullable=False),
        sa.Column('price', MONEY, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_order_addons_order_item_id', 'order_addons', ['order_item_id'])

    # Kitchen tickets
    ticket_status = sa.Enum('PENDING', 'PREPARING', 'READY', 'SERVED', 'CANCELLED', name='ticketstatus')
    op.create_table(
        'kitchen_tickets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('restaurant_id', sa.Integer(), sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('ticket_no', sa.String(length=32), nullable=False),
        sa.Column('status', ticket_status, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_kitchen_tickets_restaurant_id', 'kitchen_tickets', ['restaurant_id'])
    op.create_index('ix_kitchen_tickets_order_id', 'kitchen_tickets', ['order_id'])
    op.create_index('ix_kitchen_tickets_ticket_no', 'kitchen_tickets', ['ticket_no'])
    op.create_index('ix_kitchen_tickets_status', 'kitchen_tickets', ['status'])

    op.create_table(
        'kitchen_ticket_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('kitchen_tickets.id'), nullable=False),
        sa.Column('order_item_id', sa.Integer(), sa.ForeignKey('order_items.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column(
            'status',
            postgresql.ENUM(*ticket_status.enums, name='ticketstatus', create_type=False),
            nullable=False
        ),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_kitchen_ticket_items_ticket_id', 'kitchen_ticket_items', ['ticket_id'])
    op.create_index('ix_kitchen_ticket_items_order_item_id', 'kitchen_ticket_items', ['order_item_id'])

    # Payments
    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('provider', sa.String(length=50), nullable=False),
        sa.Column('provider_ref', sa.String(length=64), nullable=False),
        sa.Column('method', sa.String(length=50), nullable=False),
        sa.Column('status', sa.Enum('UNPAID', 'PAID', 'FAILED', name='paymentstatus'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('captured_at', sa.DateTime(), nullable=True),
        sa.Column('failed_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_payments_order_id', 'payments', ['order_id'])
    op.create_index('ix_payments_provider_ref', 'payments', ['provider_ref'])
    op.create_index('ix_payments_status', 'payments', ['status'])

    op.create_table(
        'split_bills',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('split_label', sa.String(length=100), nullable=True),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('paid', sa.Boolean(), nullable=False),
        sa.Column('payment_id', sa.Integer(), sa.ForeignKey('payments.id'), nullable=True),
        sa.Column('is_partial', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_split_bills_order_id', 'split_bills', ['order_id'])
    op.create_index('ix_split_bills_paid', 'split_bills', ['paid'])

    # Audit trail
    op.create_table(
        'order_status_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('from_status', sa.String(length=32), nullable=False),
        sa.Column('to_status', sa.String(length=32), nullable=False),
        sa.Column('changed_by', sa.Integer(), nullable=True),
        sa.Column('note', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])
    op.create_index('ix_order_status_history_created_at', 'order_status_history', ['created_at'])

    op.create_table(
        'order_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_order_events_order_id', 'order_events', ['order_id'])
    op.create_index('ix_order_events_event_type', 'order_events', ['event_type'])
    op.create_index('ix_order_events_created_at', 'order_events', ['created_at'])

    op.create_table(
        'idempotency_keys',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('owner', sa.String(length=100), nullable=False),
        sa.Column('request_path', sa.String(length=255), nullable=False),
        sa.Column('response', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_idempotency_keys_key', 'idempotency_keys', ['key'], unique=True)


def downgrade() -> None:
    for table in (
        'idempotency_keys', 'order_events', 'order_status_history', 'split_bills',
        'payments', 'kitchen_ticket_items', 'kitchen_tickets', 'order_addons',
        'order_items', 'orders', 'food_addons', 'food_variants', 'food_items',
        'restaurant_tables', 'restaurants',
    ):
        op.drop_table(table)

    for enum_name in (
        'paymentstatus', 'ticketstatus', 'orderpaymentstatus', 'orderstatus',
        'deliverytype', 'itemstatus', 'restaurantstatus',
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
