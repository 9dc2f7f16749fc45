"""Initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ORDER_STATUSES = (
    "'PENDING', 'AWAITING_PAYMENT', 'PAID', 'FULFILLING', "
    "'SHIPPED', 'DELIVERED', 'CANCELLED', 'REFUNDED'"
)
SHIPMENT_STATUSES = (
    "'LABEL_CREATED', 'COLLECTED', 'IN_TRANSIT', 'OUT_FOR_DELIVERY', "
    "'DELIVERY_ATTEMPTED', 'DELIVERED', 'EXCEPTION', 'RETURNED', 'CANCELLED'"
)


def upgrade() -> None:
    """Create initial database schema"""

    # Создание таблицы orders
    op.create_table(
        'orders',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=True),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('customer_name', sa.String(200), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False),
        sa.Column('tax_cents', sa.Integer(), nullable=False),
        sa.Column('shipping_cents', sa.Integer(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('shipped_at', sa.DateTime(), nullable=True),
        sa.Column('delivered_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('refunded_at', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(f"status IN ({ORDER_STATUSES})", name='chk_orders_status'),
        sa.CheckConstraint('subtotal_cents >= 0', name='chk_orders_subtotal'),
        sa.CheckConstraint('discount_cents >= 0', name='chk_orders_discount'),
        sa.CheckConstraint('tax_cents >= 0', name='chk_orders_tax'),
        sa.CheckConstraint('shipping_cents >= 0', name='chk_orders_shipping'),
        sa.CheckConstraint('total_cents >= 0', name='chk_orders_total'),
    )
    op.create_index('idx_orders_status', 'orders', ['status'], unique=False)
    op.create_index('idx_orders_user_id', 'orders', ['user_id'], unique=False)
    op.create_index('idx_orders_status_created', 'orders', ['status', 'created_at'], unique=False)

    # Строки заказа
    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(64), nullable=False),
        sa.Column('product_id', sa.String(64), nullable=False),
        sa.Column('variant_id', sa.String(64), nullable=True),
        sa.Column('size', sa.String(32), nullable=True),
        sa.Column('name_snapshot', sa.String(255), nullable=False),
        sa.Column('sku', sa.String(64), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price_cents', sa.Integer(), nullable=False),
        sa.Column('line_total_cents', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.CheckConstraint('quantity > 0', name='chk_order_items_quantity'),
        sa.CheckConstraint('unit_price_cents >= 0', name='chk_order_items_unit_price'),
        sa.CheckConstraint('line_total_cents >= 0', name='chk_order_items_line_total'),
    )
    op.create_index('idx_order_items_order', 'order_items', ['order_id'], unique=False)

    # Журнал событий
    op.create_table(
        'order_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(64), nullable=False),
        sa.Column('kind', sa.String(64), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('meta', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
    )
    op.create_index(
        'idx_order_events_order_created', 'order_events', ['order_id', 'created_at'], unique=False
    )
    op.create_index(
        'idx_order_events_kind_created', 'order_events', ['kind', 'created_at'], unique=False
    )
    op.create_index('idx_order_events_created', 'order_events', ['created_at'], unique=False)

    # Отправления
    op.create_table(
        'shipments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.String(64), nullable=False),
        sa.Column('tracking_number', sa.String(64), nullable=False),
        sa.Column('carrier', sa.String(64), nullable=False),
        sa.Column('service', sa.String(64), nullable=True),
        sa.Column('cost_cents', sa.Integer(), nullable=False),
        sa.Column('label_url', sa.String(500), nullable=True),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('estimated_delivery', sa.DateTime(), nullable=True),
        sa.Column('actual_delivery', sa.DateTime(), nullable=True),
        sa.Column('tracking_updates', sa.Text(), nullable=False),
        sa.Column('last_tracked_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.UniqueConstraint('order_id'),
        sa.UniqueConstraint('tracking_number'),
        sa.CheckConstraint(f"status IN ({SHIPMENT_STATUSES})", name='chk_shipments_status'),
        sa.CheckConstraint('cost_cents >= 0', name='chk_shipments_cost'),
    )
    op.create_index(
        'idx_shipments_status_tracked', 'shipments', ['status', 'last_tracked_at'], unique=False
    )

    # Уведомления в личном кабинете
    op.create_table(
        'in_app_notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('order_id', sa.String(64), nullable=True),
        sa.Column('notification_type', sa.String(64), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'idx_in_app_notifications_user', 'in_app_notifications', ['user_id', 'is_read'], unique=False
    )


def downgrade() -> None:
    """Drop all tables"""
    op.drop_index('idx_in_app_notifications_user', table_name='in_app_notifications')
    op.drop_table('in_app_notifications')
    op.drop_index('idx_shipments_status_tracked', table_name='shipments')
    op.drop_table('shipments')
    op.drop_index('idx_order_events_created', table_name='order_events')
    op.drop_index('idx_order_events_kind_created', table_name='order_events')
    op.drop_index('idx_order_events_order_created', table_name='order_events')
    op.drop_table('order_events')
    op.drop_index('idx_order_items_order', table_name='order_items')
    op.drop_table('order_items')
    op.drop_index('idx_orders_status_created', table_name='orders')
    op.drop_index('idx_orders_user_id', table_name='orders')
    op.drop_index('idx_orders_status', table_name='orders')
    op.drop_table('orders')
