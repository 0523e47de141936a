"""Add picking session tables

Revision ID: add_picking_sessions_001
Revises: order_pool_001
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'add_picking_sessions_001'
down_revision: Union[str, None] = 'order_pool_001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create picking_sessions table
    op.create_table(
        'picking_sessions',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('warehouse_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('picker_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('picker_name', sa.String(200), nullable=True),
        sa.Column('strategy', sa.String(20), nullable=False),
        sa.Column('status', sa.String(30), nullable=False, server_default='in_progress'),
        sa.Column('scan_required', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('total_items', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('picked_items', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('estimated_duration', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        sa.Column('items_per_minute', sa.Float(), nullable=True),
        sa.Column('estimated_vs_actual', sa.Float(), nullable=True),
        sa.Column('accuracy', sa.Float(), nullable=True),
        sa.Column('pause_reason', sa.Text(), nullable=True),
        sa.Column('cancel_reason', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('paused_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('resumed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_picking_sessions_organization_id', 'picking_sessions', ['organization_id'])
    op.create_index('ix_picking_sessions_warehouse_id', 'picking_sessions', ['warehouse_id'])
    op.create_index('ix_picking_sessions_picker_id', 'picking_sessions', ['picker_id'])
    op.create_index('ix_picking_sessions_status', 'picking_sessions', ['status'])
    op.create_index('ix_picking_sessions_started_at', 'picking_sessions', ['started_at'])
    op.create_index(
        'ix_picking_sessions_picker_started', 'picking_sessions',
        ['organization_id', 'picker_id', 'started_at']
    )
    op.create_index(
        'ix_picking_sessions_wh_started', 'picking_sessions',
        ['organization_id', 'warehouse_id', 'started_at']
    )

    # Order summaries per session
    op.create_table(
        'picking_session_orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('session_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('priority', sa.String(20), nullable=True),
        sa.Column('carrier', sa.String(50), nullable=True),
        sa.Column('items_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('picked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('picked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('has_shortage', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['session_id'], ['picking_sessions.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_picking_session_orders_session_id', 'picking_session_orders', ['session_id'])
    op.create_index('ix_picking_session_orders_order_id', 'picking_session_orders', ['order_id'])

    # Aggregated picking list
    op.create_table(
        'picking_list_items',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('session_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sku', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('barcode', sa.String(100), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('picked_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('zone', sa.String(20), nullable=True),
        sa.Column('aisle', sa.String(20), nullable=True),
        sa.Column('rack', sa.String(20), nullable=True),
        sa.Column('shelf', sa.String(20), nullable=True),
        sa.Column('bin', sa.String(20), nullable=True),
        sa.Column('location_label', sa.String(100), nullable=False),
        sa.Column('available_quantity', sa.Integer(), nullable=True),
        sa.Column('shortage_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shortage_reason', sa.Text(), nullable=True),
        sa.Column('manual_pick', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_scan_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['session_id'], ['picking_sessions.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_picking_list_items_session_id', 'picking_list_items', ['session_id'])

    # Per-order share of each list item
    op.create_table(
        'picking_item_allocations',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('item_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('picked_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['item_id'], ['picking_list_items.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_picking_item_allocations_item_id', 'picking_item_allocations', ['item_id'])
    op.create_index('ix_picking_item_allocations_order_id', 'picking_item_allocations', ['order_id'])

    # Session error log
    op.create_table(
        'picking_errors',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('session_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('error_type', sa.String(30), nullable=False),
        sa.Column('error_data', postgresql.JSONB(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['session_id'], ['picking_sessions.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_picking_errors_session_id', 'picking_errors', ['session_id'])
    op.create_index('ix_picking_errors_organization_id', 'picking_errors', ['organization_id'])

    # Manual pick audit trail
    op.create_table(
        'picking_events',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('session_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('event_data', postgresql.JSONB(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['session_id'], ['picking_sessions.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_picking_events_session_id', 'picking_events', ['session_id'])

    # Shortages handed to the inventory system
    op.create_table(
        'inventory_shortages',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('warehouse_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('session_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sku', sa.String(100), nullable=False),
        sa.Column('expected_quantity', sa.Integer(), nullable=False),
        sa.Column('actual_quantity', sa.Integer(), nullable=False),
        sa.Column('shortage', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['session_id'], ['picking_sessions.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_inventory_shortages_organization_id', 'inventory_shortages', ['organization_id'])
    op.create_index('ix_inventory_shortages_warehouse_id', 'inventory_shortages', ['warehouse_id'])
    op.create_index('ix_inventory_shortages_session_id', 'inventory_shortages', ['session_id'])

    # Transactional outbox
    op.create_table(
        'picking_outbox_events',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('topic', sa.String(50), nullable=False),
        sa.Column('session_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('payload', postgresql.JSONB(), nullable=False),
        sa.Column('available_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('attempt_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('delivered', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_picking_outbox_events_topic', 'picking_outbox_events', ['topic'])
    op.create_index('ix_picking_outbox_events_session_id', 'picking_outbox_events', ['session_id'])
    op.create_index('ix_picking_outbox_delivery', 'picking_outbox_events', ['delivered', 'available_at'])


def downgrade() -> None:
    op.drop_table('picking_outbox_events')
    op.drop_table('inventory_shortages')
    op.drop_table('picking_events')
    op.drop_table('picking_errors')
    op.drop_table('picking_item_allocations')
    op.drop_table('picking_list_items')
    op.drop_table('picking_session_orders')
    op.drop_table('picking_sessions')
