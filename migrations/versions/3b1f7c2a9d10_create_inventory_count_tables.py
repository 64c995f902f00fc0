"""create inventory count tables

Revision ID: 3b1f7c2a9d10
Revises:
Create Date: 2026-10-19 09:12:44.310271
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '3b1f7c2a9d10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

item_status = sa.Enum('ACTIVE', 'DEACTIVATED', name='itemstatus')
count_status = sa.Enum('IN_PROGRESS', 'COMPLETED', 'CANCELLED', 'VOIDED', name='countstatus')
transaction_type = sa.Enum('RECEIVING', 'OUTGOING', 'WASTE', 'ADJUSTMENT', name='inventorytransactiontype')


def _audit_columns():
    return [
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
        sa.Column('is_deleted', sa.Boolean(), default=False),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        'inventory_categories',
        *_audit_columns(),
        sa.Column('organization_id', sa.Integer(), nullable=False, index=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text()),
        sa.UniqueConstraint('organization_id', 'name', name='ux_inventory_categories_name'),
    )

    op.create_table(
        'inventory_items',
        *_audit_columns(),
        sa.Column('organization_id', sa.Integer(), nullable=False, index=True),
        sa.Column('team_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('sku', sa.String(length=50), nullable=False, index=True),
        sa.Column('barcode', sa.String(length=100)),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('inventory_categories.id')),
        sa.Column('current_stock', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('status', item_status, nullable=False, server_default='ACTIVE'),
        sa.UniqueConstraint('organization_id', 'sku', name='ux_inventory_items_sku'),
        sa.UniqueConstraint('organization_id', 'barcode', name='ux_inventory_items_barcode'),
        sa.CheckConstraint('current_stock >= 0', name='ck_inventory_items_stock_non_negative'),
    )

    op.create_table(
        'inventory_templates',
        *_audit_columns(),
        sa.Column('organization_id', sa.Integer(), nullable=False, index=True),
        sa.Column('team_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('is_active', sa.Boolean(), default=True),
    )

    op.create_table(
        'inventory_template_items',
        *_audit_columns(),
        sa.Column('template_id', sa.Integer(), sa.ForeignKey('inventory_templates.id'), nullable=False, index=True),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('inventory_items.id'), nullable=False),
        sa.Column('expected_quantity', sa.Numeric(12, 2)),
        sa.Column('minimum_quantity', sa.Numeric(12, 2)),
        sa.Column('maximum_quantity', sa.Numeric(12, 2)),
        sa.Column('sort_order', sa.Integer(), default=0),
        sa.UniqueConstraint('template_id', 'item_id', name='ux_inventory_template_items_item'),
    )

    op.create_table(
        'inventory_counts',
        *_audit_columns(),
        sa.Column('organization_id', sa.Integer(), nullable=False, index=True),
        sa.Column('team_id', sa.Integer(), nullable=True),
        sa.Column('template_id', sa.Integer(), sa.ForeignKey('inventory_templates.id'), nullable=True),
        sa.Column('count_date', sa.Date(), nullable=False),
        sa.Column('status', count_status, nullable=False, server_default='IN_PROGRESS'),
        sa.Column('notes', sa.Text()),
        sa.Column('total_items_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completion_percentage', sa.Numeric(5, 2), nullable=False, server_default='0'),
        sa.Column('variance_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('started_by', sa.Integer()),
        sa.Column('completed_by', sa.Integer()),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        sa.Column('void_reason', sa.Text()),
        sa.Column('voided_by', sa.Integer()),
        sa.Column('voided_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'inventory_count_items',
        *_audit_columns(),
        sa.Column('count_id', sa.Integer(), sa.ForeignKey('inventory_counts.id'), nullable=False, index=True),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('inventory_items.id'), nullable=False, index=True),
        sa.Column('in_stock_quantity', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('actual_quantity', sa.Numeric(12, 2), nullable=True),
        sa.Column('template_minimum_quantity', sa.Numeric(12, 2)),
        sa.Column('template_maximum_quantity', sa.Numeric(12, 2)),
        sa.Column('notes', sa.Text()),
        sa.Column('counted_by', sa.Integer()),
        sa.Column('counted_at', sa.DateTime(timezone=True)),
    )

    op.create_table(
        'inventory_transactions',
        *_audit_columns(),
        sa.Column('organization_id', sa.Integer(), nullable=False, index=True),
        sa.Column('item_id', sa.Integer(), sa.ForeignKey('inventory_items.id'), nullable=False, index=True),
        sa.Column('transaction_type', transaction_type, nullable=False),
        sa.Column('quantity', sa.Numeric(12, 2), nullable=False),
        sa.Column('reference_type', sa.String(length=50)),
        sa.Column('reference_id', sa.Integer()),
        sa.Column('notes', sa.Text()),
    )

    op.create_table(
        'sku_counters',
        sa.Column('organization_id', sa.Integer(), primary_key=True),
        sa.Column('prefix', sa.String(length=10), primary_key=True),
        sa.Column('last_number', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    print("✓ [3b1f7c2a9d10] Created inventory count tables")


def downgrade() -> None:
    op.drop_table('sku_counters')
    op.drop_table('inventory_transactions')
    op.drop_table('inventory_count_items')
    op.drop_table('inventory_counts')
    op.drop_table('inventory_template_items')
    op.drop_table('inventory_templates')
    op.drop_table('inventory_items')
    op.drop_table('inventory_categories')
    item_status.drop(op.get_bind(), checkfirst=True)
    count_status.drop(op.get_bind(), checkfirst=True)
    transaction_type.drop(op.get_bind(), checkfirst=True)
