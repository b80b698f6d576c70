"""initial equipment parts schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum columns store member names, matching Column(Enum(PyEnum)) on the models
ENUMS = {
    'userrole': ('ADMIN', 'MANAGER', 'USER'),
    'partstatus': ('IN_STOCK', 'LOW_STOCK', 'OUT_OF_STOCK'),
    'movementtype': ('IN', 'OUT'),
    'referencetype': ('INITIAL', 'MANUAL', 'ADJUSTMENT', 'ORDER', 'PRODUCTION', 'EQUIPMENT'),
    'orderstatus': ('DRAFT', 'WAITING_FOR_ANSWER', 'TO_ORDER', 'ORDERED', 'PARTIAL',
                    'PARTIAL_DELIVERED', 'DELIVERED', 'CANCELLED'),
    'orderitemstatus': ('PENDING', 'PARTIAL', 'BACKORDER', 'DELIVERED', 'CANCELLED'),
    'equipmentstatus': ('ACTIVE', 'IN_PRODUCTION', 'COMPLETED', 'RETIRED'),
}


def _enum(name: str):
    # Postgres enum types are created once up front and shared between columns
    if op.get_bind().dialect.name == 'postgresql':
        return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)
    return sa.Enum(*ENUMS[name], name=name)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('updated_by', sa.String(), nullable=True),
    ]


def _soft_delete():
    return [
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by', sa.String(), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for name, values in ENUMS.items():
            postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True, unique=True),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('role', _enum('userrole'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'brands',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_brands_id', 'brands', ['id'])

    op.create_table(
        'colors',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False, unique=True),
        sa.Column('hex_code', sa.String(length=7), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_colors_id', 'colors', ['id'])

    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_categories_id', 'categories', ['id'])

    op.create_table(
        'parts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('sku_code', sa.String(), nullable=True, unique=True),
        sa.Column('color_id', sa.Integer(), sa.ForeignKey('colors.id'), nullable=True),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('brand_id', sa.Integer(), sa.ForeignKey('brands.id'), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('purchase_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('selling_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('min_stock_level', sa.Integer(), nullable=False),
        sa.Column('status', _enum('partstatus'), nullable=False),
        sa.Column('last_restocked_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        *_soft_delete(),
        sa.CheckConstraint('quantity >= 0', name='ck_parts_quantity_non_negative'),
    )
    op.create_index('ix_parts_id', 'parts', ['id'])
    op.create_index('ix_parts_name', 'parts', ['name'])

    op.create_table(
        'stock_movements',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('part_id', sa.Integer(), sa.ForeignKey('parts.id'), nullable=False),
        sa.Column('movement_type', _enum('movementtype'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('quantity_before', sa.Integer(), nullable=False),
        sa.Column('quantity_after', sa.Integer(), nullable=False),
        sa.Column('reference_type', _enum('referencetype'), nullable=False),
        sa.Column('reference_id', sa.Integer(), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('quantity > 0', name='ck_stock_movements_quantity_positive'),
    )
    op.create_index('ix_stock_movements_id', 'stock_movements', ['id'])
    op.create_index('ix_stock_movements_part_id', 'stock_movements', ['part_id'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_number', sa.String(), nullable=False),
        sa.Column('status', _enum('orderstatus'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_orders_id', 'orders', ['id'])
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('part_id', sa.Integer(), sa.ForeignKey('parts.id'), nullable=False),
        sa.Column('quantity_ordered', sa.Integer(), nullable=False),
        sa.Column('quantity_delivered', sa.Integer(), nullable=False),
        sa.Column('quantity_backorder', sa.Integer(), nullable=False),
        sa.Column('purchase_price_at_order', sa.Numeric(10, 2), nullable=False),
        sa.Column('item_status', _enum('orderitemstatus'), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.CheckConstraint('quantity_ordered > 0', name='ck_order_items_quantity_ordered_positive'),
        sa.CheckConstraint('quantity_delivered >= 0', name='ck_order_items_quantity_delivered_non_negative'),
        sa.CheckConstraint('quantity_backorder >= 0', name='ck_order_items_quantity_backorder_non_negative'),
    )
    op.create_index('ix_order_items_id', 'order_items', ['id'])
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])

    op.create_table(
        'order_status_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('old_status', _enum('orderstatus'), nullable=True),
        sa.Column('new_status', _enum('orderstatus'), nullable=False),
        sa.Column('changed_by', sa.String(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_order_status_history_id', 'order_status_history', ['id'])
    op.create_index('ix_order_status_history_order_id', 'order_status_history', ['order_id'])

    op.create_table(
        'order_delivery_receipts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('order_id', sa.Integer(), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('idempotency_key', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('order_id', 'idempotency_key', name='_order_delivery_receipt_key_uc'),
    )
    op.create_index('ix_order_delivery_receipts_id', 'order_delivery_receipts', ['id'])

    op.create_table(
        'equipment_templates',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False, unique=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('brand_id', sa.Integer(), sa.ForeignKey('brands.id'), nullable=True),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('article_id', sa.String(), nullable=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_equipment_templates_id', 'equipment_templates', ['id'])

    op.create_table(
        'equipment_template_parts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('template_id', sa.Integer(), sa.ForeignKey('equipment_templates.id'), nullable=False),
        sa.Column('part_id', sa.Integer(), sa.ForeignKey('parts.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_equipment_template_parts_quantity_positive'),
    )
    op.create_index('ix_equipment_template_parts_id', 'equipment_template_parts', ['id'])
    op.create_index('ix_equipment_template_parts_template_id', 'equipment_template_parts', ['template_id'])

    op.create_table(
        'equipment',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('model', sa.String(), nullable=False),
        sa.Column('serial_number', sa.String(), nullable=True, unique=True),
        sa.Column('brand_id', sa.Integer(), sa.ForeignKey('brands.id'), nullable=True),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('template_id', sa.Integer(), sa.ForeignKey('equipment_templates.id'), nullable=True),
        sa.Column('created_from_template', sa.String(), nullable=True),
        sa.Column('year_manufactured', sa.Integer(), nullable=True),
        sa.Column('production_date', sa.Date(), nullable=True),
        sa.Column('article_id', sa.String(), nullable=True),
        sa.Column('status', _enum('equipmentstatus'), nullable=False),
        *_timestamps(),
        *_soft_delete(),
    )
    op.create_index('ix_equipment_id', 'equipment', ['id'])

    op.create_table(
        'equipment_parts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('equipment_id', sa.Integer(), sa.ForeignKey('equipment.id'), nullable=False),
        sa.Column('part_id', sa.Integer(), sa.ForeignKey('parts.id'), nullable=False),
        sa.Column('quantity_needed', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.CheckConstraint('quantity_needed > 0', name='ck_equipment_parts_quantity_needed_positive'),
    )
    op.create_index('ix_equipment_parts_id', 'equipment_parts', ['id'])
    op.create_index('ix_equipment_parts_equipment_id', 'equipment_parts', ['equipment_id'])

    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('table_name', sa.String(), nullable=False),
        sa.Column('record_id', sa.Integer(), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('changed_by', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('old_values', sa.JSON(), nullable=True),
        sa.Column('new_values', sa.JSON(), nullable=True),
    )
    op.create_index('ix_audit_log_id', 'audit_log', ['id'])


def downgrade() -> None:
    for table in (
        'audit_log',
        'equipment_parts',
        'equipment',
        'equipment_template_parts',
        'equipment_templates',
        'order_delivery_receipts',
        'order_status_history',
        'order_items',
        'orders',
        'stock_movements',
        'parts',
        'categories',
        'colors',
        'brands',
        'users',
    ):
        op.drop_table(table)

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for name, values in ENUMS.items():
            postgresql.ENUM(*values, name=name).drop(bind, checkfirst=True)
