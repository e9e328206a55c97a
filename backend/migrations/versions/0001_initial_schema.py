"""initial schema: users, permission sources, trade documents, products

Revision ID: 0001_initial_schema
Revises: 
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))


def _is_deleted():
    return sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.text('0'))


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='viewer'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        _updated_at(),
    )
    op.create_index('ix_users_email', 'users', ['email'])

    op.create_table('role_permission_defaults',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('perm_key', sa.String(length=64), nullable=False),
        sa.Column('allowed', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        _updated_at(),
        sa.UniqueConstraint('role', 'perm_key', name='uq_role_perm_key'),
    )
    op.create_index('ix_role_permission_defaults_role', 'role_permission_defaults', ['role'])

    op.create_table('user_permission_overrides',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('perm_key', sa.String(length=64), nullable=False),
        sa.Column('allowed', sa.Boolean(), nullable=False),
        _updated_at(),
        sa.UniqueConstraint('user_id', 'perm_key', name='uq_user_perm_override'),
    )
    op.create_index('ix_user_permission_overrides_user_id', 'user_permission_overrides', ['user_id'])

    for tbl, uq in (('user_permission_grants', 'uq_user_perm_grant'), ('user_permission_revokes', 'uq_user_perm_revoke')):
        op.create_table(tbl,
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
            sa.Column('perm_key', sa.String(length=64), nullable=False),
            sa.UniqueConstraint('user_id', 'perm_key', name=uq),
        )
        op.create_index(f'ix_{tbl}_user_id', tbl, ['user_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('perms_snapshot', sa.JSON(), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])

    op.create_table('companies',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=16), nullable=False, unique=True),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('company_type', sa.String(length=16), nullable=False, server_default='BUYER'),
        _is_deleted(),
        _updated_at(),
    )
    op.create_index('ix_companies_code', 'companies', ['code'])

    op.create_table('dev_products',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('style_no', sa.String(length=64), nullable=False, unique=True),
        sa.Column('name', sa.String(length=150)),
        sa.Column('buyer_id', sa.Integer()),
        sa.Column('image_urls', sa.JSON(), nullable=True),
        sa.Column('main_image_url', sa.String(length=512)),
        _is_deleted(),
        _updated_at(),
    )
    op.create_index('ix_dev_products_style_no', 'dev_products', ['style_no'])
    op.create_index('ix_dev_products_buyer_id', 'dev_products', ['buyer_id'])

    op.create_table('po_headers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('po_no', sa.String(length=64), nullable=False, unique=True),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('companies.id')),
        sa.Column('currency', sa.String(length=8)),
        sa.Column('incoterm', sa.String(length=16)),
        sa.Column('payment_term', sa.String(length=64)),
        sa.Column('destination', sa.String(length=128)),
        sa.Column('order_date', sa.Date()),
        sa.Column('requested_ship_date', sa.Date()),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='DRAFT'),
        sa.Column('cancel_reason', sa.String(length=255)),
        sa.Column('cancel_note', sa.Text()),
        sa.Column('cancel_date', sa.Date()),
        sa.Column('cancelled_at', sa.DateTime(timezone=True)),
        sa.Column('cancelled_by', sa.Integer()),
        sa.Column('created_by', sa.Integer()),
        _is_deleted(),
        _updated_at(),
    )
    op.create_index('ix_po_headers_po_no', 'po_headers', ['po_no'])
    op.create_index('ix_po_headers_buyer_id', 'po_headers', ['buyer_id'])
    op.create_index('ix_po_headers_status', 'po_headers', ['status'])
    op.create_index('ix_po_headers_is_deleted', 'po_headers', ['is_deleted'])

    op.create_table('po_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('po_header_id', sa.Integer(), sa.ForeignKey('po_headers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('line_no', sa.Integer(), nullable=False),
        sa.Column('style_no', sa.String(length=64)),
        sa.Column('description', sa.String(length=255)),
        sa.Column('color', sa.String(length=64)),
        sa.Column('size', sa.String(length=32)),
        sa.Column('qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('qty_cancelled', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('main_image_url', sa.String(length=512)),
        sa.Column('image_urls', sa.JSON(), nullable=True),
        _is_deleted(),
        _updated_at(),
    )
    op.create_index('ix_po_lines_po_header_id', 'po_lines', ['po_header_id'])
    op.create_index('ix_po_lines_style_no', 'po_lines', ['style_no'])

    op.create_table('shipments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('shipment_no', sa.String(length=64), nullable=False, unique=True),
        sa.Column('po_header_id', sa.Integer(), sa.ForeignKey('po_headers.id'), nullable=False),
        sa.Column('buyer_id', sa.Integer()),
        sa.Column('ship_mode', sa.String(length=16)),
        sa.Column('etd', sa.Date()),
        sa.Column('eta', sa.Date()),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='OPEN'),
        _is_deleted(),
        _updated_at(),
    )
    op.create_index('ix_shipments_shipment_no', 'shipments', ['shipment_no'])
    op.create_index('ix_shipments_po_header_id', 'shipments', ['po_header_id'])
    op.create_index('ix_shipments_status', 'shipments', ['status'])
    op.create_index('ix_shipments_is_deleted', 'shipments', ['is_deleted'])

    op.create_table('shipment_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('shipment_id', sa.Integer(), sa.ForeignKey('shipments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('po_header_id', sa.Integer(), sa.ForeignKey('po_headers.id'), nullable=False),
        sa.Column('po_line_id', sa.Integer(), sa.ForeignKey('po_lines.id'), nullable=False),
        sa.Column('shipped_qty', sa.Integer(), nullable=False, server_default='0'),
        _is_deleted(),
        _updated_at(),
    )
    op.create_index('ix_shipment_lines_shipment_id', 'shipment_lines', ['shipment_id'])
    op.create_index('ix_shipment_lines_po_header_id', 'shipment_lines', ['po_header_id'])
    op.create_index('ix_shipment_lines_po_line_id', 'shipment_lines', ['po_line_id'])

    op.create_table('invoice_headers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_no', sa.String(length=64), nullable=False),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('companies.id')),
        sa.Column('buyer_name', sa.String(length=150)),
        sa.Column('shipment_id', sa.Integer(), sa.ForeignKey('shipments.id')),
        sa.Column('currency', sa.String(length=8)),
        sa.Column('incoterm', sa.String(length=16)),
        sa.Column('payment_term', sa.String(length=64)),
        sa.Column('destination', sa.String(length=128)),
        sa.Column('shipping_origin_code', sa.String(length=16)),
        sa.Column('etd', sa.Date()),
        sa.Column('eta', sa.Date()),
        sa.Column('consignee_text', sa.Text()),
        sa.Column('notify_party_text', sa.Text()),
        sa.Column('remarks', sa.Text()),
        sa.Column('memo', sa.Text()),
        sa.Column('total_amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='DRAFT'),
        sa.Column('revision_of_invoice_id', sa.Integer(), sa.ForeignKey('invoice_headers.id')),
        sa.Column('revision_no', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_latest', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('confirmed_at', sa.DateTime(timezone=True)),
        sa.Column('confirmed_by', sa.Integer()),
        sa.Column('confirmed_by_email', sa.String(length=128)),
        _is_deleted(),
        _updated_at(),
    )
    op.create_index('ix_invoice_headers_invoice_no', 'invoice_headers', ['invoice_no'])
    op.create_index('ix_invoice_headers_buyer_id', 'invoice_headers', ['buyer_id'])
    op.create_index('ix_invoice_headers_shipment_id', 'invoice_headers', ['shipment_id'])
    op.create_index('ix_invoice_headers_status', 'invoice_headers', ['status'])
    op.create_index('ix_invoice_headers_revision_of_invoice_id', 'invoice_headers', ['revision_of_invoice_id'])
    op.create_index('ix_invoice_headers_is_deleted', 'invoice_headers', ['is_deleted'])

    op.create_table('invoice_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoice_headers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('shipment_id', sa.Integer()),
        sa.Column('po_header_id', sa.Integer()),
        sa.Column('po_line_id', sa.Integer()),
        sa.Column('po_no', sa.String(length=64)),
        sa.Column('line_no', sa.Integer(), nullable=False),
        sa.Column('style_no', sa.String(length=64)),
        sa.Column('description', sa.String(length=255)),
        sa.Column('material_content', sa.String(length=255)),
        sa.Column('hs_code', sa.String(length=32)),
        sa.Column('qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('unit_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('amount', sa.Float(), nullable=False, server_default='0'),
        _is_deleted(),
        _updated_at(),
    )
    op.create_index('ix_invoice_lines_invoice_id', 'invoice_lines', ['invoice_id'])

    op.create_table('packing_lists',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('packing_list_no', sa.String(length=64), nullable=False),
        sa.Column('shipment_id', sa.Integer(), sa.ForeignKey('shipments.id'), nullable=False),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoice_headers.id')),
        sa.Column('buyer_id', sa.Integer()),
        _is_deleted(),
        _updated_at(),
    )
    op.create_index('ix_packing_lists_packing_list_no', 'packing_lists', ['packing_list_no'])
    op.create_index('ix_packing_lists_shipment_id', 'packing_lists', ['shipment_id'])
    op.create_index('ix_packing_lists_is_deleted', 'packing_lists', ['is_deleted'])

    op.create_table('packing_list_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('packing_list_id', sa.Integer(), sa.ForeignKey('packing_lists.id', ondelete='CASCADE'), nullable=False),
        sa.Column('shipment_id', sa.Integer()),
        sa.Column('shipment_line_id', sa.Integer()),
        sa.Column('line_no', sa.Integer(), nullable=False),
        sa.Column('po_header_id', sa.Integer()),
        sa.Column('po_no', sa.String(length=64)),
        sa.Column('style_no', sa.String(length=64)),
        sa.Column('description', sa.String(length=255)),
        sa.Column('shipped_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cartons', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('gw_per_ctn', sa.Float()),
        sa.Column('nw_per_ctn', sa.Float()),
        sa.Column('gw', sa.Float()),
        sa.Column('nw', sa.Float()),
        _is_deleted(),
        _updated_at(),
    )
    op.create_index('ix_packing_list_lines_packing_list_id', 'packing_list_lines', ['packing_list_id'])


def downgrade():
    for tbl in ['packing_list_lines', 'packing_lists', 'invoice_lines', 'invoice_headers', 'shipment_lines',
                'shipments', 'po_lines', 'po_headers', 'dev_products', 'companies', 'audit_logs',
                'user_permission_revokes', 'user_permission_grants', 'user_permission_overrides',
                'role_permission_defaults', 'users']:
        op.drop_table(tbl)
