"""proforma invoices, work sheets, vendor prices; shipment split/courier columns; PO line delivery date

Revision ID: 0002_proforma_work_sheets
Revises: 0001_initial_schema
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0002_proforma_work_sheets'
down_revision = '0001_initial_schema'
branch_labels = None
depends_on = None


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'))


def _is_deleted():
    return sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.text('0'))


def upgrade():
    with op.batch_alter_table('po_lines') as batch:
        batch.add_column(sa.Column('delivery_date', sa.Date()))

    with op.batch_alter_table('shipments') as batch:
        batch.add_column(sa.Column('carrier', sa.String(length=64)))
        batch.add_column(sa.Column('tracking_no', sa.String(length=64)))
        batch.add_column(sa.Column('split_from_shipment_id', sa.Integer()))
        batch.create_foreign_key('fk_shipments_split_from', 'shipments', ['split_from_shipment_id'], ['id'])

    op.create_table('proforma_headers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invoice_no', sa.String(length=64), nullable=False, unique=True),
        sa.Column('po_no', sa.String(length=64), unique=True),
        sa.Column('po_header_id', sa.Integer(), sa.ForeignKey('po_headers.id')),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('buyer_name', sa.String(length=150)),
        sa.Column('currency', sa.String(length=8), nullable=False),
        sa.Column('payment_term', sa.String(length=64)),
        sa.Column('ship_mode', sa.String(length=16)),
        sa.Column('destination', sa.String(length=128)),
        sa.Column('incoterm', sa.String(length=16)),
        sa.Column('created_by', sa.Integer()),
        sa.Column('created_by_email', sa.String(length=128)),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_proforma_headers_invoice_no', 'proforma_headers', ['invoice_no'])
    op.create_index('ix_proforma_headers_po_no', 'proforma_headers', ['po_no'])
    op.create_index('ix_proforma_headers_buyer_id', 'proforma_headers', ['buyer_id'])

    op.create_table('proforma_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('proforma_header_id', sa.Integer(), sa.ForeignKey('proforma_headers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('line_no', sa.Integer(), nullable=False),
        sa.Column('style_no', sa.String(length=64)),
        sa.Column('buyer_style_no', sa.String(length=64)),
        sa.Column('description', sa.String(length=255)),
        sa.Column('color', sa.String(length=64)),
        sa.Column('size', sa.String(length=32)),
        sa.Column('hs_code', sa.String(length=32)),
        sa.Column('qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('uom', sa.String(length=16)),
        sa.Column('unit_price', sa.Float(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(length=8)),
        sa.Column('amount', sa.Float(), nullable=False, server_default='0'),
        sa.Column('upc_code', sa.String(length=32)),
    )
    op.create_index('ix_proforma_lines_proforma_header_id', 'proforma_lines', ['proforma_header_id'])

    op.create_table('work_sheet_headers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ws_no', sa.String(length=32), nullable=False, unique=True),
        sa.Column('po_header_id', sa.Integer(), sa.ForeignKey('po_headers.id'), nullable=False),
        sa.Column('po_line_id', sa.Integer(), sa.ForeignKey('po_lines.id'), nullable=False),
        sa.Column('po_no', sa.String(length=64), nullable=False),
        sa.Column('buyer_id', sa.Integer(), sa.ForeignKey('companies.id')),
        sa.Column('buyer_name', sa.String(length=150)),
        sa.Column('buyer_code', sa.String(length=16)),
        sa.Column('currency', sa.String(length=8)),
        sa.Column('requested_ship_date', sa.Date()),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='DRAFT'),
        sa.Column('special_instructions', sa.Text()),
        sa.Column('internal_notes', sa.Text()),
        _is_deleted(),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_work_sheet_headers_ws_no', 'work_sheet_headers', ['ws_no'])
    op.create_index('ix_work_sheet_headers_po_header_id', 'work_sheet_headers', ['po_header_id'])
    op.create_index('ix_work_sheet_headers_po_line_id', 'work_sheet_headers', ['po_line_id'])
    op.create_index('ix_work_sheet_headers_po_no', 'work_sheet_headers', ['po_no'])
    op.create_index('ix_work_sheet_headers_status', 'work_sheet_headers', ['status'])
    op.create_index('ix_work_sheet_headers_is_deleted', 'work_sheet_headers', ['is_deleted'])

    op.create_table('work_sheet_lines',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('work_sheet_id', sa.Integer(), sa.ForeignKey('work_sheet_headers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('po_line_id', sa.Integer(), sa.ForeignKey('po_lines.id'), nullable=False),
        sa.Column('style_no', sa.String(length=64)),
        sa.Column('description', sa.String(length=255)),
        sa.Column('color', sa.String(length=64)),
        sa.Column('qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('image_url', sa.String(length=512)),
        sa.Column('plating_spec', sa.Text()),
        sa.Column('spec_summary', sa.Text()),
        sa.Column('work_notes', sa.Text()),
        sa.Column('qc_points', sa.Text()),
        sa.Column('packing_notes', sa.Text()),
        sa.Column('vendor_id', sa.Integer(), sa.ForeignKey('companies.id')),
        sa.Column('vendor_currency', sa.String(length=8)),
        sa.Column('vendor_unit_cost_local', sa.Float()),
        _is_deleted(),
        _updated_at(),
    )
    op.create_index('ix_work_sheet_lines_work_sheet_id', 'work_sheet_lines', ['work_sheet_id'])

    op.create_table('vendor_price_defaults',
        sa.Column('vendor_id', sa.Integer(), sa.ForeignKey('companies.id'), primary_key=True),
        sa.Column('currency', sa.String(length=8)),
        sa.Column('unit_cost_local', sa.Float(), nullable=False),
        _updated_at(),
    )

    op.create_table('vendor_price_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('vendor_id', sa.Integer(), sa.ForeignKey('companies.id'), nullable=False),
        sa.Column('currency', sa.String(length=8)),
        sa.Column('unit_cost_local', sa.Float(), nullable=False),
        sa.Column('source', sa.String(length=16), nullable=False, server_default='MANUAL'),
        sa.Column('work_sheet_id', sa.Integer()),
        sa.Column('work_sheet_line_id', sa.Integer()),
        sa.Column('effective_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_vendor_price_history_vendor_id', 'vendor_price_history', ['vendor_id'])


def downgrade():
    for tbl in ['vendor_price_history', 'vendor_price_defaults', 'work_sheet_lines', 'work_sheet_headers',
                'proforma_lines', 'proforma_headers']:
        op.drop_table(tbl)
    with op.batch_alter_table('shipments') as batch:
        batch.drop_constraint('fk_shipments_split_from', type_='foreignkey')
        batch.drop_column('split_from_shipment_id')
        batch.drop_column('tracking_no')
        batch.drop_column('carrier')
    with op.batch_alter_table('po_lines') as batch:
        batch.drop_column('delivery_date')
