from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select, func
from app import get_db
from app.decorators.auth import require_permissions
from app.decorators.audit import audit_log
from app.models.work_sheet import WorkSheet, WorkSheetLine
from app.routes.purchase_orders import get_po
from app.services import work_sheets as svc
from app.utils.filters import apply_filters, contains, eq, parse_bool
from app.utils.listing import paged_list_response, entity_response
from app.utils.validation import optional_number, required_text

work_sheets_bp = Blueprint('work_sheets', __name__)


@work_sheets_bp.post('/create-from-po')
@require_permissions('work_sheet.create')
@audit_log('WORK_SHEET.CREATE_FROM_PO', entity='WorkSheet', entity_id_key='id', meta_keys=['ws_no', 'po_no', 'created'])
def create_from_po():
    session = get_db()
    data = request.json or {}
    po = get_po(session, required_text(data, 'po_no'))
    try:
        po_line_id = int(data.get('po_line_id'))
    except (TypeError, ValueError):
        abort(400, description='po_line_id must be int')
    po_line = next((l for l in po.lines if l.id == po_line_id and not l.is_deleted), None)
    if po_line is None:
        abort(404, description='PO line not found')
    ws, created = svc.create_from_po(session, po, po_line)
    session.commit()
    return {'success': True, 'created': created, **_detail_json(ws)}, (201 if created else 200)


@work_sheets_bp.get('')
@require_permissions('work_sheet.view')
def list_work_sheets():
    session = get_db()
    q = session.query(WorkSheet).filter(WorkSheet.is_deleted.is_(False))
    filter_specs = {
        'status': {'op': eq(WorkSheet.status), 'coerce': str.upper, 'choices': WorkSheet.ALL_STATUSES},
        'q': {'op': contains(WorkSheet.po_no, WorkSheet.buyer_name, WorkSheet.buyer_code, WorkSheet.ws_no)},
    }
    args = request.args.to_dict()
    if (args.get('status') or '').upper() == 'ALL':
        args.pop('status')
    q = apply_filters(q, filter_specs, args)
    try:
        show_all = parse_bool(request.args.get('all') or 'false')
    except ValueError:
        abort(400, description='all invalid')
    if not show_all:
        # newest sheet per PO
        latest = (
            select(func.max(WorkSheet.id))
            .where(WorkSheet.is_deleted.is_(False))
            .group_by(WorkSheet.po_no)
        )
        q = q.filter(WorkSheet.id.in_(latest))
    q = q.order_by(WorkSheet.id.desc())
    return paged_list_response(q, _header_json)


@work_sheets_bp.get('/<int:ws_id>')
@require_permissions('work_sheet.view')
def get_work_sheet(ws_id: int):
    session = get_db()
    ws = svc.get_work_sheet(session, ws_id)
    return entity_response({'success': True, **_detail_json(ws)}, ws.id, ws.updated_at)


@work_sheets_bp.put('/<int:ws_id>')
@require_permissions('work_sheet.edit')
@audit_log('WORK_SHEET.UPDATE', entity='WorkSheet', entity_id_key='id', meta_keys=['status'])
def update_work_sheet(ws_id: int):
    session = get_db()
    ws = svc.get_work_sheet(session, ws_id)
    data = request.json or {}
    header = data.get('header')
    lines = data.get('lines') or []
    if header is not None and not isinstance(header, dict):
        abort(400, description='header must be an object')
    if not isinstance(lines, list) or not all(isinstance(l, dict) for l in lines):
        abort(400, description='lines[] must be objects')
    if header:
        svc.update_header(ws, header)
    for raw in lines:
        svc.update_line(session, ws, raw)
    session.commit()
    return {'success': True, **_detail_json(ws)}


@work_sheets_bp.get('/vendor-prices')
@require_permissions('work_sheet.view')
def get_vendor_prices():
    session = get_db()
    vendor_id = svc.resolve_vendor_id(session, request.args.get('vendor_id'))
    try:
        limit = min(max(int(request.args.get('limit') or 8), 1), 50)
    except ValueError:
        abort(400, description='limit must be int')
    return {'success': True, **svc.vendor_prices(session, vendor_id, limit)}


@work_sheets_bp.put('/vendor-prices')
@require_permissions('work_sheet.edit')
@audit_log('VENDOR_PRICE.SET', entity='Company', entity_id_key='vendor_id', meta_keys=['currency', 'unit_cost_local'])
def put_vendor_price():
    session = get_db()
    data = request.json or {}
    vendor_id = svc.resolve_vendor_id(session, data.get('vendor_id'))
    unit_cost = optional_number(data.get('unit_cost_local'), 'unit_cost_local')
    if unit_cost is None:
        abort(400, description='unit_cost_local is required')
    currency = (str(data.get('currency') or '').strip().upper() or None)
    svc.record_vendor_price(session, vendor_id, currency, unit_cost)
    session.commit()
    return {'success': True, 'vendor_id': vendor_id, 'currency': currency, 'unit_cost_local': unit_cost, 'saved': True}


def _header_json(ws: WorkSheet):
    return {
        'id': ws.id,
        'ws_no': ws.ws_no,
        'po_no': ws.po_no,
        'po_header_id': ws.po_header_id,
        'po_line_id': ws.po_line_id,
        'buyer_id': ws.buyer_id,
        'buyer_name': ws.buyer_name,
        'buyer_code': ws.buyer_code,
        'currency': ws.currency,
        'status': ws.status,
        'requested_ship_date': ws.requested_ship_date.isoformat() if ws.requested_ship_date else None,
        'updated_at': ws.updated_at.isoformat() if ws.updated_at else None,
    }


def _detail_json(ws: WorkSheet):
    return {
        **_header_json(ws),
        'special_instructions': ws.special_instructions,
        'internal_notes': ws.internal_notes,
        'lines': [_line_json(l) for l in svc.active_lines(ws)],
    }


def _line_json(l: WorkSheetLine):
    return {
        'id': l.id,
        'po_line_id': l.po_line_id,
        'style_no': l.style_no,
        'description': l.description,
        'color': l.color,
        'qty': l.qty,
        'image_url': l.image_url,
        'plating_spec': l.plating_spec,
        'spec_summary': l.spec_summary,
        'work_notes': l.work_notes,
        'qc_points': l.qc_points,
        'packing_notes': l.packing_notes,
        'vendor_id': l.vendor_id,
        'vendor_currency': l.vendor_currency,
        'vendor_unit_cost_local': l.vendor_unit_cost_local,
    }
