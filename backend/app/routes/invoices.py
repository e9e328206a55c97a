from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from app import get_db
from app.decorators.auth import require_permissions
from app.decorators.audit import audit_log
from app.errors import ConflictError
from app.models.invoice import Invoice, InvoiceLine
from app.models.shipment import Shipment
from app.services import invoices as svc
from app.services.policy import current_user
from app.utils.listing import paged_list_response
from app.utils.sorting import apply_multi_sort
from app.utils.filters import apply_filters, contains, eq, parse_bool
from app.utils.validation import non_negative_int, optional_date, optional_number

invoices_bp = Blueprint('invoices', __name__)

LINE_TEXT_FIELDS = ('material_content', 'hs_code', 'description')
HEADER_TEXT_FIELDS = ('currency', 'incoterm', 'payment_term', 'destination', 'shipping_origin_code',
                      'consignee_text', 'notify_party_text', 'remarks')


@invoices_bp.get('')
@require_permissions('invoice.view')
def list_invoices():
    session = get_db()
    q = session.query(Invoice).filter(Invoice.is_deleted.is_(False))
    try:
        latest_only = parse_bool(request.args.get('latest_only') or 'true')
    except ValueError:
        abort(400, description='latest_only invalid')
    if latest_only:
        q = q.filter(Invoice.is_latest.is_(True))
    filter_specs = {
        'status': {'op': eq(Invoice.status), 'coerce': str.upper, 'choices': Invoice.ALL_STATUSES},
        'buyer_id': {'op': eq(Invoice.buyer_id), 'coerce': int},
        'invoice_no': {'op': contains(Invoice.invoice_no)},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'invoice_no': Invoice.invoice_no,
        'revision_no': Invoice.revision_no,
        'status': Invoice.status,
        'updated_at': Invoice.updated_at,
        'id': Invoice.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, Invoice.id)
    return paged_list_response(q, _invoice_json)


@invoices_bp.post('')
@require_permissions('invoice.create')
@audit_log('INVOICE.CREATE', entity='Invoice', entity_id_key='id', meta_keys=['invoice_no', 'shipment_id'])
def create_invoice():
    session = get_db()
    data = request.json or {}
    try:
        shipment_id = int(data.get('shipment_id'))
    except (TypeError, ValueError):
        abort(400, description='shipment_id is required')
    shipment = session.execute(
        select(Shipment).where(Shipment.id == shipment_id, Shipment.is_deleted.is_(False))
    ).scalar_one_or_none()
    if not shipment:
        abort(404, description='Shipment not found')
    if shipment.status == Shipment.STATUS_CANCELLED:
        raise ConflictError('Shipment is cancelled', extra={'shipment_id': shipment_id})
    fields = {k: data.get(k) for k in HEADER_TEXT_FIELDS if data.get(k) is not None}
    fields['etd'] = optional_date(data.get('etd'), 'etd')
    fields['eta'] = optional_date(data.get('eta'), 'eta')
    if data.get('buyer_id') is not None:
        fields['buyer_id'] = data.get('buyer_id')
    inv = svc.create_from_shipment(session, shipment, fields)
    session.commit()
    return {'success': True, **_invoice_json(inv), 'lines': [_line_json(l) for l in svc.active_lines(inv)]}, 201


@invoices_bp.get('/<int:invoice_id>')
@require_permissions('invoice.view')
def get_invoice(invoice_id: int):
    session = get_db()
    inv = svc.get_invoice(session, invoice_id)
    chain = svc.revision_chain(session, inv.root_id)
    return {
        'success': True,
        **_invoice_json(inv),
        'consignee_text': inv.consignee_text,
        'notify_party_text': inv.notify_party_text,
        'remarks': inv.remarks if inv.remarks is not None else inv.memo,
        'lines': [_line_json(l) for l in svc.active_lines(inv)],
        'revisions': [
            {'id': r.id, 'invoice_no': r.invoice_no, 'revision_no': r.revision_no, 'status': r.status, 'is_latest': r.is_latest}
            for r in chain
        ],
    }


@invoices_bp.post('/<int:invoice_id>/revision')
@require_permissions('invoice.create')
@audit_log('INVOICE.REVISION', entity='Invoice', entity_id_key='invoice_id', meta_keys=['root_invoice_id', 'revision_no', 'invoice_no'])
def create_revision(invoice_id: int):
    session = get_db()
    source = svc.get_invoice(session, invoice_id)
    rev = svc.create_revision(session, source)
    session.commit()
    return {
        'success': True,
        'created': True,
        'root_invoice_id': rev.revision_of_invoice_id,
        'revision_no': rev.revision_no,
        'invoice_id': rev.id,
        'invoice_no': rev.invoice_no,
    }


@invoices_bp.post('/<int:invoice_id>/confirm')
@require_permissions('invoice.edit')
@audit_log('INVOICE.CONFIRM', entity='Invoice', entity_id_key='id', meta_keys=['already_confirmed'])
def confirm_invoice(invoice_id: int):
    session = get_db()
    inv = svc.get_invoice(session, invoice_id)
    changed = svc.confirm(inv, current_user())
    session.commit()
    return {
        'success': True,
        'id': inv.id,
        'status': inv.status,
        'already_confirmed': not changed,
        'confirmed_at': inv.confirmed_at.isoformat() if inv.confirmed_at else None,
        'confirmed_by_email': inv.confirmed_by_email,
    }


@invoices_bp.put('/lines/<int:line_id>')
@require_permissions('invoice.edit')
@audit_log('INVOICE.LINE.UPDATE', entity='InvoiceLine', entity_id_key='id', meta_keys=['invoice_id', 'qty', 'amount'])
def update_invoice_line(line_id: int):
    session = get_db()
    line = session.execute(
        select(InvoiceLine).where(InvoiceLine.id == line_id, InvoiceLine.is_deleted.is_(False))
    ).scalar_one_or_none()
    if not line:
        abort(404, description='Invoice line not found')
    inv = svc.get_invoice(session, line.invoice_id)
    svc.assert_editable(inv)
    data = request.json or {}
    for f in LINE_TEXT_FIELDS:
        if f in data:
            setattr(line, f, (str(data[f]).strip() or None) if data[f] is not None else None)
    if 'qty' in data:
        line.qty = non_negative_int(data['qty'], 'qty')
    if 'unit_price' in data:
        price = optional_number(data['unit_price'], 'unit_price')
        line.unit_price = price or 0.0
    line.amount = round(float(line.unit_price or 0) * int(line.qty or 0), 2)
    svc.recompute_total(inv)
    session.commit()
    return {'success': True, **_line_json(line), 'invoice_total': inv.total_amount}


@invoices_bp.delete('/<int:invoice_id>')
@require_permissions('invoice.delete')
@audit_log('INVOICE.DELETE', entity='Invoice', entity_id_key='id')
def delete_invoice(invoice_id: int):
    session = get_db()
    inv = svc.get_invoice(session, invoice_id)
    svc.assert_editable(inv)
    inv.is_deleted = True
    if inv.is_latest:
        inv.is_latest = False
        # hand the latest flag back to the highest remaining revision of the chain
        remaining = [r for r in svc.revision_chain(session, inv.root_id) if r.id != inv.id]
        if remaining:
            remaining[-1].is_latest = True
    session.commit()
    return {'success': True, 'id': inv.id, 'deleted': True}


def _invoice_json(inv: Invoice):
    return {
        'id': inv.id,
        'invoice_no': inv.invoice_no,
        'buyer_id': inv.buyer_id,
        'buyer_name': inv.buyer_name,
        'shipment_id': inv.shipment_id,
        'currency': inv.currency,
        'incoterm': inv.incoterm,
        'status': inv.status,
        'total_amount': inv.total_amount,
        'revision_of_invoice_id': inv.revision_of_invoice_id,
        'revision_no': inv.revision_no,
        'is_latest': inv.is_latest,
        'locked': inv.is_locked,
    }


def _line_json(l: InvoiceLine):
    return {
        'id': l.id,
        'invoice_id': l.invoice_id,
        'line_no': l.line_no,
        'po_no': l.po_no,
        'style_no': l.style_no,
        'description': l.description,
        'material_content': l.material_content,
        'hs_code': l.hs_code,
        'qty': l.qty,
        'unit_price': l.unit_price,
        'amount': l.amount,
    }
