from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from app import get_db
from app.decorators.auth import require_permissions, require_any_permission
from app.decorators.audit import audit_log
from app.errors import ConflictError
from app.models.company import Company
from app.models.purchase_order import PurchaseOrder, PurchaseOrderLine
from app.models.shipment import Shipment
from app.services.policy import current_user
from app.services.order_lifecycle import active_lines, apply_cancellations, line_quantities
from app.utils.listing import paged_list_response, entity_response
from app.utils.sorting import apply_multi_sort
from app.utils.filters import apply_filters, contains, eq
from app.utils.validation import non_negative_int, optional_date, optional_number, required_text

po_bp = Blueprint('po', __name__)

DUPLICATE_TEXT_FIELDS = ['currency', 'incoterm', 'payment_term', 'destination']
DUPLICATE_DATE_FIELDS = ['order_date', 'requested_ship_date']


def get_po(session, po_no: str) -> PurchaseOrder:
    po = session.execute(
        select(PurchaseOrder).where(PurchaseOrder.po_no == po_no, PurchaseOrder.is_deleted.is_(False))
    ).scalar_one_or_none()
    if not po:
        abort(404, description='PO not found')
    return po


@po_bp.get('')
@require_permissions('po.view')
def list_purchase_orders():
    session = get_db()
    q = session.query(PurchaseOrder).filter(PurchaseOrder.is_deleted.is_(False))
    filter_specs = {
        'po_no': {'op': contains(PurchaseOrder.po_no)},
        'status': {'op': eq(PurchaseOrder.status), 'coerce': str.upper, 'choices': PurchaseOrder.ALL_STATUSES},
        'buyer_id': {'op': eq(PurchaseOrder.buyer_id), 'coerce': int},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {
        'po_no': PurchaseOrder.po_no,
        'status': PurchaseOrder.status,
        'order_date': PurchaseOrder.order_date,
        'updated_at': PurchaseOrder.updated_at,
        'id': PurchaseOrder.id,
    }
    q = apply_multi_sort(q, request.args.get('sort'), allowed, PurchaseOrder.id)
    return paged_list_response(q, _po_json)


@po_bp.post('')
@require_permissions('po.create')
@audit_log('PO.CREATE', entity='PurchaseOrder', entity_id_key='po_no', meta_keys=['buyer_id', 'status'])
def create_purchase_order():
    session = get_db()
    data = request.json or {}
    po_no = required_text(data, 'po_no')
    raw_lines = data.get('lines') or []
    if not isinstance(raw_lines, list) or not raw_lines:
        abort(400, description='lines[] is required')
    buyer_id = data.get('buyer_id')
    if buyer_id is not None and not session.get(Company, buyer_id):
        abort(400, description='buyer_id not found')
    if session.execute(select(PurchaseOrder.id).where(PurchaseOrder.po_no == po_no)).first():
        raise ConflictError(f'PO {po_no} already exists', extra={'po_no': po_no})
    po = PurchaseOrder(
        po_no=po_no,
        buyer_id=buyer_id,
        currency=data.get('currency'),
        incoterm=data.get('incoterm'),
        payment_term=data.get('payment_term'),
        destination=data.get('destination'),
        order_date=optional_date(data.get('order_date'), 'order_date'),
        requested_ship_date=optional_date(data.get('requested_ship_date'), 'requested_ship_date'),
        status=PurchaseOrder.STATUS_DRAFT,
        created_by=current_user().id,
    )
    for i, raw in enumerate(raw_lines, start=1):
        if not isinstance(raw, dict):
            abort(400, description='lines[] must be objects')
        qty = non_negative_int(raw.get('qty'), f'lines[{i}].qty')
        price = optional_number(raw.get('unit_price'), f'lines[{i}].unit_price') or 0.0
        po.lines.append(PurchaseOrderLine(
            line_no=raw.get('line_no') or i,
            style_no=raw.get('style_no'),
            description=raw.get('description'),
            color=raw.get('color'),
            size=raw.get('size'),
            delivery_date=optional_date(raw.get('delivery_date'), f'lines[{i}].delivery_date'),
            qty=qty,
            qty_cancelled=0,
            unit_price=price,
            amount=round(price * qty, 2),
            image_urls=[],
        ))
    session.add(po)
    session.commit()
    return {'success': True, **_po_json(po), 'lines': _line_rows(session, po)}, 201


@po_bp.route('/<po_no>', methods=['GET', 'HEAD'])
@require_permissions('po.view')
def get_purchase_order(po_no: str):
    session = get_db()
    po = get_po(session, po_no)
    # lines change without touching the header row, so the payload itself feeds the ETag
    return entity_response({'success': True, **_po_json(po), 'lines': _line_rows(session, po)}, po.id, po.updated_at)


@po_bp.post('/<po_no>/duplicate')
@require_any_permission('po.create', 'po.edit')
@audit_log('PO.DUPLICATE', entity='PurchaseOrder', entity_id_key='po_no', meta_keys=['source_po_no', 'lines_copied'])
def duplicate_purchase_order(po_no: str):
    """Copy a PO header and its active lines under a new po_no; the source is never modified.

    Body: new_po_no (required), override{...header fields}, apply_delivery_to_lines (default true).
    The copy starts as DRAFT with nothing cancelled.
    """
    session = get_db()
    data = request.json or {}
    new_po_no = required_text(data, 'new_po_no')
    override = data.get('override') or {}
    if not isinstance(override, dict):
        abort(400, description='override must be an object')
    src = get_po(session, po_no)
    if session.execute(select(PurchaseOrder.id).where(PurchaseOrder.po_no == new_po_no)).first():
        raise ConflictError(f'PO No already exists: {new_po_no}', extra={'po_no': new_po_no})

    fields = {k: getattr(src, k) for k in DUPLICATE_TEXT_FIELDS + DUPLICATE_DATE_FIELDS}
    for k in DUPLICATE_TEXT_FIELDS:
        if k in override:
            fields[k] = override[k]
    for k in DUPLICATE_DATE_FIELDS:
        if k in override:
            fields[k] = optional_date(override[k], k)
    po = PurchaseOrder(po_no=new_po_no, buyer_id=src.buyer_id, status=PurchaseOrder.STATUS_DRAFT,
                       created_by=current_user().id, **fields)
    # the new requested ship date becomes every line's delivery date unless told otherwise
    delivery = fields['requested_ship_date'] if override.get('requested_ship_date') else None
    if data.get('apply_delivery_to_lines') is False:
        delivery = None
    for i, l in enumerate(active_lines(src), start=1):
        po.lines.append(PurchaseOrderLine(
            line_no=i,
            style_no=l.style_no,
            description=l.description,
            color=l.color,
            size=l.size,
            delivery_date=delivery or l.delivery_date,
            qty=l.qty,
            qty_cancelled=0,
            unit_price=l.unit_price,
            amount=l.amount,
            main_image_url=l.main_image_url,
            image_urls=list(l.image_urls or []),
        ))
    session.add(po)
    session.commit()
    return {
        'success': True,
        **_po_json(po),
        'source_po_no': src.po_no,
        'lines_copied': len(po.lines),
        'lines': _line_rows(session, po),
    }, 201


@po_bp.put('/<po_no>/cancel-lines')
@require_permissions('po.edit')
@audit_log('PO.CANCEL_LINES', entity='PurchaseOrder', entity_id_arg='po_no', meta_keys=['status', 'updated_lines'])
def cancel_lines(po_no: str):
    session = get_db()
    data = request.json or {}
    raw_lines = data.get('lines')
    if not isinstance(raw_lines, list) or not raw_lines:
        abort(400, description='lines[] is required')
    requests_ = []
    for raw in raw_lines:
        if not isinstance(raw, dict) or raw.get('po_line_id') in (None, ''):
            abort(400, description='lines[].po_line_id is required')
        try:
            line_id = int(raw['po_line_id'])
        except (TypeError, ValueError):
            abort(400, description='lines[].po_line_id must be int')
        requests_.append((line_id, non_negative_int(raw.get('qty_cancelled'), 'qty_cancelled')))
    po = get_po(session, po_no)
    updated, status = apply_cancellations(
        session,
        po,
        requests_,
        cancel_reason=(data.get('cancel_reason') or '').strip() or None,
        cancel_note=(data.get('cancel_note') or '').strip() or None,
        cancel_date=optional_date(data.get('cancel_date'), 'cancel_date'),
        actor_id=current_user().id,
    )
    session.commit()
    return {
        'success': True,
        'po_no': po.po_no,
        'po_header_id': po.id,
        'status': status,
        'updated_lines': updated,
        'lines': [q.to_dict() for q in line_quantities(session, po)],
    }


@po_bp.delete('/<po_no>')
@require_permissions('po.delete')
@audit_log('PO.DELETE', entity='PurchaseOrder', entity_id_arg='po_no')
def delete_purchase_order(po_no: str):
    session = get_db()
    po = get_po(session, po_no)
    active = session.execute(
        select(Shipment.id).where(
            Shipment.po_header_id == po.id,
            Shipment.is_deleted.is_(False),
            Shipment.status != Shipment.STATUS_CANCELLED,
        )
    ).first()
    if active:
        raise ConflictError(f'PO {po_no} has active shipments', extra={'po_no': po_no})
    po.is_deleted = True
    for line in po.lines:
        line.is_deleted = True
    session.commit()
    return {'success': True, 'po_no': po_no, 'deleted': True}


def _po_json(po: PurchaseOrder):
    return {
        'id': po.id,
        'po_no': po.po_no,
        'buyer_id': po.buyer_id,
        'currency': po.currency,
        'incoterm': po.incoterm,
        'status': po.status,
        'order_date': po.order_date.isoformat() if po.order_date else None,
        'requested_ship_date': po.requested_ship_date.isoformat() if po.requested_ship_date else None,
        'payment_term': po.payment_term,
        'destination': po.destination,
        'cancel_reason': po.cancel_reason,
        'cancel_date': po.cancel_date.isoformat() if po.cancel_date else None,
    }


def _line_rows(session, po: PurchaseOrder):
    qty = {q.po_line_id: q for q in line_quantities(session, po)}
    rows = []
    for l in active_lines(po):
        q = qty[l.id]
        rows.append({
            'id': l.id,
            'line_no': l.line_no,
            'style_no': l.style_no,
            'description': l.description,
            'delivery_date': l.delivery_date.isoformat() if l.delivery_date else None,
            'qty': l.qty,
            'qty_cancelled': l.qty_cancelled,
            'shipped': q.shipped,
            'remaining': q.remaining,
            'unit_price': l.unit_price,
            'amount': l.amount,
            'main_image_url': l.main_image_url,
            'image_urls': list(l.image_urls or []),
        })
    return rows
