from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from app import get_db
from app.decorators.auth import require_permissions
from app.decorators.audit import audit_log
from app.errors import ConflictError
from app.models.purchase_order import PurchaseOrder
from app.models.shipment import Shipment, ShipmentLine
from app.routes.purchase_orders import get_po
from app.services import shipments as svc
from app.services.order_lifecycle import assert_can_ship, recompute_po_status
from app.services.policy import current_user
from app.utils.fsm import TransitionValidator
from app.utils.validation import optional_date, positive_int, required_text

shipments_bp = Blueprint('shipments', __name__)

SHIPMENT_FSM = TransitionValidator({
    Shipment.STATUS_OPEN: {Shipment.STATUS_CANCELLED},
    Shipment.STATUS_CANCELLED: set(),
})


@shipments_bp.post('')
@require_permissions('shipment.create')
@audit_log('SHIPMENT.CREATE', entity='Shipment', entity_id_key='id', meta_keys=['po_no', 'po_status'])
def create_shipment():
    session = get_db()
    data = request.json or {}
    po = get_po(session, required_text(data, 'po_no'))
    raw_lines = data.get('lines')
    if not isinstance(raw_lines, list) or not raw_lines:
        abort(400, description='lines[] is required')
    requested = []
    for raw in raw_lines:
        if not isinstance(raw, dict):
            abort(400, description='lines[] must be objects')
        try:
            line_id = int(raw.get('po_line_id'))
        except (TypeError, ValueError):
            abort(400, description='lines[].po_line_id must be int')
        requested.append((line_id, positive_int(raw.get('shipped_qty'), 'shipped_qty')))
    accepted = assert_can_ship(session, po, requested)
    shipment_no = (data.get('shipment_no') or '').strip() or svc.next_shipment_no(session, po.po_no)
    if session.execute(select(Shipment.id).where(Shipment.shipment_no == shipment_no)).first():
        raise ConflictError(f'Shipment {shipment_no} already exists', extra={'shipment_no': shipment_no})
    shipment = Shipment(
        shipment_no=shipment_no,
        po_header_id=po.id,
        buyer_id=po.buyer_id,
        ship_mode=data.get('ship_mode'),
        carrier=data.get('carrier'),
        tracking_no=data.get('tracking_no'),
        etd=optional_date(data.get('etd'), 'etd'),
        eta=optional_date(data.get('eta'), 'eta'),
        status=Shipment.STATUS_OPEN,
    )
    for line, qty in accepted:
        shipment.lines.append(ShipmentLine(po_header_id=po.id, po_line_id=line.id, shipped_qty=qty))
    session.add(shipment)
    status = recompute_po_status(session, po, current_user().id)
    session.commit()
    return {'success': True, **_shipment_json(shipment), 'po_no': po.po_no, 'po_status': status}, 201


@shipments_bp.get('/<int:shipment_id>')
@require_permissions('shipment.view')
def get_shipment(shipment_id: int):
    return {'success': True, **_shipment_json(svc.get_shipment(get_db(), shipment_id))}


@shipments_bp.post('/<int:shipment_id>/cancel')
@require_permissions('shipment.edit')
@audit_log('SHIPMENT.CANCEL', entity='Shipment', entity_id_key='id', meta_keys=['po_status'])
def cancel_shipment(shipment_id: int):
    session = get_db()
    shipment = svc.get_shipment(session, shipment_id)
    SHIPMENT_FSM.assert_can_transition(shipment.status, Shipment.STATUS_CANCELLED)
    shipment.status = Shipment.STATUS_CANCELLED
    po = get_po_by_id(session, shipment.po_header_id)
    status = recompute_po_status(session, po, current_user().id) if po else None
    session.commit()
    return {'success': True, **_shipment_json(shipment), 'po_status': status}


@shipments_bp.post('/<int:shipment_id>/split')
@require_permissions('shipment.edit')
@audit_log('SHIPMENT.SPLIT', entity='Shipment', entity_id_key='id', meta_keys=['new_shipment_id', 'split_qty'])
def split_shipment(shipment_id: int):
    session = get_db()
    data = request.json or {}
    if data.get('shipment_line_id') in (None, ''):
        abort(400, description='shipment_line_id is required')
    line_id = positive_int(data.get('shipment_line_id'), 'shipment_line_id')
    split_qty = positive_int(data.get('split_qty'), 'split_qty')
    ship_mode = (data.get('new_ship_mode') or data.get('ship_mode') or '').strip()
    if not ship_mode:
        abort(400, description='new_ship_mode is required')
    source = svc.get_shipment(session, shipment_id)
    if source.status == Shipment.STATUS_CANCELLED:
        raise ConflictError('Shipment is cancelled', extra={'current': source.status})
    po = get_po_by_id(session, source.po_header_id)
    if not po:
        abort(404, description='PO not found')
    new, _ = svc.split_shipment(
        session, source, po.po_no, line_id, split_qty, ship_mode,
        carrier=(data.get('carrier') or '').strip() or None,
        tracking_no=(data.get('tracking_no') or '').strip() or None,
    )
    status = recompute_po_status(session, po, current_user().id)
    session.commit()
    return {
        'success': True,
        'id': source.id,
        'new_shipment_id': new.id,
        'split_qty': split_qty,
        'source': _shipment_json(source),
        'new_shipment': _shipment_json(new),
        'po_status': status,
    }


def get_po_by_id(session, po_header_id: int):
    return session.execute(
        select(PurchaseOrder).where(PurchaseOrder.id == po_header_id, PurchaseOrder.is_deleted.is_(False))
    ).scalar_one_or_none()


def _shipment_json(sh: Shipment):
    return {
        'id': sh.id,
        'shipment_no': sh.shipment_no,
        'po_header_id': sh.po_header_id,
        'buyer_id': sh.buyer_id,
        'status': sh.status,
        'ship_mode': sh.ship_mode,
        'carrier': sh.carrier,
        'tracking_no': sh.tracking_no,
        'split_from_shipment_id': sh.split_from_shipment_id,
        'etd': sh.etd.isoformat() if sh.etd else None,
        'eta': sh.eta.isoformat() if sh.eta else None,
        'lines': [
            {'id': l.id, 'po_line_id': l.po_line_id, 'shipped_qty': l.shipped_qty}
            for l in sh.lines if not l.is_deleted
        ],
    }
