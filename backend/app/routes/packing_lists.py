from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from app import get_db
from app.decorators.auth import require_permissions
from app.decorators.audit import audit_log
from app.errors import ConflictError
from app.models.packing_list import PackingList, PackingListLine
from app.models.shipment import Shipment
from app.services import packing as svc
from app.utils.validation import non_negative_int, optional_number, positive_int

packing_bp = Blueprint('packing_lists', __name__)


def _int_field(data: dict, name: str) -> int:
    if data.get(name) in (None, ''):
        abort(400, description=f'{name} is required')
    return positive_int(data.get(name), name)


@packing_bp.post('')
@require_permissions('packing_list.create')
@audit_log('PACKING_LIST.CREATE', entity='PackingList', entity_id_key='id', meta_keys=['packing_list_no', 'shipment_id'])
def create_packing_list():
    session = get_db()
    data = request.json or {}
    shipment_id = _int_field(data, 'shipment_id')
    shipment = session.execute(
        select(Shipment).where(Shipment.id == shipment_id, Shipment.is_deleted.is_(False))
    ).scalar_one_or_none()
    if not shipment:
        abort(404, description='Shipment not found')
    if shipment.status == Shipment.STATUS_CANCELLED:
        raise ConflictError('Shipment is cancelled', extra={'shipment_id': shipment_id})
    line_inputs = {}
    for raw in data.get('lines') or []:
        if not isinstance(raw, dict):
            abort(400, description='lines[] must be objects')
        sl_id = _int_field(raw, 'shipment_line_id')
        line_inputs[sl_id] = {
            'cartons': non_negative_int(raw.get('cartons', 0), 'cartons'),
            'gw_per_ctn': optional_number(raw.get('gw_per_ctn'), 'gw_per_ctn'),
            'nw_per_ctn': optional_number(raw.get('nw_per_ctn'), 'nw_per_ctn'),
        }
    pl_no = (data.get('packing_list_no') or '').strip() or f'PL-{shipment.shipment_no}'
    pl = svc.create_from_shipment(session, shipment, pl_no, line_inputs, invoice_id=data.get('invoice_id'))
    session.commit()
    return {'success': True, **_packing_json(pl)}, 201


@packing_bp.get('/<int:packing_list_id>')
@require_permissions('packing_list.view')
def get_packing_list(packing_list_id: int):
    pl = svc.get_packing_list(get_db(), packing_list_id)
    return {'success': True, **_packing_json(pl)}


@packing_bp.put('/<int:packing_list_id>/lines/<int:line_id>')
@require_permissions('packing_list.edit')
@audit_log('PACKING_LIST.LINE.UPDATE', entity='PackingListLine', entity_id_key='id', meta_keys=['cartons', 'shipped_qty'])
def update_line(packing_list_id: int, line_id: int):
    session = get_db()
    pl = svc.get_packing_list(session, packing_list_id)
    line = svc.get_line(session, pl, line_id)
    data = request.json or {}
    if 'cartons' in data:
        line.cartons = non_negative_int(data['cartons'], 'cartons')
    if 'shipped_qty' in data:
        line.shipped_qty = non_negative_int(data['shipped_qty'], 'shipped_qty')
    if 'description' in data:
        line.description = data['description']
    if 'gw_per_ctn' in data:
        line.gw_per_ctn = optional_number(data['gw_per_ctn'], 'gw_per_ctn')
        if line.gw_per_ctn is None:
            line.gw = None  # no per-carton weight, no total
    if 'nw_per_ctn' in data:
        line.nw_per_ctn = optional_number(data['nw_per_ctn'], 'nw_per_ctn')
        if line.nw_per_ctn is None:
            line.nw = None
    svc.recompute_weights(line)
    session.commit()
    return {'success': True, **_line_json(line)}


@packing_bp.post('/<int:packing_list_id>/split-line')
@require_permissions('packing_list.edit')
@audit_log(
    'PACKING_LIST.SPLIT_LINE',
    entity='PackingList',
    entity_id_key='packing_list_id',
    meta_builder=lambda data, rv, a, kw: {
        'original_line_id': (data.get('original_line') or {}).get('id'),
        'split_line_id': (data.get('split_line') or {}).get('id'),
    },
)
def split_line(packing_list_id: int):
    session = get_db()
    data = request.json
    if not isinstance(data, dict):
        abort(400, description='Invalid JSON body')
    pl = svc.get_packing_list(session, packing_list_id)
    line_id = _int_field(data, 'line_id')
    orig, new = svc.split_line(
        session,
        pl,
        line_id,
        split_cartons=_int_field(data, 'split_cartons'),
        split_qty=_int_field(data, 'split_qty'),
        split_gw_per_ctn=optional_number(data.get('split_gw_per_ctn'), 'split_gw_per_ctn'),
        split_nw_per_ctn=optional_number(data.get('split_nw_per_ctn'), 'split_nw_per_ctn'),
        description_suffix=str(data.get('split_description_suffix') or ''),
    )
    session.commit()
    return {
        'success': True,
        'packing_list_id': pl.id,
        'original_line': _line_json(orig),
        'split_line': _line_json(new),
    }


@packing_bp.delete('/<int:packing_list_id>')
@require_permissions('packing_list.delete')
@audit_log('PACKING_LIST.DELETE', entity='PackingList', entity_id_key='id')
def delete_packing_list(packing_list_id: int):
    session = get_db()
    pl = svc.get_packing_list(session, packing_list_id)
    pl.is_deleted = True
    for line in pl.lines:
        line.is_deleted = True
    session.commit()
    return {'success': True, 'id': pl.id, 'deleted': True}


def _packing_json(pl: PackingList):
    return {
        'id': pl.id,
        'packing_list_no': pl.packing_list_no,
        'shipment_id': pl.shipment_id,
        'invoice_id': pl.invoice_id,
        'buyer_id': pl.buyer_id,
        'lines': [_line_json(l) for l in pl.lines if not l.is_deleted],
        'totals': svc.totals(pl),
    }


def _line_json(l: PackingListLine):
    return {
        'id': l.id,
        'line_no': l.line_no,
        'shipment_line_id': l.shipment_line_id,
        'po_no': l.po_no,
        'style_no': l.style_no,
        'description': l.description,
        'shipped_qty': l.shipped_qty,
        'cartons': l.cartons,
        'gw_per_ctn': l.gw_per_ctn,
        'nw_per_ctn': l.nw_per_ctn,
        'gw': l.gw,
        'nw': l.nw,
    }
