from __future__ import annotations
from flask import Blueprint, request, abort
from sqlalchemy import select
from app import get_db
from app.decorators.auth import require_permissions
from app.decorators.audit import audit_log
from app.models.company import Company
from app.models.proforma import ProformaInvoice, ProformaLine
from app.models.purchase_order import PurchaseOrder
from app.services import proforma as svc
from app.services.policy import current_user
from app.utils.filters import contains
from app.utils.listing import paged_list_response, entity_response

proforma_bp = Blueprint('proforma', __name__)


@proforma_bp.post('')
@require_permissions('proforma.create')
@audit_log('PROFORMA.SAVE', entity='ProformaInvoice', entity_id_key='header_id', meta_keys=['invoice_no', 'po_no', 'updated'])
def save_proforma():
    session = get_db()
    data = request.json or {}
    header = data.get('header') or {}
    lines = data.get('lines') or []
    if not isinstance(header, dict) or not isinstance(lines, list):
        abort(400, description='header must be an object and lines a list')
    if not header.get('buyer_id'):
        abort(400, description='buyer_id is required.')
    if not header.get('currency'):
        abort(400, description='currency is required.')
    if not lines:
        abort(400, description='At least one line is required.')
    try:
        header['buyer_id'] = int(header['buyer_id'])
    except (TypeError, ValueError):
        abort(400, description='buyer_id must be an integer')
    if not session.execute(select(Company.id).where(Company.id == header['buyer_id'])).first():
        abort(404, description='Buyer not found')
    pi, updated = svc.save_proforma(session, header, lines, user=current_user())
    session.commit()
    return {
        'success': True,
        'invoice_no': pi.invoice_no,
        'header_id': pi.id,
        'po_no': pi.po_no,
        'updated': updated,
        'subtotal': svc.subtotal(pi),
    }, (200 if updated else 201)


@proforma_bp.get('')
@require_permissions('proforma.view')
def list_proforma():
    session = get_db()
    q = session.query(ProformaInvoice)
    keyword = (request.args.get('q') or request.args.get('keyword') or '').strip()
    if keyword:
        q = contains(ProformaInvoice.invoice_no, ProformaInvoice.po_no, ProformaInvoice.buyer_name)(q, keyword)
    q = q.order_by(ProformaInvoice.created_at.desc(), ProformaInvoice.id.desc())
    return paged_list_response(q, _list_json)


@proforma_bp.get('/<invoice_no>')
@require_permissions('proforma.view')
def get_proforma(invoice_no: str):
    session = get_db()
    pi = session.execute(
        select(ProformaInvoice).where(ProformaInvoice.invoice_no == invoice_no)
    ).scalar_one_or_none()
    if not pi:
        abort(404, description='Proforma header not found.')
    buyer = session.execute(select(Company).where(Company.id == pi.buyer_id)).scalar_one_or_none()
    po_summary = None
    if pi.po_no:
        po = session.execute(
            select(PurchaseOrder).where(PurchaseOrder.po_no == pi.po_no, PurchaseOrder.is_deleted.is_(False))
        ).scalar_one_or_none()
        if po:
            po_summary = {'id': po.id, 'po_no': po.po_no, 'status': po.status, 'currency': po.currency}
    payload = {
        'success': True,
        **_list_json(pi),
        'buyer_id': pi.buyer_id,
        'payment_term': pi.payment_term,
        'ship_mode': pi.ship_mode,
        'destination': pi.destination,
        'incoterm': pi.incoterm,
        'buyer': {'id': buyer.id, 'code': buyer.code, 'name': buyer.name} if buyer else None,
        'po': po_summary,
        'lines': [_line_json(l) for l in pi.lines],
    }
    return entity_response(payload, pi.id, pi.updated_at)


def _list_json(pi: ProformaInvoice):
    return {
        'id': pi.id,
        'invoice_no': pi.invoice_no,
        'po_no': pi.po_no,
        'buyer_name': pi.buyer_name,
        'currency': pi.currency,
        'created_at': pi.created_at.isoformat() if pi.created_at else None,
        'subtotal': svc.subtotal(pi),
    }


def _line_json(l: ProformaLine):
    return {
        'id': l.id,
        'line_no': l.line_no,
        'style_no': l.style_no,
        'buyer_style_no': l.buyer_style_no,
        'description': l.description,
        'color': l.color,
        'size': l.size,
        'hs_code': l.hs_code,
        'qty': l.qty,
        'uom': l.uom,
        'unit_price': l.unit_price,
        'currency': l.currency,
        'amount': l.amount,
        'upc_code': l.upc_code,
    }
