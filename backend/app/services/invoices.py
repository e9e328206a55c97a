"""Invoice numbering, creation from shipments and the revision chain.

A chain is a root invoice (revision_no 0) plus every header whose revision_of_invoice_id points
at it. Creating a revision runs inside the caller's session and is committed once, so the chain
flip, the new header and the copied lines land together or not at all.
"""
from __future__ import annotations
import logging
from datetime import date, datetime, timezone
from typing import List, Optional
from flask import abort, current_app
from sqlalchemy import select, update, or_, func
from app.errors import ConflictError
from app.models.company import Company
from app.models.invoice import Invoice, InvoiceLine
from app.models.purchase_order import PurchaseOrder, PurchaseOrderLine
from app.models.shipment import Shipment
from app.utils.fsm import TransitionValidator

logger = logging.getLogger(__name__)

INVOICE_FSM = TransitionValidator({
    Invoice.STATUS_DRAFT: {Invoice.STATUS_CONFIRMED},
    Invoice.STATUS_CONFIRMED: set(),
})

LOCK_REASON = 'Invoice is CONFIRMED. Create a Revision to edit.'


def buyer_code(session, buyer_id: Optional[int]) -> str:
    if not buyer_id:
        abort(400, description='buyer_id is missing in invoice header.')
    company = session.execute(select(Company).where(Company.id == buyer_id)).scalar_one_or_none()
    code = (company.code or '').strip() if company else ''
    if not code:
        abort(400, description='Buyer code (companies.code) not found.')
    return code


def generate_invoice_no(session, code: str, today: Optional[date] = None) -> str:
    """{prefix}-{buyerCode}-{yy}-{seq:04}; seq = highest existing seq for the prefix + 1."""
    today = today or date.today()
    prefix = f"{current_app.config['INVOICE_NO_PREFIX']}-{code}-{today.year % 100:02d}-"
    existing = session.execute(
        select(Invoice.invoice_no).where(Invoice.invoice_no.like(f'{prefix}%'))
    ).scalars().all()
    seq = 0
    for no in existing:
        tail = no[len(prefix):]
        if tail.isdigit():
            seq = max(seq, int(tail))
    return f'{prefix}{seq + 1:04d}'


def get_invoice(session, invoice_id: int) -> Invoice:
    inv = session.execute(
        select(Invoice).where(Invoice.id == invoice_id, Invoice.is_deleted.is_(False))
    ).scalar_one_or_none()
    if not inv:
        abort(404, description='Invoice not found.')
    return inv


def chain_filter(root_id: int):
    return (
        Invoice.is_deleted.is_(False),
        or_(Invoice.id == root_id, Invoice.revision_of_invoice_id == root_id),
    )


def revision_chain(session, root_id: int) -> List[Invoice]:
    return list(session.execute(
        select(Invoice).where(*chain_filter(root_id)).order_by(Invoice.revision_no.asc())
    ).scalars())


def active_lines(inv: Invoice) -> List[InvoiceLine]:
    return [l for l in inv.lines if not l.is_deleted]


def recompute_total(inv: Invoice) -> float:
    inv.total_amount = round(sum(float(l.amount or 0) for l in active_lines(inv)), 2)
    return inv.total_amount


def create_from_shipment(session, shipment: Shipment, fields: dict) -> Invoice:
    """Root invoice for a shipment: one line per shipment line, priced at the PO line price."""
    po = session.get(PurchaseOrder, shipment.po_header_id)
    buyer_id = fields.get('buyer_id') or (po.buyer_id if po else None) or shipment.buyer_id
    code = buyer_code(session, buyer_id)
    buyer = session.get(Company, buyer_id)
    inv = Invoice(
        invoice_no=generate_invoice_no(session, code),
        buyer_id=buyer_id,
        buyer_name=buyer.name if buyer else None,
        shipment_id=shipment.id,
        currency=fields.get('currency') or (po.currency if po else None),
        incoterm=fields.get('incoterm') or (po.incoterm if po else None),
        payment_term=fields.get('payment_term') or (po.payment_term if po else None),
        destination=fields.get('destination') or (po.destination if po else None),
        shipping_origin_code=fields.get('shipping_origin_code'),
        etd=fields.get('etd') or shipment.etd,
        eta=fields.get('eta') or shipment.eta,
        consignee_text=fields.get('consignee_text'),
        notify_party_text=fields.get('notify_party_text'),
        remarks=fields.get('remarks'),
        status=Invoice.STATUS_DRAFT,
        revision_no=0,
        is_latest=True,
    )
    line_no = 0
    for sl in shipment.lines:
        if sl.is_deleted:
            continue
        pol = session.get(PurchaseOrderLine, sl.po_line_id)
        line_no += 1
        price = float(pol.unit_price or 0) if pol else 0.0
        inv.lines.append(InvoiceLine(
            shipment_id=shipment.id,
            po_header_id=sl.po_header_id,
            po_line_id=sl.po_line_id,
            po_no=po.po_no if po else None,
            line_no=line_no,
            style_no=pol.style_no if pol else None,
            description=pol.description if pol else None,
            qty=sl.shipped_qty,
            unit_price=price,
            amount=round(price * sl.shipped_qty, 2),
        ))
    recompute_total(inv)
    session.add(inv)
    session.flush()
    logger.info('Invoice %s created from shipment %s', inv.invoice_no, shipment.shipment_no)
    return inv


def create_revision(session, source: Invoice) -> Invoice:
    root_id = source.root_id
    # deleted revisions keep their number
    max_rev = session.execute(
        select(func.max(Invoice.revision_no)).where(
            or_(Invoice.id == root_id, Invoice.revision_of_invoice_id == root_id)
        )
    ).scalar() or 0
    next_rev = int(max_rev) + 1
    code = buyer_code(session, source.buyer_id)
    invoice_no = generate_invoice_no(session, code)

    session.execute(
        update(Invoice)
        .where(*chain_filter(root_id), Invoice.is_latest.is_(True))
        .values(is_latest=False)
        .execution_options(synchronize_session='fetch')
    )

    rev = Invoice(
        invoice_no=invoice_no,
        buyer_id=source.buyer_id,
        buyer_name=source.buyer_name,
        shipment_id=source.shipment_id,
        currency=source.currency,
        incoterm=source.incoterm,
        payment_term=source.payment_term,
        destination=source.destination,
        shipping_origin_code=source.shipping_origin_code,
        etd=source.etd,
        eta=source.eta,
        consignee_text=source.consignee_text,
        notify_party_text=source.notify_party_text,
        remarks=source.remarks if source.remarks is not None else source.memo,
        total_amount=source.total_amount,
        status=Invoice.STATUS_DRAFT,
        revision_of_invoice_id=root_id,
        revision_no=next_rev,
        is_latest=True,
        confirmed_at=None,
        confirmed_by=None,
        confirmed_by_email=None,
    )
    for l in active_lines(source):
        rev.lines.append(InvoiceLine(
            shipment_id=l.shipment_id,
            po_header_id=l.po_header_id,
            po_line_id=l.po_line_id,
            po_no=l.po_no,
            line_no=l.line_no,
            style_no=l.style_no,
            description=l.description,
            material_content=l.material_content,
            hs_code=l.hs_code,
            qty=l.qty,
            unit_price=l.unit_price,
            amount=l.amount,
        ))
    session.add(rev)
    session.flush()
    logger.info('Invoice %s revision %s created as %s', root_id, next_rev, invoice_no)
    return rev


def confirm(inv: Invoice, user) -> bool:
    """Returns False when the invoice was already confirmed."""
    if inv.is_locked:
        return False
    INVOICE_FSM.assert_can_transition(inv.status, Invoice.STATUS_CONFIRMED)
    inv.status = Invoice.STATUS_CONFIRMED
    inv.confirmed_at = datetime.now(timezone.utc)
    inv.confirmed_by = user.id if user else None
    inv.confirmed_by_email = user.email if user else None
    return True


def assert_editable(inv: Invoice):
    if inv.is_locked:
        raise ConflictError(LOCK_REASON, extra={'locked': True, 'lock_reason': LOCK_REASON, 'status': inv.status})


__all__ = [
    'INVOICE_FSM', 'LOCK_REASON', 'buyer_code', 'generate_invoice_no', 'get_invoice', 'revision_chain',
    'active_lines', 'recompute_total', 'create_from_shipment', 'create_revision', 'confirm', 'assert_editable',
]
