"""Proforma invoices: one quote per PO, saved again to replace its lines.

Numbers are `JM-{buyerCode}-PI-YYYYMMDD-HHmmss` (`PI-YYYYMMDD-HHmmss` without a buyer code). Two
saves in the same second get a `-2`, `-3`... suffix. Re-saving a PO's proforma keeps its number.
"""
from __future__ import annotations
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import select
from app.models.company import Company
from app.models.proforma import ProformaInvoice, ProformaLine
from app.models.purchase_order import PurchaseOrder
from app.utils.validation import non_negative_int, optional_number, round3

logger = logging.getLogger(__name__)

HEADER_TEXT_FIELDS = ('buyer_name', 'currency', 'payment_term', 'ship_mode', 'destination', 'incoterm')
LINE_TEXT_FIELDS = ('style_no', 'buyer_style_no', 'description', 'color', 'size', 'hs_code', 'uom', 'upc_code')


def build_invoice_no(buyer_code: Optional[str], now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    stamp = now.strftime('%Y%m%d-%H%M%S')
    return f'JM-{buyer_code}-PI-{stamp}' if buyer_code else f'PI-{stamp}'


def _unique_invoice_no(session, base: str) -> str:
    taken = set(session.execute(
        select(ProformaInvoice.invoice_no).where(ProformaInvoice.invoice_no.like(f'{base}%'))
    ).scalars().all())
    if base not in taken:
        return base
    n = 2
    while f'{base}-{n}' in taken:
        n += 1
    return f'{base}-{n}'


def _line_kwargs(raw: Dict[str, Any], idx: int, currency: str) -> Dict[str, Any]:
    qty = non_negative_int(raw.get('qty') or 0, f'lines[{idx}].qty')
    unit_price = optional_number(raw.get('unit_price'), f'lines[{idx}].unit_price') or 0.0
    amount = optional_number(raw.get('amount'), f'lines[{idx}].amount')
    kwargs = {k: raw.get(k) for k in LINE_TEXT_FIELDS}
    kwargs.update(
        line_no=idx + 1,
        qty=qty,
        unit_price=unit_price,
        currency=raw.get('currency') or currency,
        amount=round3(amount if amount is not None else qty * unit_price),
    )
    return kwargs


def save_proforma(
    session,
    header: Dict[str, Any],
    lines: List[Dict[str, Any]],
    user=None,
    now: Optional[datetime] = None,
) -> Tuple[ProformaInvoice, bool]:
    """Create the proforma for header['po_no'], or replace the existing one's header and lines.

    Returns (proforma, updated). Caller validates buyer_id/currency/lines and commits.
    """
    po_no = (header.get('po_no') or '').strip() or None
    existing = None
    if po_no:
        existing = session.execute(
            select(ProformaInvoice).where(ProformaInvoice.po_no == po_no)
        ).scalar_one_or_none()

    buyer = session.execute(select(Company).where(Company.id == header['buyer_id'])).scalar_one_or_none()
    if existing is None:
        code = (buyer.code or '').strip() if buyer else ''
        pi = ProformaInvoice(invoice_no=_unique_invoice_no(session, build_invoice_no(code or None, now)))
        session.add(pi)
    else:
        pi = existing
        # lines are replaced wholesale
        pi.lines.clear()
        session.flush()

    pi.po_no = po_no
    pi.buyer_id = header['buyer_id']
    for field in HEADER_TEXT_FIELDS:
        setattr(pi, field, header.get(field))
    if not pi.buyer_name and buyer:
        pi.buyer_name = buyer.name
    po = None
    if po_no:
        po = session.execute(
            select(PurchaseOrder).where(PurchaseOrder.po_no == po_no, PurchaseOrder.is_deleted.is_(False))
        ).scalar_one_or_none()
    pi.po_header_id = po.id if po else None
    if user is not None:
        pi.created_by = user.id
        pi.created_by_email = user.email
    for idx, raw in enumerate(lines):
        pi.lines.append(ProformaLine(**_line_kwargs(raw, idx, pi.currency)))
    session.flush()
    logger.info('Proforma %s %s with %d lines', pi.invoice_no, 'replaced' if existing else 'created', len(lines))
    return pi, existing is not None


def subtotal(pi: ProformaInvoice) -> float:
    return round(sum(float(l.amount or 0) for l in pi.lines), 2)


__all__ = ['build_invoice_no', 'save_proforma', 'subtotal']
