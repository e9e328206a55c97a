"""Work sheets: per-PO-line factory instructions plus vendor unit-cost tracking.

A PO line has at most one active work sheet. Creating one again refreshes the fields copied from
the PO and keeps everything the user typed. Sheet numbers are `{CC}-{yymm}{seq:03}` where CC is
the first two letters of the buyer code (`WS` without one).
"""
from __future__ import annotations
import logging
from datetime import date
from typing import Any, Dict, Optional, Tuple
from flask import abort
from sqlalchemy import select
from app.models.company import Company
from app.models.purchase_order import PurchaseOrder, PurchaseOrderLine
from app.models.work_sheet import WorkSheet, WorkSheetLine, VendorPriceDefault, VendorPriceHistory
from app.utils.validation import optional_number, validate_status

logger = logging.getLogger(__name__)

LINE_TEXT_FIELDS = ('work_notes', 'qc_points', 'packing_notes', 'plating_spec', 'spec_summary')
# accepted spellings for the two header note fields, first non-blank wins
SPECIAL_KEYS = ('special_instructions', 'general_notes')
INTERNAL_KEYS = ('internal_notes', 'notes', 'internal_memo')


def next_ws_no(session, buyer_code: Optional[str], today: Optional[date] = None) -> str:
    cc = (buyer_code or '').strip()[:2].upper() or 'WS'
    today = today or date.today()
    prefix = f'{cc}-{today.year % 100:02d}{today.month:02d}'
    existing = session.execute(
        select(WorkSheet.ws_no).where(WorkSheet.ws_no.like(f'{prefix}%'))
    ).scalars().all()
    seq = 0
    for no in existing:
        tail = no[len(prefix):]
        if tail.isdigit():
            seq = max(seq, int(tail))
    return f'{prefix}{seq + 1:03d}'


def get_work_sheet(session, ws_id: int) -> WorkSheet:
    ws = session.execute(
        select(WorkSheet).where(WorkSheet.id == ws_id, WorkSheet.is_deleted.is_(False))
    ).scalar_one_or_none()
    if not ws:
        abort(404, description='Work sheet not found')
    return ws


def active_lines(ws: WorkSheet):
    return [l for l in ws.lines if not l.is_deleted]


def _copy_po_line(line: WorkSheetLine, po_line: PurchaseOrderLine):
    line.style_no = po_line.style_no
    line.description = po_line.description
    line.color = po_line.color
    line.qty = int(po_line.qty or 0) - int(po_line.qty_cancelled or 0)
    line.image_url = po_line.main_image_url


def create_from_po(session, po: PurchaseOrder, po_line: PurchaseOrderLine) -> Tuple[WorkSheet, bool]:
    """Create the work sheet for po_line, or refresh the existing one. Returns (sheet, created)."""
    buyer = None
    if po.buyer_id:
        buyer = session.execute(select(Company).where(Company.id == po.buyer_id)).scalar_one_or_none()
    ws = session.execute(
        select(WorkSheet).where(WorkSheet.po_line_id == po_line.id, WorkSheet.is_deleted.is_(False))
    ).scalar_one_or_none()
    created = ws is None
    if created:
        ws = WorkSheet(
            ws_no=next_ws_no(session, buyer.code if buyer else None),
            po_line_id=po_line.id,
            status=WorkSheet.STATUS_DRAFT,
        )
        session.add(ws)
    ws.po_header_id = po.id
    ws.po_no = po.po_no
    ws.buyer_id = po.buyer_id
    ws.buyer_name = ws.buyer_name or (buyer.name if buyer else None)
    ws.buyer_code = ws.buyer_code or (buyer.code if buyer else None)
    ws.currency = ws.currency or po.currency
    ws.requested_ship_date = ws.requested_ship_date or po.requested_ship_date or po_line.delivery_date

    line = next((l for l in active_lines(ws) if l.po_line_id == po_line.id), None)
    if line is None:
        line = WorkSheetLine(po_line_id=po_line.id)
        ws.lines.append(line)
    _copy_po_line(line, po_line)
    session.flush()
    logger.info('Work sheet %s %s from %s line %s', ws.ws_no, 'created' if created else 'refreshed', po.po_no, po_line.line_no)
    return ws, created


def _first_present(data: Dict[str, Any], keys) -> Tuple[bool, Optional[str]]:
    """(any key present, first non-blank value stripped or None)."""
    present = any(k in data for k in keys)
    for k in keys:
        val = data.get(k)
        if val is not None and str(val).strip():
            return present, str(val).strip()
    return present, None


def update_header(ws: WorkSheet, data: Dict[str, Any]):
    if 'status' in data:
        ws.status = validate_status(str(data['status'] or '').upper(), WorkSheet.ALL_STATUSES)
    present, value = _first_present(data, SPECIAL_KEYS)
    if present:
        ws.special_instructions = value
    present, value = _first_present(data, INTERNAL_KEYS)
    if present:
        ws.internal_notes = value


def update_line(session, ws: WorkSheet, data: Dict[str, Any]) -> WorkSheetLine:
    """Apply the editable fields of one line; a changed vendor cost is recorded as vendor price history."""
    try:
        line_id = int(data.get('id'))
    except (TypeError, ValueError):
        abort(400, description='lines[].id must be int')
    line = next((l for l in active_lines(ws) if l.id == line_id), None)
    if line is None:
        abort(404, description=f'Work sheet line {line_id} not found')
    for field in LINE_TEXT_FIELDS:
        if field in data:
            val = data[field]
            setattr(line, field, (str(val).strip() or None) if val is not None else None)
    before = (line.vendor_id, line.vendor_currency, line.vendor_unit_cost_local)
    if 'vendor_id' in data:
        line.vendor_id = resolve_vendor_id(session, data['vendor_id'], required=False)
    if 'vendor_currency' in data:
        line.vendor_currency = (str(data['vendor_currency'] or '').strip().upper() or None)
    if 'vendor_unit_cost_local' in data:
        line.vendor_unit_cost_local = optional_number(data['vendor_unit_cost_local'], 'vendor_unit_cost_local')
    after = (line.vendor_id, line.vendor_currency, line.vendor_unit_cost_local)
    if after != before and line.vendor_id and line.vendor_unit_cost_local is not None:
        record_vendor_price(
            session, line.vendor_id, line.vendor_currency, line.vendor_unit_cost_local,
            source=VendorPriceHistory.SOURCE_WORK_SHEET, work_sheet_id=ws.id, work_sheet_line_id=line.id,
        )
    return line


def resolve_vendor_id(session, raw, required: bool = True) -> Optional[int]:
    if raw is None or raw == '':
        if required:
            abort(400, description='vendor_id is required')
        return None
    try:
        vendor_id = int(raw)
    except (TypeError, ValueError):
        abort(400, description='vendor_id must be int')
    if not session.execute(select(Company.id).where(Company.id == vendor_id)).first():
        abort(404, description='Vendor not found')
    return vendor_id


def record_vendor_price(session, vendor_id: int, currency: Optional[str], unit_cost_local: float,
                        source: str = VendorPriceHistory.SOURCE_MANUAL, work_sheet_id: Optional[int] = None,
                        work_sheet_line_id: Optional[int] = None) -> VendorPriceDefault:
    default = session.get(VendorPriceDefault, vendor_id)
    if default is None:
        default = VendorPriceDefault(vendor_id=vendor_id, unit_cost_local=unit_cost_local)
        session.add(default)
    default.currency = currency
    default.unit_cost_local = unit_cost_local
    session.add(VendorPriceHistory(
        vendor_id=vendor_id, currency=currency, unit_cost_local=unit_cost_local, source=source,
        work_sheet_id=work_sheet_id, work_sheet_line_id=work_sheet_line_id,
    ))
    session.flush()
    logger.info('Vendor %s unit cost set to %s %s (%s)', vendor_id, unit_cost_local, currency or '', source)
    return default


def vendor_prices(session, vendor_id: int, limit: int = 8) -> Dict[str, Any]:
    default = session.get(VendorPriceDefault, vendor_id)
    history = session.execute(
        select(VendorPriceHistory)
        .where(VendorPriceHistory.vendor_id == vendor_id)
        .order_by(VendorPriceHistory.effective_at.desc(), VendorPriceHistory.id.desc())
        .limit(limit)
    ).scalars().all()
    return {
        'vendor_id': vendor_id,
        'default': {
            'currency': default.currency,
            'unit_cost_local': default.unit_cost_local,
            'updated_at': default.updated_at.isoformat() if default.updated_at else None,
        } if default else None,
        'history': [
            {
                'id': h.id,
                'currency': h.currency,
                'unit_cost_local': h.unit_cost_local,
                'source': h.source,
                'work_sheet_id': h.work_sheet_id,
                'work_sheet_line_id': h.work_sheet_line_id,
                'effective_at': h.effective_at.isoformat() if h.effective_at else None,
            }
            for h in history
        ],
    }


__all__ = [
    'next_ws_no', 'get_work_sheet', 'active_lines', 'create_from_po', 'update_header', 'update_line',
    'resolve_vendor_id', 'record_vendor_price', 'vendor_prices',
]
