"""Shipment numbering and splitting.

Shipment numbers are `{po_no}-S{seq:02}`; seq continues from the highest number already issued for
the PO, including manually chosen ones and cancelled shipments.
"""
from __future__ import annotations
import logging
from typing import Optional, Tuple
from flask import abort
from sqlalchemy import select
from app.errors import ConflictError
from app.models.shipment import Shipment, ShipmentLine

logger = logging.getLogger(__name__)

COURIER = 'COURIER'


def next_shipment_no(session, po_no: str) -> str:
    prefix = f'{po_no}-S'
    existing = session.execute(
        select(Shipment.shipment_no).where(Shipment.shipment_no.like(f'{prefix}%'))
    ).scalars().all()
    seq = 0
    for no in existing:
        tail = no[len(prefix):]
        if tail.isdigit():
            seq = max(seq, int(tail))
    return f'{prefix}{seq + 1:02d}'


def get_shipment(session, shipment_id: int) -> Shipment:
    sh = session.execute(
        select(Shipment).where(Shipment.id == shipment_id, Shipment.is_deleted.is_(False))
    ).scalar_one_or_none()
    if not sh:
        abort(404, description='Shipment not found')
    return sh


def split_shipment(
    session,
    source: Shipment,
    po_no: str,
    shipment_line_id: int,
    split_qty: int,
    ship_mode: str,
    carrier: Optional[str] = None,
    tracking_no: Optional[str] = None,
) -> Tuple[Shipment, ShipmentLine]:
    """Move split_qty of one line onto a new shipment with its own ship mode.

    A line split down to 0 is soft-deleted. Courier details are kept only for COURIER shipments.
    Caller re-runs the PO status recompute and commits.
    """
    line = next((l for l in source.lines if l.id == shipment_line_id and not l.is_deleted), None)
    if line is None:
        abort(404, description='Shipment line not found')
    current = int(line.shipped_qty or 0)
    if split_qty > current:
        raise ConflictError(
            'split_qty exceeds current shipped qty',
            extra={'shipment_line_id': line.id, 'shipped_qty': current, 'requested': split_qty},
        )
    courier = ship_mode.upper() == COURIER
    new = Shipment(
        shipment_no=next_shipment_no(session, po_no),
        po_header_id=source.po_header_id,
        buyer_id=source.buyer_id,
        ship_mode=ship_mode,
        carrier=carrier if courier else None,
        tracking_no=tracking_no if courier else None,
        etd=source.etd,
        eta=source.eta,
        status=source.status,
        split_from_shipment_id=source.id,
    )
    moved = ShipmentLine(po_header_id=line.po_header_id, po_line_id=line.po_line_id, shipped_qty=split_qty)
    new.lines.append(moved)
    session.add(new)
    line.shipped_qty = current - split_qty
    if line.shipped_qty == 0:
        line.is_deleted = True
    session.flush()
    logger.info('Shipment %s: %s pcs of line %s moved to %s', source.shipment_no, split_qty, line.id, new.shipment_no)
    return new, moved


__all__ = ['next_shipment_no', 'get_shipment', 'split_shipment']
