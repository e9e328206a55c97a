"""Packing list construction and line splitting.

Totals are derived: gw = gw_per_ctn x cartons and nw = nw_per_ctn x cartons, rounded to 3 decimals.
A line without a per-carton weight keeps whatever total it already stores; a per-carton weight of 0
yields a 0 total.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional
from flask import abort
from sqlalchemy import select, func
from app.errors import ValidationError
from app.models.packing_list import PackingList, PackingListLine
from app.models.purchase_order import PurchaseOrder, PurchaseOrderLine
from app.models.shipment import Shipment
from app.utils.validation import round3

logger = logging.getLogger(__name__)


def recompute_weights(line: PackingListLine) -> PackingListLine:
    cartons = int(line.cartons or 0)
    if line.gw_per_ctn is not None:
        line.gw = round3(line.gw_per_ctn * cartons)
    if line.nw_per_ctn is not None:
        line.nw = round3(line.nw_per_ctn * cartons)
    return line


def get_packing_list(session, packing_list_id: int) -> PackingList:
    pl = session.execute(
        select(PackingList).where(PackingList.id == packing_list_id, PackingList.is_deleted.is_(False))
    ).scalar_one_or_none()
    if not pl:
        abort(404, description='Packing list not found')
    return pl


def get_line(session, pl: PackingList, line_id: int) -> PackingListLine:
    line = session.execute(
        select(PackingListLine).where(
            PackingListLine.id == line_id,
            PackingListLine.packing_list_id == pl.id,
            PackingListLine.is_deleted.is_(False),
        )
    ).scalar_one_or_none()
    if not line:
        abort(404, description='Packing list line not found')
    return line


def next_line_no(session, packing_list_id: int) -> int:
    current = session.execute(
        select(func.max(PackingListLine.line_no)).where(PackingListLine.packing_list_id == packing_list_id)
    ).scalar()
    return int(current or 0) + 1


def totals(pl: PackingList) -> Dict[str, Any]:
    lines = [l for l in pl.lines if not l.is_deleted]
    return {
        'cartons': sum(int(l.cartons or 0) for l in lines),
        'qty': sum(int(l.shipped_qty or 0) for l in lines),
        'gw': round3(sum(float(l.gw or 0) for l in lines)),
        'nw': round3(sum(float(l.nw or 0) for l in lines)),
    }


def create_from_shipment(session, shipment: Shipment, packing_list_no: str, line_inputs: Dict[int, Dict[str, Any]],
                         invoice_id: Optional[int] = None) -> PackingList:
    """One packing line per shipment line. line_inputs maps shipment_line_id -> cartons/per-carton weights."""
    po = session.get(PurchaseOrder, shipment.po_header_id)
    pl = PackingList(
        packing_list_no=packing_list_no,
        shipment_id=shipment.id,
        invoice_id=invoice_id,
        buyer_id=shipment.buyer_id or (po.buyer_id if po else None),
    )
    line_no = 0
    for sl in shipment.lines:
        if sl.is_deleted:
            continue
        pol = session.get(PurchaseOrderLine, sl.po_line_id)
        extra = line_inputs.get(sl.id, {})
        line_no += 1
        pl.lines.append(recompute_weights(PackingListLine(
            shipment_id=shipment.id,
            shipment_line_id=sl.id,
            line_no=line_no,
            po_header_id=sl.po_header_id,
            po_no=po.po_no if po else None,
            style_no=pol.style_no if pol else None,
            description=pol.description if pol else None,
            shipped_qty=sl.shipped_qty,
            cartons=extra.get('cartons') or 0,
            gw_per_ctn=extra.get('gw_per_ctn'),
            nw_per_ctn=extra.get('nw_per_ctn'),
        )))
    session.add(pl)
    session.flush()
    return pl


def split_line(
    session,
    pl: PackingList,
    line_id: int,
    split_cartons: int,
    split_qty: int,
    split_gw_per_ctn: Optional[float] = None,
    split_nw_per_ctn: Optional[float] = None,
    description_suffix: str = '',
):
    """Carve split_cartons/split_qty off a line into a new line at the end of the list.

    Both split values must leave something on the original line.
    Returns (original_line, new_line); caller commits.
    """
    if split_cartons <= 0:
        abort(400, description='split_cartons must be > 0')
    if split_qty <= 0:
        abort(400, description='split_qty must be > 0')
    orig = get_line(session, pl, line_id)
    orig_cartons = int(orig.cartons or 0)
    orig_qty = int(orig.shipped_qty or 0)
    if split_cartons >= orig_cartons:
        raise ValidationError('split_cartons must be less than original cartons', extra={'orig_cartons': orig_cartons})
    if split_qty >= orig_qty:
        raise ValidationError('split_qty must be less than original qty', extra={'orig_qty': orig_qty})

    gw_per = split_gw_per_ctn if split_gw_per_ctn is not None else orig.gw_per_ctn
    nw_per = split_nw_per_ctn if split_nw_per_ctn is not None else orig.nw_per_ctn
    suffix = (description_suffix or '').strip()
    description = orig.description
    if description and suffix:
        description = f'{description} {suffix}'

    new = PackingListLine(
        packing_list_id=pl.id,
        shipment_id=orig.shipment_id,
        shipment_line_id=orig.shipment_line_id,
        line_no=next_line_no(session, pl.id),
        po_header_id=orig.po_header_id,
        po_no=orig.po_no,
        style_no=orig.style_no,
        description=description,
        shipped_qty=split_qty,
        cartons=split_cartons,
        gw_per_ctn=gw_per,
        nw_per_ctn=nw_per,
    )
    recompute_weights(new)
    pl.lines.append(new)

    orig.cartons = orig_cartons - split_cartons
    orig.shipped_qty = orig_qty - split_qty
    recompute_weights(orig)
    session.flush()
    logger.info('Packing list %s line %s split into line %s (%s ctns)', pl.id, orig.line_no, new.line_no, split_cartons)
    return orig, new


__all__ = ['recompute_weights', 'get_packing_list', 'get_line', 'next_line_no', 'totals', 'create_from_shipment', 'split_line']
