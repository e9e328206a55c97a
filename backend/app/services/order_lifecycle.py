"""Purchase order quantities and derived header status.

For every PO line:  ordered == shipped + cancelled + remaining,  remaining >= 0.

`shipped` is never stored on the line; it is the sum of non-deleted shipment lines belonging to
shipments that are not cancelled. `qty_cancelled` is absolute (the request sets it, it does not add).
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, asdict
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from flask import abort
from sqlalchemy import select, func
from app.errors import ConflictError
from app.models.purchase_order import PurchaseOrder, PurchaseOrderLine
from app.models.shipment import Shipment, ShipmentLine

logger = logging.getLogger(__name__)


@dataclass
class LineQuantities:
    po_line_id: int
    ordered: int
    shipped: int
    cancelled: int

    @property
    def max_cancel(self) -> int:
        return max(0, self.ordered - self.shipped)

    @property
    def remaining(self) -> int:
        return max(0, self.ordered - self.shipped - self.cancelled)

    def to_dict(self):
        d = asdict(self)
        d['remaining'] = self.remaining
        return d


def active_lines(po: PurchaseOrder) -> List[PurchaseOrderLine]:
    return [l for l in po.lines if not l.is_deleted]


def shipped_qty_map(session, po_header_id: int) -> Dict[int, int]:
    """po_line_id -> shipped quantity across active shipments of the PO."""
    stmt = (
        select(ShipmentLine.po_line_id, func.coalesce(func.sum(ShipmentLine.shipped_qty), 0))
        .join(Shipment, Shipment.id == ShipmentLine.shipment_id)
        .where(
            ShipmentLine.po_header_id == po_header_id,
            ShipmentLine.is_deleted.is_(False),
            Shipment.is_deleted.is_(False),
            Shipment.status != Shipment.STATUS_CANCELLED,
        )
        .group_by(ShipmentLine.po_line_id)
    )
    return {int(line_id): int(total or 0) for line_id, total in session.execute(stmt).all()}


def line_quantities(session, po: PurchaseOrder) -> List[LineQuantities]:
    shipped = shipped_qty_map(session, po.id)
    return [
        LineQuantities(
            po_line_id=l.id,
            ordered=int(l.qty or 0),
            shipped=shipped.get(l.id, 0),
            cancelled=int(l.qty_cancelled or 0),
        )
        for l in active_lines(po)
    ]


def derive_status(quantities: Sequence[LineQuantities], current: str) -> str:
    if not quantities:
        return current
    all_done = all(q.remaining == 0 for q in quantities)
    total_shipped = sum(q.shipped for q in quantities)
    if all_done and total_shipped > 0:
        return PurchaseOrder.STATUS_SHIPPED
    if all_done:
        return PurchaseOrder.STATUS_CANCELLED
    if total_shipped > 0:
        return PurchaseOrder.STATUS_PARTIALLY_SHIPPED
    return current


def recompute_po_status(session, po: PurchaseOrder, actor_id: Optional[int] = None) -> str:
    """Re-derive the header status from line quantities. Running it twice changes nothing."""
    before = po.status
    session.flush()
    po.status = derive_status(line_quantities(session, po), po.status)
    if po.status == PurchaseOrder.STATUS_CANCELLED and before != PurchaseOrder.STATUS_CANCELLED:
        po.cancel_date = po.cancel_date or date.today()
        po.cancelled_at = po.cancelled_at or datetime.now(timezone.utc)
        po.cancelled_by = po.cancelled_by or actor_id
    if before != po.status:
        logger.info('PO %s status %s -> %s', po.po_no, before, po.status)
    return po.status


def validate_cancellations(session, po: PurchaseOrder, requests: Iterable[Tuple[int, int]]) -> List[Tuple[PurchaseOrderLine, int]]:
    """Check every requested (po_line_id, qty_cancelled) before anything is written.

    Aborts 404 for a line outside the PO and raises 409 on the first over-cancel.
    """
    lines = {l.id: l for l in active_lines(po)}
    shipped = shipped_qty_map(session, po.id)
    accepted: List[Tuple[PurchaseOrderLine, int]] = []
    for line_id, qty in requests:
        line = lines.get(line_id)
        if line is None:
            abort(404, description=f'PO line {line_id} not found on {po.po_no}')
        q = LineQuantities(line.id, int(line.qty or 0), shipped.get(line.id, 0), qty)
        if qty > q.max_cancel:
            raise ConflictError(
                f'Cancel qty exceeds remaining for PO line {line_id}',
                extra={
                    'po_line_id': line_id,
                    'ordered': q.ordered,
                    'shipped': q.shipped,
                    'max_cancel': q.max_cancel,
                    'requested': qty,
                },
            )
        accepted.append((line, qty))
    return accepted


def apply_cancellations(
    session,
    po: PurchaseOrder,
    requests: Iterable[Tuple[int, int]],
    *,
    cancel_reason: Optional[str] = None,
    cancel_note: Optional[str] = None,
    cancel_date: Optional[date] = None,
    actor_id: Optional[int] = None,
) -> Tuple[int, str]:
    """Validate the whole batch, write it, recompute the header. Caller commits."""
    accepted = validate_cancellations(session, po, list(requests))
    for line, qty in accepted:
        line.qty_cancelled = qty
    if cancel_reason and not po.cancel_reason:
        po.cancel_reason = cancel_reason
    if cancel_note and not po.cancel_note:
        po.cancel_note = cancel_note
    if cancel_date and not po.cancel_date:
        po.cancel_date = cancel_date
    status = recompute_po_status(session, po, actor_id)
    return len(accepted), status


def assert_can_ship(session, po: PurchaseOrder, requests: Iterable[Tuple[int, int]]) -> List[Tuple[PurchaseOrderLine, int]]:
    """Shipping more than the line's remaining quantity is a 409."""
    lines = {l.id: l for l in active_lines(po)}
    shipped = shipped_qty_map(session, po.id)
    requested: Dict[int, int] = {}
    out: List[Tuple[PurchaseOrderLine, int]] = []
    for line_id, qty in requests:
        line = lines.get(line_id)
        if line is None:
            abort(404, description=f'PO line {line_id} not found on {po.po_no}')
        requested[line_id] = requested.get(line_id, 0) + qty
        q = LineQuantities(line.id, int(line.qty or 0), shipped.get(line.id, 0), int(line.qty_cancelled or 0))
        if requested[line_id] > q.remaining:
            raise ConflictError(
                f'Shipped qty exceeds remaining for PO line {line_id}',
                extra={
                    'po_line_id': line_id,
                    'ordered': q.ordered,
                    'shipped': q.shipped,
                    'cancelled': q.cancelled,
                    'remaining': q.remaining,
                    'requested': requested[line_id],
                },
            )
        out.append((line, qty))
    return out


__all__ = [
    'LineQuantities', 'active_lines', 'shipped_qty_map', 'line_quantities', 'derive_status',
    'recompute_po_status', 'validate_cancellations', 'apply_cancellations', 'assert_can_ship',
]
