from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Float, Boolean, ForeignKey, DateTime, func

from .authz import Base


class PackingList(Base):
    __tablename__ = 'packing_lists'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    packing_list_no: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    shipment_id: Mapped[int] = mapped_column(ForeignKey('shipments.id'), nullable=False, index=True)
    invoice_id: Mapped[Optional[int]] = mapped_column(ForeignKey('invoice_headers.id'), nullable=True)
    buyer_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    lines: Mapped[List['PackingListLine']] = relationship('PackingListLine', back_populates='packing_list', order_by='PackingListLine.line_no')


class PackingListLine(Base):
    """One carton group. gw/nw are maintained as per_ctn x cartons (3 decimals) by the writers."""
    __tablename__ = 'packing_list_lines'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    packing_list_id: Mapped[int] = mapped_column(ForeignKey('packing_lists.id', ondelete='CASCADE'), nullable=False, index=True)
    shipment_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    shipment_line_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    po_header_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    po_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    style_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    shipped_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cartons: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    gw_per_ctn: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    nw_per_ctn: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    gw: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    nw: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    packing_list: Mapped[PackingList] = relationship('PackingList', back_populates='lines')

__all__ = ["PackingList", "PackingListLine"]
