from __future__ import annotations
from datetime import datetime, date
from typing import List, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Boolean, Date, ForeignKey, DateTime, func

from .authz import Base


class Shipment(Base):
    __tablename__ = 'shipments'
    STATUS_OPEN = 'OPEN'
    STATUS_CANCELLED = 'CANCELLED'
    ALL_STATUSES = (STATUS_OPEN, STATUS_CANCELLED)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shipment_no: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    po_header_id: Mapped[int] = mapped_column(ForeignKey('po_headers.id'), nullable=False, index=True)
    buyer_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ship_mode: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    carrier: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    tracking_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    etd: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    eta: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_OPEN, index=True)
    split_from_shipment_id: Mapped[Optional[int]] = mapped_column(ForeignKey('shipments.id'), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    lines: Mapped[List['ShipmentLine']] = relationship('ShipmentLine', back_populates='shipment', order_by='ShipmentLine.id')


class ShipmentLine(Base):
    __tablename__ = 'shipment_lines'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shipment_id: Mapped[int] = mapped_column(ForeignKey('shipments.id', ondelete='CASCADE'), nullable=False, index=True)
    po_header_id: Mapped[int] = mapped_column(ForeignKey('po_headers.id'), nullable=False, index=True)
    po_line_id: Mapped[int] = mapped_column(ForeignKey('po_lines.id'), nullable=False, index=True)
    shipped_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    shipment: Mapped[Shipment] = relationship('Shipment', back_populates='lines')

__all__ = ["Shipment", "ShipmentLine"]
