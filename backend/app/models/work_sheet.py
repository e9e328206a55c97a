from __future__ import annotations
from datetime import datetime, date
from typing import List, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Float, Boolean, Date, ForeignKey, DateTime, Text, func

from .authz import Base


class WorkSheet(Base):
    """Factory work order for one PO line."""
    __tablename__ = 'work_sheet_headers'
    STATUS_DRAFT = 'DRAFT'
    STATUS_SENT = 'SENT'
    STATUS_CLOSED = 'CLOSED'
    ALL_STATUSES = (STATUS_DRAFT, STATUS_SENT, STATUS_CLOSED)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ws_no: Mapped[str] = mapped_column(String(32), unique=True, nullable=False, index=True)
    po_header_id: Mapped[int] = mapped_column(ForeignKey('po_headers.id'), nullable=False, index=True)
    po_line_id: Mapped[int] = mapped_column(ForeignKey('po_lines.id'), nullable=False, index=True)
    po_no: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    buyer_id: Mapped[Optional[int]] = mapped_column(ForeignKey('companies.id'), nullable=True)
    buyer_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    buyer_code: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    requested_ship_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_DRAFT, index=True)
    special_instructions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    internal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    lines: Mapped[List['WorkSheetLine']] = relationship(
        'WorkSheetLine', back_populates='header', order_by='WorkSheetLine.id'
    )


class WorkSheetLine(Base):
    __tablename__ = 'work_sheet_lines'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    work_sheet_id: Mapped[int] = mapped_column(ForeignKey('work_sheet_headers.id', ondelete='CASCADE'), nullable=False, index=True)
    po_line_id: Mapped[int] = mapped_column(ForeignKey('po_lines.id'), nullable=False)
    style_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    # user-entered, kept when the sheet is re-created from the PO
    plating_spec: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    spec_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    work_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    qc_points: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    packing_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    vendor_id: Mapped[Optional[int]] = mapped_column(ForeignKey('companies.id'), nullable=True)
    vendor_currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    vendor_unit_cost_local: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    header: Mapped[WorkSheet] = relationship('WorkSheet', back_populates='lines')


class VendorPriceDefault(Base):
    """Current unit cost per vendor; every change is also appended to vendor_price_history."""
    __tablename__ = 'vendor_price_defaults'
    vendor_id: Mapped[int] = mapped_column(ForeignKey('companies.id'), primary_key=True)
    currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    unit_cost_local: Mapped[float] = mapped_column(Float, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class VendorPriceHistory(Base):
    __tablename__ = 'vendor_price_history'
    SOURCE_MANUAL = 'MANUAL'
    SOURCE_WORK_SHEET = 'WORK_SHEET'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    vendor_id: Mapped[int] = mapped_column(ForeignKey('companies.id'), nullable=False, index=True)
    currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    unit_cost_local: Mapped[float] = mapped_column(Float, nullable=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False, default=SOURCE_MANUAL)
    work_sheet_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    work_sheet_line_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    effective_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now())

__all__ = ["WorkSheet", "WorkSheetLine", "VendorPriceDefault", "VendorPriceHistory"]
