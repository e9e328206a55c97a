from __future__ import annotations
from datetime import datetime, date
from typing import List, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Float, Boolean, Date, ForeignKey, DateTime, Text, func

from .authz import Base


class Invoice(Base):
    """Commercial invoice header.

    A root invoice carries revision_no 0 and no revision_of_invoice_id; every revision points at the
    root. Within one chain exactly one non-deleted row has is_latest set.
    """
    __tablename__ = 'invoice_headers'
    STATUS_DRAFT = 'DRAFT'
    STATUS_CONFIRMED = 'CONFIRMED'
    ALL_STATUSES = (STATUS_DRAFT, STATUS_CONFIRMED)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_no: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    buyer_id: Mapped[Optional[int]] = mapped_column(ForeignKey('companies.id'), nullable=True, index=True)
    buyer_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    shipment_id: Mapped[Optional[int]] = mapped_column(ForeignKey('shipments.id'), nullable=True, index=True)
    currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    incoterm: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    payment_term: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    destination: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    shipping_origin_code: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    etd: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    eta: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    consignee_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notify_party_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    remarks: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # legacy name of remarks, read as a fallback only
    memo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    total_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_DRAFT, index=True)
    revision_of_invoice_id: Mapped[Optional[int]] = mapped_column(ForeignKey('invoice_headers.id'), nullable=True, index=True)
    revision_no: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_latest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    confirmed_by_email: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    lines: Mapped[List['InvoiceLine']] = relationship('InvoiceLine', back_populates='invoice', order_by='InvoiceLine.line_no')

    @property
    def root_id(self) -> int:
        return self.revision_of_invoice_id or self.id

    @property
    def is_locked(self) -> bool:
        return (self.status or '').upper() == self.STATUS_CONFIRMED


class InvoiceLine(Base):
    __tablename__ = 'invoice_lines'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_id: Mapped[int] = mapped_column(ForeignKey('invoice_headers.id', ondelete='CASCADE'), nullable=False, index=True)
    shipment_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    po_header_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    po_line_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    po_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    style_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    material_content: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    hs_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    invoice: Mapped[Invoice] = relationship('Invoice', back_populates='lines')

__all__ = ["Invoice", "InvoiceLine"]
