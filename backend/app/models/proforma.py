from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Float, ForeignKey, DateTime, func

from .authz import Base


class ProformaInvoice(Base):
    """Pre-shipment price quote for a PO; one per po_no, re-saving replaces its lines."""
    __tablename__ = 'proforma_headers'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    invoice_no: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    po_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, unique=True, index=True)
    po_header_id: Mapped[Optional[int]] = mapped_column(ForeignKey('po_headers.id'), nullable=True)
    buyer_id: Mapped[int] = mapped_column(ForeignKey('companies.id'), nullable=False, index=True)
    buyer_name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    currency: Mapped[str] = mapped_column(String(8), nullable=False)
    payment_term: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    ship_mode: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    destination: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    incoterm: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_by_email: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    lines: Mapped[List['ProformaLine']] = relationship(
        'ProformaLine', back_populates='header', order_by='ProformaLine.line_no', cascade='all, delete-orphan'
    )


class ProformaLine(Base):
    __tablename__ = 'proforma_lines'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    proforma_header_id: Mapped[int] = mapped_column(ForeignKey('proforma_headers.id', ondelete='CASCADE'), nullable=False, index=True)
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    style_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    buyer_style_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    size: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    hs_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    uom: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    upc_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    header: Mapped[ProformaInvoice] = relationship('ProformaInvoice', back_populates='lines')

__all__ = ["ProformaInvoice", "ProformaLine"]
