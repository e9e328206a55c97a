from __future__ import annotations
from datetime import datetime, date
from typing import List, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Float, JSON, Boolean, Date, ForeignKey, DateTime, Text, func

from .authz import Base


class PurchaseOrder(Base):
    __tablename__ = 'po_headers'
    # Status constants
    STATUS_DRAFT = 'DRAFT'
    STATUS_PARTIALLY_SHIPPED = 'PARTIALLY_SHIPPED'
    STATUS_SHIPPED = 'SHIPPED'
    STATUS_CANCELLED = 'CANCELLED'
    ALL_STATUSES = (STATUS_DRAFT, STATUS_PARTIALLY_SHIPPED, STATUS_SHIPPED, STATUS_CANCELLED)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    po_no: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    buyer_id: Mapped[Optional[int]] = mapped_column(ForeignKey('companies.id'), nullable=True, index=True)
    currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    incoterm: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    payment_term: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    destination: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    order_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    requested_ship_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_DRAFT, index=True)
    cancel_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    cancel_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancel_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    lines: Mapped[List['PurchaseOrderLine']] = relationship(
        'PurchaseOrderLine', back_populates='header', order_by='PurchaseOrderLine.line_no'
    )


class PurchaseOrderLine(Base):
    __tablename__ = 'po_lines'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    po_header_id: Mapped[int] = mapped_column(ForeignKey('po_headers.id', ondelete='CASCADE'), nullable=False, index=True)
    line_no: Mapped[int] = mapped_column(Integer, nullable=False)
    style_no: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    color: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    size: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    delivery_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    qty_cancelled: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    main_image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    image_urls: Mapped[List[str]] = mapped_column(JSON, default=list)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    header: Mapped[PurchaseOrder] = relationship('PurchaseOrder', back_populates='lines')

__all__ = ["PurchaseOrder", "PurchaseOrderLine"]
