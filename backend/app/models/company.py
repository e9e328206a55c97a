from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Boolean, DateTime, func

from .authz import Base


class Company(Base):
    __tablename__ = 'companies'
    TYPE_BUYER = 'BUYER'
    TYPE_VENDOR = 'VENDOR'
    TYPE_FACTORY = 'FACTORY'
    ALL_TYPES = (TYPE_BUYER, TYPE_VENDOR, TYPE_FACTORY)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Short buyer code used in document numbers (JMI-{code}-...)
    code: Mapped[str] = mapped_column(String(16), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    company_type: Mapped[str] = mapped_column(String(16), nullable=False, default=TYPE_BUYER)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

__all__ = ["Company"]
