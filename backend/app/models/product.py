from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, JSON, Boolean, DateTime, func

from .authz import Base


class DevProduct(Base):
    """Development product keyed by style number; source of truth for style images."""
    __tablename__ = 'dev_products'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    style_no: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(150), nullable=True)
    buyer_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    image_urls: Mapped[List[str]] = mapped_column(JSON, default=list)
    main_image_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

__all__ = ["DevProduct"]
