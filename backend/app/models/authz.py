from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import declarative_base, Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, ForeignKey, UniqueConstraint, DateTime, func, text

Base = declarative_base()


def _updated_at():
    return mapped_column(DateTime(timezone=True), server_default=text('CURRENT_TIMESTAMP'), onupdate=func.now())


# --- Users ---
class User(Base):
    __tablename__ = 'users'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(128), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), nullable=False, default='viewer')
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[Optional[datetime]] = _updated_at()

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        return check_password_hash(self.password_hash, raw)


# --- Permission sources (resolved role -> override -> legacy grant/revoke) ---
class RolePermissionDefault(Base):
    __tablename__ = 'role_permission_defaults'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    perm_key: Mapped[str] = mapped_column(String(64), nullable=False)
    allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[Optional[datetime]] = _updated_at()

    __table_args__ = (UniqueConstraint('role', 'perm_key', name='uq_role_perm_key'),)


class UserPermissionOverride(Base):
    __tablename__ = 'user_permission_overrides'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    perm_key: Mapped[str] = mapped_column(String(64), nullable=False)
    allowed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    updated_at: Mapped[Optional[datetime]] = _updated_at()

    __table_args__ = (UniqueConstraint('user_id', 'perm_key', name='uq_user_perm_override'),)


class UserPermissionGrant(Base):
    """Legacy per-user grant; applied after overrides."""
    __tablename__ = 'user_permission_grants'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    perm_key: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (UniqueConstraint('user_id', 'perm_key', name='uq_user_perm_grant'),)


class UserPermissionRevoke(Base):
    """Legacy per-user revoke; applied last, so it beats an override grant."""
    __tablename__ = 'user_permission_revokes'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    perm_key: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (UniqueConstraint('user_id', 'perm_key', name='uq_user_perm_revoke'),)
