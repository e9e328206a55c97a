"""Effective permission resolution.

Sources are applied in a fixed order, each one able to undo the previous:

  1. role defaults   role_permission_defaults rows for the role; when the table holds no rows
                     for it, the static ROLE_DEFAULT_PERMISSIONS entry (or viewer's)
  2. user overrides  user_permission_overrides: allowed=true adds, allowed=false removes
  3. legacy tables   user_permission_grants are added, then user_permission_revokes removed

Legacy revokes therefore beat a personal override grant. That precedence is kept as observed.

A missing source table yields an empty source (logged), never an error, so a partially
migrated schema still produces a best-effort set.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set
from flask import g
from sqlalchemy import select
from sqlalchemy.exc import OperationalError, ProgrammingError
from app import get_db
from app.models.authz import (
    User, RolePermissionDefault, UserPermissionOverride, UserPermissionGrant, UserPermissionRevoke,
)
from app.constants.permissions import ROLE_DEFAULT_PERMISSIONS, DEFAULT_ROLE, normalize_role
from app.services import schema

logger = logging.getLogger(__name__)


@dataclass
class PermissionResolution:
    role: str
    permissions: Set[str]
    role_defaults_used: bool = False
    base: List[str] = field(default_factory=list)
    role_defaults: List[Dict[str, Any]] = field(default_factory=list)
    user_overrides: List[Dict[str, Any]] = field(default_factory=list)
    grants: List[str] = field(default_factory=list)
    revokes: List[str] = field(default_factory=list)

    def detail(self) -> Dict[str, Any]:
        """Breakdown for audit/UI display."""
        return {
            'role_defaults_used': self.role_defaults_used,
            'base': self.base,
            'role_defaults': self.role_defaults,
            'user_overrides': self.user_overrides,
            'grants': self.grants,
            'revokes': self.revokes,
        }

    def sorted_permissions(self) -> List[str]:
        return sorted(self.permissions)


def _uniq(items: Iterable[str]) -> List[str]:
    seen: Set[str] = set()
    out: List[str] = []
    for it in items:
        if it not in seen:
            seen.add(it)
            out.append(it)
    return out


def _load(table_name: str, stmt) -> list:
    if not schema.has_table(table_name):
        logger.warning('Permission source %s is missing; treated as empty', table_name)
        return []
    session = get_db()
    try:
        return list(session.execute(stmt).scalars())
    except (OperationalError, ProgrammingError) as exc:
        logger.warning('Permission source %s unreadable (%s); treated as empty', table_name, exc.orig)
        session.rollback()
        return []


def load_role_defaults(role: str) -> List[Dict[str, Any]]:
    rows = _load(
        RolePermissionDefault.__tablename__,
        select(RolePermissionDefault).where(RolePermissionDefault.role == role).order_by(RolePermissionDefault.perm_key),
    )
    return [{'perm_key': r.perm_key, 'allowed': bool(r.allowed)} for r in rows if r.perm_key]


def load_user_overrides(user_id: int) -> List[Dict[str, Any]]:
    rows = _load(
        UserPermissionOverride.__tablename__,
        select(UserPermissionOverride).where(UserPermissionOverride.user_id == user_id).order_by(UserPermissionOverride.perm_key),
    )
    return [{'perm_key': r.perm_key, 'allowed': bool(r.allowed)} for r in rows if r.perm_key]


def load_legacy_keys(model, user_id: int) -> List[str]:
    rows = _load(model.__tablename__, select(model).where(model.user_id == user_id))
    return [str(r.perm_key).strip() for r in rows if r.perm_key and str(r.perm_key).strip()]


def static_role_defaults(role: str) -> List[str]:
    return list(ROLE_DEFAULT_PERMISSIONS.get(role) or ROLE_DEFAULT_PERMISSIONS.get(DEFAULT_ROLE) or [])


def resolve_permissions(user_id: int, role: Optional[str]) -> PermissionResolution:
    role = normalize_role(role)
    effective: Set[str] = set()

    role_rows = load_role_defaults(role)
    if role_rows:
        for r in role_rows:
            if r['allowed']:
                effective.add(r['perm_key'])
            else:
                effective.discard(r['perm_key'])
    else:
        effective.update(static_role_defaults(role))
    base = sorted(effective)

    overrides = load_user_overrides(user_id)
    override_grants: List[str] = []
    override_revokes: List[str] = []
    for o in overrides:
        if o['allowed']:
            effective.add(o['perm_key'])
            override_grants.append(o['perm_key'])
        else:
            effective.discard(o['perm_key'])
            override_revokes.append(o['perm_key'])

    legacy_grants = load_legacy_keys(UserPermissionGrant, user_id)
    legacy_revokes = load_legacy_keys(UserPermissionRevoke, user_id)
    effective.update(legacy_grants)
    effective.difference_update(legacy_revokes)

    return PermissionResolution(
        role=role,
        permissions=effective,
        role_defaults_used=bool(role_rows),
        base=base,
        role_defaults=role_rows,
        user_overrides=overrides,
        grants=_uniq(override_grants + legacy_grants),
        revokes=_uniq(override_revokes + legacy_revokes),
    )


def resolve_for_user(user: User) -> PermissionResolution:
    return resolve_permissions(user.id, user.role)


# --- request-scoped helpers (populated by require_permissions) ---

def current_user() -> Optional[User]:
    return g.get('current_user')


def current_permissions() -> Set[str]:
    res: Optional[PermissionResolution] = g.get('permission_resolution')
    return set(res.permissions) if res else set()


def missing_permissions(*keys: str) -> List[str]:
    perms = current_permissions()
    return [k for k in keys if k not in perms]


__all__ = [
    'PermissionResolution', 'resolve_permissions', 'resolve_for_user', 'load_role_defaults',
    'load_user_overrides', 'load_legacy_keys', 'static_role_defaults', 'current_user',
    'current_permissions', 'missing_permissions',
]
