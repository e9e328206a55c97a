from __future__ import annotations
import logging
from typing import Any, Dict, Optional
from flask import g
from app import get_db
from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. PO.CANCEL_LINES, INVOICE.REVISION, ROLE.PERM.REPLACE
      entity: optional entity name (PurchaseOrder, Invoice, User, etc.)
      entity_id: optional primary key / business key
      meta: additional JSON-safe dictionary (will be shallow copied)

    The actor and permission snapshot come from the request context populated by
    require_permissions / require_role; outside a guarded request they are empty.
    """
    session = get_db()
    user = g.get('current_user')
    resolution = g.get('permission_resolution')
    log = AuditLog(
        actor_user_id=user.id if user is not None else 0,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        perms_snapshot={
            'role': resolution.role if resolution else None,
            'perms': resolution.sorted_permissions() if resolution else [],
        },
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log
