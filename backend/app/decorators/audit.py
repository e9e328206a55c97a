from __future__ import annotations
"""Audit logging decorator for state-changing route handlers.

Usage examples:

@audit_log('PO.CANCEL_LINES', entity='PurchaseOrder', entity_id_arg='po_no', meta_keys=['status', 'updated_lines'])
def cancel_lines(po_no): ...

@audit_log('ROLE.PERM.REPLACE', entity='Role', entity_id_key='role',
           meta_builder=lambda data, rv, args, kwargs: {'count': len(data.get('permissions', []))})
def replace_role_permissions(): ...

Parameters:
  action: required audit action code
  entity: optional entity label (PurchaseOrder, Invoice, PackingList, User)
  entity_id_key: key in the returned JSON object whose value becomes entity_id.
  entity_id_arg: name of the path parameter to use for entity_id (fallback if entity_id_key absent).
  meta_keys: list of keys to project from returned JSON into meta dict (shallow copy).
  meta_builder: callable returning a meta dict; receives (data, original_return_value, args, kwargs).
                If provided it overrides meta_keys.

Only successful (2xx) returns are audited. The audit row is committed in its own step after the
handler has committed; a failure there is logged and never changes the response.
"""

import logging
from functools import wraps
from typing import Any, Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from app.services.audit import add_audit
from app import get_db

logger = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    """Return (data, status) where data is the JSON-able dict for inspection."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, 200


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    meta_builder: Optional[Callable[[dict, Any, tuple, dict], dict]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 300:
                return rv
            if not isinstance(data, dict):
                data = {}
            entity_id = None
            if entity_id_key and entity_id_key in data:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            meta = None
            if meta_builder:
                meta = meta_builder(data, rv, args, kwargs)
            elif meta_keys:
                meta = {k: data.get(k) for k in meta_keys if k in data}
            session = get_db()
            try:
                add_audit(action, entity, entity_id, meta)
                session.commit()
            except SQLAlchemyError:
                logger.warning('Audit write failed for %s', action, exc_info=True)
                session.rollback()
            return rv
        return wrapper
    return outer
