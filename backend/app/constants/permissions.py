"""Central definitions for roles and permission keys.

Permission keys follow `<resource>.<action>`. The vocabulary is closed: new keys are added here,
never renamed silently (stored overrides reference keys by string).
"""
from __future__ import annotations
from typing import Dict, List

ROLE_ADMIN = 'admin'
ROLE_MANAGER = 'manager'
ROLE_STAFF = 'staff'
ROLE_VIEWER = 'viewer'
ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_STAFF, ROLE_VIEWER)
DEFAULT_ROLE = ROLE_VIEWER

CRUD = ['view', 'create', 'edit', 'delete']

RESOURCE_ACTIONS: Dict[str, List[str]] = {
    'users': ['manage'],
    'roles': ['manage'],
    'companies': ['manage'],
    'po': CRUD,
    'proforma': CRUD,
    'shipment': CRUD,
    'invoice': CRUD,
    'packing_list': CRUD,
    'receipts': CRUD,
    'dev.product': CRUD,
    'dev.sample_requests': CRUD,
    'dev.costings': CRUD,
    'dev.bom': CRUD,
    'production_status': ['view', 'export'],
    'work_sheet': CRUD,
}


def build_all_permission_keys() -> List[str]:
    keys: List[str] = []
    for resource, actions in RESOURCE_ACTIONS.items():
        for act in actions:
            keys.append(f"{resource}.{act}")
    return keys

ALL_PERMISSION_KEYS = build_all_permission_keys()

PERMISSION_GROUPS: Dict[str, List[str]] = {
    'Admin': ['users.manage', 'roles.manage', 'companies.manage'],
    'Trade - PO': [f'po.{a}' for a in CRUD],
    'Trade - Proforma': [f'proforma.{a}' for a in CRUD],
    'Trade - Shipments': [f'shipment.{a}' for a in CRUD],
    'Trade - Invoices': [f'invoice.{a}' for a in CRUD],
    'Trade - Packing Lists': [f'packing_list.{a}' for a in CRUD],
    'Trade - Receipts': [f'receipts.{a}' for a in CRUD],
    'Development': [f'{r}.{a}' for r in ('dev.product', 'dev.sample_requests', 'dev.costings', 'dev.bom') for a in CRUD],
    'Production': ['production_status.view', 'production_status.export'] + [f'work_sheet.{a}' for a in CRUD],
}

_TRADE = ('po', 'proforma', 'shipment', 'invoice', 'packing_list', 'receipts')
_DEV = ('dev.product', 'dev.sample_requests', 'dev.costings', 'dev.bom')

# Static fallback used when role_permission_defaults holds no rows for a role.
ROLE_DEFAULT_PERMISSIONS: Dict[str, List[str]] = {
    ROLE_ADMIN: list(ALL_PERMISSION_KEYS),
    # Manager: view/create/edit across trade, development and production; no deletes, no admin keys
    ROLE_MANAGER: (
        [f'{r}.{a}' for r in _TRADE for a in ('view', 'create', 'edit')]
        + [f'{r}.{a}' for r in _DEV for a in ('view', 'create', 'edit')]
        + ['production_status.view', 'production_status.export', 'work_sheet.view', 'work_sheet.create', 'work_sheet.edit']
    ),
    ROLE_STAFF: (
        [f'{r}.view' for r in _TRADE]
        + [f'{r}.view' for r in _DEV]
        + ['production_status.view', 'work_sheet.view']
    ),
    ROLE_VIEWER: ['po.view', 'shipment.view', 'invoice.view', 'packing_list.view'],
}


def normalize_role(raw) -> str:
    """Trim/lower-case stored role text; empty means the default role."""
    role = str(raw or '').strip().lower()
    return role or DEFAULT_ROLE


__all__ = [
    'ROLES', 'DEFAULT_ROLE', 'ROLE_ADMIN', 'ROLE_MANAGER', 'ROLE_STAFF', 'ROLE_VIEWER',
    'RESOURCE_ACTIONS', 'ALL_PERMISSION_KEYS', 'PERMISSION_GROUPS', 'ROLE_DEFAULT_PERMISSIONS',
    'build_all_permission_keys', 'normalize_role',
]
