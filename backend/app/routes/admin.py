from flask import Blueprint, request, abort
from sqlalchemy import select, delete
from app import get_db
from app.models.authz import User, RolePermissionDefault, UserPermissionOverride
from app.constants.permissions import (
    ROLES, ALL_PERMISSION_KEYS, PERMISSION_GROUPS, ROLE_DEFAULT_PERMISSIONS, normalize_role,
)
from app.decorators.auth import require_role
from app.decorators.audit import audit_log
from app.errors import ConflictError
from app.services.policy import load_role_defaults, load_user_overrides
from app.utils.listing import paged_list_response
from app.utils.sorting import apply_multi_sort
from app.utils.filters import apply_filters, contains, eq, parse_bool

admin_bp = Blueprint('admin', __name__)


def _role_arg(raw) -> str:
    role = normalize_role(raw)
    if role not in ROLES:
        abort(400, description=f'role must be one of {", ".join(ROLES)}')
    return role


def _user_id_arg(raw) -> int:
    if raw is None or raw == '':
        abort(400, description='user_id required')
    try:
        user_id = int(raw)
    except (TypeError, ValueError):
        abort(400, description='user_id must be int')
    if not get_db().get(User, user_id):
        abort(404, description='User not found')
    return user_id


def _perm_keys(raw) -> list:
    if not isinstance(raw, list):
        abort(400, description='permissions must be a list')
    keys = []
    for k in raw:
        k = str(k or '').strip()
        if k and k not in keys:
            keys.append(k)
    return keys


def _user_json(u: User):
    return {
        'id': u.id,
        'email': u.email,
        'name': u.name,
        'role': normalize_role(u.role),
        'is_active': u.is_active,
    }


# --- role defaults ---

@admin_bp.get('/roles/permissions')
@require_role('admin')
def get_role_permissions():
    role = _role_arg(request.args.get('role'))
    rows = load_role_defaults(role)
    return {
        'success': True,
        'role': role,
        'role_defaults_used': bool(rows),
        'permissions': [r['perm_key'] for r in rows if r['allowed']],
        'rows': rows,
    }


@admin_bp.put('/roles/permissions')
@require_role('admin')
@audit_log(
    'ROLE.PERM.REPLACE',
    entity='Role',
    entity_id_key='role',
    meta_builder=lambda data, rv, a, kw: {'count': len(data.get('permissions', []))},
)
def replace_role_permissions():
    data = request.json or {}
    role = _role_arg(data.get('role'))
    keys = _perm_keys(data.get('permissions'))
    session = get_db()
    session.execute(delete(RolePermissionDefault).where(RolePermissionDefault.role == role))
    for k in keys:
        session.add(RolePermissionDefault(role=role, perm_key=k, allowed=True))
    session.commit()
    return {'success': True, 'role': role, 'permissions': sorted(keys)}


# --- per-user overrides ---

@admin_bp.get('/users/permission-overrides')
@require_role('admin')
def list_overrides():
    user_id = _user_id_arg(request.args.get('user_id'))
    return {'success': True, 'user_id': user_id, 'overrides': load_user_overrides(user_id)}


@admin_bp.post('/users/permission-overrides')
@require_role('admin')
@audit_log('USER.PERM.OVERRIDE', entity='User', entity_id_key='user_id', meta_keys=['perm_key', 'allowed'])
def upsert_override():
    data = request.json or {}
    user_id = _user_id_arg(data.get('user_id'))
    perm_key = str(data.get('perm_key') or '').strip()
    if not perm_key:
        abort(400, description='perm_key required')
    if not isinstance(data.get('allowed'), bool):
        abort(400, description='allowed must be boolean')
    session = get_db()
    row = session.execute(
        select(UserPermissionOverride).where(
            UserPermissionOverride.user_id == user_id, UserPermissionOverride.perm_key == perm_key
        )
    ).scalar_one_or_none()
    if row:
        row.allowed = data['allowed']
    else:
        session.add(UserPermissionOverride(user_id=user_id, perm_key=perm_key, allowed=data['allowed']))
    session.commit()
    return {'success': True, 'user_id': user_id, 'perm_key': perm_key, 'allowed': data['allowed']}


@admin_bp.put('/users/permission-overrides')
@require_role('admin')
@audit_log(
    'USER.PERM.OVERRIDES.REPLACE',
    entity='User',
    entity_id_key='user_id',
    meta_builder=lambda data, rv, a, kw: {'count': len(data.get('overrides', []))},
)
def replace_overrides():
    data = request.json or {}
    user_id = _user_id_arg(data.get('user_id'))
    raw = data.get('overrides')
    if not isinstance(raw, list):
        abort(400, description='overrides must be a list')
    wanted = {}
    for o in raw:
        if not isinstance(o, dict):
            abort(400, description='overrides must be objects')
        key = str(o.get('perm_key') or '').strip()
        if not key:
            abort(400, description='perm_key required')
        if not isinstance(o.get('allowed'), bool):
            abort(400, description='allowed must be boolean')
        wanted[key] = o['allowed']
    session = get_db()
    session.execute(delete(UserPermissionOverride).where(UserPermissionOverride.user_id == user_id))
    for key, allowed in wanted.items():
        session.add(UserPermissionOverride(user_id=user_id, perm_key=key, allowed=allowed))
    session.commit()
    return {'success': True, 'user_id': user_id, 'overrides': load_user_overrides(user_id)}


@admin_bp.delete('/users/permission-overrides')
@require_role('admin')
@audit_log('USER.PERM.OVERRIDE.DELETE', entity='User', entity_id_key='user_id', meta_keys=['perm_key', 'deleted'])
def delete_override():
    user_id = _user_id_arg(request.args.get('user_id'))
    perm_key = (request.args.get('perm_key') or '').strip()
    if not perm_key:
        abort(400, description='perm_key required')
    session = get_db()
    res = session.execute(
        delete(UserPermissionOverride).where(
            UserPermissionOverride.user_id == user_id, UserPermissionOverride.perm_key == perm_key
        )
    )
    session.commit()
    return {'success': True, 'user_id': user_id, 'perm_key': perm_key, 'deleted': res.rowcount}


# --- users ---

@admin_bp.get('/users')
@require_role('admin')
def list_users():
    session = get_db()
    q = session.query(User)
    filter_specs = {
        'role': {'op': eq(User.role), 'coerce': normalize_role, 'choices': ROLES},
        'email': {'op': contains(User.email)},
        'is_active': {'op': eq(User.is_active), 'coerce': parse_bool},
    }
    q = apply_filters(q, filter_specs, request.args)
    allowed = {'email': User.email, 'name': User.name, 'role': User.role, 'updated_at': User.updated_at, 'id': User.id}
    q = apply_multi_sort(q, request.args.get('sort'), allowed, User.id)
    return paged_list_response(q, _user_json)


@admin_bp.post('/users')
@require_role('admin')
@audit_log('USER.CREATE', entity='User', entity_id_key='id', meta_keys=['email', 'role'])
def create_user():
    data = request.json or {}
    email = str(data.get('email') or '').strip().lower()
    password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    role = _role_arg(data.get('role'))
    session = get_db()
    if session.execute(select(User).where(User.email == email)).scalar_one_or_none():
        raise ConflictError('Email already registered', extra={'email': email})
    user = User(email=email, name=str(data.get('name') or '').strip() or email.split('@')[0], role=role, is_active=True)
    user.set_password(password)
    session.add(user)
    session.commit()
    return {'success': True, **_user_json(user)}, 201


@admin_bp.put('/users/<int:user_id>')
@require_role('admin')
@audit_log('USER.UPDATE', entity='User', entity_id_key='id', meta_keys=['role', 'is_active'])
def update_user(user_id: int):
    data = request.json or {}
    session = get_db()
    user = session.get(User, user_id)
    if not user:
        abort(404, description='User not found')
    if 'role' in data:
        user.role = _role_arg(data.get('role'))
    if 'is_active' in data:
        if not isinstance(data['is_active'], bool):
            abort(400, description='is_active must be boolean')
        user.is_active = data['is_active']
    if 'name' in data:
        name = str(data.get('name') or '').strip()
        if not name:
            abort(400, description='name must not be empty')
        user.name = name
    session.commit()
    return {'success': True, **_user_json(user)}


@admin_bp.get('/permissions/catalog')
@require_role('admin')
def permission_catalog():
    return {
        'success': True,
        'roles': list(ROLES),
        'permissions': ALL_PERMISSION_KEYS,
        'groups': PERMISSION_GROUPS,
        'role_defaults': {r: sorted(keys) for r, keys in ROLE_DEFAULT_PERMISSIONS.items()},
    }
