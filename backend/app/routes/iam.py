from flask import Blueprint, request, abort
from flask_jwt_extended import create_access_token
from sqlalchemy import select
from app import get_db
from app.models.authz import User
from app.constants.permissions import normalize_role
from app.decorators.auth import require_permissions, require_role
from app.services.policy import resolve_for_user, current_user, PermissionResolution

iam_bp = Blueprint('iam', __name__)


def _user_json(user: User):
    return {'id': user.id, 'email': user.email, 'name': user.name, 'role': normalize_role(user.role), 'is_active': user.is_active}


def permissions_payload(user: User, res: PermissionResolution):
    return {
        'success': True,
        'role': res.role,
        'permissions': res.sorted_permissions(),
        'user': _user_json(user),
        'overrides': res.detail(),
    }


@iam_bp.post('/iam/auth/login')
def login():
    data = request.json or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not user.is_active or not user.verify_password(password):
        abort(401, description='invalid credentials')
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims={'role': normalize_role(user.role)})
    return {'success': True, 'access_token': token}


@iam_bp.get('/iam/auth/me')
@require_permissions()
def me():
    user = current_user()
    return {'success': True, **_user_json(user)}


@iam_bp.get('/me/permissions')
@require_permissions()
def my_permissions():
    from flask import g
    return permissions_payload(current_user(), g.permission_resolution)


@iam_bp.get('/permissions')
@require_role('admin')
def user_permissions():
    raw = request.args.get('user_id')
    if not raw:
        abort(400, description='user_id required')
    try:
        user_id = int(raw)
    except ValueError:
        abort(400, description='user_id must be int')
    user = get_db().execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        abort(404, description='User not found')
    return permissions_payload(user, resolve_for_user(user))
