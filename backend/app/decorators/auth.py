from functools import wraps
from flask import abort, g
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity
from sqlalchemy import select
from app import get_db
from app.models.authz import User
from app.constants.permissions import normalize_role
from app.services.policy import resolve_for_user, missing_permissions


def load_request_user() -> User:
    """Verify the JWT, load its user and resolve effective permissions onto `g`.

    Resolution hits the database on every request so role/override edits apply
    without re-login.
    """
    verify_jwt_in_request()
    ident = get_jwt_identity()
    try:
        user_id = int(ident)
    except (TypeError, ValueError):
        abort(401, description='Invalid token identity')
    user = get_db().execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        abort(401, description='Unknown user')
    if not user.is_active:
        abort(403, description='Inactive user')
    g.current_user = user
    g.permission_resolution = resolve_for_user(user)
    return user


def require_permissions(*codes: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            load_request_user()
            missing = missing_permissions(*codes)
            if missing:
                abort(403, description=f"Missing permission: {', '.join(missing)}")
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_any_permission(*codes: str):
    """Passes when the user holds at least one of codes."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            load_request_user()
            if len(missing_permissions(*codes)) == len(codes):
                abort(403, description=f"Missing permission: one of {', '.join(codes)}")
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_role(*roles: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = load_request_user()
            if normalize_role(user.role) not in roles:
                abort(403, description='Forbidden role')
            return fn(*args, **kwargs)
        return wrapper
    return outer
