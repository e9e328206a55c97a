#!/usr/bin/env python
"""Idempotent seed script for role permission defaults & the first admin user.

Usage:
    python backend/scripts/seed_authz.py               # seed normally
    python backend/scripts/seed_authz.py --show-roles  # print role -> permission counts (after ensuring seed)
    python backend/scripts/seed_authz.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed_authz.py --export-json roles.json
    python backend/scripts/seed_authz.py --validate    # exit 2 when stored keys fall outside the vocabulary
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json, hashlib, difflib
from sqlalchemy import select

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from app import create_app, get_db  # type: ignore
from app.models.authz import Base, RolePermissionDefault, User, UserPermissionOverride
from app.models import audit, company, product, purchase_order, shipment, invoice, packing_list, proforma, work_sheet  # noqa: F401
from app.constants.permissions import ALL_PERMISSION_KEYS, ROLE_DEFAULT_PERMISSIONS, ROLES, ROLE_ADMIN
from app.services.schema import refresh_capabilities


def ensure_role_defaults(session):
    """Insert missing allowed rows for each static role preset; never removes rows."""
    existing = {(r.role, r.perm_key) for r in session.execute(select(RolePermissionDefault)).scalars()}
    created = 0
    for role, keys in ROLE_DEFAULT_PERMISSIONS.items():
        for key in keys:
            if (role, key) not in existing:
                session.add(RolePermissionDefault(role=role, perm_key=key, allowed=True))
                created += 1
    return created


def ensure_initial_admin(session):
    admin_email = os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com')
    existing_admin = session.execute(select(User).where(User.email == admin_email)).scalar_one_or_none()
    if existing_admin:
        return False
    user = User(name='Admin', email=admin_email, role=ROLE_ADMIN, is_active=True)
    user.set_password(os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
    session.add(user)
    print(f"[INFO] Created initial admin user {admin_email} with temporary password.")
    return True


def build_role_permission_map(session):
    mapping = {role: [] for role in ROLES}
    for row in session.execute(select(RolePermissionDefault).where(RolePermissionDefault.allowed.is_(True))).scalars():
        mapping.setdefault(row.role, []).append(row.perm_key)
    return {role: sorted(keys) for role, keys in mapping.items()}


def validate(session):
    """Problems with stored keys/roles. Unknown keys are accepted at write time, so this is the only check."""
    problems = []
    known = set(ALL_PERMISSION_KEYS)

    def check(where, key):
        if key in known:
            return
        suggestion = difflib.get_close_matches(key, known, n=1)
        hint = f" (did you mean {suggestion[0]})" if suggestion else ''
        problems.append(f"{where} references unknown permission key: {key}{hint}")

    for row in session.execute(select(RolePermissionDefault)).scalars():
        if row.role not in ROLES:
            problems.append(f"Unknown role '{row.role}' in role_permission_defaults")
        check(f"Role '{row.role}'", row.perm_key)
    for row in session.execute(select(UserPermissionOverride)).scalars():
        check(f"User {row.user_id} override", row.perm_key)
    return problems


def roles_checksum(role_perm_map):
    canonical = json.dumps(role_perm_map, sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


def print_role_summary(role_perm_map):
    name_w = max(len(r) for r in role_perm_map) if role_perm_map else 4
    print(f"{'Role'.ljust(name_w)} | Count | Sample (up to 8)")
    print('-' * (name_w + 40))
    for name, keys in sorted(role_perm_map.items()):
        print(f"{name.ljust(name_w)} | {str(len(keys)).rjust(5)} | {', '.join(keys[:8])}")


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Seed role permission defaults & initial admin",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_authz.py\n  dry run: seed_authz.py --dry-run\n  show roles: seed_authz.py --show-roles\n""")
    )
    p.add_argument('--show-roles', action='store_true', help='Print role permission counts after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--export-json', nargs='?', const='-', metavar='FILE', help='Export role->permissions JSON (to FILE or stdout if omitted)')
    p.add_argument('--validate', action='store_true', help='Validate stored role/override keys; exits 2 on problems')
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    app = create_app()
    with app.app_context():
        session = get_db()
        # Bootstrap schema when migrations have not been run yet; prefer `alembic upgrade head`
        Base.metadata.create_all(session.get_bind())
        refresh_capabilities()
        try:
            created = ensure_role_defaults(session)
            ensure_initial_admin(session)
            session.flush()
            role_perm_map = build_role_permission_map(session)
            if args.validate:
                problems = validate(session)
                if problems:
                    print('\n[VALIDATION] FAIL:')
                    for p in problems:
                        print(' -', p)
                    session.rollback()
                    sys.exit(2)
                print('[VALIDATION] OK: All role and override keys are known.')
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Role default rows would create: {created}")
            else:
                session.commit()
                print(f"[DONE] Role default rows created: {created}")
            if args.show_roles:
                print('\nRole Permission Summary:')
                print_role_summary(role_perm_map)
            if args.export_json is not None:
                payload = {
                    'roles': role_perm_map,
                    'meta': {
                        'permissions_total': sum(len(v) for v in role_perm_map.values()),
                        'distinct_permissions': len({p for plist in role_perm_map.values() for p in plist}),
                        'roles_checksum_sha256': roles_checksum(role_perm_map),
                        'dry_run': args.dry_run,
                    }
                }
                if args.export_json == '-':
                    print(json.dumps(payload, indent=2, sort_keys=True))
                else:
                    with open(args.export_json, 'w', encoding='utf-8') as f:
                        json.dump(payload, f, indent=2, sort_keys=True)
                    print(f"[INFO] Exported JSON to {args.export_json}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

if __name__ == '__main__':
    main()
