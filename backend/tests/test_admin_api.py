from app.constants.permissions import ROLE_DEFAULT_PERMISSIONS, ALL_PERMISSION_KEYS
from app.models.audit import AuditLog
from app import get_db
from tests.test_utils_seed import ensure_user, auth_headers


def test_replace_role_defaults_changes_resolution(client, app_context):
    admin = ensure_user('adm_roles@example.com', role='admin')
    staff = ensure_user('adm_roles_staff@example.com', role='staff')
    headers = auth_headers(admin)
    try:
        resp = client.put('/admin/roles/permissions', json={'role': 'staff', 'permissions': ['po.view', 'po.edit', 'po.view']}, headers=headers)
        assert resp.status_code == 200, resp.get_json()
        assert resp.get_json()['permissions'] == ['po.edit', 'po.view']

        got = client.get('/admin/roles/permissions?role=staff', headers=headers).get_json()
        assert got['role_defaults_used'] is True
        assert sorted(got['permissions']) == ['po.edit', 'po.view']

        mine = client.get('/me/permissions', headers=auth_headers(staff)).get_json()
        assert mine['permissions'] == ['po.edit', 'po.view']
        assert mine['overrides']['role_defaults_used'] is True
    finally:
        # put the rows back to the static preset so other modules see the same effective set
        client.put('/admin/roles/permissions', json={'role': 'staff', 'permissions': ROLE_DEFAULT_PERMISSIONS['staff']}, headers=headers)


def test_role_permissions_rejects_unknown_role(client, app_context):
    headers = auth_headers(ensure_user('adm_badrole@example.com', role='admin'))
    assert client.get('/admin/roles/permissions?role=superuser', headers=headers).status_code == 400
    resp = client.put('/admin/roles/permissions', json={'role': 'staff', 'permissions': 'po.view'}, headers=headers)
    assert resp.status_code == 400


def test_override_crud(client, app_context):
    admin = ensure_user('adm_overrides@example.com', role='admin')
    target = ensure_user('adm_overrides_target@example.com', role='viewer')
    headers = auth_headers(admin)
    resp = client.post('/admin/users/permission-overrides', json={'user_id': target.id, 'perm_key': 'invoice.edit', 'allowed': True}, headers=headers)
    assert resp.status_code == 200
    # upsert flips the same row
    client.post('/admin/users/permission-overrides', json={'user_id': target.id, 'perm_key': 'invoice.edit', 'allowed': False}, headers=headers)
    listed = client.get(f'/admin/users/permission-overrides?user_id={target.id}', headers=headers).get_json()
    assert listed['overrides'] == [{'perm_key': 'invoice.edit', 'allowed': False}]

    replaced = client.put('/admin/users/permission-overrides', json={
        'user_id': target.id,
        'overrides': [{'perm_key': 'po.create', 'allowed': True}, {'perm_key': 'po.view', 'allowed': False}],
    }, headers=headers).get_json()
    assert [o['perm_key'] for o in replaced['overrides']] == ['po.create', 'po.view']

    mine = client.get('/me/permissions', headers=auth_headers(target)).get_json()
    assert 'po.create' in mine['permissions']
    assert 'po.view' not in mine['permissions']

    deleted = client.delete(f'/admin/users/permission-overrides?user_id={target.id}&perm_key=po.view', headers=headers)
    assert deleted.get_json()['deleted'] == 1
    mine = client.get('/me/permissions', headers=auth_headers(target)).get_json()
    assert 'po.view' in mine['permissions']


def test_override_validation(client, app_context):
    admin = ensure_user('adm_override_bad@example.com', role='admin')
    headers = auth_headers(admin)
    assert client.post('/admin/users/permission-overrides', json={'user_id': admin.id, 'perm_key': 'po.view', 'allowed': 'yes'}, headers=headers).status_code == 400
    assert client.post('/admin/users/permission-overrides', json={'user_id': 424242, 'perm_key': 'po.view', 'allowed': True}, headers=headers).status_code == 404
    assert client.get('/admin/users/permission-overrides', headers=headers).status_code == 400


def test_user_create_update_and_list(client, app_context):
    admin = ensure_user('adm_users@example.com', role='admin')
    headers = auth_headers(admin)
    resp = client.post('/admin/users', json={'email': 'Adm_New@Example.com', 'password': 'pw2', 'role': 'manager'}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    created = resp.get_json()
    assert created['email'] == 'adm_new@example.com'
    assert created['role'] == 'manager'

    dup = client.post('/admin/users', json={'email': 'adm_new@example.com', 'password': 'x'}, headers=headers)
    assert dup.status_code == 409

    upd = client.put(f"/admin/users/{created['id']}", json={'is_active': False, 'role': 'staff'}, headers=headers)
    assert upd.status_code == 200
    assert upd.get_json()['is_active'] is False
    assert client.post('/iam/auth/login', json={'email': 'adm_new@example.com', 'password': 'pw2'}).status_code == 401

    listed = client.get('/admin/users?email=adm_new&is_active=false', headers=headers).get_json()
    assert listed['pagination']['returned'] == 1
    assert listed['data'][0]['role'] == 'staff'


def test_permission_catalog(client, app_context):
    headers = auth_headers(ensure_user('adm_catalog@example.com', role='admin'))
    body = client.get('/admin/permissions/catalog', headers=headers).get_json()
    assert body['permissions'] == ALL_PERMISSION_KEYS
    assert 'admin' in body['roles']
    assert body['role_defaults']['viewer'] == sorted(ROLE_DEFAULT_PERMISSIONS['viewer'])


def test_admin_writes_are_audited(client, app_context):
    admin = ensure_user('adm_audit@example.com', role='admin')
    target = ensure_user('adm_audit_target@example.com', role='viewer')
    client.post('/admin/users/permission-overrides', json={'user_id': target.id, 'perm_key': 'po.edit', 'allowed': True}, headers=auth_headers(admin))
    entry = get_db().query(AuditLog).filter(AuditLog.action == 'USER.PERM.OVERRIDE', AuditLog.actor_user_id == admin.id).one()
    assert entry.entity_id == str(target.id)
    assert entry.meta == {'perm_key': 'po.edit', 'allowed': True}
    assert entry.perms_snapshot['role'] == 'admin'
