import pytest
from app.constants.permissions import ROLE_DEFAULT_PERMISSIONS, ALL_PERMISSION_KEYS, normalize_role
from app.services import schema
from app.services.policy import resolve_permissions, resolve_for_user
from tests.test_utils_seed import ensure_user, add_override, add_legacy, auth_headers


@pytest.mark.parametrize('role', ['manager', 'viewer', 'admin'])
def test_static_defaults_when_no_role_rows(app_context, role):
    u = ensure_user(f'res_static_{role}@example.com', role=role)
    res = resolve_for_user(u)
    assert res.permissions == set(ROLE_DEFAULT_PERMISSIONS[role])
    assert res.role_defaults_used is False


def test_unknown_role_falls_back_to_viewer(app_context):
    u = ensure_user('res_unknown_role@example.com', role='Ghost ')
    res = resolve_for_user(u)
    assert res.role == 'ghost'
    assert res.permissions == set(ROLE_DEFAULT_PERMISSIONS['viewer'])


def test_empty_role_normalizes_to_default():
    assert normalize_role(None) == 'viewer'
    assert normalize_role('  ADMIN ') == 'admin'


def test_override_grant_and_revoke(app_context):
    u = ensure_user('res_override@example.com', role='viewer')
    add_override(u, 'invoice.create', True)
    add_override(u, 'po.view', False)
    res = resolve_for_user(u)
    assert 'invoice.create' in res.permissions
    assert 'po.view' not in res.permissions
    assert res.grants == ['invoice.create']
    assert res.revokes == ['po.view']
    assert res.base == sorted(ROLE_DEFAULT_PERMISSIONS['viewer'])


def test_legacy_revoke_beats_override_grant(app_context):
    u = ensure_user('res_legacy_revoke@example.com', role='viewer')
    add_override(u, 'shipment.create', True)
    add_legacy(u, revokes=['shipment.create'])
    res = resolve_for_user(u)
    assert 'shipment.create' not in res.permissions
    assert 'shipment.create' in res.grants
    assert 'shipment.create' in res.revokes


def test_legacy_grant_adds_key(app_context):
    u = ensure_user('res_legacy_grant@example.com', role='viewer')
    add_legacy(u, grants=['packing_list.edit', '  '])
    res = resolve_permissions(u.id, u.role)
    assert 'packing_list.edit' in res.permissions
    assert res.grants == ['packing_list.edit']


def test_missing_source_table_is_treated_as_empty(app_context, monkeypatch, caplog):
    u = ensure_user('res_missing_table@example.com', role='viewer')
    add_legacy(u, revokes=['po.view'])
    real = schema.has_table
    monkeypatch.setattr(schema, 'has_table', lambda name: False if name == 'user_permission_revokes' else real(name))
    with caplog.at_level('WARNING'):
        res = resolve_for_user(u)
    assert 'po.view' in res.permissions
    assert res.revokes == []
    assert any('user_permission_revokes' in r.getMessage() for r in caplog.records)


def test_all_sources_missing_still_resolves_static_defaults(app_context, monkeypatch):
    u = ensure_user('res_no_tables@example.com', role='staff')
    monkeypatch.setattr(schema, 'has_table', lambda name: False)
    res = resolve_for_user(u)
    assert res.permissions == set(ROLE_DEFAULT_PERMISSIONS['staff'])


def test_me_permissions_endpoint(client, app_context):
    u = ensure_user('res_me@example.com', role='viewer')
    add_override(u, 'invoice.view', False)
    resp = client.get('/me/permissions', headers=auth_headers(u))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['success'] is True
    assert body['role'] == 'viewer'
    assert 'invoice.view' not in body['permissions']
    assert body['permissions'] == sorted(body['permissions'])
    assert body['user']['email'] == 'res_me@example.com'
    assert body['overrides']['revokes'] == ['invoice.view']
    assert body['overrides']['role_defaults_used'] is False


def test_admin_can_inspect_other_user(client, app_context):
    admin = ensure_user('res_admin_inspect@example.com', role='admin')
    target = ensure_user('res_inspect_target@example.com', role='manager')
    resp = client.get(f'/permissions?user_id={target.id}', headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.get_json()['role'] == 'manager'
    assert client.get('/permissions?user_id=999999', headers=auth_headers(admin)).status_code == 404
    assert client.get('/permissions', headers=auth_headers(admin)).status_code == 400


def test_admin_static_defaults_cover_vocabulary():
    assert set(ROLE_DEFAULT_PERMISSIONS['admin']) == set(ALL_PERMISSION_KEYS)
    for role, keys in ROLE_DEFAULT_PERMISSIONS.items():
        assert set(keys) <= set(ALL_PERMISSION_KEYS), role
