from app.errors import ConflictError, ValidationError, error_payload
from tests.test_utils_seed import ensure_user, auth_headers


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert body['success'] is False
    assert body['ok'] is False
    assert body['status'] == 404
    assert body['title'] == 'Not Found'
    assert 'error' in body


def test_conflict_payload_merges_extra():
    payload = error_payload(ConflictError('Too many', extra={'max_cancel': 3}))
    assert payload['status'] == 409
    assert payload['error'] == 'Too many'
    assert payload['max_cancel'] == 3
    payload = error_payload(ValidationError('Bad split', extra={'orig_cartons': 2}))
    assert payload['status'] == 400
    assert payload['orig_cartons'] == 2


def test_internal_error_shape(client, app_context, monkeypatch):
    headers = auth_headers(ensure_user('err@example.com', role='admin'))
    # Monkeypatch AFTER the user exists so auth works; only break the companies listing
    import app.routes.companies as companies_mod

    class BoomSession:
        def query(self, *a, **k):
            raise RuntimeError('explode')

    monkeypatch.setattr(companies_mod, 'get_db', lambda: BoomSession())
    resp = client.get('/companies', headers=headers)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['success'] is False
    assert body['status'] == 500
    assert body['title'] == 'Internal Server Error'
    assert body['error'] == 'explode'


def test_healthz(client):
    assert client.get('/healthz').get_json() == {'status': 'ok'}
