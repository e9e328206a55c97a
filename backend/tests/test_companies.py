import pytest
from flask import Flask
from tests.test_utils_seed import ensure_user, auth_headers, unique


@pytest.fixture()
def headers(app_context: Flask):
    return auth_headers(ensure_user('company_user@example.com', role='admin'))


def test_company_code_is_unique_case_insensitive(app_context: Flask, headers):
    client = app_context.test_client()
    code = unique('C')
    assert client.get(f'/companies/check-code?code={code}', headers=headers).get_json()['available'] is True
    resp = client.post('/companies', json={'code': code, 'name': 'Acme Apparel'}, headers=headers)
    assert resp.status_code == 201
    assert resp.get_json()['company_type'] == 'BUYER'
    dup = client.post('/companies', json={'code': code.lower(), 'name': 'Other'}, headers=headers)
    assert dup.status_code == 409
    assert dup.get_json()['code'] == code.lower()
    assert client.get(f'/companies/check-code?code={code.lower()}', headers=headers).get_json()['available'] is False


def test_company_validation_and_listing(app_context: Flask, headers):
    client = app_context.test_client()
    assert client.post('/companies', json={'code': 'X', 'name': ''}, headers=headers).status_code == 400
    assert client.post('/companies', json={'code': unique('V'), 'name': 'V', 'company_type': 'alien'}, headers=headers).status_code == 400
    code = unique('F')
    client.post('/companies', json={'code': code, 'name': 'Factory One', 'company_type': 'factory'}, headers=headers)
    listed = client.get(f'/companies?company_type=FACTORY&q={code}', headers=headers).get_json()
    assert [c['code'] for c in listed['data']] == [code]
    assert client.get('/companies/check-code', headers=headers).status_code == 400


def test_company_list_etag(app_context: Flask, headers):
    client = app_context.test_client()
    client.post('/companies', json={'code': unique('E'), 'name': 'ETag Co'}, headers=headers)
    first = client.get('/companies?limit=5', headers=headers)
    assert first.status_code == 200
    etag = first.headers.get('ETag')
    assert etag
    second = client.get('/companies?limit=5', headers={**headers, 'If-None-Match': etag})
    assert second.status_code == 304
    assert second.headers.get('ETag') == etag
    body = first.get_json()
    assert body['pagination']['limit'] == 5
    assert body['pagination']['returned'] <= 5
