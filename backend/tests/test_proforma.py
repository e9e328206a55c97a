import re
from datetime import datetime
import pytest
from flask import Flask
from app import get_db
from app.services.proforma import build_invoice_no, save_proforma
from tests.test_utils_seed import ensure_user, auth_headers, create_company, create_po, unique


@pytest.fixture()
def headers(app_context: Flask):
    return auth_headers(ensure_user('proforma_user@example.com', role='admin'))


def _payload(buyer_id, po_no=None, lines=None, **header):
    return {
        'header': {'buyer_id': buyer_id, 'currency': 'USD', 'po_no': po_no, **header},
        'lines': lines if lines is not None else [
            {'style_no': 'JN260001', 'qty': 10, 'unit_price': 1.5},
            {'style_no': 'JN260002', 'qty': 4, 'unit_price': 2.0, 'amount': 7.5},
        ],
    }


def test_build_invoice_no():
    now = datetime(2026, 3, 4, 5, 6, 7)
    assert build_invoice_no('ABC', now) == 'JM-ABC-PI-20260304-050607'
    assert build_invoice_no(None, now) == 'PI-20260304-050607'


def test_create_proforma_for_po(app_context: Flask, headers):
    client = app_context.test_client()
    company = create_company(client, headers, name='Proforma Buyer')
    po = create_po(client, headers, [10, 4], buyer_id=company['id'])
    resp = client.post('/proforma', json=_payload(company['id'], po['po_no'], incoterm='FOB'), headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['updated'] is False
    assert re.fullmatch(rf"JM-{company['code']}-PI-\d{{8}}-\d{{6}}", body['invoice_no'])
    # amount defaults to qty x unit_price; an explicit amount wins
    assert body['subtotal'] == 22.5

    detail = client.get(f"/proforma/{body['invoice_no']}", headers=headers)
    assert detail.status_code == 200
    d = detail.get_json()
    assert d['buyer'] == {'id': company['id'], 'code': company['code'], 'name': 'Proforma Buyer'}
    assert d['buyer_name'] == 'Proforma Buyer'
    assert d['po']['po_no'] == po['po_no']
    assert d['incoterm'] == 'FOB'
    assert [(l['line_no'], l['amount'], l['currency']) for l in d['lines']] == [(1, 15.0, 'USD'), (2, 7.5, 'USD')]


def test_resave_replaces_lines_and_keeps_number(app_context: Flask, headers):
    client = app_context.test_client()
    company = create_company(client, headers)
    po_no = unique('PO')
    first = client.post('/proforma', json=_payload(company['id'], po_no), headers=headers).get_json()
    again = client.post('/proforma', json=_payload(company['id'], po_no, lines=[
        {'style_no': 'JR260009', 'qty': 3, 'unit_price': 5, 'currency': 'EUR'},
    ]), headers=headers)
    assert again.status_code == 200
    body = again.get_json()
    assert body['updated'] is True
    assert (body['invoice_no'], body['header_id']) == (first['invoice_no'], first['header_id'])
    d = client.get(f"/proforma/{body['invoice_no']}", headers=headers).get_json()
    assert [(l['style_no'], l['amount'], l['currency']) for l in d['lines']] == [('JR260009', 15.0, 'EUR')]
    assert d['po'] is None


def test_same_second_numbers_get_suffix(app_context: Flask, headers):
    client = app_context.test_client()
    company = create_company(client, headers)
    session = get_db()
    now = datetime(2030, 1, 2, 3, 4, 5)
    header = {'buyer_id': company['id'], 'currency': 'USD'}
    a, _ = save_proforma(session, dict(header), [{'qty': 1, 'unit_price': 1}], now=now)
    b, _ = save_proforma(session, dict(header), [{'qty': 1, 'unit_price': 1}], now=now)
    c, _ = save_proforma(session, dict(header), [{'qty': 1, 'unit_price': 1}], now=now)
    session.commit()
    base = f"JM-{company['code']}-PI-20300102-030405"
    assert [a.invoice_no, b.invoice_no, c.invoice_no] == [base, f'{base}-2', f'{base}-3']


def test_list_filters_by_keyword(app_context: Flask, headers):
    client = app_context.test_client()
    company = create_company(client, headers)
    po_no = unique('PFL')
    client.post('/proforma', json=_payload(company['id'], po_no), headers=headers)
    resp = client.get(f'/proforma?q={po_no.lower()}', headers=headers)
    assert resp.status_code == 200
    rows = resp.get_json()['data']
    assert [r['po_no'] for r in rows] == [po_no]
    assert rows[0]['subtotal'] == 22.5


@pytest.mark.parametrize('mutate,error', [
    (lambda p: p['header'].pop('buyer_id'), 'buyer_id is required.'),
    (lambda p: p['header'].pop('currency'), 'currency is required.'),
    (lambda p: p.update(lines=[]), 'At least one line is required.'),
])
def test_create_requires_buyer_currency_and_lines(app_context: Flask, headers, mutate, error):
    client = app_context.test_client()
    company = create_company(client, headers)
    payload = _payload(company['id'])
    mutate(payload)
    resp = client.post('/proforma', json=payload, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error'] == error


def test_unknown_proforma_is_404(app_context: Flask, headers):
    client = app_context.test_client()
    assert client.get('/proforma/PI-NOPE', headers=headers).status_code == 404


def test_viewer_cannot_create_proforma(app_context: Flask, headers):
    client = app_context.test_client()
    company = create_company(client, headers)
    viewer = auth_headers(ensure_user('proforma_viewer@example.com', role='viewer'))
    assert client.post('/proforma', json=_payload(company['id']), headers=viewer).status_code == 403
    assert client.get('/proforma', headers=viewer).status_code == 403
