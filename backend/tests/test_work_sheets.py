import re
from datetime import date
import pytest
from flask import Flask
from app import get_db
from app.models.work_sheet import WorkSheet
from app.services.work_sheets import next_ws_no
from tests.test_utils_seed import ensure_user, auth_headers, create_company, create_po, unique


@pytest.fixture()
def headers(app_context: Flask):
    return auth_headers(ensure_user('work_sheet_user@example.com', role='admin'))


def _sheet_for(client, headers, po, line_idx=0, expected=201):
    resp = client.post('/work-sheets/create-from-po', json={
        'po_no': po['po_no'], 'po_line_id': po['lines'][line_idx]['id'],
    }, headers=headers)
    assert resp.status_code == expected, resp.get_json()
    return resp.get_json()


def test_ws_no_sequence(app_context: Flask):
    session = get_db()
    today = date(2032, 7, 15)
    code = unique('Q', 3)
    assert next_ws_no(session, code, today) == f'{code[:2]}-3207001'
    assert next_ws_no(session, None, today).startswith('WS-3207')
    assert next_ws_no(session, '  ', today).startswith('WS-3207')


def test_create_from_po_copies_line(app_context: Flask, headers):
    client = app_context.test_client()
    company = create_company(client, headers, name='WS Buyer')
    po = create_po(client, headers, [12, 5], buyer_id=company['id'])
    ws = _sheet_for(client, headers, po, 1)
    yymm = date.today().strftime('%y%m')
    assert ws['created'] is True
    assert re.fullmatch(rf"{company['code'][:2].upper()}-{yymm}\d{{3}}", ws['ws_no'])
    assert (ws['status'], ws['po_no'], ws['buyer_name'], ws['currency']) == ('DRAFT', po['po_no'], 'WS Buyer', 'USD')
    assert [(l['po_line_id'], l['qty'], l['style_no']) for l in ws['lines']] == [
        (po['lines'][1]['id'], 5, po['lines'][1]['style_no']),
    ]


def test_recreate_keeps_user_fields(app_context: Flask, headers):
    client = app_context.test_client()
    company = create_company(client, headers)
    po = create_po(client, headers, [8], buyer_id=company['id'])
    ws = _sheet_for(client, headers, po)
    line_id = ws['lines'][0]['id']
    resp = client.put(f"/work-sheets/{ws['id']}", json={
        'header': {'status': 'sent', 'general_notes': 'Rush order', 'notes': 'margin thin'},
        'lines': [{'id': line_id, 'plating_spec': 'Gold 1 micron', 'qc_points': ' check clasp '}],
    }, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert (body['status'], body['special_instructions'], body['internal_notes']) == ('SENT', 'Rush order', 'margin thin')
    assert body['lines'][0]['qc_points'] == 'check clasp'

    again = _sheet_for(client, headers, po, expected=200)
    assert again['created'] is False
    assert (again['id'], again['ws_no']) == (ws['id'], ws['ws_no'])
    assert again['status'] == 'SENT'
    assert again['special_instructions'] == 'Rush order'
    assert [(l['id'], l['plating_spec']) for l in again['lines']] == [(line_id, 'Gold 1 micron')]


def test_update_rejects_bad_status_and_unknown_line(app_context: Flask, headers):
    client = app_context.test_client()
    po = create_po(client, headers, [3])
    ws = _sheet_for(client, headers, po)
    bad = client.put(f"/work-sheets/{ws['id']}", json={'header': {'status': 'SHIPPED'}}, headers=headers)
    assert bad.status_code == 400
    missing = client.put(f"/work-sheets/{ws['id']}", json={'lines': [{'id': 999999, 'work_notes': 'x'}]}, headers=headers)
    assert missing.status_code == 404
    assert client.get('/work-sheets/999999', headers=headers).status_code == 404


def test_create_from_po_unknown_line(app_context: Flask, headers):
    client = app_context.test_client()
    po = create_po(client, headers, [3])
    resp = client.post('/work-sheets/create-from-po', json={'po_no': po['po_no'], 'po_line_id': 999999}, headers=headers)
    assert resp.status_code == 404
    resp = client.post('/work-sheets/create-from-po', json={'po_no': po['po_no'], 'po_line_id': 'x'}, headers=headers)
    assert resp.status_code == 400


def test_list_keeps_newest_sheet_per_po(app_context: Flask, headers):
    client = app_context.test_client()
    company = create_company(client, headers)
    po = create_po(client, headers, [4, 6], buyer_id=company['id'])
    first = _sheet_for(client, headers, po, 0)
    second = _sheet_for(client, headers, po, 1)
    rows = client.get(f"/work-sheets?q={po['po_no']}", headers=headers).get_json()['data']
    assert [r['id'] for r in rows] == [second['id']]
    rows = client.get(f"/work-sheets?q={po['po_no']}&all=1&status=all", headers=headers).get_json()['data']
    assert [r['id'] for r in rows] == [second['id'], first['id']]
    rows = client.get(f"/work-sheets?q={po['po_no']}&all=1&status=SENT", headers=headers).get_json()['data']
    assert rows == []


def test_line_vendor_cost_feeds_vendor_prices(app_context: Flask, headers):
    client = app_context.test_client()
    vendor = create_company(client, headers, name='Plating Vendor')
    po = create_po(client, headers, [10])
    ws = _sheet_for(client, headers, po)
    line_id = ws['lines'][0]['id']
    resp = client.put(f"/work-sheets/{ws['id']}", json={'lines': [{
        'id': line_id, 'vendor_id': vendor['id'], 'vendor_currency': 'krw', 'vendor_unit_cost_local': 1200,
    }]}, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    # saving the same values again adds no history row
    client.put(f"/work-sheets/{ws['id']}", json={'lines': [{'id': line_id, 'vendor_unit_cost_local': 1200}]}, headers=headers)

    manual = client.put('/work-sheets/vendor-prices', json={
        'vendor_id': vendor['id'], 'currency': 'KRW', 'unit_cost_local': '1350',
    }, headers=headers)
    assert manual.status_code == 200
    assert manual.get_json()['saved'] is True

    body = client.get(f"/work-sheets/vendor-prices?vendor_id={vendor['id']}", headers=headers).get_json()
    assert body['default']['unit_cost_local'] == 1350.0
    assert body['default']['currency'] == 'KRW'
    assert [(h['source'], h['unit_cost_local']) for h in body['history']] == [('MANUAL', 1350.0), ('WORK_SHEET', 1200.0)]
    assert body['history'][1]['work_sheet_line_id'] == line_id


def test_vendor_prices_validation(app_context: Flask, headers):
    client = app_context.test_client()
    vendor = create_company(client, headers)
    assert client.get('/work-sheets/vendor-prices', headers=headers).status_code == 400
    assert client.get('/work-sheets/vendor-prices?vendor_id=999999', headers=headers).status_code == 404
    assert client.put('/work-sheets/vendor-prices', json={'vendor_id': vendor['id']}, headers=headers).status_code == 400
    empty = client.get(f"/work-sheets/vendor-prices?vendor_id={vendor['id']}", headers=headers).get_json()
    assert (empty['default'], empty['history']) == (None, [])


def test_viewer_cannot_use_work_sheets(app_context: Flask, headers):
    client = app_context.test_client()
    po = create_po(client, headers, [2])
    viewer = auth_headers(ensure_user('ws_viewer@example.com', role='viewer'))
    resp = client.post('/work-sheets/create-from-po', json={'po_no': po['po_no'], 'po_line_id': po['lines'][0]['id']}, headers=viewer)
    assert resp.status_code == 403
    assert client.get('/work-sheets', headers=viewer).status_code == 403
    assert get_db().query(WorkSheet).filter_by(po_no=po['po_no']).count() == 0
