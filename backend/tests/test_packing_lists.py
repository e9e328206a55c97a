import pytest
from flask import Flask
from app import get_db
from app.models.packing_list import PackingListLine
from app.services import packing as svc
from tests.test_utils_seed import ensure_user, auth_headers, seed_shipped_po


@pytest.fixture()
def headers(app_context: Flask):
    return auth_headers(ensure_user('packing_user@example.com', role='admin'))


def _packing_list(client, headers, cartons=10, qty=100, gw=12.5, nw=11.0):
    _, po, shipment = seed_shipped_po(client, headers, [qty])
    resp = client.post('/packing-lists', json={
        'shipment_id': shipment['id'],
        'lines': [{'shipment_line_id': shipment['lines'][0]['id'], 'cartons': cartons, 'gw_per_ctn': gw, 'nw_per_ctn': nw}],
    }, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return shipment, resp.get_json()


def test_create_packing_list_from_shipment(app_context: Flask, headers):
    client = app_context.test_client()
    shipment, pl = _packing_list(client, headers)
    assert pl['packing_list_no'] == f"PL-{shipment['shipment_no']}"
    line = pl['lines'][0]
    assert line['shipped_qty'] == 100
    assert line['gw'] == 125.0
    assert line['nw'] == 110.0
    assert pl['totals'] == {'cartons': 10, 'qty': 100, 'gw': 125.0, 'nw': 110.0}


def test_split_line_moves_cartons_and_weights(app_context: Flask, headers):
    client = app_context.test_client()
    _, pl = _packing_list(client, headers, gw=12.345, nw=10.0)
    line_id = pl['lines'][0]['id']
    resp = client.post(f"/packing-lists/{pl['id']}/split-line", json={
        'line_id': line_id, 'split_cartons': 3, 'split_qty': 30, 'split_description_suffix': '(B)',
    }, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    orig, new = body['original_line'], body['split_line']
    assert (orig['cartons'], orig['shipped_qty']) == (7, 70)
    assert (new['cartons'], new['shipped_qty']) == (3, 30)
    assert orig['gw'] == 86.415
    assert new['gw'] == 37.035
    assert new['gw_per_ctn'] == 12.345
    assert new['nw'] == 30.0
    assert new['line_no'] == orig['line_no'] + 1
    assert new['description'].endswith(' (B)')

    full = client.get(f"/packing-lists/{pl['id']}", headers=headers).get_json()
    assert [l['id'] for l in full['lines']] == [orig['id'], new['id']]
    assert full['totals']['cartons'] == 10
    assert full['totals']['qty'] == 100
    assert full['totals']['gw'] == 123.45


def test_split_with_explicit_weights(app_context: Flask, headers):
    client = app_context.test_client()
    _, pl = _packing_list(client, headers)
    resp = client.post(f"/packing-lists/{pl['id']}/split-line", json={
        'line_id': pl['lines'][0]['id'], 'split_cartons': 2, 'split_qty': 10, 'split_gw_per_ctn': 5, 'split_nw_per_ctn': 4.5,
    }, headers=headers)
    new = resp.get_json()['split_line']
    assert new['gw'] == 10.0
    assert new['nw'] == 9.0


@pytest.mark.parametrize('payload,key,value', [
    ({'split_cartons': 10, 'split_qty': 30}, 'orig_cartons', 10),
    ({'split_cartons': 3, 'split_qty': 100}, 'orig_qty', 100),
])
def test_split_must_leave_something_behind(app_context: Flask, headers, payload, key, value):
    client = app_context.test_client()
    _, pl = _packing_list(client, headers)
    line_id = pl['lines'][0]['id']
    resp = client.post(f"/packing-lists/{pl['id']}/split-line", json={'line_id': line_id, **payload}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()[key] == value
    line = get_db().get(PackingListLine, line_id)
    assert (line.cartons, line.shipped_qty) == (10, 100)
    assert len(client.get(f"/packing-lists/{pl['id']}", headers=headers).get_json()['lines']) == 1


@pytest.mark.parametrize('payload', [
    {'split_cartons': 0, 'split_qty': 5},
    {'split_cartons': 2, 'split_qty': -1},
    {'split_cartons': 2, 'split_qty': 5, 'split_gw_per_ctn': -3},
    {'split_qty': 5},
])
def test_split_rejects_invalid_values(app_context: Flask, headers, payload):
    client = app_context.test_client()
    _, pl = _packing_list(client, headers)
    resp = client.post(f"/packing-lists/{pl['id']}/split-line", json={'line_id': pl['lines'][0]['id'], **payload}, headers=headers)
    assert resp.status_code == 400


def test_split_unknown_line_is_not_found(app_context: Flask, headers):
    client = app_context.test_client()
    _, pl = _packing_list(client, headers)
    resp = client.post(f"/packing-lists/{pl['id']}/split-line", json={'line_id': 999999, 'split_cartons': 1, 'split_qty': 1}, headers=headers)
    assert resp.status_code == 404


def test_update_line_recomputes_weights(app_context: Flask, headers):
    client = app_context.test_client()
    _, pl = _packing_list(client, headers, gw=2.0, nw=1.5)
    line_id = pl['lines'][0]['id']
    body = client.put(f"/packing-lists/{pl['id']}/lines/{line_id}", json={'cartons': 4}, headers=headers).get_json()
    assert body['gw'] == 8.0
    assert body['nw'] == 6.0
    assert client.delete(f"/packing-lists/{pl['id']}", headers=headers).status_code == 200
    assert client.get(f"/packing-lists/{pl['id']}", headers=headers).status_code == 404


def test_zero_per_carton_weight_zeroes_total(app_context: Flask, headers):
    client = app_context.test_client()
    _, pl = _packing_list(client, headers, cartons=10, gw=2.0, nw=1.0)
    line_id = pl['lines'][0]['id']
    assert pl['lines'][0]['gw'] == 20.0
    body = client.put(f"/packing-lists/{pl['id']}/lines/{line_id}",
                      json={'gw_per_ctn': 0, 'cartons': 5}, headers=headers).get_json()
    assert body['gw_per_ctn'] == 0.0
    assert body['gw'] == 0.0
    assert body['nw'] == 5.0


def test_clearing_per_carton_weight_clears_total(app_context: Flask, headers):
    client = app_context.test_client()
    _, pl = _packing_list(client, headers, cartons=4, gw=3.0, nw=2.0)
    line_id = pl['lines'][0]['id']
    body = client.put(f"/packing-lists/{pl['id']}/lines/{line_id}",
                      json={'nw_per_ctn': None}, headers=headers).get_json()
    assert body['nw_per_ctn'] is None
    assert body['nw'] is None
    assert body['gw'] == 12.0


def test_recompute_keeps_stored_total_without_per_carton_weight():
    line = PackingListLine(cartons=6, gw=40.0, nw=None, gw_per_ctn=None, nw_per_ctn=0.0)
    svc.recompute_weights(line)
    assert line.gw == 40.0
    assert line.nw == 0.0
