from datetime import date
import pytest
from flask import Flask
from app import get_db
from app.services.style_numbers import category_code, next_style_no
from tests.test_utils_seed import ensure_user, auth_headers


@pytest.fixture()
def headers(app_context: Flask):
    return auth_headers(ensure_user('style_no_user@example.com', role='admin'))


@pytest.mark.parametrize('raw,code', [
    ('Necklace', 'N'), ('e', 'E'), ('BRACELET', 'B'), ('hair clip', 'H'), ('Anklet', 'A'), ('ring', 'R'),
    ('', 'N'), (None, 'N'), ('brooch', 'N'),
])
def test_category_code(raw, code):
    assert category_code(raw) == code


def test_next_style_no_follows_highest_sequence(app_context: Flask, headers):
    client = app_context.test_client()
    first = client.get('/styles/next-style-no?category=Ring', headers=headers).get_json()
    assert first['category_code'] == 'R'
    assert first['style_no'] == f"{first['prefix']}{first['seq']:04d}"
    assert client.post('/styles', json={'style_no': first['style_no']}, headers=headers).status_code == 201
    # a variant letter does not break the scan
    assert client.post('/styles', json={'style_no': f"{first['prefix']}{first['seq'] + 4:04d}A"}, headers=headers).status_code == 201
    nxt = client.get('/styles/next-style-no?code=R', headers=headers).get_json()
    assert nxt['seq'] == first['seq'] + 5


def test_next_style_no_uses_two_digit_year(app_context: Flask):
    result = next_style_no(get_db(), 'E', today=date(2091, 3, 1))
    assert result['prefix'] == 'JE91'
    assert result['style_no'] == 'JE910001'


def test_check_style_no(app_context: Flask, headers):
    client = app_context.test_client()
    nxt = client.get('/styles/next-style-no?category=H', headers=headers).get_json()['style_no']
    assert client.get(f'/styles/check-style-no?style_no={nxt.lower()}', headers=headers).get_json() == {
        'success': True, 'valid': True, 'exists': False,
    }
    client.post('/styles', json={'style_no': nxt}, headers=headers)
    assert client.get(f'/styles/check-style-no?style_no={nxt}', headers=headers).get_json()['exists'] is True
    bad = client.get('/styles/check-style-no?style_no=X123', headers=headers).get_json()
    assert (bad['valid'], bad['exists']) == (False, False)
    assert client.get('/styles/check-style-no', headers=headers).get_json()['valid'] is False
