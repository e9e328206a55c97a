import io
import os
import pytest
from flask import Flask
from app import get_db
from app.models.product import DevProduct
from app.models.purchase_order import PurchaseOrderLine
from app.services import images
from tests.test_utils_seed import ensure_user, auth_headers, create_po, unique


@pytest.fixture()
def headers(app_context: Flask):
    return auth_headers(ensure_user('style_user@example.com', role='admin'))


def _style(client, headers):
    style_no = unique('STY-')
    resp = client.post('/styles', json={'style_no': style_no, 'name': 'Tee'}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return style_no


def _upload(client, headers, style_no, po_line_id=None, kind=None, name='front.png', content=b'\x89PNG-bytes'):
    data = {'file': (io.BytesIO(content), name), 'style_no': style_no}
    if po_line_id is not None:
        data['po_line_id'] = str(po_line_id)
    if kind:
        data['kind'] = kind
    return client.post('/styles/upload-image', data=data, headers=headers, content_type='multipart/form-data')


def test_upload_fans_out_to_product_and_po_line(app_context: Flask, headers):
    client = app_context.test_client()
    style_no = _style(client, headers)
    po = create_po(client, headers, [5], style_no=style_no)
    line_id = po['lines'][0]['id']
    resp = _upload(client, headers, style_no, po_line_id=line_id)
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['saved_to_product'] is True
    assert body['saved_to_po_line'] is True
    assert body['warnings'] == []
    assert body['path'].startswith(f'styles/{images.safe_style(style_no)}/')
    assert body['path'].endswith('.png')
    assert body['url'] == f"http://files.test/files/{body['bucket']}/{body['path']}"

    prod = client.get(f'/styles/{style_no}', headers=headers).get_json()
    assert prod['image_urls'] == [body['url']]
    assert prod['main_image_url'] == body['url']
    assert get_db().get(PurchaseOrderLine, line_id).main_image_url == body['url']

    served = client.get(f"/files/{body['bucket']}/{body['path']}")
    assert served.status_code == 200
    assert served.data == b'\x89PNG-bytes'


def test_product_keeps_newest_three(app_context: Flask, headers):
    client = app_context.test_client()
    style_no = _style(client, headers)
    urls = [_upload(client, headers, style_no, name=f'{i}.jpg').get_json()['url'] for i in range(4)]
    prod = get_db().query(DevProduct).filter_by(style_no=style_no).one()
    assert prod.image_urls == [urls[3], urls[2], urls[1]]
    assert all(u.endswith('.jpg') for u in urls)


def test_po_line_full_keeps_product_write(app_context: Flask, headers):
    client = app_context.test_client()
    style_no = _style(client, headers)
    line_id = create_po(client, headers, [5], style_no=style_no)['lines'][0]['id']
    for _ in range(3):
        assert _upload(client, headers, style_no, po_line_id=line_id).get_json()['saved_to_po_line'] is True
    body = _upload(client, headers, style_no, po_line_id=line_id).get_json()
    assert body['saved_to_product'] is True
    assert body['saved_to_po_line'] is False
    assert body['warnings'] == ['PO line already has maximum 3 images. Image was saved to Product images only.']
    line = get_db().get(PurchaseOrderLine, line_id)
    assert len([line.main_image_url] + list(line.image_urls)) == 3
    assert body['url'] not in line.image_urls


def test_upload_without_product_still_stores_blob(app_context: Flask, headers):
    client = app_context.test_client()
    style_no = unique('NOPROD-')
    body = _upload(client, headers, style_no).get_json()
    assert body['saved_to_product'] is False
    assert body['saved_to_po_line'] is False
    assert len(body['warnings']) == 1
    assert client.get(f"/files/{body['bucket']}/{body['path']}").status_code == 200


def test_upload_validation(app_context: Flask, headers):
    client = app_context.test_client()
    assert _upload(client, headers, '').status_code == 400
    assert _upload(client, headers, '***').status_code == 400
    assert _upload(client, headers, 'X1', content=b'').status_code == 400
    resp = client.post('/styles/upload-image', data={'style_no': 'X1'}, headers=headers, content_type='multipart/form-data')
    assert resp.status_code == 400


def test_main_kind_promotes_image(app_context: Flask, headers):
    client = app_context.test_client()
    style_no = _style(client, headers)
    line_id = create_po(client, headers, [5], style_no=style_no)['lines'][0]['id']
    first = _upload(client, headers, style_no, po_line_id=line_id).get_json()['url']
    second = _upload(client, headers, style_no, po_line_id=line_id, kind='main').get_json()['url']
    line = get_db().get(PurchaseOrderLine, line_id)
    assert line.main_image_url == second
    assert line.image_urls == [first]


def test_delete_image_removes_everywhere(app_context: Flask, headers):
    client = app_context.test_client()
    style_no = _style(client, headers)
    line_id = create_po(client, headers, [5], style_no=style_no)['lines'][0]['id']
    keep = _upload(client, headers, style_no, po_line_id=line_id).get_json()
    gone = _upload(client, headers, style_no, po_line_id=line_id, kind='main').get_json()
    resp = client.post('/styles/delete-image', json={'style_no': style_no, 'url': gone['url'], 'po_line_id': line_id}, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['storage_deleted'] is True
    assert body['po_line_updated'] is True
    assert body['style_updated'] is True
    line = get_db().get(PurchaseOrderLine, line_id)
    assert line.main_image_url == keep['url']
    assert line.image_urls == []
    prod = get_db().query(DevProduct).filter_by(style_no=style_no).one()
    assert prod.image_urls == [keep['url']]
    assert prod.main_image_url == keep['url']
    assert client.get(f"/files/{gone['bucket']}/{gone['path']}").status_code == 404


def test_image_store_paths(tmp_path):
    store = images.ImageStore(str(tmp_path), 'bucket', 'https://cdn.example/')
    url = store.save('styles/A-1/1_ab.png', b'x')
    assert url == 'https://cdn.example/files/bucket/styles/A-1/1_ab.png'
    assert store.path_from_url(url) == 'styles/A-1/1_ab.png'
    assert store.path_from_url('https://elsewhere/img.png') is None
    assert os.path.exists(os.path.join(str(tmp_path), 'bucket', 'styles', 'A-1', '1_ab.png'))
    with pytest.raises(ValueError):
        store.local_path('styles/../..')
    assert store.delete('styles/A-1/1_ab.png') is True
    assert store.delete('styles/A-1/1_ab.png') is False


def test_extension_and_style_helpers():
    assert images.guess_extension('photo.JPEG', None) == 'jpg'
    assert images.guess_extension('blob', 'image/webp') == 'webp'
    assert images.guess_extension(None, None) == 'png'
    assert images.safe_style('AB 12/x') == 'AB12x'
    assert images.uniq(['a', ' a ', '', None, 'b']) == ['a', 'b']
