from __future__ import annotations
import os
from flask import Blueprint, request, abort, send_from_directory, current_app
from sqlalchemy import select
from app import get_db
from app.decorators.auth import require_permissions
from app.decorators.audit import audit_log
from app.errors import ConflictError
from app.models.company import Company
from app.models.product import DevProduct
from app.services import images, style_numbers
from app.utils.validation import positive_int, required_text

styles_bp = Blueprint('styles', __name__)


def _po_line_arg(raw):
    if raw in (None, ''):
        return None
    return positive_int(raw, 'po_line_id')


@styles_bp.post('/styles/upload-image')
@require_permissions('dev.product.edit')
@audit_log('STYLE.IMAGE.UPLOAD', entity='DevProduct', entity_id_key='style_no',
           meta_keys=['path', 'saved_to_product', 'saved_to_po_line'])
def upload_image():
    style_no = (request.form.get('style_no') or '').strip()
    if not style_no:
        abort(400, description='style_no is required.')
    if not images.safe_style(style_no):
        abort(400, description='style_no has no usable characters.')
    f = request.files.get('file')
    if f is None:
        abort(400, description='file is required.')
    data = f.read()
    if not data:
        abort(400, description='file is empty.')
    po_line_id = _po_line_arg(request.form.get('po_line_id'))
    kind = (request.form.get('kind') or '').strip() or None

    store = images.ImageStore.from_app()
    path = images.object_path(style_no, images.guess_extension(f.filename, f.mimetype))
    try:
        url = store.save(path, data)
    except OSError as exc:
        current_app.logger.exception('Storage upload failed for %s', path)
        abort(500, description=f'Storage upload failed: {exc}')

    result = images.attach(get_db(), style_no, url, po_line_id=po_line_id, kind=kind)
    return {
        'success': True,
        'style_no': style_no,
        'url': url,
        'bucket': store.bucket,
        'path': path,
        'saved_to_product': result.saved_to_product,
        'saved_to_po_line': result.saved_to_po_line,
        'warnings': result.warnings,
    }


@styles_bp.post('/styles/delete-image')
@require_permissions('dev.product.edit')
@audit_log('STYLE.IMAGE.DELETE', entity='DevProduct', entity_id_key='style_no', meta_keys=['url', 'storage_deleted'])
def delete_image():
    data = request.json or {}
    style_no = required_text(data, 'style_no')
    url = required_text(data, 'url')
    po_line_id = _po_line_arg(data.get('po_line_id'))
    outcome = images.detach(get_db(), images.ImageStore.from_app(), style_no, url, po_line_id=po_line_id)
    return {'success': True, 'style_no': style_no, 'url': url, **outcome}


@styles_bp.post('/styles')
@require_permissions('dev.product.create')
@audit_log('STYLE.CREATE', entity='DevProduct', entity_id_key='style_no', meta_keys=['buyer_id'])
def create_style():
    data = request.json or {}
    style_no = required_text(data, 'style_no')
    session = get_db()
    if session.execute(select(DevProduct.id).where(DevProduct.style_no == style_no)).first():
        raise ConflictError(f'Style {style_no} already exists', extra={'style_no': style_no})
    buyer_id = data.get('buyer_id')
    if buyer_id is not None and not session.get(Company, buyer_id):
        abort(400, description='buyer_id not found')
    prod = DevProduct(style_no=style_no, name=data.get('name'), buyer_id=buyer_id, image_urls=[])
    session.add(prod)
    session.commit()
    return {'success': True, **_product_json(prod)}, 201


@styles_bp.get('/styles/next-style-no')
@require_permissions('dev.product.view')
def get_next_style_no():
    raw = request.args.get('category') or request.args.get('category_code') or request.args.get('code')
    return {'success': True, **style_numbers.next_style_no(get_db(), raw)}


@styles_bp.get('/styles/check-style-no')
@require_permissions('dev.product.view')
def check_style_no():
    raw = request.args.get('style_no') or request.args.get('styleNo')
    return {'success': True, **style_numbers.check_style_no(get_db(), raw)}


@styles_bp.get('/styles/<style_no>')
@require_permissions('dev.product.view')
def get_style(style_no: str):
    prod = get_db().execute(
        select(DevProduct).where(DevProduct.style_no == style_no, DevProduct.is_deleted.is_(False))
    ).scalar_one_or_none()
    if not prod:
        abort(404, description='Style not found')
    return {'success': True, **_product_json(prod)}


@styles_bp.get('/files/<bucket>/<path:path>')
def serve_file(bucket: str, path: str):
    store = images.ImageStore.from_app()
    if bucket != store.bucket:
        abort(404)
    try:
        target = store.local_path(path)
    except ValueError:
        abort(404)
    return send_from_directory(os.path.dirname(target), os.path.basename(target))


def _product_json(p: DevProduct):
    return {
        'id': p.id,
        'style_no': p.style_no,
        'name': p.name,
        'buyer_id': p.buyer_id,
        'main_image_url': p.main_image_url,
        'image_urls': list(p.image_urls or []),
    }
