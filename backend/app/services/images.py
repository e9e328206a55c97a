"""Style image storage and the denormalized URL fan-out.

Blobs live in a bucket directory under IMAGE_STORAGE_DIR and are served by GET /files/<bucket>/<path>.
After an upload the public URL is written to the product (source of truth for style images) and,
optionally, to one PO line. Each target commits on its own: a failure there is logged and reported
as a warning and never removes the blob or the other target's write.
"""
from __future__ import annotations
import logging
import os
import secrets
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from flask import current_app
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.utils import secure_filename
from app.models.product import DevProduct
from app.models.purchase_order import PurchaseOrderLine

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = ('png', 'jpg', 'webp', 'gif')


def guess_extension(filename: Optional[str], mimetype: Optional[str]) -> str:
    name = (filename or '').lower()
    ext = name.rsplit('.', 1)[-1] if '.' in name else ''
    if ext == 'jpeg':
        ext = 'jpg'
    if ext in ALLOWED_EXTENSIONS:
        return ext
    mt = (mimetype or '').lower()
    if 'jpeg' in mt:
        return 'jpg'
    for candidate in ('png', 'webp', 'gif'):
        if candidate in mt:
            return candidate
    return 'png'


def safe_style(style_no: str) -> str:
    return ''.join(ch for ch in style_no if ch.isalnum() or ch in '-_')


def object_path(style_no: str, ext: str) -> str:
    return f'styles/{safe_style(style_no)}/{int(time.time() * 1000)}_{secrets.token_hex(4)}.{ext}'


def uniq(urls) -> List[str]:
    out: List[str] = []
    for u in urls or []:
        s = str(u or '').strip()
        if s and s not in out:
            out.append(s)
    return out


class ImageStore:
    """Filesystem bucket: <root>/<bucket>/<path>."""

    def __init__(self, root: str, bucket: str, public_base: str = ''):
        self.root = root
        self.bucket = bucket
        self.public_base = public_base.rstrip('/')

    @classmethod
    def from_app(cls) -> 'ImageStore':
        cfg = current_app.config
        return cls(cfg['IMAGE_STORAGE_DIR'], cfg['IMAGE_BUCKET'], cfg.get('IMAGE_PUBLIC_BASE_URL') or '')

    @property
    def bucket_dir(self) -> str:
        return os.path.join(self.root, secure_filename(self.bucket))

    def local_path(self, path: str) -> str:
        parts = [secure_filename(p) for p in path.split('/') if p]
        if not parts or any(not p for p in parts):
            raise ValueError(f'invalid object path {path!r}')
        return os.path.join(self.bucket_dir, *parts)

    def save(self, path: str, data: bytes) -> str:
        target = self.local_path(path)
        os.makedirs(os.path.dirname(target), exist_ok=True)
        with open(target, 'xb') as fh:
            fh.write(data)
        return self.public_url(path)

    def delete(self, path: str) -> bool:
        target = self.local_path(path)
        if not os.path.exists(target):
            return False
        os.remove(target)
        return True

    def public_url(self, path: str) -> str:
        return f'{self.public_base}/files/{self.bucket}/{path}'

    def path_from_url(self, url: str) -> Optional[str]:
        marker = f'/files/{self.bucket}/'
        idx = url.find(marker)
        if idx < 0:
            return None
        return url[idx + len(marker):] or None


@dataclass
class FanOutResult:
    saved_to_product: bool = False
    saved_to_po_line: bool = False
    warnings: List[str] = field(default_factory=list)


def add_to_product(session, style_no: str, url: str, kind: Optional[str]) -> Tuple[bool, Optional[str]]:
    prod = session.execute(
        select(DevProduct).where(DevProduct.style_no == style_no, DevProduct.is_deleted.is_(False))
    ).scalar_one_or_none()
    if not prod:
        return False, f'No product found for style {style_no}; image kept in storage only.'
    limit = current_app.config['STYLE_IMAGE_LIMIT']
    prod.image_urls = uniq([url] + list(prod.image_urls or []))[:limit]
    if kind == 'main' or not prod.main_image_url:
        prod.main_image_url = url
    return True, None


def add_to_po_line(session, po_line_id: int, url: str, kind: Optional[str]) -> Tuple[bool, Optional[str]]:
    line = session.get(PurchaseOrderLine, po_line_id)
    if not line or line.is_deleted:
        return False, f'PO line {po_line_id} not found; image not attached to it.'
    limit = current_app.config['PO_LINE_IMAGE_LIMIT']
    main = line.main_image_url or ''
    thumbs = uniq(line.image_urls)
    everything = uniq([main] + thumbs)
    if url not in everything and len(everything) >= limit:
        return False, f'PO line already has maximum {limit} images. Image was saved to Product images only.'
    if kind == 'main' or not main:
        if main and main != url:
            thumbs = uniq([main] + thumbs)
        main = url
    else:
        thumbs = uniq(thumbs + [url])
    line.main_image_url = main
    line.image_urls = [u for u in thumbs if u != main][:limit - 1]
    return True, None


def _attempt(session, label: str, fn, *args) -> Tuple[bool, Optional[str]]:
    try:
        ok, warning = fn(session, *args)
        if ok:
            session.commit()
        return ok, warning
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning('Image fan-out to %s failed', label, exc_info=True)
        return False, f'Could not update {label}: {exc.__class__.__name__}'


def attach(session, style_no: str, url: str, po_line_id: Optional[int] = None, kind: Optional[str] = None) -> FanOutResult:
    result = FanOutResult()
    result.saved_to_product, warning = _attempt(session, 'product', add_to_product, style_no, url, kind)
    if warning:
        result.warnings.append(warning)
    if po_line_id is not None:
        result.saved_to_po_line, warning = _attempt(session, 'PO line', add_to_po_line, po_line_id, url, kind)
        if warning:
            result.warnings.append(warning)
    return result


def remove_from_product(session, style_no: str, url: str) -> Tuple[bool, Optional[str]]:
    prod = session.execute(select(DevProduct).where(DevProduct.style_no == style_no)).scalar_one_or_none()
    if not prod:
        return False, f'No product found for style {style_no}.'
    urls = [u for u in uniq(prod.image_urls) if u != url]
    if prod.main_image_url == url:
        prod.main_image_url = urls[0] if urls else None
    prod.image_urls = urls
    return True, None


def remove_from_po_line(session, po_line_id: int, url: str) -> Tuple[bool, Optional[str]]:
    line = session.get(PurchaseOrderLine, po_line_id)
    if not line:
        return False, f'PO line {po_line_id} not found.'
    main = line.main_image_url
    thumbs = [u for u in uniq(line.image_urls) if u != url]
    if main == url:
        main = None
    if not main and thumbs:
        main, thumbs = thumbs[0], thumbs[1:]
    line.main_image_url = main
    line.image_urls = thumbs
    return True, None


def detach(session, store: ImageStore, style_no: str, url: str, po_line_id: Optional[int] = None) -> dict:
    warnings: List[str] = []
    storage_deleted = False
    path = store.path_from_url(url)
    if path:
        try:
            storage_deleted = store.delete(path)
        except (OSError, ValueError) as exc:
            logger.warning('Blob delete failed for %s: %s', path, exc)
            warnings.append(f'Storage delete failed: {exc}')
    else:
        warnings.append('URL is not in the configured bucket; storage left untouched.')
    po_updated = False
    if po_line_id is not None:
        po_updated, warning = _attempt(session, 'PO line', remove_from_po_line, po_line_id, url)
        if warning:
            warnings.append(warning)
    style_updated, warning = _attempt(session, 'product', remove_from_product, style_no, url)
    if warning:
        warnings.append(warning)
    return {
        'storage_deleted': storage_deleted,
        'po_line_updated': po_updated,
        'style_updated': style_updated,
        'warnings': warnings,
    }


__all__ = [
    'ImageStore', 'FanOutResult', 'guess_extension', 'safe_style', 'object_path', 'attach', 'detach',
    'add_to_product', 'add_to_po_line', 'remove_from_product', 'remove_from_po_line',
]
