"""Paginated list responses with ETag / Last-Modified validators.

`paged_list_response` is the one entry point list routes use: it paginates a query, serializes the
page, attaches validators and answers 304 when the client's copy is still current.
`entity_response` does the same for a single document.
"""
from __future__ import annotations
import hashlib
import json
from datetime import datetime, timezone, timedelta
from email.utils import parsedate_to_datetime, format_datetime
from typing import Any, Callable, Iterable, Optional, Tuple
from flask import request, abort, make_response, jsonify
from sqlalchemy.orm import Query
from app.config.pagination import normalize_pagination

TIMESTAMP_TOLERANCE = timedelta(seconds=1)


def canonicalize_timestamp(dt: datetime) -> datetime:
    """UTC tz-aware, whole seconds."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0)


def iso_z(dt: Optional[datetime]) -> str:
    return canonicalize_timestamp(dt).isoformat().replace('+00:00', 'Z') if dt else ''


def http_date(dt: datetime) -> str:
    return format_datetime(canonicalize_timestamp(dt), usegmt=True)


def compute_etag(*parts: Any) -> str:
    seed = '|'.join(str(p) for p in parts)
    return hashlib.sha256(seed.encode()).hexdigest()[:32]


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        limit, offset = normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'success': True,
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows),
        },
    }


def _set_validators(resp, etag: str, latest_ts: Optional[datetime]):
    resp.headers['ETag'] = etag
    if latest_ts:
        resp.headers['Last-Modified'] = http_date(latest_ts)
        resp.headers['X-Last-Modified-ISO'] = iso_z(latest_ts)
    return resp


def _parse_if_modified_since(header_val: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(header_val.replace('Z', '+00:00'))
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(header_val)
    except (TypeError, ValueError):
        return None


def not_modified(etag: str, latest_ts: Optional[datetime]):
    """304 response when If-None-Match (checked first) or If-Modified-Since matches, else None."""
    inm = request.headers.get('If-None-Match')
    if inm:
        if inm.strip('"') != etag:
            return None
    else:
        ims = _parse_if_modified_since(request.headers.get('If-Modified-Since') or '')
        if not (ims and latest_ts and canonicalize_timestamp(latest_ts) <= canonicalize_timestamp(ims) + TIMESTAMP_TOLERANCE):
            return None
    return _set_validators(make_response('', 304), etag, latest_ts)


def _latest(rows: Iterable[Any], attr: str) -> Optional[datetime]:
    return max((getattr(r, attr) for r in rows if getattr(r, attr, None)), default=None)


def paged_list_response(q: Query, serialize: Callable[[Any], dict], updated_attr: str = 'updated_at'):
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    latest_ts = _latest(rows, updated_attr)
    data = [serialize(r) for r in rows]
    etag = compute_etag([d.get('id') for d in data], total, limit, offset, iso_z(latest_ts))
    cached = not_modified(etag, latest_ts)
    if cached is not None:
        return cached
    return _set_validators(make_response(build_list_payload(data, total, limit, offset)), etag, latest_ts)


def entity_response(payload: dict, entity_id: Any, latest_ts: Optional[datetime]):
    """Single-document GET/HEAD with validators; HEAD gets an empty body."""
    body = json.dumps(payload, sort_keys=True, default=str)
    etag = compute_etag('entity', entity_id, iso_z(latest_ts), hashlib.sha256(body.encode()).hexdigest())
    cached = not_modified(etag, latest_ts)
    if cached is not None:
        return cached
    resp = _set_validators(make_response(jsonify(payload)), etag, latest_ts)
    if request.method == 'HEAD':
        resp.set_data(b'')
    return resp


__all__ = [
    'canonicalize_timestamp', 'compute_etag', 'apply_pagination', 'build_list_payload',
    'not_modified', 'paged_list_response', 'entity_response',
]
