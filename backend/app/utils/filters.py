from __future__ import annotations
from typing import Any, Dict
from flask import abort
from sqlalchemy import or_

_TRUE = {'1', 'true', 'yes', 'y', 'on'}
_FALSE = {'0', 'false', 'no', 'n', 'off'}


def parse_bool(raw: Any) -> bool:
    """Query-string boolean; anything outside the known spellings raises ValueError."""
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(raw)


def eq(column):
    return lambda q, v: q.filter(column == v)


def contains(*columns):
    """Case-insensitive substring match over one or more columns (OR-ed)."""
    return lambda q, v: q.filter(or_(*[c.ilike(f'%{v}%') for c in columns]))


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params: Dict[str, Any]):
    """Apply the filters whose parameter is present in params.

    specs: { param_name: {'op': callable(query, value) -> query,
                          'coerce': callable (optional), 'choices': iterable (optional),
                          'validate': callable (optional)} }
    A value that fails coerce/choices/validate aborts 400 naming the parameter.
    """
    for name, meta in specs.items():
        val = params.get(name)
        if val is None or val == '':
            continue
        if 'coerce' in meta:
            try:
                val = meta['coerce'](val)
            except (TypeError, ValueError, KeyError):
                abort(400, description=f'{name} invalid')
        if 'choices' in meta and val not in meta['choices']:
            abort(400, description=f"{name} must be one of {', '.join(meta['choices'])}")
        if 'validate' in meta and not meta['validate'](val):
            abort(400, description=f'{name} invalid')
        query = meta['op'](query, val)
    return query
