"""Schema capability map.

The set of tables present in the bound database is read once per engine and cached on the app,
so optional sources (legacy grant/revoke tables, role default rows) are checked by name instead of
by issuing a query and catching "relation does not exist".
"""
from __future__ import annotations
from typing import FrozenSet
from flask import current_app
from sqlalchemy import inspect
from app import get_db

_EXT_KEY = 'schema_capabilities'


def table_names() -> FrozenSet[str]:
    engine = get_db().get_bind()
    cache = current_app.extensions.setdefault(_EXT_KEY, {})
    key = str(engine.url)
    if key not in cache:
        cache[key] = frozenset(inspect(engine).get_table_names())
    return cache[key]


def has_table(name: str) -> bool:
    return name in table_names()


def refresh_capabilities():
    """Drop the cached map (after migrations or create_all)."""
    current_app.extensions.pop(_EXT_KEY, None)


__all__ = ['table_names', 'has_table', 'refresh_capabilities']
