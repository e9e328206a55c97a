from __future__ import annotations
from typing import List, Tuple
from flask import abort


def parse_sort(sort_expr: str | None) -> List[Tuple[str, bool]]:
    """'-updated_at,po_no' -> [('updated_at', True), ('po_no', False)]; blanks and repeats dropped."""
    out: List[Tuple[str, bool]] = []
    seen = set()
    for raw in (sort_expr or '').split(','):
        token = raw.strip()
        if not token:
            continue
        desc = token.startswith('-')
        key = token.lstrip('-+')
        if key and key not in seen:
            seen.add(key)
            out.append((key, desc))
    return out


def apply_multi_sort(query, sort_expr: str | None, allowed: dict, tie_breaker):
    """Order by the requested fields, then tie_breaker ascending for stable pages.

    allowed maps public field names to columns; an unknown field aborts 400.
    """
    clauses = []
    for key, desc in parse_sort(sort_expr):
        col = allowed.get(key)
        if col is None:
            abort(400, description=f"Invalid sort field {key} (allowed: {', '.join(sorted(allowed))})")
        clauses.append(col.desc() if desc else col.asc())
    clauses.append(tie_breaker.asc())
    return query.order_by(*clauses)
