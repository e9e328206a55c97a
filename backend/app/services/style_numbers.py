"""House style numbers: J{category}{yy}{seq:04}, e.g. JN260001.

An optional trailing letter marks a variant of the same base style (JN260001A).
"""
from __future__ import annotations
import re
from datetime import date
from typing import Dict, Optional
from sqlalchemy import select
from app.models.product import DevProduct

STYLE_NO_RE = re.compile(r'^J[A-Z][0-9]{6}[A-Z]?$')

CATEGORY_CODES = ('N', 'E', 'B', 'H', 'A', 'R')
CATEGORY_WORDS = {
    'NECK': 'N',
    'EARR': 'E',
    'BRAC': 'B',
    'HAIR': 'H',
    'ANK': 'A',
    'RING': 'R',
}
DEFAULT_CATEGORY = 'N'


def category_code(raw: Optional[str]) -> str:
    """Single-letter code for a category code or name ('Necklace' -> 'N'); unknown maps to N."""
    value = (raw or '').strip().upper()
    if value in CATEGORY_CODES:
        return value
    for word, code in CATEGORY_WORDS.items():
        if word in value:
            return code
    return DEFAULT_CATEGORY


def next_style_no(session, category: Optional[str], today: Optional[date] = None) -> Dict[str, object]:
    code = category_code(category)
    today = today or date.today()
    prefix = f'J{code}{today.year % 100:02d}'
    existing = session.execute(
        select(DevProduct.style_no).where(DevProduct.style_no.like(f'{prefix}%'))
    ).scalars().all()
    seq = 0
    for no in existing:
        tail = no[len(prefix):len(prefix) + 4]
        if len(tail) == 4 and tail.isdigit():
            seq = max(seq, int(tail))
    seq += 1
    return {'style_no': f'{prefix}{seq:04d}', 'prefix': prefix, 'seq': seq, 'category_code': code}


def check_style_no(session, raw: Optional[str]) -> Dict[str, bool]:
    style_no = (raw or '').strip().upper()
    if not style_no or not STYLE_NO_RE.match(style_no):
        return {'valid': False, 'exists': False}
    exists = session.execute(
        select(DevProduct.id).where(DevProduct.style_no == style_no, DevProduct.is_deleted.is_(False))
    ).first() is not None
    return {'valid': True, 'exists': exists}


__all__ = ['STYLE_NO_RE', 'category_code', 'next_style_no', 'check_style_no']
