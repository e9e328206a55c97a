"""HTTP error types carrying extra JSON payload.

`flask.abort` covers plain 400/401/403/404 cases. Business-rule conflicts need to report
structured context (quantities, lock state) next to the message, so they raise `ConflictError`
and the app-wide handler merges `extra` into the error envelope.
"""
from __future__ import annotations
from typing import Any, Dict, Optional
from werkzeug.exceptions import BadRequest, Conflict, HTTPException


class ConflictError(Conflict):
    """409 for over-cancel, confirmed-document edits, duplicate codes."""

    def __init__(self, description: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(description=description)
        self.extra = extra or {}


class ValidationError(BadRequest):
    """400 that reports the offending values (e.g. orig_cartons) next to the message."""

    def __init__(self, description: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(description=description)
        self.extra = extra or {}


def error_payload(e: HTTPException) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        'success': False,
        'ok': False,
        'error': e.description,
        'status': e.code,
        'title': e.name,
    }
    extra = getattr(e, 'extra', None)
    if extra:
        payload.update(extra)
    return payload


__all__ = ["ConflictError", "ValidationError", "error_payload"]
