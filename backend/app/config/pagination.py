from flask import current_app

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def pagination_bounds():
    """(default, max) page size; PAGE_LIMIT_DEFAULT / PAGE_LIMIT_MAX override the module constants."""
    cfg = current_app.config if current_app else {}
    default = int(cfg.get('PAGE_LIMIT_DEFAULT') or DEFAULT_LIMIT)
    maximum = int(cfg.get('PAGE_LIMIT_MAX') or MAX_LIMIT)
    return min(default, maximum), maximum


def normalize_pagination(limit_raw, offset_raw):
    default, maximum = pagination_bounds()
    try:
        limit = int(limit_raw) if limit_raw not in (None, '') else default
        offset = int(offset_raw) if offset_raw not in (None, '') else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    limit = max(1, min(limit, maximum))
    offset = max(0, offset)
    return limit, offset
