import pytest
from app.config.pagination import normalize_pagination
from app.utils.filters import parse_bool
from app.utils.sorting import parse_sort


def test_parse_sort_tokens():
    assert parse_sort('-updated_at, po_no,,-po_no') == [('updated_at', True), ('po_no', False)]
    assert parse_sort(None) == []


@pytest.mark.parametrize('raw,expected', [('true', True), ('0', False), ('No', False), (True, True)])
def test_parse_bool(raw, expected):
    assert parse_bool(raw) is expected


def test_parse_bool_rejects_other_text():
    with pytest.raises(ValueError):
        parse_bool('maybe')


def test_pagination_bounds(app_context):
    assert normalize_pagination(None, None) == (50, 0)
    assert normalize_pagination('1000', '-5') == (200, 0)
    app_context.config['PAGE_LIMIT_MAX'] = 20
    try:
        assert normalize_pagination(None, '3') == (20, 3)
    finally:
        app_context.config.pop('PAGE_LIMIT_MAX')
    with pytest.raises(ValueError):
        normalize_pagination('ten', None)
