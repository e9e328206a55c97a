import pytest
from werkzeug.exceptions import BadRequest
from app.errors import ConflictError
from app.utils.fsm import TransitionValidator
from app.utils import validation as v
from app.services.invoices import INVOICE_FSM


def test_transition_validator_allows_valid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    assert fsm.assert_can_transition('A', 'B') is True
    assert fsm.can_transition('B', 'A') is False


def test_transition_validator_blocks_invalid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    with pytest.raises(ConflictError) as exc:
        fsm.assert_can_transition('A', 'C')
    assert exc.value.extra == {'current': 'A', 'target': 'C'}


def test_invoice_confirm_is_terminal():
    assert INVOICE_FSM.can_transition('DRAFT', 'CONFIRMED')
    assert not INVOICE_FSM.can_transition('CONFIRMED', 'DRAFT')


@pytest.mark.parametrize('raw,expected', [(3, 3), ('4', 4), (5.0, 5), (0, 0)])
def test_non_negative_int_accepts(raw, expected):
    assert v.non_negative_int(raw, 'qty') == expected


@pytest.mark.parametrize('raw', [True, False, 1.5, -2, 'x', None, [1], float('nan')])
def test_non_negative_int_rejects(raw):
    with pytest.raises(BadRequest):
        v.non_negative_int(raw, 'qty')


def test_positive_int_rejects_zero():
    with pytest.raises(BadRequest):
        v.positive_int(0, 'split_qty')


def test_optional_number_and_date():
    assert v.optional_number(None, 'gw') is None
    assert v.optional_number('2.5', 'gw') == 2.5
    with pytest.raises(BadRequest):
        v.optional_number(-1, 'gw')
    with pytest.raises(BadRequest):
        v.optional_number(True, 'gw')
    assert v.optional_date('2024-03-09T10:00:00Z', 'etd').isoformat() == '2024-03-09'
    with pytest.raises(BadRequest):
        v.optional_date('09/03/2024', 'etd')


def test_required_text_and_round3():
    assert v.required_text({'code': '  AB '}, 'code') == 'AB'
    with pytest.raises(BadRequest):
        v.required_text({'code': '   '}, 'code')
    assert v.round3(1.23456) == 1.235
    with pytest.raises(BadRequest):
        v.validate_status('NOPE', ('A', 'B'))
