import sys
import os
from decimal import Decimal

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
from voteledger.units import parse_value, format_value, VOTE_FEE, \
    ROUND_DURATION, UNIT


@pytest.mark.parametrize('value, expected', [
    ('0.01', 10 ** 16),
    ('0.001', 10 ** 15),
    (' 1 ', UNIT),
    ('0', 0),
    (3, 3 * UNIT),
    (Decimal('0.5'), UNIT // 2),
    ('0.000000000000000001', 1),
    ('123456789012.000000000000000001', 123456789012 * UNIT + 1),
])
def test_parse_value(value, expected):
    assert parse_value(value) == expected


@pytest.mark.parametrize('value', [
    '-0.01', '0.0000000000000000001', 'abc', '', 'nan', 'inf', 0.01, True,
])
def test_parse_value_invalid(value):
    with pytest.raises(ValueError):
        parse_value(value)


@pytest.mark.parametrize('amount, expected', [
    (10 ** 16, '0.01'),
    (27 * 10 ** 15, '0.027'),
    (0, '0'),
    (UNIT * 2, '2'),
    (1, '0.000000000000000001'),
    (-UNIT // 2, '-0.5'),
])
def test_format_value(amount, expected):
    assert format_value(amount) == expected


def test_constants():
    assert VOTE_FEE == 10 ** 16
    assert ROUND_DURATION == 259200
