'''Native value units and the fixed economic constants of the ledger.

All amounts handled by the ledger are integers counted in the smallest
indivisible unit. One native unit (shown to humans, e.g. in the vote fee of
0.01) consists of ``10 ** VALUE_DECIMALS`` base units. Keeping amounts integral
makes the payout split exact and reproducible: the truncation in
``balance // 10 * 9`` happens on base units.
'''

import decimal
from decimal import Decimal
from typing import Union

VALUE_DECIMALS: int = 18
UNIT: int = 10 ** VALUE_DECIMALS

SECONDS_PER_DAY: int = 24 * 60 * 60

AmountInput = Union[str, int, Decimal]


def parse_value(value: AmountInput) -> int:
    '''Convert an amount given in native units to base units.

    :param value: A decimal string (such as ``'0.01'``), an integer or a
        :class:`Decimal` expressed in native units.
    :raises ValueError: If the amount is negative, not a number or finer
        than a single base unit.
    '''
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f'invalid amount type: {type(value).__name__}')
    try:
        amount = Decimal(value.strip() if isinstance(value, str) else value)
    except decimal.InvalidOperation as e:
        raise ValueError(f'invalid amount: {value!r}') from e
    if not amount.is_finite():
        raise ValueError(f'invalid amount: {value!r}')
    if amount < 0:
        raise ValueError(f'negative amount: {value!r}')
    with decimal.localcontext() as ctx:
        n_digits = len(amount.as_tuple().digits)
        ctx.prec = max(ctx.prec, n_digits + VALUE_DECIMALS)
        scaled = amount.scaleb(VALUE_DECIMALS)
    if scaled != scaled.to_integral_value():
        raise ValueError(
            f'amount {value!r} has more than {VALUE_DECIMALS} decimal places'
        )
    return int(scaled)


def format_value(amount: int) -> str:
    '''Render an amount of base units in native units.

    >>> format_value(10 ** 16)
    '0.01'
    '''
    whole, frac = divmod(abs(amount), UNIT)
    sign = '-' if amount < 0 else ''
    if not frac:
        return f'{sign}{whole}'
    frac_str = str(frac).rjust(VALUE_DECIMALS, '0').rstrip('0')
    return f'{sign}{whole}.{frac_str}'


VOTE_FEE: int = parse_value('0.01')
'''Exact value that must accompany every vote.'''

ROUND_DURATION: int = 3 * SECONDS_PER_DAY
'''Length of the voting window in seconds, counted from the round start.'''
