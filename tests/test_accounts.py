import sys
import os

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
from voteledger.accounts import Accounts, TransferRejected


def test_credit():
    accounts = Accounts()
    assert accounts.balance_of('A') == 0
    accounts.credit('A', 5)
    accounts.credit('A', 7)
    accounts.credit('B', 0)
    assert accounts.balance_of('A') == 12
    assert accounts.balances == {'A': 12, 'B': 0}


@pytest.mark.parametrize('amount', [-1, 1.5, None, '3', True])
def test_credit_invalid(amount):
    accounts = Accounts({'A': 1})
    with pytest.raises(ValueError):
        accounts.credit('A', amount)
    assert accounts.balance_of('A') == 1


def test_initial_balances_checked():
    with pytest.raises(ValueError):
        Accounts({'A': -3})


def test_rejecting_recipient():
    accounts = Accounts({'A': 1}, rejecting=['A'])
    with pytest.raises(TransferRejected) as excinfo:
        accounts.credit('A', 10)
    assert excinfo.value.address == 'A'
    assert excinfo.value.amount == 10
    assert excinfo.value.code == 'TransferRejected'
    assert accounts.balance_of('A') == 1
    accounts.accept('A')
    accounts.credit('A', 10)
    assert accounts.balance_of('A') == 11
    accounts.reject('A')
    with pytest.raises(TransferRejected):
        accounts.credit('A', 0)


def test_equality():
    assert Accounts({'A': 1}) == Accounts({'A': 1})
    assert Accounts({'A': 1}) != Accounts({'A': 2})
    assert Accounts({'A': 1}, ['B']) != Accounts({'A': 1})
