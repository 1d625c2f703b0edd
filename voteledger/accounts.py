'''Balance book of the identities that receive funds from the ledger.

The ledger pays out prizes and commissions by crediting accounts in an
:class:`Accounts` book. A credit either completes or raises without touching
the book, so the ledger operation that requested it can fail as a whole.
'''

import logging
from typing import Dict, Iterable, Optional

from voteledger.persist import simple_serialization

logger = logging.getLogger(__name__)


class TransferRejected(Exception):
    '''A recipient refused an incoming transfer.

    :param address: The refusing recipient.
    :param amount: Amount of the refused transfer, in base units.
    '''
    code = 'TransferRejected'

    def __init__(self, address: str, amount: int):
        self.address = address
        self.amount = amount
        super().__init__(f'transfer of {amount} to {address} rejected')


def check_amount(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f'invalid amount: {amount!r}, must be an integer')
    if amount < 0:
        raise ValueError(f'invalid amount: {amount}, must be >=0')


@simple_serialization
class Accounts:
    '''Balances of external identities, in base units.

    :param balances: Initial balances by address.
    :param rejecting: Addresses that refuse incoming transfers.
    '''
    def __init__(self,
                 balances: Optional[Dict[str, int]] = None,
                 rejecting: Optional[Iterable[str]] = None,
                 ):
        self.balances = {}
        if balances:
            for address, amount in balances.items():
                check_amount(amount)
                self.balances[address] = amount
        self.rejecting = frozenset(rejecting) if rejecting else frozenset()

    def balance_of(self, address: str) -> int:
        return self.balances.get(address, 0)

    def credit(self, address: str, amount: int) -> None:
        '''Add funds to the address.

        :raises TransferRejected: If the address refuses transfers.
        :raises ValueError: If the amount is not a non-negative integer.
        '''
        check_amount(amount)
        if address in self.rejecting:
            raise TransferRejected(address, amount)
        self.balances[address] = self.balance_of(address) + amount
        logger.debug('credited %d to %s', amount, address)

    def reject(self, address: str) -> None:
        '''Make the address refuse all further incoming transfers.'''
        self.rejecting = self.rejecting | {address}

    def accept(self, address: str) -> None:
        self.rejecting = self.rejecting - {address}

    def __eq__(self, other) -> bool:
        return (
            isinstance(other, Accounts)
            and self.balances == other.balances
            and self.rejecting == other.rejecting
        )

    def __repr__(self) -> str:
        return f'Accounts({self.balances!r})'
