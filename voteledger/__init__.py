"""Voteledger - a paid plurality voting ledger with prize escrow.

A :class:`VotingLedger` runs a single voting round:

-   The administrator registers candidates and starts the round.
-   Every identity can vote once for a registered candidate, attaching
    exactly the vote fee (see the ``units`` module for value amounts).
-   After the round deadline, anyone can close the round; nine tenths of the
    collected funds go to the winner.
-   The administrator withdraws the rest as commission.

The ``persist`` module saves and restores ledgers as JSON and the package
can be run as a command line tool (``python -m voteledger``) operating on
a ledger state file.
"""

from voteledger.accounts import Accounts, TransferRejected    # noqa: F401
from voteledger.clock import Clock, SystemClock, ManualClock    # noqa: F401
from voteledger.ledger import *    # noqa
from voteledger.units import VOTE_FEE, ROUND_DURATION    # noqa: F401
