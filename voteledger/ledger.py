'''The voting ledger: paid plurality voting with prize escrow.

An administrator registers candidates and opens a single voting round. Any
identity may then vote once for a registered candidate, paying exactly the
vote fee. After the round deadline passes, anyone may close the round; the
candidate with the most votes receives nine tenths of the collected funds
and the rest stays with the ledger as the administrator's commission.

The round goes through the phases of :class:`Phase` exactly once::

    IDLE --start_round--> STARTED --close_round--> CLOSED

Every operation first checks all its preconditions and only then changes
state, so a failed operation (signalled by a subclass of
:class:`LedgerError`) leaves the ledger exactly as it was.
'''

import abc
import enum
import logging
from typing import Any, Dict, List, Optional, Tuple

from voteledger.accounts import Accounts, check_amount
from voteledger.clock import Clock, SystemClock
from voteledger.persist import scoped_class_name, serialize_value, \
    deserialize_value
from voteledger.units import VOTE_FEE, ROUND_DURATION, format_value

logger = logging.getLogger(__name__)

REGISTERED_BASELINE: int = 1
'''Tally of a freshly registered candidate; zero means unregistered.'''

PRIZE_SHARE: Tuple[int, int] = (9, 10)
'''Share of the balance paid to the winner on close, as a fraction.'''


class Phase(enum.IntEnum):
    IDLE = 0
    STARTED = 1
    CLOSED = 2

    def __str__(self) -> str:
        return self.name.lower()


class LedgerError(Exception, metaclass=abc.ABCMeta):
    '''An operation was rejected by the ledger.

    The ``code`` attribute names the error category for callers that need
    to tell failures apart without catching individual classes.
    '''
    code: str = NotImplemented


class Unauthorized(LedgerError):
    '''The caller lacks the administrator privilege.

    :param caller: The rejected caller.
    '''
    code = 'Unauthorized'

    def __init__(self, caller: str):
        self.caller = caller
        super().__init__('Caller is not an owner')


class InvalidPhase(LedgerError):
    '''The operation is not allowed in the current phase.

    :param phase: The current phase of the ledger.
    :param expected: The phase the operation requires.
    '''
    code = 'InvalidPhase'

    def __init__(self, phase: Phase, expected: Phase):
        self.phase = phase
        self.expected = expected
        super().__init__(f"Voting isn't in '{expected}' state")


class DuplicateCandidate(LedgerError):
    code = 'DuplicateCandidate'

    def __init__(self, candidate: str):
        self.candidate = candidate
        super().__init__('Candidate has already added')


class NoCandidates(LedgerError):
    code = 'NoCandidates'

    def __init__(self):
        super().__init__("Can't start without candidates")


class RoundEnded(LedgerError):
    '''The vote came in after the round deadline.'''
    code = 'RoundEnded'

    def __init__(self, deadline: int, now: int):
        self.deadline = deadline
        self.now = now
        super().__init__('Voting has been ended')


class RoundNotEnded(LedgerError):
    '''The round cannot be closed before its deadline has passed.'''
    code = 'RoundNotEnded'

    def __init__(self, deadline: int, now: int):
        self.deadline = deadline
        self.now = now
        super().__init__("Voting hasn't been ended")


class RoundNotClosed(LedgerError):
    code = 'RoundNotClosed'

    def __init__(self, phase: Phase):
        self.phase = phase
        super().__init__("Profit hasn't been paid")


class AlreadyVoted(LedgerError):
    code = 'AlreadyVoted'

    def __init__(self, voter: str):
        self.voter = voter
        super().__init__('Transaction allowed only once')


class WrongFee(LedgerError):
    '''The value attached to the call differs from the required amount.

    :param value: The attached value, None if absent.
    :param expected: The exact amount required.
    '''
    code = 'WrongFee'

    def __init__(self, value: Optional[int], expected: int):
        self.value = value
        self.expected = expected
        super().__init__(f'Should be {format_value(expected)} Ether')


class UnknownCandidate(LedgerError):
    code = 'UnknownCandidate'

    def __init__(self, candidate: str):
        self.candidate = candidate
        super().__init__("Candidate hasn't been proposed")


class UnknownOperation(LedgerError):
    code = 'UnknownOperation'

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f'unknown operation: {operation}')


class VotingLedger:
    '''A single-round paid voting ledger.

    :param administrator: Identity allowed to register candidates, start the
        round and withdraw the commission. Fixed for the ledger's lifetime.
    :param clock: Source of the current time; the system clock by default.
    :param accounts: Book of recipient balances credited by payouts. A fresh
        empty book is created by default.
    :param fee: Exact value required with every vote, in base units.
    :param duration: Length of the voting window in seconds.
    '''
    def __init__(self,
                 administrator: str,
                 clock: Optional[Clock] = None,
                 accounts: Optional[Accounts] = None,
                 fee: int = VOTE_FEE,
                 duration: int = ROUND_DURATION,
                 ):
        if fee <= 0:
            raise ValueError(f'invalid vote fee: {fee}, must be >0')
        if duration <= 0:
            raise ValueError(f'invalid round duration: {duration} s')
        self._administrator = administrator
        self.clock = clock if clock is not None else SystemClock()
        self.accounts = accounts if accounts is not None else Accounts()
        self.fee = fee
        self.duration = duration
        self._phase = Phase.IDLE
        self._candidates: List[str] = []
        self._tally: Dict[str, int] = {}
        self._winner: Optional[str] = None
        self._voters = set()
        self._start_timestamp: Optional[int] = None
        self._balance = 0

    @property
    def administrator(self) -> str:
        return self._administrator

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def balance(self) -> int:
        '''Funds currently held by the ledger, in base units.'''
        return self._balance

    @property
    def candidates(self) -> List[str]:
        '''Registered candidates in order of registration.'''
        return list(self._candidates)

    @property
    def start_timestamp(self) -> Optional[int]:
        return self._start_timestamp

    @property
    def deadline(self) -> Optional[int]:
        '''Last instant at which votes are accepted; None before start.'''
        if self._start_timestamp is None:
            return None
        return self._start_timestamp + self.duration

    @property
    def winner(self) -> Optional[str]:
        '''The candidate currently leading; None until the first vote.'''
        return self._winner

    def votes_for(self, candidate: str) -> int:
        '''Return the number of accepted votes for the candidate.'''
        return max(self._tally.get(candidate, 0) - REGISTERED_BASELINE, 0)

    def has_voted(self, address: str) -> bool:
        return address in self._voters

    def is_ended(self) -> bool:
        '''Return True if the round deadline has strictly passed.'''
        if self._start_timestamp is None:
            return False
        return self.clock.now() - self._start_timestamp > self.duration

    def _require_administrator(self, caller: str) -> None:
        if caller != self._administrator:
            raise Unauthorized(caller)

    def _require_phase(self, expected: Phase) -> None:
        if self._phase != expected:
            raise InvalidPhase(self._phase, expected)

    def register_candidate(self, caller: str, candidate: str) -> None:
        '''Register a new candidate. Only allowed before the round starts.

        :raises Unauthorized: If the caller is not the administrator.
        :raises InvalidPhase: If the round has already started.
        :raises DuplicateCandidate: If the candidate is already registered.
        '''
        self._require_administrator(caller)
        self._require_phase(Phase.IDLE)
        if self._tally.get(candidate, 0) != 0:
            raise DuplicateCandidate(candidate)
        self._tally[candidate] = REGISTERED_BASELINE
        self._candidates.append(candidate)
        logger.info('registered candidate %s', candidate)

    def start_round(self, caller: str) -> None:
        '''Open the voting window at the current time.

        :raises Unauthorized: If the caller is not the administrator.
        :raises InvalidPhase: If the round has already started.
        :raises NoCandidates: If no candidate is registered.
        '''
        self._require_administrator(caller)
        self._require_phase(Phase.IDLE)
        if not self._candidates:
            raise NoCandidates()
        self._start_timestamp = self.clock.now()
        self._phase = Phase.STARTED
        logger.info('round started at %d with %d candidates, ends at %d',
                    self._start_timestamp, len(self._candidates),
                    self.deadline)

    def cast_vote(self,
                  caller: str,
                  candidate: str,
                  paid_value: Optional[int] = None,
                  ) -> None:
        '''Vote for a registered candidate, paying exactly the vote fee.

        Every identity can vote only once, whichever candidate it chooses.
        Votes are accepted up to and including the deadline instant.

        :param caller: The voting identity.
        :param candidate: The candidate voted for.
        :param paid_value: Value attached to the vote, in base units.
        :raises InvalidPhase: If the round is not running.
        :raises RoundEnded: If the deadline has passed.
        :raises AlreadyVoted: If the caller has voted before.
        :raises WrongFee: If the attached value is not exactly the fee.
        :raises UnknownCandidate: If the candidate is not registered.
        '''
        self._require_phase(Phase.STARTED)
        now = self.clock.now()
        if now - self._start_timestamp > self.duration:
            raise RoundEnded(self.deadline, now)
        if caller in self._voters:
            raise AlreadyVoted(caller)
        if (isinstance(paid_value, bool) or not isinstance(paid_value, int)
                or paid_value != self.fee):
            raise WrongFee(paid_value, self.fee)
        current = self._tally.get(candidate, 0)
        if current == 0:
            raise UnknownCandidate(candidate)
        self._tally[candidate] = current + 1
        leading = self._tally[self._winner] if self._winner is not None else 0
        if self._tally[candidate] > leading:
            self._winner = candidate
        self._balance += paid_value
        self._voters.add(caller)
        logger.debug('%s voted for %s, now at %d votes',
                     caller, candidate, self.votes_for(candidate))

    def close_round(self, caller: str) -> Optional[int]:
        '''Close the round after its deadline and pay out the winner.

        Anyone can close the round. If any vote was cast, the winner receives
        ``balance // 10 * 9``; the remainder is kept as commission.

        :param caller: The closing identity; not restricted.
        :returns: The amount paid to the winner, None if nobody voted.
        :raises InvalidPhase: If the round is not running.
        :raises RoundNotEnded: If the deadline has not strictly passed.
        :raises TransferRejected: If the winner refuses the payout; the round
            then stays open.
        '''
        self._require_phase(Phase.STARTED)
        if not self.is_ended():
            raise RoundNotEnded(self.deadline, self.clock.now())
        payout = None
        if self._winner is not None:
            share_num, share_denom = PRIZE_SHARE
            payout = self._balance // share_denom * share_num
            self.accounts.credit(self._winner, payout)
            self._balance -= payout
        self._phase = Phase.CLOSED
        if payout is None:
            logger.info('round closed by %s without votes', caller)
        else:
            logger.info('round closed by %s, paid %s to winner %s',
                        caller, format_value(payout), self._winner)
        return payout

    def withdraw_commission(self, caller: str, destination: str) -> int:
        '''Transfer the whole remaining balance to the destination.

        Can be repeated; once drained, further withdrawals transfer zero.

        :returns: The amount transferred.
        :raises Unauthorized: If the caller is not the administrator.
        :raises RoundNotClosed: If the round has not been closed yet.
        :raises TransferRejected: If the destination refuses the transfer.
        '''
        self._require_administrator(caller)
        if self._phase != Phase.CLOSED:
            raise RoundNotClosed(self._phase)
        amount = self._balance
        self.accounts.credit(destination, amount)
        self._balance = 0
        logger.info('withdrew commission of %s to %s',
                    format_value(amount), destination)
        return amount

    def call(self,
             operation: str,
             caller: str,
             *args,
             value: Optional[int] = None,
             ) -> Any:
        '''Invoke an operation by its external name.

        Value may only be attached to votes; any other operation rejects
        a non-zero value.

        :param operation: Name of the entry point, see :data:`ENTRY_POINTS`.
        :param caller: Identity invoking the operation.
        :param args: Positional arguments of the operation.
        :param value: Value attached to the call, in base units.
        :raises UnknownOperation: If there is no such entry point.
        '''
        try:
            method_name = ENTRY_POINTS[operation]
        except KeyError:
            raise UnknownOperation(operation) from None
        if method_name in QUERIES:
            if args:
                raise TypeError(f'{operation} takes no arguments')
            return getattr(self, method_name)
        method = getattr(self, method_name)
        if method_name == 'cast_vote':
            return method(caller, *args, paid_value=value)
        if value:
            raise WrongFee(value, 0)
        return method(caller, *args)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'class': scoped_class_name(self),
            'administrator': self._administrator,
            'fee': self.fee,
            'duration': self.duration,
            'phase': serialize_value(self._phase),
            'candidates': list(self._candidates),
            'tally': dict(self._tally),
            'winner': self._winner,
            'voters': sorted(self._voters),
            'start_timestamp': self._start_timestamp,
            'balance': self._balance,
            'accounts': self.accounts.to_dict(),
        }

    @classmethod
    def from_dict(cls,
                  params: Dict[str, Any],
                  clock: Optional[Clock] = None,
                  ) -> 'VotingLedger':
        '''Restore a ledger from the output of :meth:`to_dict`.

        :param params: The serialized ledger, with or without the class key.
        :param clock: Clock for the restored ledger.
        :raises ValueError: If the serialized state is inconsistent.
        '''
        try:
            ledger = cls(
                params['administrator'],
                clock=clock,
                accounts=deserialize_value(params['accounts']),
                fee=params['fee'],
                duration=params['duration'],
            )
            phase = deserialize_value(params['phase'])
            candidates = list(params['candidates'])
            tally = dict(params['tally'])
        except (KeyError, TypeError) as e:
            raise ValueError(f'invalid serialized ledger: {e!r}') from e
        if not isinstance(phase, Phase):
            raise ValueError(f'invalid ledger phase: {phase!r}')
        if set(candidates) != set(tally) or len(candidates) != len(tally):
            raise ValueError('ledger candidates do not match the tally')
        if any(count < REGISTERED_BASELINE for count in tally.values()):
            raise ValueError('ledger tally holds an unregistered candidate')
        winner = params.get('winner')
        if winner is not None and winner not in tally:
            raise ValueError(f'ledger winner {winner} is not a candidate')
        start = params.get('start_timestamp')
        if (start is None) != (phase == Phase.IDLE):
            raise ValueError(f'ledger start time {start} invalid in {phase}')
        voters = params.get('voters', [])
        if (not isinstance(voters, list)
                or not all(isinstance(voter, str) for voter in voters)):
            raise ValueError(f'invalid ledger voters: {voters!r}')
        balance = params.get('balance', 0)
        check_amount(balance)
        ledger._phase = phase
        ledger._candidates = candidates
        ledger._tally = tally
        ledger._winner = winner
        ledger._voters = set(voters)
        ledger._start_timestamp = start
        ledger._balance = balance
        return ledger


QUERIES = frozenset([
    'phase', 'administrator', 'balance', 'candidates', 'start_timestamp',
])

ENTRY_POINTS: Dict[str, str] = {
    'registerCandidate': 'register_candidate',
    'startRound': 'start_round',
    'castVote': 'cast_vote',
    'closeRound': 'close_round',
    'withdrawCommission': 'withdraw_commission',
    'getPhase': 'phase',
    'getOwner': 'administrator',
    'getBalance': 'balance',
    'getCandidates': 'candidates',
    'startTimestamp': 'start_timestamp',
    # legacy contract names
    'addCandidate': 'register_candidate',
    'startVoting': 'start_round',
    'vote': 'cast_vote',
    'closeVoting': 'close_round',
    'withdrawCommision': 'withdraw_commission',
    'status': 'phase',
}
