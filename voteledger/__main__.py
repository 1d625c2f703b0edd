"""A commandline tool to deploy and operate a voting ledger.

The ledger state is kept in a JSON file between invocations. Each command
performs a single ledger operation on behalf of the caller and saves the
state only if the operation succeeded.
"""

import argparse
import logging
import os
import sys
from typing import Optional, List

import voteledger.persist
from voteledger.accounts import TransferRejected
from voteledger.clock import Clock, ManualClock, SystemClock
from voteledger.ledger import VotingLedger, LedgerError
from voteledger.units import VOTE_FEE, ROUND_DURATION, parse_value, \
    format_value

logger = logging.getLogger(__name__)

STATE_FILE_ENV = 'VOTELEDGER_STATE'
CALLER_ENV = 'VOTELEDGER_CALLER'
DEFAULT_STATE_FILE = 'voteledger.json'

argparser = argparse.ArgumentParser(
    prog='voteledger',
    description=__doc__,
    formatter_class=argparse.ArgumentDefaultsHelpFormatter,
)
argparser.add_argument(
    '-s', '--state-file',
    help=(
        f'file holding the ledger state; default taken from ${STATE_FILE_ENV}'
        f', falling back to {DEFAULT_STATE_FILE}'
    ),
)
argparser.add_argument(
    '-c', '--caller',
    help=(
        f'identity performing the operation; default taken from ${CALLER_ENV}'
        ', falling back to the ledger administrator'
    ),
)
argparser.add_argument(
    '-t', '--timestamp',
    type=int,
    help='perform the operation at this UNIX time instead of now',
)
argparser.add_argument(
    '-v', '--verbose',
    action='store_true',
    help='show all ledger log messages',
)
argparser.add_argument(
    '-q', '--quiet',
    action='store_true',
    help='do not show any ledger log messages except errors',
)
subparsers = argparser.add_subparsers(dest='command', metavar='command')
deploy_parser = subparsers.add_parser(
    'deploy', help='create a new ledger state file'
)
deploy_parser.add_argument('administrator', help='administrator identity')
deploy_parser.add_argument(
    '--fee',
    default=format_value(VOTE_FEE),
    help='exact value required with each vote',
)
deploy_parser.add_argument(
    '--duration',
    type=int,
    default=ROUND_DURATION,
    help='length of the voting round in seconds',
)
deploy_parser.add_argument(
    '-f', '--force',
    action='store_true',
    help='overwrite an existing state file',
)
add_parser = subparsers.add_parser(
    'add-candidate', help='register a candidate'
)
add_parser.add_argument('address', help='candidate identity')
subparsers.add_parser('start', help='start the voting round')
vote_parser = subparsers.add_parser('vote', help='vote for a candidate')
vote_parser.add_argument('candidate', help='candidate identity')
vote_parser.add_argument(
    '--from',
    dest='voter',
    help='voting identity; default is the caller',
)
vote_parser.add_argument(
    '--value',
    help='value attached to the vote; default is the ledger vote fee',
)
subparsers.add_parser('close', help='close the voting round, pay the winner')
withdraw_parser = subparsers.add_parser(
    'withdraw', help='withdraw the commission'
)
withdraw_parser.add_argument(
    '--to',
    dest='destination',
    help='commission recipient; default is the caller',
)
subparsers.add_parser('status', help='show the ledger state')


def main(command: str,
         state_file: Optional[str] = None,
         caller: Optional[str] = None,
         timestamp: Optional[int] = None,
         verbose: bool = False,
         quiet: bool = False,
         **options,
         ) -> int:
    """Run a single command and return the process exit status."""
    logging.basicConfig(
        level=(
            logging.DEBUG if verbose
            else (logging.ERROR if quiet else logging.INFO)
        ),
        format='%(levelname)-10s %(message)s'
    )
    if state_file is None:
        state_file = os.environ.get(STATE_FILE_ENV, DEFAULT_STATE_FILE)
    if caller is None:
        caller = os.environ.get(CALLER_ENV)
    if caller is not None:
        caller = caller.strip()
    try:
        if timestamp is None:
            clock = SystemClock()
        else:
            clock = ManualClock(timestamp)
        if command == 'deploy':
            deploy(state_file, clock=clock, **options)
        else:
            ledger = load_ledger(state_file, clock)
            if caller is None:
                caller = ledger.administrator
            if COMMANDS[command](ledger, caller, **options):
                save_ledger(ledger, state_file)
    except (LedgerError, TransferRejected) as e:
        logger.error('%s: %s', e.code, e)
        return 1
    except (OSError, ValueError) as e:
        logger.error('%s', e)
        return 1
    return 0


def deploy(state_file: str,
           administrator: str,
           clock: Clock,
           fee: str = format_value(VOTE_FEE),
           duration: int = ROUND_DURATION,
           force: bool = False,
           ) -> VotingLedger:
    """Create a fresh ledger and save it to the state file."""
    if os.path.exists(state_file) and not force:
        raise FileExistsError(
            f'{state_file} already exists, use --force to overwrite'
        )
    ledger = VotingLedger(
        administrator.strip(),
        clock=clock,
        fee=parse_value(fee),
        duration=duration,
    )
    save_ledger(ledger, state_file)
    print(f'Ledger deployed to {state_file}')
    print(f'Administrator: {ledger.administrator}')
    return ledger


def load_ledger(state_file: str, clock: Clock) -> VotingLedger:
    with open(state_file, encoding='utf8') as infile:
        ledger = voteledger.persist.load(infile)
    if not isinstance(ledger, VotingLedger):
        raise ValueError(f'{state_file} does not contain a voting ledger')
    ledger.clock = clock
    return ledger


def save_ledger(ledger: VotingLedger, state_file: str) -> None:
    tmp_file = state_file + '.tmp'
    with open(tmp_file, 'w', encoding='utf8') as outfile:
        voteledger.persist.dump(ledger, outfile)
    os.replace(tmp_file, state_file)
    logger.debug('ledger state saved to %s', state_file)


def add_candidate(ledger: VotingLedger, caller: str, address: str) -> bool:
    ledger.register_candidate(caller, address.strip())
    print(f'Candidate {address.strip()} registered')
    return True


def start(ledger: VotingLedger, caller: str) -> bool:
    ledger.start_round(caller)
    print(f'Voting started, open until {ledger.deadline}')
    return True


def vote(ledger: VotingLedger,
         caller: str,
         candidate: str,
         voter: Optional[str] = None,
         value: Optional[str] = None,
         ) -> bool:
    paid = ledger.fee if value is None else parse_value(value)
    voter = (caller if voter is None else voter).strip()
    ledger.cast_vote(voter, candidate.strip(), paid)
    print(f'{voter} voted for {candidate.strip()}')
    return True


def close(ledger: VotingLedger, caller: str) -> bool:
    payout = ledger.close_round(caller)
    if payout is None:
        print('Voting closed, nobody voted')
    else:
        print(f'Voting closed, {ledger.winner} won {format_value(payout)}')
    return True


def withdraw(ledger: VotingLedger,
             caller: str,
             destination: Optional[str] = None,
             ) -> bool:
    if destination is None:
        destination = caller
    amount = ledger.withdraw_commission(caller, destination)
    print(f'Withdrew {format_value(amount)} to {destination}')
    return True


def status(ledger: VotingLedger, caller: str) -> bool:
    """Show the full ledger state. Does not modify the ledger."""
    rows = [
        ('Phase', str(ledger.phase)),
        ('Owner', ledger.administrator),
        ('Balance', format_value(ledger.balance)),
        ('Vote fee', format_value(ledger.fee)),
        ('Started', _show_optional(ledger.start_timestamp)),
        ('Deadline', _show_optional(ledger.deadline)),
        ('Winner', _show_optional(ledger.winner)),
    ]
    show_table(rows)
    print()
    if not ledger.candidates:
        print('No candidates')
    else:
        print('Candidates:')
        show_table([
            (cand, str(ledger.votes_for(cand))) for cand in ledger.candidates
        ], indent=2)
    return False


def show_table(rows: List[tuple], indent: int = 0) -> None:
    n_just_chars = len(max((left for left, _ in rows), key=len))
    for left, right in rows:
        print(' ' * indent + left.ljust(n_just_chars), ' ', right)


def _show_optional(value) -> str:
    return '-' if value is None else str(value)


COMMANDS = {
    'add-candidate': add_candidate,
    'start': start,
    'vote': vote,
    'close': close,
    'withdraw': withdraw,
    'status': status,
}


def run(argv: Optional[List[str]] = None) -> int:
    args = argparser.parse_args(argv)
    if not args.command:
        argparser.print_usage()
        return 2
    return main(**vars(args))


if __name__ == '__main__':
    sys.exit(run())
