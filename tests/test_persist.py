import sys
import os
import io
import json

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))
import voteledger.persist
from voteledger.accounts import Accounts
from voteledger.clock import ManualClock
from voteledger.ledger import VotingLedger, Phase, AlreadyVoted
from voteledger.units import VOTE_FEE, ROUND_DURATION

START_TIME = 5000


def build_ledger(stage):
    ledger = VotingLedger('owner', clock=ManualClock(START_TIME))
    if stage == 'empty':
        return ledger
    for cand in ['A', 'B', 'C']:
        ledger.register_candidate('owner', cand)
    if stage == 'registered':
        return ledger
    ledger.start_round('owner')
    ledger.cast_vote('V1', 'B', VOTE_FEE)
    ledger.cast_vote('V2', 'A', VOTE_FEE)
    if stage == 'voting':
        return ledger
    ledger.clock.advance(ROUND_DURATION + 1)
    ledger.close_round('V1')
    ledger.accounts.reject('X')
    return ledger


@pytest.mark.parametrize('stage', ['empty', 'registered', 'voting', 'closed'])
def test_ledger_json_restore(stage):
    ledger = build_ledger(stage)
    text = voteledger.persist.dumps(ledger)
    restored = voteledger.persist.loads(text)
    assert isinstance(restored, VotingLedger)
    assert restored.to_dict() == ledger.to_dict()
    assert restored.phase == ledger.phase
    assert restored.candidates == ledger.candidates
    assert restored.winner == ledger.winner
    assert restored.balance == ledger.balance
    assert restored.accounts == ledger.accounts


def test_restored_ledger_continues():
    ledger = build_ledger('voting')
    buffer = io.StringIO()
    voteledger.persist.dump(ledger, buffer)
    buffer.seek(0)
    restored = voteledger.persist.load(buffer)
    restored.clock = ManualClock(START_TIME + 10)
    with pytest.raises(AlreadyVoted):
        restored.cast_vote('V1', 'A', VOTE_FEE)
    restored.cast_vote('V3', 'A', VOTE_FEE)
    assert restored.winner == 'A'
    assert restored.votes_for('A') == 2


def test_dict_format():
    out = build_ledger('voting').to_dict()
    json.dumps(out)
    assert out['class'] == 'voteledger.ledger.VotingLedger'
    assert out['phase'] == {'type': 'voteledger.ledger.Phase', 'name': 'STARTED'}
    assert out['tally'] == {'A': 2, 'B': 2, 'C': 1}
    assert out['voters'] == ['V1', 'V2']
    assert out['winner'] == 'B'
    assert out['accounts']['class'] == 'voteledger.accounts.Accounts'


def test_accounts_restore():
    accounts = Accounts({'A': 3, 'B': 0}, rejecting=['C', 'D'])
    restored = voteledger.persist.from_dict(voteledger.persist.to_dict(accounts))
    assert restored == accounts


def test_enum_restore():
    assert voteledger.persist.deserialize_value(
        voteledger.persist.serialize_value(Phase.CLOSED)
    ) is Phase.CLOSED


@pytest.mark.parametrize('value', [
    [],
    {'phase': 1},
    {'class': '.hidden'},
    {'class': 'not a class'},
])
def test_from_dict_invalid(value):
    with pytest.raises(ValueError):
        voteledger.persist.from_dict(value)


def tamper(key, value):
    out = build_ledger('voting').to_dict()
    out[key] = value
    return out


@pytest.mark.parametrize('ledger_def', [
    tamper('tally', {'A': 2, 'B': 2}),
    tamper('tally', {'A': 2, 'B': 2, 'C': 0}),
    tamper('winner', 'Z'),
    tamper('start_timestamp', None),
    tamper('phase', 'STARTED'),
    tamper('balance', -1),
    tamper('balance', 1.5),
    tamper('balance', '100'),
    tamper('voters', [1, 2]),
    tamper('voters', 'V1'),
    {k: v for k, v in build_ledger('voting').to_dict().items() if k != 'fee'},
])
def test_inconsistent_ledger(ledger_def):
    with pytest.raises(ValueError):
        voteledger.persist.from_dict(ledger_def)


def test_serialize_plain_sequence():
    assert voteledger.persist.serialize_value(['A', Phase.IDLE]) == [
        'A', {'type': 'voteledger.ledger.Phase', 'name': 'IDLE'},
    ]


@pytest.mark.parametrize('value', [{1: 'A'}, object()])
def test_serialize_invalid(value):
    with pytest.raises(ValueError):
        voteledger.persist.serialize_value(value)
