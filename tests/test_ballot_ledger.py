import pytest
from sqlalchemy.exc import IntegrityError

from evoting import db
from evoting.database.models import Vote
from evoting.database.unit_of_work import unit_of_work
from evoting.errors import DuplicateVote, StorageError, UnknownCandidate
from evoting.voting.ballot_ledger import BallotLedger, ElectionStats, _violates_token_uniqueness
from evoting.voting.token_store import TokenStore


@pytest.fixture
def ledger(app):
    return BallotLedger()


@pytest.fixture
def tokens(active_election):
    return TokenStore().generate(active_election.id, 10)


def _record(ledger, election_id, candidate_id, token_id):
    with unit_of_work() as session:
        return ledger.record_vote(election_id, candidate_id, token_id, session)


def test_record_vote(ledger, active_election, candidates, tokens):
    _record(ledger, active_election.id, candidates[0].id, tokens[0].id)

    votes = db.session.query(Vote).all()
    assert len(votes) == 1
    assert votes[0].candidate_id == candidates[0].id
    assert votes[0].token_id == tokens[0].id
    assert votes[0].voted_at is not None


def test_second_vote_for_same_token_is_rejected(ledger, active_election, candidates, tokens):
    _record(ledger, active_election.id, candidates[0].id, tokens[0].id)

    with pytest.raises(DuplicateVote):
        _record(ledger, active_election.id, candidates[1].id, tokens[0].id)
    assert db.session.query(Vote).count() == 1


def test_token_uniqueness_is_enforced_by_the_schema(active_election, candidates, tokens):
    db.session.add(Vote(election_id=active_election.id, candidate_id=candidates[0].id,
                        token_id=tokens[0].id))
    db.session.commit()

    db.session.add(Vote(election_id=active_election.id, candidate_id=candidates[1].id,
                        token_id=tokens[0].id))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


def test_candidate_from_another_election_is_unknown(ledger, active_election, candidates, tokens,
                                                    make_election, make_candidates):
    other = make_election('active', title='Other')
    foreign = make_candidates(other, names=('Mallory',))[0]

    with pytest.raises(UnknownCandidate):
        _record(ledger, active_election.id, foreign.id, tokens[0].id)
    with pytest.raises(UnknownCandidate):
        _record(ledger, active_election.id, 12345, tokens[0].id)
    assert db.session.query(Vote).count() == 0


def test_counts_ordered_by_votes_then_name(ledger, active_election, make_candidates, tokens):
    carol, alice, bob, dave = make_candidates(active_election, names=('Carol', 'Alice', 'Bob', 'Dave'))
    # Bob 3, Alice 2, Carol 2, Dave 0
    plan = [bob, bob, bob, alice, alice, carol, carol]
    for candidate, token in zip(plan, tokens):
        _record(ledger, active_election.id, candidate.id, token.id)

    counts = ledger.counts_by_candidate(active_election.id)

    assert [(c.candidate_name, c.vote_count) for c in counts] == [
        ('Bob', 3), ('Alice', 2), ('Carol', 2), ('Dave', 0),
    ]


def test_counts_are_scoped_to_the_election(ledger, active_election, candidates, tokens,
                                           make_election, make_candidates):
    other = make_election('active', title='Other')
    make_candidates(other, names=('Zed',))
    _record(ledger, active_election.id, candidates[0].id, tokens[0].id)

    names = [c.candidate_name for c in ledger.counts_by_candidate(other.id)]
    assert names == ['Zed']
    assert ledger.counts_by_candidate(other.id)[0].vote_count == 0


def test_votes_for_election_never_exposes_tokens(ledger, active_election, candidates, tokens):
    _record(ledger, active_election.id, candidates[1].id, tokens[0].id)

    listed = ledger.votes_for_election(active_election.id)
    assert len(listed) == 1
    assert listed[0]['candidate_name'] == candidates[1].name
    assert 'token_id' not in listed[0]
    assert 'token' not in listed[0]


def test_ledger_exposes_no_mutation_of_votes(ledger):
    for name in ('update_vote', 'delete_vote', 'remove_vote'):
        assert not hasattr(ledger, name)


def test_election_stats(ledger, active_election, candidates, tokens):
    store = TokenStore()
    _record(ledger, active_election.id, candidates[0].id, tokens[0].id)
    with unit_of_work() as session:
        store.mark_used(tokens[0].id, session)

    stats = ledger.election_stats(active_election.id)
    assert stats == ElectionStats(total_tokens=10, used_tokens=1, total_votes=1, total_candidates=3)


def test_election_stats_degrade_to_zero(ledger, active_election, monkeypatch):
    from sqlalchemy.exc import OperationalError

    def broken_query(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db.session, 'query', broken_query)
    assert ledger.election_stats(active_election.id) == ElectionStats()


def test_foreign_key_failure_is_not_reported_as_duplicate(ledger, active_election, candidates):
    # no token with this id exists, so the insert breaks a foreign key, not uniqueness
    with pytest.raises(StorageError):
        _record(ledger, active_election.id, candidates[0].id, 98765)
    assert db.session.query(Vote).count() == 0


@pytest.mark.parametrize("message,duplicate", [
    ("UNIQUE constraint failed: votes.token_id", True),
    ('duplicate key value violates unique constraint "uq_votes_token_id"', True),
    ("FOREIGN KEY constraint failed", False),
    ('insert or update on table "votes" violates foreign key constraint "votes_candidate_id_fkey"', False),
])
def test_only_token_uniqueness_counts_as_duplicate(message, duplicate):
    error = IntegrityError("INSERT INTO votes", {}, Exception(message))
    assert _violates_token_uniqueness(error) is duplicate
