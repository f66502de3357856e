# evoting/voting/ballot_ledger.py

import logging
from dataclasses import dataclass, asdict

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from evoting import db
from evoting.database.models import Candidate, Vote, VotingToken
from evoting.errors import DuplicateVote, UnknownCandidate

logger = logging.getLogger(__name__)

TOKEN_UNIQUE_CONSTRAINT = 'uq_votes_token_id'


@dataclass(frozen=True)
class VoteCount:
    candidate_id: int
    candidate_name: str
    vote_count: int

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class ElectionStats:
    total_tokens: int = 0
    used_tokens: int = 0
    total_votes: int = 0
    total_candidates: int = 0

    def to_dict(self):
        return asdict(self)


class BallotLedger:
    """Append-only record of votes. There is no way to edit or remove one."""

    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def candidate_in_election(self, candidate_id, election_id, session=None):
        session = session if session is not None else self.session
        return (session.query(Candidate.id)
                .filter(Candidate.id == candidate_id, Candidate.election_id == election_id)
                .first()) is not None

    def record_vote(self, election_id, candidate_id, token_id, session):
        """Insert one vote inside the caller's unit of work."""
        if not self.candidate_in_election(candidate_id, election_id, session):
            raise UnknownCandidate(f"candidate {candidate_id} not in election {election_id}")
        vote = Vote(election_id=election_id, candidate_id=candidate_id, token_id=token_id)
        session.add(vote)
        try:
            session.flush()
        except IntegrityError as e:
            # the unique index on votes.token_id is what stops a second ballot
            if _violates_token_uniqueness(e):
                raise DuplicateVote(f"token {token_id} already has a vote") from e
            raise
        return vote

    def counts_by_candidate(self, election_id):
        rows = (self.session.query(Candidate.id, Candidate.name, func.count(Vote.id).label('vote_count'))
                .outerjoin(Vote, Vote.candidate_id == Candidate.id)
                .filter(Candidate.election_id == election_id)
                .group_by(Candidate.id, Candidate.name)
                .order_by(func.count(Vote.id).desc(), Candidate.name.asc())
                .all())
        return [VoteCount(candidate_id=r[0], candidate_name=r[1], vote_count=r[2]) for r in rows]

    def votes_for_election(self, election_id):
        rows = (self.session.query(Vote.id, Vote.candidate_id, Candidate.name, Vote.voted_at)
                .join(Candidate, Vote.candidate_id == Candidate.id)
                .filter(Vote.election_id == election_id)
                .order_by(Vote.voted_at.desc(), Vote.id.desc())
                .all())
        return [
            {
                'id': r[0],
                'candidate_id': r[1],
                'candidate_name': r[2],
                'voted_at': r[3].isoformat() if r[3] else None,
            }
            for r in rows
        ]

    def election_stats(self, election_id):
        # Dashboard figures only. A failed count degrades to zeros.
        session = self.session
        try:
            total_tokens = session.query(func.count(VotingToken.id)).filter(
                VotingToken.election_id == election_id).scalar()
            used_tokens = session.query(func.count(VotingToken.id)).filter(
                VotingToken.election_id == election_id, VotingToken.is_used.is_(True)).scalar()
            total_votes = session.query(func.count(Vote.id)).filter(
                Vote.election_id == election_id).scalar()
            total_candidates = session.query(func.count(Candidate.id)).filter(
                Candidate.election_id == election_id).scalar()
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning("Election stats unavailable for %s: %s", election_id, e)
            return ElectionStats()
        return ElectionStats(total_tokens or 0, used_tokens or 0, total_votes or 0, total_candidates or 0)


def _violates_token_uniqueness(error):
    # SQLite names the column, PostgreSQL and MySQL name the constraint
    message = str(error.orig)
    return TOKEN_UNIQUE_CONSTRAINT in message or 'votes.token_id' in message
