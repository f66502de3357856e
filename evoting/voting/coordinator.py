# evoting/voting/coordinator.py

# Anonymous ballot submission:
#   RECEIVED -> TOKEN_VALIDATED -> VOTE_RECORDED -> TOKEN_CONSUMED -> COMMITTED
# or REJECTED at the first failed gate. The vote insert and the token update
# share one unit of work. Racing requests may both pass the pre-checks; the
# unique index on votes.token_id lets exactly one of them commit.

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from evoting import db
from evoting.database.unit_of_work import unit_of_work
from evoting.errors import UnknownCandidate, VotingError
from evoting.voting.ballot_ledger import BallotLedger
from evoting.voting.token_store import TokenStore

logger = logging.getLogger(__name__)


class SubmissionState(Enum):
    RECEIVED = 'received'
    TOKEN_VALIDATED = 'token_validated'
    VOTE_RECORDED = 'vote_recorded'
    TOKEN_CONSUMED = 'token_consumed'
    COMMITTED = 'committed'
    REJECTED = 'rejected'


@dataclass(frozen=True)
class VoteReceipt:
    election_id: int
    candidate_id: int
    voted_at: Optional[datetime]
    state: SubmissionState = SubmissionState.COMMITTED

    def to_dict(self):
        return {
            'election_id': self.election_id,
            'candidate_id': self.candidate_id,
            'voted_at': self.voted_at.isoformat() if self.voted_at else None,
            'state': self.state.value,
        }


class VotingCoordinator:
    def __init__(self, tokens=None, ledger=None, audit_logger=None, session=None):
        self.tokens = tokens or TokenStore(session=session)
        self.ledger = ledger or BallotLedger(session=session)
        self.audit_logger = audit_logger
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def ballot(self, token):
        """Election and candidates for a usable token."""
        election = self.tokens.resolve_election(token)
        return election, list(election.candidates)

    def submit(self, token, candidate_id):
        state = SubmissionState.RECEIVED
        try:
            record, election = self.tokens.resolve(token, report_reuse=True)
            state = SubmissionState.TOKEN_VALIDATED

            if not self.ledger.candidate_in_election(candidate_id, election.id):
                raise UnknownCandidate(f"candidate {candidate_id} not in election {election.id}")

            with unit_of_work(self.session) as session:
                vote = self.ledger.record_vote(election.id, candidate_id, record.id, session)
                state = SubmissionState.VOTE_RECORDED
                self.tokens.mark_used(record.id, session)
                state = SubmissionState.TOKEN_CONSUMED
                receipt = VoteReceipt(election_id=election.id, candidate_id=candidate_id,
                                      voted_at=vote.voted_at)
        except VotingError as e:
            logger.info("Vote rejected at %s: %s", state.value, e.code)
            self._audit('vote_rejected', {'reason': e.code, 'stage': state.value})
            raise

        logger.info("Vote committed for election %s", receipt.election_id)
        self._audit('vote_cast', {'election_id': receipt.election_id})
        return receipt

    def _audit(self, event_type, data):
        if self.audit_logger is not None:
            self.audit_logger.log_security_event(event_type, data)
