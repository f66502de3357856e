# evoting/voting/token_store.py

import hmac
import logging
import secrets

from sqlalchemy.exc import IntegrityError

from evoting import db
from evoting.database.models import Election, ElectionStatus, VotingToken, utcnow
from evoting.database.unit_of_work import unit_of_work
from evoting.errors import (
    DuplicateVote, InvalidCount, InvalidOrExpiredToken, NotFound, StorageError,
)

logger = logging.getLogger(__name__)

TOKEN_BYTES = 16  # 128 bits, rendered as 32 hex characters
DEFAULT_MAX_BATCH = 1000


def new_token():
    return secrets.token_hex(TOKEN_BYTES)


class TokenStore:
    """Lifecycle of single-use voting tokens.

    Every read goes back to the database; nothing about a token's state is
    kept between calls.
    """

    def __init__(self, max_batch=DEFAULT_MAX_BATCH, session=None):
        self.max_batch = max_batch
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def generate(self, election_id, count):
        """Issue `count` fresh tokens for an election and return them.

        Tokens are committed one at a time: if the batch fails half way the
        tokens already issued stay valid.
        """
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0 or count > self.max_batch:
            raise InvalidCount(f"count must be between 1 and {self.max_batch}, got {count!r}")
        if self.session.get(Election, election_id) is None:
            raise NotFound(f"election {election_id} does not exist")

        issued = []
        for _ in range(count):
            try:
                with unit_of_work(self.session) as session:
                    token = VotingToken(election_id=election_id, token=new_token(), is_used=False)
                    session.add(token)
            except StorageError as e:
                if isinstance(e.__cause__, IntegrityError):
                    logger.error("Token uniqueness violation after %d of %d tokens for election %s",
                                 len(issued), count, election_id)
                raise
            issued.append(token)
        logger.info("Issued %d tokens for election %s", len(issued), election_id)
        return issued

    def lookup(self, token):
        if not isinstance(token, str) or not token:
            raise NotFound("token not found")
        record = (self.session.query(VotingToken)
                  .populate_existing()
                  .filter(VotingToken.token == token)
                  .first())
        if record is None or not hmac.compare_digest(record.token.encode(), token.encode()):
            raise NotFound("token not found")
        return record

    def resolve_election(self, token):
        """Return the election a usable token votes in.

        Unknown, used and not-active cases are indistinguishable to the
        caller.
        """
        return self.resolve(token)[1]

    def resolve(self, token, report_reuse=False):
        """Like resolve_election, returning (token_record, election).

        With report_reuse, a used token of a running election raises
        DuplicateVote instead of the generic error. Only the bearer of the
        exact token string can learn this.
        """
        try:
            record = self.lookup(token)
        except NotFound:
            raise InvalidOrExpiredToken("unknown token")
        election = (self.session.query(Election)
                    .populate_existing()
                    .filter(Election.id == record.election_id)
                    .first())
        if election is None or election.status != ElectionStatus.ACTIVE.value:
            raise InvalidOrExpiredToken(f"election for token {record.id} is not active")
        if record.is_used:
            if report_reuse:
                raise DuplicateVote(f"token {record.id} already used")
            raise InvalidOrExpiredToken(f"token {record.id} already used")
        return record, election

    def mark_used(self, token_id, session):
        """Consume a token inside the caller's unit of work."""
        updated = (session.query(VotingToken)
                   .filter(VotingToken.id == token_id, VotingToken.is_used.is_(False))
                   .update({VotingToken.is_used: True, VotingToken.used_at: utcnow()},
                           synchronize_session=False))
        if updated != 1:
            raise DuplicateVote(f"token {token_id} was consumed concurrently")

    def list_for_election(self, election_id):
        return (self.session.query(VotingToken)
                .filter(VotingToken.election_id == election_id)
                .order_by(VotingToken.created_at.desc(), VotingToken.id.desc())
                .all())
