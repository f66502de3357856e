# evoting/services/elections.py

# Election administration. Superadmins manage elections, users and admin
# assignments; admins manage candidates, tokens and reports of their assigned
# elections. Election-scoped calls authorize before any read or write, and an
# admin asking about a missing election gets Forbidden, as for an unassigned one.

import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from evoting import db
from evoting.authentication.rbac import AccessControl, Role
from evoting.database.models import (
    Candidate, Election, ElectionAdmin, ElectionStatus, User, Vote,
)
from evoting.database.unit_of_work import unit_of_work
from evoting.errors import InvalidInput, NotFound
from evoting.voting.ballot_ledger import BallotLedger
from evoting.voting.token_store import TokenStore

logger = logging.getLogger(__name__)

STATUSES = [s.value for s in ElectionStatus]


class ElectionService:
    def __init__(self, access=None, tokens=None, ledger=None, audit_logger=None):
        self.access = access or AccessControl()
        self.tokens = tokens or TokenStore()
        self.ledger = ledger or BallotLedger()
        self.audit_logger = audit_logger

    # -- superadmin --------------------------------------------------------

    def create_election(self, principal, title, description, start_date, end_date):
        self.access.require_role(principal, Role.SUPERADMIN)
        _check_dates(start_date, end_date)
        with unit_of_work() as session:
            election = Election(title=title, description=description, start_date=start_date,
                                end_date=end_date, status=ElectionStatus.DRAFT.value,
                                created_by=principal.id)
            session.add(election)
        self._audit('election_created', {'election_id': election.id}, principal)
        return election

    def update_election(self, principal, election_id, title, description, start_date, end_date, status):
        self.access.require_role(principal, Role.SUPERADMIN)
        _check_dates(start_date, end_date)
        if status not in STATUSES:
            raise InvalidInput("Invalid status")
        election = self._get_election(election_id)
        previous_status = election.status
        with unit_of_work():
            election.title = title
            election.description = description
            election.start_date = start_date
            election.end_date = end_date
            election.status = status
        self._audit('election_updated', {'election_id': election_id, 'from_status': previous_status,
                                         'to_status': status}, principal)
        return election

    def delete_election(self, principal, election_id):
        self.access.require_role(principal, Role.SUPERADMIN)
        election = self._get_election(election_id)
        with unit_of_work() as session:
            session.delete(election)
        self._audit('election_deleted', {'election_id': election_id}, principal)

    def list_elections(self, principal):
        self.access.require_role(principal, Role.SUPERADMIN)
        return (db.session.query(Election)
                .order_by(Election.created_at.desc(), Election.id.desc())
                .all())

    def get_election(self, principal, election_id):
        self.access.require_election_access(principal, election_id)
        return self._get_election(election_id)

    def assign_admin(self, principal, election_id, user_id):
        self.access.require_role(principal, Role.SUPERADMIN)
        self._get_election(election_id)
        user = db.session.get(User, user_id)
        if user is None or user.role != Role.ADMIN.value:
            raise InvalidInput("Only admin users can be assigned to an election")
        exists = (db.session.query(ElectionAdmin.id)
                  .filter_by(election_id=election_id, user_id=user_id)
                  .first())
        if exists is None:
            with unit_of_work() as session:
                session.add(ElectionAdmin(election_id=election_id, user_id=user_id))
            self._audit('admin_assigned', {'election_id': election_id, 'admin_id': user_id}, principal)

    def assigned_admins(self, principal, election_id):
        self.access.require_role(principal, Role.SUPERADMIN)
        return (db.session.query(User)
                .join(ElectionAdmin, ElectionAdmin.user_id == User.id)
                .filter(ElectionAdmin.election_id == election_id)
                .order_by(User.username)
                .all())

    def list_users(self, principal):
        self.access.require_role(principal, Role.SUPERADMIN)
        return db.session.query(User).order_by(User.created_at.desc(), User.id.desc()).all()

    def superadmin_stats(self, principal):
        self.access.require_role(principal, Role.SUPERADMIN)
        session = db.session
        try:
            return {
                'total_elections': session.query(func.count(Election.id)).scalar() or 0,
                'total_admins': session.query(func.count(User.id)).filter(
                    User.role == Role.ADMIN.value).scalar() or 0,
                'active_elections': session.query(func.count(Election.id)).filter(
                    Election.status == ElectionStatus.ACTIVE.value).scalar() or 0,
                'total_votes': session.query(func.count(Vote.id)).scalar() or 0,
            }
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning("Superadmin stats unavailable: %s", e)
            return {'total_elections': 0, 'total_admins': 0, 'active_elections': 0, 'total_votes': 0}

    # -- admin -------------------------------------------------------------

    def elections_for(self, principal):
        self.access.require_role(principal, Role.ADMIN)
        if principal.is_superadmin:
            return self.list_elections(principal)
        return (db.session.query(Election)
                .join(ElectionAdmin, ElectionAdmin.election_id == Election.id)
                .filter(ElectionAdmin.user_id == principal.id)
                .order_by(Election.created_at.desc(), Election.id.desc())
                .all())

    def admin_stats(self, principal):
        self.access.require_role(principal, Role.ADMIN)
        session = db.session
        try:
            assigned = session.query(func.count(ElectionAdmin.id)).filter(
                ElectionAdmin.user_id == principal.id).scalar() or 0
            active = (session.query(func.count(Election.id))
                      .join(ElectionAdmin, ElectionAdmin.election_id == Election.id)
                      .filter(ElectionAdmin.user_id == principal.id,
                              Election.status == ElectionStatus.ACTIVE.value)
                      .scalar()) or 0
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning("Admin stats unavailable for user %s: %s", principal.id, e)
            assigned, active = 0, 0
        return {'assigned_elections': assigned, 'active_elections': active}

    def list_candidates(self, principal, election_id):
        self.access.require_election_access(principal, election_id)
        return (db.session.query(Candidate)
                .filter(Candidate.election_id == election_id)
                .order_by(Candidate.order_num, Candidate.id)
                .all())

    def create_candidate(self, principal, election_id, name, description=None, photo_url=None, order=0):
        self.access.require_election_access(principal, election_id)
        self._get_election(election_id)
        with unit_of_work() as session:
            candidate = Candidate(election_id=election_id, name=name, description=description,
                                  photo_url=photo_url, order_num=order)
            session.add(candidate)
        self._audit('candidate_created', {'election_id': election_id, 'candidate_id': candidate.id}, principal)
        return candidate

    def update_candidate(self, principal, election_id, candidate_id, name, description=None,
                         photo_url=None, order=0):
        self.access.require_election_access(principal, election_id)
        candidate = self._get_candidate(election_id, candidate_id)
        with unit_of_work():
            candidate.name = name
            candidate.description = description
            candidate.photo_url = photo_url
            candidate.order_num = order
        self._audit('candidate_updated', {'election_id': election_id, 'candidate_id': candidate_id}, principal)
        return candidate

    def delete_candidate(self, principal, election_id, candidate_id):
        self.access.require_election_access(principal, election_id)
        candidate = self._get_candidate(election_id, candidate_id)
        has_votes = db.session.query(Vote.id).filter(Vote.candidate_id == candidate_id).first()
        if has_votes is not None:
            # deleting would cascade into recorded ballots
            raise InvalidInput("Candidate already has votes and cannot be deleted")
        with unit_of_work() as session:
            session.delete(candidate)
        self._audit('candidate_deleted', {'election_id': election_id, 'candidate_id': candidate_id}, principal)

    def generate_tokens(self, principal, election_id, count):
        self.access.require_election_access(principal, election_id)
        issued = self.tokens.generate(election_id, count)
        self._audit('tokens_generated', {'election_id': election_id, 'count': len(issued)}, principal)
        return issued

    def list_tokens(self, principal, election_id):
        self.access.require_election_access(principal, election_id)
        return self.tokens.list_for_election(election_id)

    def list_votes(self, principal, election_id):
        self.access.require_election_access(principal, election_id)
        return self.ledger.votes_for_election(election_id)

    def report(self, principal, election_id):
        self.access.require_election_access(principal, election_id)
        election = self._get_election(election_id)
        return {
            'election': election.to_dict(),
            'vote_counts': [c.to_dict() for c in self.ledger.counts_by_candidate(election_id)],
            'stats': self.ledger.election_stats(election_id).to_dict(),
        }

    # -- helpers -----------------------------------------------------------

    def _get_election(self, election_id):
        election = db.session.get(Election, election_id)
        if election is None:
            raise NotFound(f"election {election_id}")
        return election

    def _get_candidate(self, election_id, candidate_id):
        candidate = (db.session.query(Candidate)
                     .filter(Candidate.id == candidate_id, Candidate.election_id == election_id)
                     .first())
        if candidate is None:
            raise NotFound(f"candidate {candidate_id} in election {election_id}")
        return candidate

    def _audit(self, event_type, data, principal):
        if self.audit_logger is not None:
            self.audit_logger.log_security_event(event_type, data, user_id=principal.id)


def _check_dates(start_date, end_date):
    if end_date < start_date:
        raise InvalidInput("End date must not be before start date")
