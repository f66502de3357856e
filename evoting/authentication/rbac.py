# evoting/authentication/rbac.py

from dataclasses import dataclass
from enum import Enum
from functools import wraps
import logging

from flask import current_app

from evoting import db
from evoting.database.models import ElectionAdmin
from evoting.errors import Forbidden, Unauthenticated

# Role-based and election-scoped access control

logger = logging.getLogger(__name__)


class Role(Enum):
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

    @property
    def rank(self):
        return ROLE_RANK[self]


ROLE_RANK = {
    Role.ADMIN: 1,
    Role.SUPERADMIN: 2,
}


@dataclass(frozen=True)
class Principal:
    id: int
    role: Role

    @property
    def is_superadmin(self):
        return self.role is Role.SUPERADMIN


class AccessControl:
    def __init__(self, session=None):
        self._session = session

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def can_access_election(self, principal, election_id):
        if principal is None:
            return False
        if principal.is_superadmin:
            return True
        # Admins need an explicit assignment. A missing election has none.
        assignment = (self.session.query(ElectionAdmin.id)
                      .filter(ElectionAdmin.election_id == election_id,
                              ElectionAdmin.user_id == principal.id)
                      .first())
        return assignment is not None

    def require_role(self, principal, minimum_role):
        if principal is None:
            raise Unauthenticated("no principal")
        if principal.role.rank < minimum_role.rank:
            raise Forbidden(f"user {principal.id} lacks role {minimum_role.value}")

    def require_election_access(self, principal, election_id):
        self.require_role(principal, Role.ADMIN)
        if not self.can_access_election(principal, election_id):
            logger.warning("User %s denied access to election %s", principal.id, election_id)
            raise Forbidden(f"user {principal.id} not assigned to election {election_id}")


def current_principal():
    """Resolve the caller of the current request through the app's resolver."""
    resolver = current_app.extensions['evoting']['principal_resolver']
    return resolver.resolve()


# Decorator for required role
def require_role(role):
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            principal = current_principal()
            current_app.extensions['evoting']['access_control'].require_role(principal, role)
            return func(principal, *args, **kwargs)
        return wrapper
    return decorator


# Decorator for views taking an `election_id` URL parameter
def require_election_access(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        principal = current_principal()
        current_app.extensions['evoting']['access_control'].require_election_access(
            principal, kwargs['election_id'])
        return func(principal, *args, **kwargs)
    return wrapper
