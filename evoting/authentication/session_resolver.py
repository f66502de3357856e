# evoting/authentication/session_resolver.py

import logging

from flask_jwt_extended import get_jwt, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from evoting.authentication.rbac import Principal, Role
from evoting.errors import Unauthenticated

logger = logging.getLogger(__name__)


class JWTSessionBackend:
    """Reads verified claims from the access token sent with the request."""

    def claims(self):
        try:
            verify_jwt_in_request(optional=True)
        except (JWTExtendedException, PyJWTError) as e:
            logger.info("Rejected credential: %s", e.__class__.__name__)
            return None
        claims = get_jwt()
        return claims or None


class PrincipalResolver:
    """Turns session claims into a Principal, or raises Unauthenticated.

    The backend is handed in by the app factory. An unknown role is treated
    as no session at all.
    """

    def __init__(self, backend, user_loader=None):
        self.backend = backend
        self.user_loader = user_loader

    def resolve(self):
        claims = self.backend.claims()
        if not claims:
            raise Unauthenticated("no session")

        try:
            user_id = int(claims.get('sub'))
        except (TypeError, ValueError):
            raise Unauthenticated("malformed subject")
        if user_id <= 0:
            raise Unauthenticated("malformed subject")

        role_value = claims.get('role')
        if not isinstance(role_value, str):
            raise Unauthenticated("missing role")
        try:
            role = Role(role_value)
        except ValueError:
            logger.warning("Session for user %s carries unknown role", user_id)
            raise Unauthenticated("unknown role")

        if self.user_loader is not None:
            user = self.user_loader(user_id)
            if user is None or user.role != role.value:
                raise Unauthenticated(f"user {user_id} no longer holds role {role.value}")

        return Principal(id=user_id, role=role)
