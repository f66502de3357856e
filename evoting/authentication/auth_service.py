# evoting/authentication/auth_service.py

import logging

from evoting import db
from evoting.authentication.password_hashing import PasswordHashingService
from evoting.authentication.rbac import Role
from evoting.database.models import User
from evoting.database.unit_of_work import unit_of_work
from evoting.errors import InvalidInput, Unauthenticated

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, password_service=None):
        self.passwords = password_service or PasswordHashingService()
        self._dummy_hash = None

    def authenticate(self, username, password):
        """Return the User for valid credentials, else raise Unauthenticated."""
        user = None
        if isinstance(username, str) and username:
            user = db.session.query(User).filter_by(username=username).first()
        if user is None:
            # spend the same hashing time as a real check
            self.passwords.verify_password(password or '', self._fallback_hash())
            raise Unauthenticated("unknown user")
        if not self.passwords.verify_password(password, user.password_hash):
            raise Unauthenticated(f"bad password for user {user.id}")
        if self.passwords.needs_rehash(user.password_hash):
            # upgrade to the current Argon2 parameters while the plaintext is at hand
            with unit_of_work():
                user.password_hash = self.passwords.ph.hash(password)
            logger.info("Rehashed password for user %s", user.id)
        return user

    def create_user(self, username, password, role):
        if isinstance(role, str):
            try:
                role = Role(role)
            except ValueError:
                raise InvalidInput(f"Unknown role: {role}")
        if db.session.query(User.id).filter_by(username=username).first() is not None:
            raise InvalidInput("Username already exists.")
        password_hash = self.passwords.hash_password(password)
        with unit_of_work() as session:
            user = User(username=username, password_hash=password_hash, role=role.value)
            session.add(user)
        logger.info("Created %s user %s", role.value, user.id)
        return user

    def ensure_superadmin(self, username, password):
        """Create the first superadmin unless one exists. Returns the user or None."""
        existing = db.session.query(User).filter_by(role=Role.SUPERADMIN.value).first()
        if existing is not None:
            return None
        return self.create_user(username, password, Role.SUPERADMIN)

    def _fallback_hash(self):
        if self._dummy_hash is None:
            self._dummy_hash = self.passwords.ph.hash('not-a-real-password')
        return self._dummy_hash
