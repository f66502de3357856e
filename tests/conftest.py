import pytest
from datetime import datetime

from flask_jwt_extended import create_access_token

from evoting import create_app, db
from evoting.authentication.rbac import Principal, Role
from evoting.database.models import Candidate, Election, ElectionAdmin, User


@pytest.fixture
def app(tmp_path):
    """App bound to a throwaway SQLite file (threads need a real file)."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'evoting-test.db'}",
        'JWT_SECRET_KEY': 'test-jwt-secret-that-is-long-enough-for-hs256',
        'JWT_COOKIE_CSRF_PROTECT': False,
        'RATELIMIT_ENABLED': False,
        'AUDIT_LOG_DIR': str(tmp_path / 'logs'),
        'MAX_TOKENS_PER_BATCH': 50,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


def _make_user(username, role):
    # placeholder hash: these users never log in with a password
    user = User(username=username, password_hash='not-a-hash', role=role)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def superadmin_user(app):
    return _make_user('root', 'superadmin')


@pytest.fixture
def admin_user(app):
    return _make_user('alice', 'admin')


@pytest.fixture
def other_admin_user(app):
    return _make_user('bob', 'admin')


@pytest.fixture
def superadmin(superadmin_user):
    return Principal(id=superadmin_user.id, role=Role.SUPERADMIN)


@pytest.fixture
def admin(admin_user):
    return Principal(id=admin_user.id, role=Role.ADMIN)


@pytest.fixture
def other_admin(other_admin_user):
    return Principal(id=other_admin_user.id, role=Role.ADMIN)


@pytest.fixture
def make_election(superadmin_user):
    def factory(status='active', title='Student council'):
        election = Election(
            title=title,
            description='Annual vote',
            start_date=datetime(2026, 3, 1, 9, 0),
            end_date=datetime(2026, 3, 2, 18, 0),
            status=status,
            created_by=superadmin_user.id,
        )
        db.session.add(election)
        db.session.commit()
        return election
    return factory


@pytest.fixture
def active_election(make_election):
    return make_election('active')


@pytest.fixture
def make_candidates():
    def factory(election, names=('Carol', 'Alice', 'Bob')):
        candidates = [
            Candidate(election_id=election.id, name=name, order_num=i)
            for i, name in enumerate(names)
        ]
        db.session.add_all(candidates)
        db.session.commit()
        return candidates
    return factory


@pytest.fixture
def candidates(active_election, make_candidates):
    return make_candidates(active_election)


@pytest.fixture
def assign():
    def factory(election, principal):
        db.session.add(ElectionAdmin(election_id=election.id, user_id=principal.id))
        db.session.commit()
    return factory


@pytest.fixture
def auth_headers(app):
    def factory(principal_or_user_id, role=None):
        if isinstance(principal_or_user_id, Principal):
            user_id, role = principal_or_user_id.id, principal_or_user_id.role.value
        else:
            user_id = principal_or_user_id
        claims = {'role': role} if role is not None else {}
        token = create_access_token(identity=str(user_id), additional_claims=claims)
        return {'Authorization': f'Bearer {token}'}
    return factory
