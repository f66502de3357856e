import pytest

from evoting import db
from evoting.authentication.auth_service import AuthService
from evoting.authentication.password_hashing import PasswordHashingService
from evoting.database.models import User
from evoting.errors import InvalidInput, Unauthenticated

PASSWORD = 'Correct-Horse-42'


@pytest.fixture
def legacy_service():
    return PasswordHashingService(time_cost=1, memory_cost=8192, parallelism=1)


def test_authenticate(app, legacy_service):
    service = AuthService(legacy_service)
    user = service.create_user('carol', PASSWORD, 'admin')

    assert service.authenticate('carol', PASSWORD).id == user.id
    with pytest.raises(Unauthenticated):
        service.authenticate('carol', 'Wrong-Horse-42')
    with pytest.raises(Unauthenticated):
        service.authenticate('nobody', PASSWORD)


def test_login_upgrades_outdated_hash(app, legacy_service):
    AuthService(legacy_service).create_user('carol', PASSWORD, 'admin')
    old_hash = db.session.query(User).filter_by(username='carol').one().password_hash
    assert 't=1' in old_hash

    current = AuthService()
    current.authenticate('carol', PASSWORD)

    db.session.expire_all()
    new_hash = db.session.query(User).filter_by(username='carol').one().password_hash
    assert new_hash != old_hash
    assert current.passwords.needs_rehash(new_hash) is False
    assert current.authenticate('carol', PASSWORD).password_hash == new_hash


def test_failed_login_leaves_hash_alone(app, legacy_service):
    AuthService(legacy_service).create_user('carol', PASSWORD, 'admin')
    old_hash = db.session.query(User).filter_by(username='carol').one().password_hash

    with pytest.raises(Unauthenticated):
        AuthService().authenticate('carol', 'Wrong-Horse-42')

    db.session.expire_all()
    assert db.session.query(User).filter_by(username='carol').one().password_hash == old_hash


def test_create_user_rejects_duplicates_and_unknown_roles(app, legacy_service):
    service = AuthService(legacy_service)
    service.create_user('carol', PASSWORD, 'admin')
    with pytest.raises(InvalidInput):
        service.create_user('carol', PASSWORD, 'admin')
    with pytest.raises(InvalidInput):
        service.create_user('erin', PASSWORD, 'voter')


def test_ensure_superadmin_only_once(app, legacy_service):
    service = AuthService(legacy_service)
    assert service.ensure_superadmin('root', PASSWORD).role == 'superadmin'
    assert service.ensure_superadmin('root2', PASSWORD) is None
