import pytest
from types import SimpleNamespace

from evoting.authentication.rbac import Principal, Role
from evoting.authentication.session_resolver import PrincipalResolver
from evoting.errors import Unauthenticated


class StaticBackend:
    def __init__(self, claims):
        self._claims = claims

    def claims(self):
        return self._claims


@pytest.mark.parametrize("role", ["admin", "superadmin"])
def test_resolves_known_roles(role):
    resolver = PrincipalResolver(StaticBackend({'sub': '7', 'role': role}))
    assert resolver.resolve() == Principal(id=7, role=Role(role))


@pytest.mark.parametrize("claims", [
    None,
    {},
    {'sub': '7'},
    {'sub': '7', 'role': 'root'},
    {'sub': '7', 'role': 'ADMIN'},
    {'sub': '7', 'role': ''},
    {'sub': '7', 'role': ['admin']},
    {'sub': '7', 'role': 1},
    {'role': 'admin'},
    {'sub': 'seven', 'role': 'admin'},
    {'sub': '0', 'role': 'admin'},
    {'sub': '-3', 'role': 'admin'},
])
def test_malformed_or_unknown_sessions_are_unauthenticated(claims):
    resolver = PrincipalResolver(StaticBackend(claims))
    with pytest.raises(Unauthenticated):
        resolver.resolve()


def test_user_loader_must_confirm_role():
    users = {
        7: SimpleNamespace(id=7, role='admin'),
    }
    loader = users.get

    assert PrincipalResolver(StaticBackend({'sub': '7', 'role': 'admin'}), loader).resolve().id == 7

    # claims a role the user no longer holds
    with pytest.raises(Unauthenticated):
        PrincipalResolver(StaticBackend({'sub': '7', 'role': 'superadmin'}), loader).resolve()

    # deleted user
    with pytest.raises(Unauthenticated):
        PrincipalResolver(StaticBackend({'sub': '8', 'role': 'admin'}), loader).resolve()


def test_each_resolver_uses_its_own_backend():
    first = PrincipalResolver(StaticBackend({'sub': '1', 'role': 'admin'}))
    second = PrincipalResolver(StaticBackend({'sub': '2', 'role': 'superadmin'}))
    assert first.resolve().id == 1
    assert second.resolve().role is Role.SUPERADMIN
    assert first.resolve().role is Role.ADMIN


def test_jwt_backend_in_request(app, admin_user, auth_headers):
    resolver = app.extensions['evoting']['principal_resolver']

    with app.test_request_context('/', headers=auth_headers(admin_user.id, 'admin')):
        assert resolver.resolve() == Principal(id=admin_user.id, role=Role.ADMIN)

    with app.test_request_context('/', headers=auth_headers(admin_user.id, 'overlord')):
        with pytest.raises(Unauthenticated):
            resolver.resolve()

    with app.test_request_context('/', headers={'Authorization': 'Bearer not-a-jwt'}):
        with pytest.raises(Unauthenticated):
            resolver.resolve()

    with app.test_request_context('/'):
        with pytest.raises(Unauthenticated):
            resolver.resolve()
