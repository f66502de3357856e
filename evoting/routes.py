# evoting/routes.py

# JSON endpoints: voter-facing ballot submission, admin login, and the
# superadmin/admin management API. All business rules live in the services.

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import (
    create_access_token, create_refresh_token, get_jwt_identity, jwt_required,
    set_access_cookies, set_refresh_cookies, unset_jwt_cookies,
)

from evoting import db, limiter
from evoting.authentication.auth_service import AuthService
from evoting.authentication.rbac import Role, require_election_access, require_role
from evoting.database.models import ElectionStatus, User
from evoting.errors import InvalidInput, InvalidOrExpiredToken, Unauthenticated, VotingError
from evoting.security.input_validator import InputValidator
from evoting.services.elections import ElectionService
from evoting.voting.coordinator import VotingCoordinator
from evoting.voting.token_store import TokenStore

bp = Blueprint('evoting', __name__)

validator = InputValidator()
auth_service = AuthService()


def _audit_logger():
    return current_app.extensions['evoting']['audit_logger']


def _elections():
    return ElectionService(
        access=current_app.extensions['evoting']['access_control'],
        tokens=TokenStore(max_batch=current_app.config['MAX_TOKENS_PER_BATCH']),
        audit_logger=_audit_logger(),
    )


def _coordinator():
    return VotingCoordinator(audit_logger=_audit_logger())


def _payload():
    # accept JSON bodies and classic form posts alike
    data = request.get_json(silent=True)
    if data is None:
        return request.form.to_dict()
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object")
    return data


@bp.app_errorhandler(VotingError)
def handle_voting_error(error):
    if error.status_code >= 500:
        current_app.logger.error("Request failed: %s", error.detail)
    elif isinstance(error, Unauthenticated):
        _audit_logger().log_security_event('unauthenticated', {'path': request.path})
    return jsonify(error.to_dict()), error.status_code


@bp.route('/')
def home():
    return jsonify({'service': 'evoting', 'status': 'ok'})


# -- authentication ---------------------------------------------------------

@bp.route('/login', methods=['POST'])
@limiter.limit("10/minute")
def login():
    data = _payload()
    username = data.get('username')
    try:
        user = auth_service.authenticate(username, data.get('password'))
    except Unauthenticated:
        _audit_logger().log_security_event('failed_login', {'username': str(username)[:150],
                                                            'ip': request.remote_addr})
        return jsonify({'error': 'unauthenticated', 'message': 'Invalid username or password'}), 401

    _audit_logger().log_security_event('successful_login', {'role': user.role}, user_id=user.id)
    claims = {'role': user.role}
    access_token = create_access_token(identity=str(user.id), additional_claims=claims)
    refresh_token = create_refresh_token(identity=str(user.id), additional_claims=claims)
    resp = jsonify({'user': user.to_dict(), 'access_token': access_token})
    set_access_cookies(resp, access_token)
    set_refresh_cookies(resp, refresh_token)
    return resp


@bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    # Re-read the role so a demoted user cannot refresh into the old one
    user = db.session.get(User, int(get_jwt_identity()))
    if user is None:
        raise Unauthenticated("refresh for deleted user")
    claims = {'role': user.role}
    access_token = create_access_token(identity=str(user.id), additional_claims=claims)
    refresh_token = create_refresh_token(identity=str(user.id), additional_claims=claims)
    resp = jsonify({'refresh': True, 'access_token': access_token})
    set_access_cookies(resp, access_token)
    set_refresh_cookies(resp, refresh_token)
    return resp


@bp.route('/logout', methods=['POST'])
def logout():
    resp = jsonify({'logout': True})
    unset_jwt_cookies(resp)
    return resp


# -- voting -----------------------------------------------------------------

def _voting_token(value):
    # malformed strings never reach the store
    token = value.strip() if isinstance(value, str) else value
    if not validator.validate_token_format(token):
        raise InvalidOrExpiredToken("malformed token")
    return token


@bp.route('/vote', methods=['GET'])
def vote_form():
    token = _voting_token(request.args.get('token'))
    election, candidates = _coordinator().ballot(token)
    return jsonify({
        'election': election.to_dict(),
        'candidates': [c.to_dict() for c in candidates],
    })


@bp.route('/vote', methods=['POST'])
@limiter.limit("30/minute")
def submit_vote():
    data = _payload()
    candidate_id = validator.parse_id(data.get('candidate_id'), 'candidate_id')
    receipt = _coordinator().submit(_voting_token(data.get('token')), candidate_id)
    return jsonify({'message': 'Vote submitted successfully', 'receipt': receipt.to_dict()})


# -- superadmin -------------------------------------------------------------

def _election_fields(data, with_status=False):
    fields = {
        'title': validator.sanitize_string(data.get('title'), max_length=200, field='title'),
        'description': validator.sanitize_string(data.get('description'), max_length=5000,
                                                  required=False, field='description'),
        'start_date': validator.parse_datetime(data.get('start_date'), 'start date'),
        'end_date': validator.parse_datetime(data.get('end_date'), 'end date'),
    }
    if with_status:
        fields['status'] = validator.validate_choice(
            data.get('status'), [s.value for s in ElectionStatus], 'status')
    return fields


@bp.route('/admin/superadmin/dashboard')
@require_role(Role.SUPERADMIN)
def superadmin_dashboard(principal):
    return jsonify({'stats': _elections().superadmin_stats(principal)})


@bp.route('/admin/superadmin/elections', methods=['GET', 'POST'])
@require_role(Role.SUPERADMIN)
def manage_elections(principal):
    service = _elections()
    if request.method == 'POST':
        election = service.create_election(principal, **_election_fields(_payload()))
        return jsonify({'election': election.to_dict()}), 201
    return jsonify({'elections': [e.to_dict() for e in service.list_elections(principal)]})


@bp.route('/admin/superadmin/elections/<int:election_id>', methods=['GET', 'PUT', 'POST', 'DELETE'])
@require_role(Role.SUPERADMIN)
def edit_election(principal, election_id):
    service = _elections()
    if request.method in ('PUT', 'POST'):
        election = service.update_election(principal, election_id,
                                           **_election_fields(_payload(), with_status=True))
        return jsonify({'election': election.to_dict()})
    if request.method == 'DELETE':
        service.delete_election(principal, election_id)
        return jsonify({'deleted': election_id})
    return jsonify({'election': service.get_election(principal, election_id).to_dict()})


@bp.route('/admin/superadmin/elections/<int:election_id>/admins', methods=['GET', 'POST'])
@require_role(Role.SUPERADMIN)
def assign_admin(principal, election_id):
    service = _elections()
    if request.method == 'POST':
        admin_id = validator.parse_id(_payload().get('admin_id'), 'admin_id')
        service.assign_admin(principal, election_id, admin_id)
    admins = service.assigned_admins(principal, election_id)
    return jsonify({'election_id': election_id, 'admins': [a.to_dict() for a in admins]})


@bp.route('/admin/superadmin/users', methods=['GET', 'POST'])
@require_role(Role.SUPERADMIN)
def manage_users(principal):
    if request.method == 'POST':
        data = _payload()
        username = data.get('username')
        if not validator.validate_username(username):
            raise InvalidInput("Username must be 3-150 letters, digits, '.', '_' or '-'")
        role = validator.validate_choice(data.get('role'), [r.value for r in Role], 'role')
        user = auth_service.create_user(username, data.get('password'), role)
        _audit_logger().log_security_event('user_created', {'new_user_id': user.id, 'role': role},
                                           user_id=principal.id)
        return jsonify({'user': user.to_dict()}), 201
    return jsonify({'users': [u.to_dict() for u in _elections().list_users(principal)]})


# -- admin ------------------------------------------------------------------

def _candidate_fields(data):
    order = data.get('order', 0) or 0
    try:
        order = int(order)
    except (TypeError, ValueError):
        raise InvalidInput("order must be an integer")
    return {
        'name': validator.sanitize_string(data.get('name'), max_length=200, field='name'),
        'description': validator.sanitize_string(data.get('description'), max_length=5000,
                                                 required=False, field='description'),
        'photo_url': validator.validate_photo_url(data.get('photo_url')),
        'order': order,
    }


@bp.route('/admin/admin/dashboard')
@require_role(Role.ADMIN)
def admin_dashboard(principal):
    return jsonify({'stats': _elections().admin_stats(principal)})


@bp.route('/admin/admin/elections')
@require_role(Role.ADMIN)
def admin_elections(principal):
    return jsonify({'elections': [e.to_dict() for e in _elections().elections_for(principal)]})


@bp.route('/admin/admin/elections/<int:election_id>/candidates', methods=['GET', 'POST'])
@require_election_access
def manage_candidates(principal, election_id):
    service = _elections()
    if request.method == 'POST':
        candidate = service.create_candidate(principal, election_id, **_candidate_fields(_payload()))
        return jsonify({'candidate': candidate.to_dict()}), 201
    return jsonify({'candidates': [c.to_dict() for c in service.list_candidates(principal, election_id)]})


@bp.route('/admin/admin/elections/<int:election_id>/candidates/<int:candidate_id>',
          methods=['PUT', 'POST', 'DELETE'])
@require_election_access
def edit_candidate(principal, election_id, candidate_id):
    service = _elections()
    if request.method == 'DELETE':
        service.delete_candidate(principal, election_id, candidate_id)
        return jsonify({'deleted': candidate_id})
    candidate = service.update_candidate(principal, election_id, candidate_id,
                                         **_candidate_fields(_payload()))
    return jsonify({'candidate': candidate.to_dict()})


@bp.route('/admin/admin/elections/<int:election_id>/tokens', methods=['GET', 'POST'])
@require_election_access
def manage_tokens(principal, election_id):
    service = _elections()
    if request.method == 'POST':
        count = validator.parse_count(_payload().get('count'))
        issued = service.generate_tokens(principal, election_id, count)
        return jsonify({'tokens': [t.to_dict() for t in issued]}), 201
    return jsonify({'tokens': [t.to_dict() for t in service.list_tokens(principal, election_id)]})


@bp.route('/admin/admin/elections/<int:election_id>/votes')
@require_election_access
def manage_votes(principal, election_id):
    return jsonify({'votes': _elections().list_votes(principal, election_id)})


@bp.route('/admin/admin/elections/<int:election_id>/reports')
@require_election_access
def election_reports(principal, election_id):
    return jsonify(_elections().report(principal, election_id))
