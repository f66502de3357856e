# evoting/errors.py

# Typed failures raised by the voting and administration services. Storage
# exceptions are converted to StorageError by the unit of work. Public
# messages stay generic so an anonymous caller cannot tell a used token from
# a token of an election that is not running.


class VotingError(Exception):
    """Base class for all service-level failures."""
    code = 'error'
    status_code = 400
    message = 'Request could not be processed.'

    def __init__(self, detail=None):
        # detail is for logs only and is never sent to the client
        super().__init__(detail or self.message)
        self.detail = detail

    def to_dict(self):
        return {'error': self.code, 'message': self.message}


class InvalidOrExpiredToken(VotingError):
    code = 'invalid_or_expired_token'
    message = 'Invalid or expired token.'


class UnknownCandidate(VotingError):
    code = 'unknown_candidate'
    message = 'Candidate does not belong to this election.'


class DuplicateVote(VotingError):
    code = 'duplicate_vote'
    status_code = 409
    message = 'A vote has already been recorded for this token.'


class InvalidCount(VotingError):
    code = 'invalid_count'
    message = 'Invalid token count.'


class InvalidInput(VotingError):
    code = 'invalid_input'
    message = 'Invalid input.'

    def __init__(self, detail=None):
        super().__init__(detail)
        if detail:
            # validation messages describe the caller's own input, safe to return
            self.message = detail


class NotFound(VotingError):
    code = 'not_found'
    status_code = 404
    message = 'Not found.'


class Unauthenticated(VotingError):
    code = 'unauthenticated'
    status_code = 401
    message = 'Authentication required.'


class Forbidden(VotingError):
    code = 'forbidden'
    status_code = 403
    message = 'Forbidden.'


class StorageError(VotingError):
    """Storage or transport failure. The operation had no persisted effect."""
    code = 'system_error'
    status_code = 500
    message = 'The request could not be completed. Nothing was recorded.'
