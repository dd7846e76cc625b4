class MembershipError(Exception):
    """Base error for every failure the league services report to callers."""

    kind = 'internal_error'
    status_code = 500
    default_message = 'Internal error'

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {'error': self.message, 'kind': self.kind}


class BadRequest(MembershipError):
    kind = 'bad_request'
    status_code = 400
    default_message = 'Bad request'


class Unauthorized(MembershipError):
    kind = 'unauthorized'
    status_code = 401
    default_message = 'Authorization header is required'


class Forbidden(MembershipError):
    kind = 'forbidden'
    status_code = 403
    default_message = 'Forbidden'


class NotFound(MembershipError):
    kind = 'not_found'
    status_code = 404
    default_message = 'Not found'


class Conflict(MembershipError):
    kind = 'conflict'
    status_code = 409
    default_message = 'Conflict'


class CapacityError(MembershipError):
    kind = 'capacity'
    status_code = 400
    default_message = 'Capacity exceeded'


class InternalError(MembershipError):
    pass
