from typing import Optional

from flask import g, request
from flask_login import current_user

from league.errors import BadRequest, Unauthorized


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequest('Request body must be a JSON object')
    return data


def optional_wallet() -> Optional[str]:
    """Caller's wallet when a bearer token is sent, None when no header is sent.

    A header that is present but invalid is still an error.
    """
    if not request.headers.get('Authorization'):
        return None
    if not current_user.is_authenticated:
        raise Unauthorized(g.get('auth_error'))
    return current_user.wallet_address


def int_arg(name: str) -> Optional[int]:
    value = request.args.get(name)
    if value is None or value == '':
        return None
    try:
        number = int(value)
    except ValueError:
        raise BadRequest(f'{name} must be an integer')
    if number < 0:
        raise BadRequest(f'{name} must not be negative')
    return number
