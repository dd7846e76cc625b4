from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required

from .helpers import json_body

bp = Blueprint('auth', __name__, url_prefix='/api/v1/auth')


@bp.route('/challenge', methods=['POST'])
def api_issue_challenge():
    """Hand out a sign-in message for the wallet to sign."""
    data = json_body()
    return jsonify(current_app.identity.issue_challenge(data.get('walletAddress')))


@bp.route('', methods=['POST'])
def api_sign_in():
    """Verify a signed challenge, create the user if needed and issue a token."""
    data = json_body()
    wallet = current_app.identity.verify_sign_in(
        data.get('walletAddress'),
        data.get('challenge'),
        data.get('signature')
    )

    user, invites = current_app.accounts.sign_in(wallet)

    return jsonify({
        'user': user.to_dict(),
        'invites': [i.to_dict() for i in invites],
        'token': current_app.identity.issue_token(wallet)
    })


@bp.route('/me', methods=['GET'])
@login_required
def api_me():
    user, invites = current_app.accounts.get_profile(current_user.wallet_address)
    return jsonify({
        'user': user.to_dict(),
        'invites': [i.to_dict() for i in invites]
    })
