from flask import Blueprint, current_app, jsonify, request

from .helpers import json_body, optional_wallet

bp = Blueprint('invites', __name__, url_prefix='/api/v1/invites')


@bp.route('', methods=['GET'])
def api_list_invites():
    """Pending invites for ?walletAddress=."""
    invites = current_app.invites.list_pending(request.args.get('walletAddress'))
    return jsonify({'invites': [i.to_dict() for i in invites]})


@bp.route('', methods=['POST'])
def api_create_invite():
    data = json_body()
    invite = current_app.invites.create_invite(
        data.get('teamId'),
        data.get('teamName'),
        data.get('walletAddress')
    )
    return jsonify({
        'message': 'Invite created successfully',
        'inviteId': invite.invite_id,
        'invite': invite.to_dict()
    }), 201


@bp.route('', methods=['PATCH'])
def api_respond_to_invite():
    """Accept or reject an invite. When a token is sent it must belong to the invitee."""
    data = json_body()
    invite = current_app.invites.respond(
        data.get('inviteId'),
        data.get('status'),
        acting_wallet=optional_wallet()
    )
    return jsonify({
        'message': f"Invite {invite.status}",
        'invite': invite.to_dict()
    })
