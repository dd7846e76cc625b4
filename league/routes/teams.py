import json

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from league.errors import BadRequest
from league.team_registry import UNSET
from league.validation import encode_banner
from .helpers import int_arg, json_body, optional_wallet

bp = Blueprint('teams', __name__, url_prefix='/api/v1/teams')


def _team_payload():
    """Read a team form from JSON or multipart. Returns (fields, banner_url)."""
    if request.mimetype != 'multipart/form-data':
        return json_body(), None

    form = request.form
    fields = {'name': form.get('name')}

    members = form.get('members')
    if members is not None:
        try:
            fields['members'] = json.loads(members)
        except ValueError:
            raise BadRequest('members must be a JSON list')

    if 'twitterLink' in form:
        fields['twitterLink'] = form.get('twitterLink')

    banner_url = None
    upload = request.files.get('bannerImage')
    if upload:
        banner_url = encode_banner(
            upload.read(),
            upload.mimetype,
            current_app.config['MAX_BANNER_BYTES']
        )
    return fields, banner_url


@bp.route('', methods=['GET'])
def api_list_teams():
    """Recent teams, a name search, or the caller's own teams when authenticated."""
    wallet = optional_wallet()
    limit = int_arg('limit')

    if wallet:
        teams, total = current_app.teams.list_teams(limit=limit, owner_wallet=wallet)
        invites = current_app.invites.list_pending(wallet)
        return jsonify({
            'teams': [t.to_dict() for t in teams],
            'totalCount': total,
            'invites': [i.to_dict() for i in invites]
        })

    teams, total = current_app.teams.list_teams(search=request.args.get('search'), limit=limit)
    return jsonify({
        'teams': [t.to_dict() for t in teams],
        'totalCount': total
    })


@bp.route('', methods=['POST'])
@login_required
def api_create_team():
    fields, banner_url = _team_payload()

    team, invites = current_app.teams.create_team(
        name=fields.get('name'),
        members=fields.get('members'),
        creator_wallet=current_user.wallet_address,
        twitter_link=fields.get('twitterLink'),
        banner_url=banner_url
    )

    return jsonify({
        'message': 'Team created successfully',
        'teamId': team.team_id,
        'team': team.to_dict(),
        'invites': [i.to_dict() for i in invites]
    }), 201


@bp.route('/my-teams', methods=['GET'])
@login_required
def api_my_teams():
    teams = current_app.teams.list_teams_for_wallet(current_user.wallet_address)
    return jsonify({'teams': [t.to_dict() for t in teams]})


@bp.route('/my-verified', methods=['GET'])
@login_required
def api_my_verified_teams():
    teams = current_app.teams.list_verified_teams(current_user.wallet_address)
    return jsonify({'teams': [t.to_dict() for t in teams]})


@bp.route('/<team_id>', methods=['GET'])
def api_get_team(team_id: str):
    team = current_app.teams.require_team(team_id)
    return jsonify({'team': team.to_dict()})


@bp.route('/<team_id>', methods=['PATCH'])
@login_required
def api_update_team(team_id: str):
    """Rename or relink a team."""
    team = current_app.teams.update_team(team_id, json_body(), current_user.wallet_address)
    return jsonify({
        'message': 'Team updated successfully',
        'team': team.to_dict()
    })


@bp.route('/<team_id>', methods=['PUT'])
@login_required
def api_edit_team(team_id: str):
    """Full edit: name, members, link and banner."""
    fields, banner_url = _team_payload()

    team = current_app.teams.edit_team(
        team_id,
        name=fields.get('name'),
        members=fields.get('members'),
        acting_wallet=current_user.wallet_address,
        twitter_link=fields['twitterLink'] if 'twitterLink' in fields else UNSET,
        banner_url=banner_url
    )
    return jsonify({
        'message': 'Team updated successfully',
        'team': team.to_dict()
    })


@bp.route('/<team_id>', methods=['DELETE'])
@login_required
def api_delete_team(team_id: str):
    current_app.teams.delete_team(team_id, current_user.wallet_address)
    return jsonify({'message': 'Team deleted successfully'})
