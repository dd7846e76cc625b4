from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from league.errors import BadRequest
from .helpers import int_arg, json_body

bp = Blueprint('tournaments', __name__, url_prefix='/api/v1/tournaments')


@bp.route('', methods=['GET'])
def api_list_tournaments():
    limit = int_arg('limit') or 50
    offset = int_arg('offset') or 0
    tournaments = current_app.tournaments.list_tournaments(
        status=request.args.get('status'),
        limit=limit,
        offset=offset
    )
    return jsonify({
        'tournaments': [t.to_dict() for t in tournaments],
        'count': len(tournaments),
        'limit': limit,
        'offset': offset
    })


@bp.route('/active', methods=['GET'])
def api_active_tournament():
    tournament, teams = current_app.tournaments.get_active_tournament_view()
    if tournament is None:
        return jsonify({'tournament': None})
    return jsonify({'tournament': tournament.to_dict(teams=teams)})


@bp.route('/join', methods=['POST'])
@login_required
def api_join_tournament():
    team_id = json_body().get('teamId')
    if not team_id:
        raise BadRequest('Team ID is required')

    tournament, created = current_app.tournaments.join_active_tournament(
        team_id, current_user.wallet_address
    )

    if created:
        return jsonify({
            'message': 'Successfully joined new tournament',
            'tournamentId': tournament.tournament_id,
            'tournament': tournament.to_dict()
        }), 201

    return jsonify({
        'message': 'Successfully joined tournament',
        'tournamentId': tournament.tournament_id,
        'tournament': tournament.to_dict()
    })


@bp.route('/bracket', methods=['GET'])
def api_get_bracket():
    bracket = current_app.tournaments.get_bracket()
    return jsonify({'bracketTeams': list(bracket.teams or []) if bracket else []})


@bp.route('/bracket', methods=['POST'])
@login_required
def api_save_bracket():
    bracket_teams = json_body().get('bracketTeams')
    bracket = current_app.tournaments.save_bracket(bracket_teams, current_user.wallet_address)
    return jsonify({
        'success': True,
        'bracketTeams': list(bracket.teams or []),
        'message': 'Tournament bracket updated successfully'
    })
