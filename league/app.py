import json
import logging
import os

import redis
from flask import Flask, Response, current_app, g, jsonify
from flask_login import LoginManager, current_user, login_required
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import config
from .errors import Forbidden, InternalError, MembershipError, Unauthorized
from .identity import IdentityResolver, WalletIdentity
from .models import db
from .account_manager import AccountManager
from .invite_manager import InviteManager
from .notifier import Notifier, user_channel
from .team_registry import TeamRegistry
from .tournament_registry import TournamentRegistry

logger = logging.getLogger(__name__)

login_manager = LoginManager()


def create_app(config_name: str = None) -> Flask:
    """Application factory for the league service."""
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config.get(config_name, config['default']))

    logging.getLogger('league').setLevel(app.config['LOG_LEVEL'])
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    # Initialize services
    admin_wallets = app.config['ADMIN_WALLETS']
    notifier = Notifier.from_url(app.config.get('REDIS_URL'))
    accounts = AccountManager()
    invites = InviteManager(notifier, accounts)
    teams = TeamRegistry(notifier, accounts, invites, admin_wallets=admin_wallets)

    # Create tables
    with app.app_context():
        db.create_all()

    # Store services on app for access in routes
    app.identity = IdentityResolver.from_config(app.config)
    app.notifier = notifier
    app.accounts = accounts
    app.invites = invites
    app.teams = teams
    app.tournaments = TournamentRegistry(notifier, teams, admin_wallets=admin_wallets)

    register_error_handlers(app)

    from .routes import auth, invites as invite_routes, teams as team_routes, tournaments
    app.register_blueprint(auth.bp)
    app.register_blueprint(team_routes.bp)
    app.register_blueprint(invite_routes.bp)
    app.register_blueprint(tournaments.bp)

    register_service_routes(app)

    return app


@login_manager.request_loader
def load_wallet_from_request(request):
    """Resolve `Authorization: Bearer <token>` to the calling wallet."""
    header = request.headers.get('Authorization')
    if not header:
        return None
    try:
        return WalletIdentity(current_app.identity.resolve_header(header))
    except Unauthorized as e:
        g.auth_error = e.message
        return None


@login_manager.unauthorized_handler
def unauthorized():
    error = Unauthorized(g.get('auth_error'))
    return jsonify(error.to_dict()), error.status_code


def register_error_handlers(app: Flask):

    @app.errorhandler(MembershipError)
    def handle_membership_error(error: MembershipError):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(error: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Storage failure")
        failure = InternalError('Internal storage error')
        return jsonify(failure.to_dict()), failure.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        kind = (error.name or 'error').lower().replace(' ', '_')
        return jsonify({'error': error.description, 'kind': kind}), error.code


def register_service_routes(app: Flask):
    """Health check and notification stream."""

    @app.route('/api/v1/health')
    def health_check():
        try:
            db.session.execute(db.text('SELECT 1'))
            db_ok = True
        except SQLAlchemyError:
            db.session.rollback()
            db_ok = False

        if app.notifier.is_local:
            redis_state = 'disabled'
        else:
            redis_state = 'connected' if app.notifier.ping() else 'disconnected'

        status = 'healthy' if db_ok and redis_state != 'disconnected' else 'unhealthy'
        code = 200 if status == 'healthy' else 503

        return jsonify({
            'status': status,
            'database': 'connected' if db_ok else 'disconnected',
            'redis': redis_state
        }), code

    @app.route('/api/v1/events/user/<wallet_address>')
    @login_required
    def api_user_events(wallet_address: str):
        """SSE endpoint for the caller's own membership notifications."""
        if current_user.wallet_address != wallet_address:
            raise Forbidden('You can only subscribe to your own notifications')

        redis_url = app.config.get('REDIS_URL')
        if not redis_url:
            return jsonify({'error': 'Notifications are not configured', 'kind': 'unavailable'}), 503

        def generate():
            sse_redis = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=None,
                socket_connect_timeout=5
            )
            pubsub = sse_redis.pubsub(ignore_subscribe_messages=True)
            pubsub.subscribe(user_channel(wallet_address))

            yield f"data: {json.dumps({'type': 'connected', 'walletAddress': wallet_address})}\n\n"

            try:
                while True:
                    message = pubsub.get_message(timeout=30)
                    if message and message['type'] == 'message':
                        yield f"data: {message['data']}\n\n"
                    else:
                        yield ": keepalive\n\n"
            finally:
                pubsub.close()

        return Response(generate(), mimetype='text/event-stream', headers={
            'Cache-Control': 'no-cache',
            'X-Accel-Buffering': 'no'
        })
