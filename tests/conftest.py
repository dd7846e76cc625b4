"""
Pytest configuration and fixtures for league service tests.
"""
import os
import sys
import pytest

import base58
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

# A fixed, valid 32-byte key used as the only admin wallet in tests
ADMIN_WALLET = base58.b58encode(bytes(range(1, 33))).decode()

# Set testing environment before importing app
os.environ['FLASK_ENV'] = 'testing'
os.environ['ADMIN_WALLETS'] = ADMIN_WALLET

from league.app import create_app
from league.models import db


class Wallet:
    """An Ed25519 keypair whose base58 public key is the wallet address."""

    def __init__(self):
        self._key = Ed25519PrivateKey.generate()
        public = self._key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        self.address = base58.b58encode(public).decode()

    def sign(self, message: str) -> str:
        return base58.b58encode(self._key.sign(message.encode())).decode()


def new_wallet() -> str:
    return Wallet().address


def member_list(creator: str, count: int = 5):
    """A member payload with the creator first and fresh wallets after."""
    wallets = [creator] + [new_wallet() for _ in range(count - 1)]
    return [{'name': f'Player {i + 1}', 'walletAddress': w} for i, w in enumerate(wallets)]


@pytest.fixture(scope='session')
def app():
    """Create application for testing.

    No context stays pushed between tests, so every test client request gets
    its own app context (and its own `g` and login state).
    """
    app = create_app('testing')

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Start each test from empty tables."""
    with app.app_context():
        # Clear all tables before each test
        db.session.remove()

        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        db.session.remove()

    yield db


@pytest.fixture
def wallet():
    """A fresh signing wallet."""
    return Wallet()


@pytest.fixture
def creator():
    """Wallet address of a team creator."""
    return new_wallet()


@pytest.fixture
def auth_headers(app):
    """Build bearer headers for a wallet address."""
    def _headers(wallet_address: str) -> dict:
        return {'Authorization': f'Bearer {app.identity.issue_token(wallet_address)}'}
    return _headers


@pytest.fixture
def sample_team(app, db_session, creator):
    """Create a five member team and return its plain attributes."""
    with app.app_context():
        members = member_list(creator)
        team, invites = app.teams.create_team('Alpha', members, creator)
        return {
            'team_id': team.team_id,
            'name': team.name,
            'creator': creator,
            'members': [m['walletAddress'] for m in members],
            'invites': {i.wallet_address: i.invite_id for i in invites},
        }


@pytest.fixture
def mock_redis(mocker):
    """A stand-in Redis client."""
    client = mocker.MagicMock()
    client.publish.return_value = 1
    client.ping.return_value = True
    return client
