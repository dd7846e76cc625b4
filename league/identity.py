"""
Wallet identity: sign-in challenges, signature checks and session tokens.

Sign-in is challenge/response. The server hands out a challenge (a Fernet
token carrying the wallet and a nonce) together with the exact message the
wallet must sign. The client returns the challenge and an Ed25519 signature
over that message, base58-encoded. The wallet address itself is the base58
public key the signature is checked against.

Session tokens are Fernet tokens too, so they cannot be forged or altered
without SECRET_KEY and they expire after AUTH_TOKEN_TTL seconds.
"""
import base64
import hashlib
import json
import logging
import secrets
import time
from typing import Optional

import base58
from cryptography.exceptions import InvalidSignature
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey
from flask_login import UserMixin

from .errors import BadRequest, Unauthorized
from .validation import is_valid_wallet_address

logger = logging.getLogger(__name__)

SESSION = 'session'
CHALLENGE = 'challenge'


def derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet key from the application SECRET_KEY."""
    key = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(key)


def sign_in_message(wallet_address: str, nonce: str) -> str:
    return f"Sign in to FN Fantasy\nWallet: {wallet_address}\nNonce: {nonce}"


class WalletIdentity(UserMixin):
    """The authenticated caller, as seen by Flask-Login."""

    def __init__(self, wallet_address: str):
        self.wallet_address = wallet_address

    def get_id(self):
        return self.wallet_address


class IdentityResolver:
    """Maps bearer credentials to wallet addresses."""

    def __init__(
        self,
        secret_key: str,
        token_ttl: int = 7 * 24 * 3600,
        challenge_ttl: int = 300,
        require_signature: bool = True
    ):
        self._fernet = Fernet(derive_fernet_key(secret_key))
        self.token_ttl = token_ttl
        self.challenge_ttl = challenge_ttl
        self.require_signature = require_signature
        if not require_signature:
            logger.warning("Wallet signature verification is DISABLED; identities are unverified")

    @classmethod
    def from_config(cls, config) -> "IdentityResolver":
        return cls(
            secret_key=config['SECRET_KEY'],
            token_ttl=config.get('AUTH_TOKEN_TTL', 7 * 24 * 3600),
            challenge_ttl=config.get('AUTH_CHALLENGE_TTL', 300),
            require_signature=config.get('REQUIRE_WALLET_SIGNATURE', True)
        )

    # ------------------------------------------------------------------
    # Fernet envelope
    # ------------------------------------------------------------------

    def _seal(self, purpose: str, payload: dict) -> str:
        body = dict(payload, purpose=purpose)
        return self._fernet.encrypt(json.dumps(body).encode()).decode()

    def _open(self, purpose: str, token: str, ttl: int) -> dict:
        try:
            body = json.loads(self._fernet.decrypt(token.encode(), ttl=ttl))
        except (InvalidToken, ValueError, TypeError, AttributeError):
            raise Unauthorized('Invalid or expired token')
        if not isinstance(body, dict) or body.get('purpose') != purpose:
            raise Unauthorized('Invalid or expired token')
        return body

    # ------------------------------------------------------------------
    # Challenge / response
    # ------------------------------------------------------------------

    def issue_challenge(self, wallet_address: str) -> dict:
        if not is_valid_wallet_address(wallet_address):
            raise BadRequest('A valid wallet address is required')

        nonce = secrets.token_hex(16)
        return {
            'walletAddress': wallet_address,
            'challenge': self._seal(CHALLENGE, {'walletAddress': wallet_address, 'nonce': nonce}),
            'message': sign_in_message(wallet_address, nonce),
            'expiresIn': self.challenge_ttl,
        }

    def verify_sign_in(
        self,
        wallet_address: str,
        challenge: Optional[str],
        signature: Optional[str]
    ) -> str:
        """Check a signed challenge. Returns the verified wallet address."""
        if not is_valid_wallet_address(wallet_address):
            raise BadRequest('A valid wallet address is required')

        if not self.require_signature:
            return wallet_address

        if not challenge or not signature:
            raise Unauthorized('challenge and signature are required')

        body = self._open(CHALLENGE, challenge, self.challenge_ttl)
        if body.get('walletAddress') != wallet_address:
            raise Unauthorized('Challenge was issued for a different wallet')

        message = sign_in_message(wallet_address, body.get('nonce', ''))
        if not self.verify_signature(wallet_address, message, signature):
            raise Unauthorized('Signature verification failed')

        return wallet_address

    @staticmethod
    def verify_signature(wallet_address: str, message: str, signature: str) -> bool:
        try:
            public_key = Ed25519PublicKey.from_public_bytes(base58.b58decode(wallet_address))
            public_key.verify(base58.b58decode(signature), message.encode())
            return True
        except (InvalidSignature, ValueError, TypeError):
            return False

    # ------------------------------------------------------------------
    # Session tokens
    # ------------------------------------------------------------------

    def issue_token(self, wallet_address: str) -> str:
        return self._seal(SESSION, {
            'walletAddress': wallet_address,
            'timestamp': int(time.time() * 1000)
        })

    def resolve_token(self, token: str) -> str:
        body = self._open(SESSION, token, self.token_ttl)
        wallet_address = body.get('walletAddress')
        if not wallet_address:
            raise Unauthorized('Invalid token: missing wallet address')
        return wallet_address

    def resolve_header(self, header: Optional[str]) -> str:
        """Resolve an `Authorization: Bearer <token>` header value."""
        if not header or not header.startswith('Bearer '):
            raise Unauthorized('Authorization header is required')
        token = header.split(' ', 1)[1].strip()
        if not token:
            raise Unauthorized('Authorization header is required')
        return self.resolve_token(token)
