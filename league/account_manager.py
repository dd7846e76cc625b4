import logging
from typing import Iterable, List, Optional, Tuple

from .errors import NotFound
from .models import db, atomic, Invite, User, UserTeam
from shared.state_machine import InviteState

logger = logging.getLogger(__name__)


class AccountManager:
    """
    Owns User records and each user's team set.

    Users are created implicitly the first time a wallet signs in (or is
    touched by an invite acceptance) and are never deleted.
    """

    def get_user(self, wallet_address: str) -> Optional[User]:
        return User.query.filter_by(wallet_address=wallet_address).first()

    def get_or_create_user(self, wallet_address: str, for_update: bool = False) -> User:
        """Return the user for a wallet, adding a new one to the session if absent.

        Does not commit; callers own the transaction. With `for_update` the
        row is locked until the transaction ends.
        """
        query = User.query.filter_by(wallet_address=wallet_address)
        if for_update:
            query = query.with_for_update()

        user = query.first()
        if user is None:
            user = User(wallet_address=wallet_address, notifications=[])
            db.session.add(user)
            db.session.flush()
            logger.info(f"Created user for wallet {wallet_address}")
        return user

    def pending_invites(self, wallet_address: str) -> List[Invite]:
        return (
            Invite.query
            .filter_by(wallet_address=wallet_address, status=InviteState.PENDING.value)
            .order_by(Invite.created_at.asc(), Invite.id.asc())
            .all()
        )

    def sign_in(self, wallet_address: str) -> Tuple[User, List[Invite]]:
        """Get or create the user behind a verified wallet, with pending invites."""
        with atomic():
            user = self.get_or_create_user(wallet_address)
        return user, self.pending_invites(wallet_address)

    def get_profile(self, wallet_address: str) -> Tuple[User, List[Invite]]:
        user = self.get_user(wallet_address)
        if not user:
            raise NotFound('User not found')
        return user, self.pending_invites(wallet_address)

    def add_team(self, user: User, team_id: str) -> bool:
        """Add a team id to the user's set if absent. Returns True if added."""
        if team_id in user.team_ids:
            return False
        user.team_links.append(UserTeam(team_id=team_id))
        return True

    def remove_team(self, team_id: str, wallets: Iterable[str] = None) -> int:
        """Drop a team id from user team sets (all users, or only `wallets`)."""
        query = UserTeam.query.filter(UserTeam.team_id == team_id)
        if wallets is not None:
            wallets = list(wallets)
            if not wallets:
                return 0
            user_ids = db.select(User.id).where(User.wallet_address.in_(wallets))
            query = query.filter(UserTeam.user_id.in_(user_ids))
        return query.delete(synchronize_session=False)
