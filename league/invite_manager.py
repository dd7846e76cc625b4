import logging
from datetime import datetime
from typing import List

from sqlalchemy.exc import IntegrityError

from .account_manager import AccountManager
from .errors import BadRequest, Conflict, Forbidden, NotFound
from .models import db, atomic, Invite, Team, TeamMember
from .notifier import Notifier
from .validation import generate_short_id, is_valid_wallet_address
from shared.events import EventType, invite_event
from shared.state_machine import InviteState, InviteStateMachine, TransitionError

logger = logging.getLogger(__name__)


class InviteManager:
    """
    Manages team invites:
    - Create pending invites (one pending invite per team/wallet pair)
    - Accept or reject them, updating the team member and user team set
    - List a wallet's pending invites
    """

    def __init__(self, notifier: Notifier = None, accounts: AccountManager = None):
        self.notifier = notifier or Notifier()
        self.accounts = accounts or AccountManager()

    def build_invite(self, team_id: str, team_name: str, wallet_address: str) -> Invite:
        """Add a pending invite to the session without committing."""
        invite = Invite(
            invite_id=generate_short_id('inv_'),
            team_id=team_id,
            team_name=team_name,
            wallet_address=wallet_address,
            status=InviteState.PENDING.value
        )
        db.session.add(invite)
        return invite

    def has_pending(self, team_id: str, wallet_address: str) -> bool:
        return Invite.query.filter_by(
            team_id=team_id,
            wallet_address=wallet_address,
            status=InviteState.PENDING.value
        ).first() is not None

    def create_invite(self, team_id: str, team_name: str, wallet_address: str) -> Invite:
        if not team_id or not team_name or not wallet_address:
            raise BadRequest('Team ID, team name, and wallet address are required')
        if not is_valid_wallet_address(wallet_address):
            raise BadRequest('Invalid wallet address')

        if self.has_pending(team_id, wallet_address):
            raise Conflict('Invite already exists')

        try:
            with atomic():
                invite = self.build_invite(team_id, team_name, wallet_address)
        except IntegrityError:
            # A concurrent request inserted the same pending pair first
            raise Conflict('Invite already exists')

        logger.info(f"Invite {invite.invite_id} created for {wallet_address} on team {team_id}")
        self.notifier.notify_wallets(
            [wallet_address],
            invite_event(EventType.INVITE_CREATED, invite.invite_id, team_id, team_name, wallet_address)
        )
        return invite

    def respond(self, invite_id: str, status: str, acting_wallet: str = None) -> Invite:
        """
        Accept or reject an invite.

        The invite row is locked while the answer is checked, and the write is
        conditional on the status that was read. A concurrent answer that got
        there first turns this one into a Conflict instead of overwriting it.
        """
        if not invite_id or not status:
            raise BadRequest('Invite ID and status are required')
        if status not in (InviteState.ACCEPTED.value, InviteState.REJECTED.value):
            raise BadRequest('Status must be either "accepted" or "rejected"')

        with atomic():
            invite = (
                Invite.query
                .filter_by(invite_id=invite_id)
                .with_for_update()
                .populate_existing()
                .first()
            )
            if not invite:
                raise NotFound('Invite not found')

            if acting_wallet is not None and acting_wallet != invite.wallet_address:
                raise Forbidden('This invite belongs to another wallet')

            sm = InviteStateMachine.from_state_string(invite.status)
            previous = sm.state
            try:
                new_state = sm.respond(status)
            except TransitionError as e:
                raise BadRequest(e.reason)

            changed = (
                Invite.query
                .filter_by(id=invite.id, status=previous.value)
                .update(
                    {'status': new_state.value, 'updated_at': datetime.utcnow()},
                    synchronize_session=False
                )
            )
            if not changed:
                raise Conflict('Invite was answered by another request, please retry')

            team = Team.query.filter_by(team_id=invite.team_id).first()
            creator = team.created_by if team else None

            if new_state == InviteState.ACCEPTED:
                if team:
                    member = TeamMember.query.filter_by(
                        team_id=team.id,
                        wallet_address=invite.wallet_address
                    ).first()
                    if member:
                        member.status = InviteState.ACCEPTED.value

                user = self.accounts.get_or_create_user(invite.wallet_address)
                self.accounts.add_team(user, invite.team_id)

        logger.info(f"Invite {invite_id} {new_state.value} by {invite.wallet_address}")

        event_type = (EventType.INVITE_ACCEPTED if new_state == InviteState.ACCEPTED
                      else EventType.INVITE_REJECTED)
        self.notifier.notify_wallets(
            [invite.wallet_address, creator],
            invite_event(event_type, invite.invite_id, invite.team_id, invite.team_name, invite.wallet_address)
        )
        return invite

    def list_pending(self, wallet_address: str) -> List[Invite]:
        if not wallet_address:
            raise BadRequest('Wallet address is required')
        return self.accounts.pending_invites(wallet_address)
