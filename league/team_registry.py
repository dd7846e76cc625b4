import logging
from typing import Iterable, List, Optional, Tuple

from flask import current_app
from sqlalchemy import or_

from .account_manager import AccountManager
from .errors import CapacityError, Conflict, Forbidden, NotFound
from .invite_manager import InviteManager
from .models import db, atomic, Invite, Team, TeamMember, Tournament, TournamentEntry
from .notifier import Notifier
from .validation import clean_link, clean_team_name, generate_short_id, normalize_members
from shared.events import team_created_event, team_deleted_event, team_updated_event
from shared.state_machine import TournamentStatus

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 5
UNSET = object()


def _apply_limit(query, limit: Optional[int]):
    """None means the default page size, 0 means no limit."""
    if limit is None:
        limit = DEFAULT_LIST_LIMIT
    return query.limit(limit) if limit else query


def _like_pattern(text: str) -> str:
    escaped = text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


class TeamRegistry:
    """
    Manages team lifecycle:
    - Create teams with their member list and pending invites
    - Rename / relink, or fully edit (members, banner)
    - Delete with cascade to user team sets, invites and tournament entries
    - List and search teams
    """

    def __init__(
        self,
        notifier: Notifier = None,
        accounts: AccountManager = None,
        invites: InviteManager = None,
        admin_wallets: Iterable[str] = None
    ):
        self.notifier = notifier or Notifier()
        self.accounts = accounts or AccountManager()
        self.invites = invites or InviteManager(self.notifier, self.accounts)
        self._admin_wallets = frozenset(admin_wallets) if admin_wallets is not None else None

    @property
    def admin_wallets(self) -> frozenset:
        if self._admin_wallets is not None:
            return self._admin_wallets
        return frozenset(current_app.config.get('ADMIN_WALLETS', ()))

    def is_admin(self, wallet_address: str) -> bool:
        return wallet_address in self.admin_wallets

    def _members_bounds(self) -> Tuple[int, int]:
        return (
            current_app.config.get('MIN_TEAM_MEMBERS', 5),
            current_app.config.get('MAX_TEAM_MEMBERS', 10)
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_team(self, team_id: str) -> Optional[Team]:
        """Get team by its public ID."""
        return Team.query.filter_by(team_id=team_id).first()

    def require_team(self, team_id: str) -> Team:
        team = self.get_team(team_id) if team_id else None
        if not team:
            raise NotFound('Team not found')
        return team

    def get_teams(self, team_ids: List[str]) -> List[Team]:
        """Load teams by id, in the given order, skipping ids that no longer exist."""
        if not team_ids:
            return []
        found = {t.team_id: t for t in Team.query.filter(Team.team_id.in_(team_ids)).all()}
        return [found[tid] for tid in team_ids if tid in found]

    def list_teams(
        self,
        search: str = None,
        limit: int = None,
        owner_wallet: str = None
    ) -> Tuple[List[Team], int]:
        """List teams newest first. Returns (teams, total_count)."""
        query = Team.query.order_by(Team.created_at.desc(), Team.id.desc())

        if owner_wallet:
            user = self.accounts.get_user(owner_wallet)
            team_ids = user.team_ids if user else []
            total = len(team_ids)
            query = query.filter(Team.team_id.in_(team_ids))
            return _apply_limit(query, limit).all(), total

        total = Team.query.count()
        search = search.strip() if search else ''
        if search:
            query = query.filter(Team.name.ilike(_like_pattern(search), escape='\\'))

        # Searches are unbounded unless a limit is asked for explicitly
        if not search or limit is not None:
            query = _apply_limit(query, limit)

        return query.all(), total

    def list_teams_for_wallet(self, wallet_address: str) -> List[Team]:
        """Teams the wallet created or is listed in, regardless of invite answers."""
        return (
            Team.query
            .filter(or_(
                Team.created_by == wallet_address,
                Team.members.any(TeamMember.wallet_address == wallet_address)
            ))
            .order_by(Team.created_at.desc(), Team.id.desc())
            .all()
        )

    def list_verified_teams(self, wallet_address: str) -> List[Team]:
        return [t for t in self.list_teams_for_wallet(wallet_address) if t.status == 'verified']

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_team(
        self,
        name: str,
        members: list,
        creator_wallet: str,
        twitter_link: str = None,
        banner_url: str = None
    ) -> Tuple[Team, List[Invite]]:
        """
        Create a team, one pending invite per non-creator member, and record
        the team in the creator's team set. All in one transaction.
        """
        name = clean_team_name(name)
        min_members, max_members = self._members_bounds()
        cleaned = normalize_members(members, creator_wallet, min_members, max_members)
        twitter_link = clean_link(twitter_link)
        max_teams = current_app.config.get('MAX_TEAMS_PER_CREATOR', 5)

        with atomic():
            # Locking the creator row serialises concurrent creates by one wallet
            creator = self.accounts.get_or_create_user(creator_wallet, for_update=True)

            owned = Team.query.filter_by(created_by=creator_wallet).count()
            if owned >= max_teams:
                raise CapacityError(
                    f'You have reached the maximum limit of {max_teams} teams. '
                    'Please delete a team before creating a new one.'
                )

            team = Team(
                team_id=generate_short_id('team_'),
                name=name,
                twitter_link=twitter_link,
                banner_url=banner_url,
                created_by=creator_wallet
            )
            team.members = [
                TeamMember(
                    member_id=m['id'],
                    name=m['name'],
                    wallet_address=m['walletAddress'],
                    status=m['status'],
                    position=position
                )
                for position, m in enumerate(cleaned)
            ]
            db.session.add(team)

            invites = [
                self.invites.build_invite(team.team_id, team.name, m['walletAddress'])
                for m in cleaned
                if m['walletAddress'] != creator_wallet
            ]

            self.accounts.add_team(creator, team.team_id)

        logger.info(f"Team {team.team_id} '{team.name}' created by {creator_wallet} "
                    f"with {len(cleaned)} members")
        self.notifier.notify_wallets(
            [creator_wallet] + [m['walletAddress'] for m in cleaned],
            team_created_event(team.team_id, team.name, creator_wallet)
        )
        return team, invites

    def _check_tournament_overlap(self, team: Team, added: List[str]):
        """A wallet plays for at most one team in the active tournament."""
        if not added:
            return

        tournament = (
            Tournament.query
            .filter_by(status=TournamentStatus.ACTIVE.value)
            .with_for_update()
            .first()
        )
        if not tournament or team.team_id not in tournament.team_ids:
            return

        others = [tid for tid in tournament.team_ids if tid != team.team_id]
        for other in self.get_teams(others):
            if any(other.involves(wallet) for wallet in added):
                raise Conflict('You are already in this tournament with another team')

    def _require_creator(self, team: Team, acting_wallet: str, action: str):
        if team.created_by != acting_wallet:
            raise Forbidden(f'Only the team creator can {action} this team')

    def update_team(self, team_id: str, patch: dict, acting_wallet: str) -> Team:
        """Change name and/or twitter link. Creator only."""
        team = self.require_team(team_id)
        self._require_creator(team, acting_wallet, 'update')

        with atomic():
            if patch.get('name'):
                team.name = clean_team_name(patch['name'])
            if 'twitterLink' in patch:
                team.twitter_link = clean_link(patch['twitterLink'])

        logger.info(f"Team {team_id} updated by {acting_wallet}")
        self.notifier.notify_wallets(
            [team.created_by] + team.member_wallets,
            team_updated_event(team.team_id, team.name)
        )
        return team

    def edit_team(
        self,
        team_id: str,
        name: str,
        members: list,
        acting_wallet: str,
        twitter_link=UNSET,
        banner_url: str = None
    ) -> Team:
        """
        Replace name, member list, and optionally link and banner. Creator only.

        Members that stay keep their status. New members start pending with a
        fresh invite. Removed members lose the team from their team set and
        their invites for this team are deleted.
        If the team is in the active tournament, new members must not already
        play there for another team.
        """
        team = self.require_team(team_id)
        self._require_creator(team, acting_wallet, 'edit')

        name = clean_team_name(name)
        min_members, max_members = self._members_bounds()
        cleaned = normalize_members(members, team.created_by, min_members, max_members)
        if twitter_link is not UNSET:
            twitter_link = clean_link(twitter_link)

        existing = {m.wallet_address: m for m in team.members}
        wanted = [m['walletAddress'] for m in cleaned]
        removed = [w for w in existing if w not in wanted]
        added = [w for w in wanted if w not in existing]

        with atomic():
            self._check_tournament_overlap(team, added)

            team.name = name
            if twitter_link is not UNSET:
                team.twitter_link = twitter_link
            if banner_url:
                team.banner_url = banner_url

            new_members = []
            for position, m in enumerate(cleaned):
                member = existing.get(m['walletAddress'])
                if member is None:
                    member = TeamMember(
                        wallet_address=m['walletAddress'],
                        status=m['status']
                    )
                member.member_id = m['id']
                member.name = m['name']
                member.position = position
                new_members.append(member)
            team.members = new_members

            for wallet in added:
                if wallet != team.created_by and not self.invites.has_pending(team.team_id, wallet):
                    self.invites.build_invite(team.team_id, team.name, wallet)

            dropped = [w for w in removed if w != team.created_by]
            if dropped:
                Invite.query.filter(
                    Invite.team_id == team.team_id,
                    Invite.wallet_address.in_(dropped)
                ).delete(synchronize_session=False)
                self.accounts.remove_team(team.team_id, dropped)

        logger.info(f"Team {team_id} edited by {acting_wallet}: "
                    f"{len(added)} added, {len(removed)} removed")
        self.notifier.notify_wallets(
            [team.created_by] + wanted + removed,
            team_updated_event(team.team_id, team.name)
        )
        return team

    def delete_team(self, team_id: str, acting_wallet: str) -> None:
        """Delete a team. Allowed for its creator and for admin wallets."""
        team = self.require_team(team_id)

        if team.created_by != acting_wallet and not self.is_admin(acting_wallet):
            raise Forbidden('You are not authorized to delete this team')

        team_name = team.name
        wallets = [team.created_by] + team.member_wallets

        with atomic():
            db.session.delete(team)
            self.accounts.remove_team(team_id)
            Invite.query.filter_by(team_id=team_id).delete(synchronize_session=False)
            TournamentEntry.query.filter_by(team_id=team_id).delete(synchronize_session=False)

        logger.info(f"Team {team_id} deleted by {acting_wallet}")
        self.notifier.notify_wallets(wallets, team_deleted_event(team_id, team_name, acting_wallet))
