import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError

from .errors import BadRequest, Conflict, Forbidden
from .models import atomic, db, Bracket, Team, Tournament, TournamentEntry
from .notifier import Notifier
from .team_registry import TeamRegistry
from .validation import generate_short_id
from shared.events import bracket_updated_event, tournament_joined_event
from shared.state_machine import TournamentStatus

logger = logging.getLogger(__name__)


def default_tournament_name(now: datetime = None) -> str:
    now = now or datetime.utcnow()
    return f"Tournament {now.month}/{now.day}/{now.year}"


class TournamentRegistry:
    """
    Manages tournament participation:
    - Look up (or lazily create) the single active tournament
    - Join teams to it within capacity and one-team-per-wallet rules
    - Keep the admin-edited bracket
    """

    def __init__(
        self,
        notifier: Notifier = None,
        teams: TeamRegistry = None,
        admin_wallets: Iterable[str] = None
    ):
        self.notifier = notifier or Notifier()
        self.teams = teams or TeamRegistry(self.notifier, admin_wallets=admin_wallets)
        self._admin_wallets = frozenset(admin_wallets) if admin_wallets is not None else None

    def is_admin(self, wallet_address: str) -> bool:
        if self._admin_wallets is not None:
            return wallet_address in self._admin_wallets
        return self.teams.is_admin(wallet_address)

    def get_active_tournament(self, for_update: bool = False) -> Optional[Tournament]:
        query = Tournament.query.filter_by(status=TournamentStatus.ACTIVE.value)
        if for_update:
            query = query.with_for_update()
        return query.order_by(Tournament.created_at.asc()).first()

    def get_active_tournament_view(self) -> Tuple[Optional[Tournament], List[Team]]:
        """Active tournament plus its team rows (missing teams are skipped)."""
        tournament = self.get_active_tournament()
        if not tournament:
            return None, []
        return tournament, self.teams.get_teams(tournament.team_ids)

    def list_tournaments(
        self,
        status: str = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Tournament]:
        """List tournaments with optional filtering."""
        query = Tournament.query

        if status:
            query = query.filter_by(status=status)

        query = query.order_by(Tournament.created_at.desc(), Tournament.id.desc())
        return query.offset(offset).limit(limit).all()

    def join_active_tournament(self, team_id: str, acting_wallet: str) -> Tuple[Tournament, bool]:
        """
        Enter a team into the active tournament, creating one if none exists.

        Returns (tournament, created). Checks run in order: team exists, caller
        belongs to the team, team not already entered, tournament not full,
        caller not already playing for another entered team.
        """
        team = self.teams.require_team(team_id)

        if not team.involves(acting_wallet):
            raise Forbidden('You are not a member or creator of this team')

        max_teams = current_app.config.get('MAX_TOURNAMENT_TEAMS', 8)

        try:
            with atomic():
                # Row lock serialises concurrent joins against the capacity check
                tournament = self.get_active_tournament(for_update=True)
                created = tournament is None

                if created:
                    tournament = Tournament(
                        tournament_id=generate_short_id('trn_'),
                        name=default_tournament_name(),
                        status=TournamentStatus.ACTIVE.value,
                        start_date=datetime.utcnow()
                    )
                    tournament.entries = [TournamentEntry(team_id=team.team_id, position=0)]
                    db.session.add(tournament)
                else:
                    self._check_can_join(tournament, team, acting_wallet, max_teams)
                    tournament.entries.append(
                        TournamentEntry(team_id=team.team_id, position=len(tournament.entries))
                    )
        except IntegrityError:
            # Another join or tournament creation won the race
            raise Conflict('The tournament changed while joining, please retry')

        logger.info(f"Team {team.team_id} joined tournament {tournament.tournament_id} "
                    f"({len(tournament.entries)}/{max_teams})")

        event = tournament_joined_event(
            tournament.tournament_id, team.team_id, len(tournament.entries), created
        )
        self.notifier.announce(event)
        self.notifier.notify_wallets([team.created_by] + team.member_wallets, event)
        return tournament, created

    def _check_can_join(self, tournament: Tournament, team: Team, acting_wallet: str, max_teams: int):
        entered = tournament.team_ids

        if team.team_id in entered:
            raise Conflict('Team is already in this tournament')

        if len(entered) >= max_teams:
            raise Conflict(f'Tournament is full (maximum {max_teams} teams)')

        for other in self.teams.get_teams(entered):
            if other.involves(acting_wallet):
                raise Conflict('You are already in this tournament with another team')

    # ------------------------------------------------------------------
    # Bracket
    # ------------------------------------------------------------------

    def get_bracket(self) -> Optional[Bracket]:
        return Bracket.query.order_by(Bracket.created_at.desc(), Bracket.id.desc()).first()

    def save_bracket(self, bracket_teams, acting_wallet: str) -> Bracket:
        """Store a new bracket snapshot. Admin wallets only."""
        if not self.is_admin(acting_wallet):
            raise Forbidden('Unauthorized: Admin access required')

        if not isinstance(bracket_teams, list):
            raise BadRequest('Invalid bracket teams format')

        with atomic():
            bracket = Bracket(teams=bracket_teams, created_by=acting_wallet)
            db.session.add(bracket)

        logger.info(f"Bracket {bracket.id} saved by {acting_wallet} ({len(bracket_teams)} teams)")
        self.notifier.announce(bracket_updated_event(bracket.id, len(bracket_teams), acting_wallet))
        return bracket
