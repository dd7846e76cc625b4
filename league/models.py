from contextlib import contextmanager
from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

from shared.state_machine import InviteState, TournamentStatus

db = SQLAlchemy()

PENDING_ONLY = "status = 'pending'"
ACTIVE_ONLY = "status = 'active'"


def _iso(value):
    return value.isoformat() if value else None


@contextmanager
def atomic():
    """Run a multi-row change as one transaction; roll back on any error."""
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    wallet_address = db.Column(db.String(64), unique=True, nullable=False, index=True)
    notifications = db.Column(db.JSON, nullable=False, default=list)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    team_links = db.relationship(
        'UserTeam',
        back_populates='user',
        cascade='all, delete-orphan',
        order_by='UserTeam.id'
    )

    @property
    def team_ids(self):
        return [link.team_id for link in self.team_links]

    def to_dict(self):
        return {
            'id': str(self.id),
            'walletAddress': self.wallet_address,
            'createdAt': _iso(self.created_at),
            'teams': self.team_ids,
            'notifications': list(self.notifications or []),
        }


class UserTeam(db.Model):
    """A team id in a user's team set. Team ids are held by value."""
    __tablename__ = 'user_teams'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    team_id = db.Column(db.String(50), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    user = db.relationship('User', back_populates='team_links')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'team_id', name='unique_team_per_user'),
    )


class Team(db.Model):
    __tablename__ = 'teams'

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.String(50), unique=True, nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    twitter_link = db.Column(db.String(300), nullable=True)
    banner_url = db.Column(db.Text, nullable=True)  # data: URL
    created_by = db.Column(db.String(64), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    members = db.relationship(
        'TeamMember',
        back_populates='team',
        cascade='all, delete-orphan',
        order_by='TeamMember.position'
    )

    @property
    def member_wallets(self):
        return [m.wallet_address for m in self.members]

    @property
    def status(self) -> str:
        """Computed on read: unverified while any member has not answered."""
        for member in self.members:
            if not member.status or member.status == InviteState.PENDING.value:
                return 'unverified'
        return 'verified'

    def involves(self, wallet_address: str) -> bool:
        """True if the wallet created the team or is listed as a member."""
        return self.created_by == wallet_address or wallet_address in self.member_wallets

    def to_dict(self):
        return {
            'id': self.team_id,
            'name': self.name,
            'members': [m.to_dict() for m in self.members],
            'twitterLink': self.twitter_link,
            'createdAt': _iso(self.created_at),
            'createdBy': self.created_by,
            'status': self.status,
            'bannerUrl': self.banner_url,
        }


class TeamMember(db.Model):
    __tablename__ = 'team_members'

    id = db.Column(db.Integer, primary_key=True)
    team_id = db.Column(db.Integer, db.ForeignKey('teams.id', ondelete='CASCADE'), nullable=False)
    member_id = db.Column(db.String(50), nullable=False)
    name = db.Column(db.String(100), nullable=False)
    wallet_address = db.Column(db.String(64), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=InviteState.PENDING.value)
    position = db.Column(db.Integer, nullable=False, default=0)

    team = db.relationship('Team', back_populates='members')

    __table_args__ = (
        db.UniqueConstraint('team_id', 'wallet_address', name='unique_wallet_per_team'),
    )

    def to_dict(self):
        return {
            'id': self.member_id,
            'name': self.name,
            'walletAddress': self.wallet_address,
            'status': self.status,
        }


class Invite(db.Model):
    __tablename__ = 'invites'

    id = db.Column(db.Integer, primary_key=True)
    invite_id = db.Column(db.String(50), unique=True, nullable=False, index=True)
    team_id = db.Column(db.String(50), nullable=False, index=True)
    team_name = db.Column(db.String(100), nullable=False)  # not refreshed on rename
    wallet_address = db.Column(db.String(64), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=InviteState.PENDING.value)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.Index(
            'unique_pending_invite',
            'team_id',
            'wallet_address',
            unique=True,
            sqlite_where=db.text(PENDING_ONLY),
            postgresql_where=db.text(PENDING_ONLY)
        ),
    )

    def to_dict(self):
        return {
            'id': self.invite_id,
            'teamId': self.team_id,
            'teamName': self.team_name,
            'walletAddress': self.wallet_address,
            'status': self.status,
            'createdAt': _iso(self.created_at),
        }


class Tournament(db.Model):
    __tablename__ = 'tournaments'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.String(50), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=TournamentStatus.ACTIVE.value, index=True)
    start_date = db.Column(db.DateTime, default=datetime.utcnow)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    entries = db.relationship(
        'TournamentEntry',
        back_populates='tournament',
        cascade='all, delete-orphan',
        order_by='TournamentEntry.position'
    )

    __table_args__ = (
        db.Index(
            'single_active_tournament',
            'status',
            unique=True,
            sqlite_where=db.text(ACTIVE_ONLY),
            postgresql_where=db.text(ACTIVE_ONLY)
        ),
    )

    @property
    def team_ids(self):
        return [e.team_id for e in self.entries]

    def to_dict(self, teams=None):
        """Serialize; pass loaded Team rows to expand `teams` beyond ids."""
        return {
            'id': self.tournament_id,
            'name': self.name,
            'status': self.status,
            'startDate': _iso(self.start_date),
            'teams': [t.to_dict() for t in teams] if teams is not None else self.team_ids,
            'teamCount': len(self.entries),
            'createdAt': _iso(self.created_at),
        }


class TournamentEntry(db.Model):
    __tablename__ = 'tournament_entries'

    id = db.Column(db.Integer, primary_key=True)
    tournament_id = db.Column(db.Integer, db.ForeignKey('tournaments.id', ondelete='CASCADE'), nullable=False)
    team_id = db.Column(db.String(50), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    tournament = db.relationship('Tournament', back_populates='entries')

    __table_args__ = (
        db.UniqueConstraint('tournament_id', 'team_id', name='unique_team_per_tournament'),
    )


class Bracket(db.Model):
    """Admin-saved bracket snapshot. The newest row is the current bracket."""
    __tablename__ = 'brackets'

    id = db.Column(db.Integer, primary_key=True)
    teams = db.Column(db.JSON, nullable=False, default=list)
    created_by = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'bracketTeams': list(self.teams or []),
            'createdBy': self.created_by,
            'createdAt': _iso(self.created_at),
        }
