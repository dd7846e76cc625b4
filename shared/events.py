from enum import Enum
from dataclasses import dataclass
from datetime import datetime
import json


class EventType(str, Enum):
    # Team lifecycle
    TEAM_CREATED = "team.created"
    TEAM_UPDATED = "team.updated"
    TEAM_DELETED = "team.deleted"

    # Invites
    INVITE_CREATED = "invite.created"
    INVITE_ACCEPTED = "invite.accepted"
    INVITE_REJECTED = "invite.rejected"

    # Tournaments
    TOURNAMENT_CREATED = "tournament.created"
    TOURNAMENT_JOINED = "tournament.joined"
    BRACKET_UPDATED = "bracket.updated"


@dataclass
class Event:
    type: EventType
    subject_id: str
    timestamp: str = None
    data: dict = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.utcnow().isoformat() + "Z"
        if self.data is None:
            self.data = {}

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "subject_id": self.subject_id,
            "timestamp": self.timestamp,
            "data": self.data
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def team_created_event(team_id: str, team_name: str, created_by: str) -> Event:
    return Event(
        type=EventType.TEAM_CREATED,
        subject_id=team_id,
        data={"team_name": team_name, "created_by": created_by}
    )


def team_updated_event(team_id: str, team_name: str) -> Event:
    return Event(
        type=EventType.TEAM_UPDATED,
        subject_id=team_id,
        data={"team_name": team_name}
    )


def team_deleted_event(team_id: str, team_name: str, deleted_by: str) -> Event:
    return Event(
        type=EventType.TEAM_DELETED,
        subject_id=team_id,
        data={"team_name": team_name, "deleted_by": deleted_by}
    )


def invite_event(event_type: EventType, invite_id: str, team_id: str, team_name: str, wallet_address: str) -> Event:
    return Event(
        type=event_type,
        subject_id=invite_id,
        data={
            "team_id": team_id,
            "team_name": team_name,
            "wallet_address": wallet_address
        }
    )


def tournament_joined_event(tournament_id: str, team_id: str, team_count: int, created: bool) -> Event:
    return Event(
        type=EventType.TOURNAMENT_CREATED if created else EventType.TOURNAMENT_JOINED,
        subject_id=tournament_id,
        data={"team_id": team_id, "team_count": team_count}
    )


def bracket_updated_event(bracket_id: int, team_count: int, updated_by: str) -> Event:
    return Event(
        type=EventType.BRACKET_UPDATED,
        subject_id=str(bracket_id),
        data={"team_count": team_count, "updated_by": updated_by}
    )
