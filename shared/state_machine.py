from enum import Enum
from dataclasses import dataclass


class InviteState(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TournamentStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


class TransitionError(Exception):
    def __init__(self, from_state: str, to_state: str, reason: str = None):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason or f"Cannot transition from {from_state} to {to_state}"
        super().__init__(self.reason)


@dataclass
class Transition:
    from_state: InviteState
    to_state: InviteState
    action: str


LEAVE_AFTER_ACCEPT = "Cannot leave a team after accepting an invite"


class InviteStateMachine:
    """
    Lifecycle of a team invite.

    A pending invite may be accepted or rejected. A rejected invite can still
    be accepted later; an accepted invite can never move back to rejected.
    Accepting twice is allowed so repeated accepts are harmless.
    """

    TRANSITIONS = [
        Transition(InviteState.PENDING, InviteState.ACCEPTED, "accept"),
        Transition(InviteState.PENDING, InviteState.REJECTED, "reject"),
        Transition(InviteState.ACCEPTED, InviteState.ACCEPTED, "accept"),
        Transition(InviteState.REJECTED, InviteState.ACCEPTED, "accept"),
        Transition(InviteState.REJECTED, InviteState.REJECTED, "reject"),
    ]

    # Explicitly refused moves, with the message shown to the caller
    FORBIDDEN = {
        (InviteState.ACCEPTED, "reject"): LEAVE_AFTER_ACCEPT,
    }

    ACTION_FOR_STATUS = {
        InviteState.ACCEPTED.value: "accept",
        InviteState.REJECTED.value: "reject",
    }

    def __init__(self, initial_state: InviteState = InviteState.PENDING):
        self._state = initial_state

    @property
    def state(self) -> InviteState:
        return self._state

    def transition(self, action: str) -> InviteState:
        refused = self.FORBIDDEN.get((self._state, action))
        if refused:
            raise TransitionError(self._state.value, action, refused)

        for t in self.TRANSITIONS:
            if t.from_state == self._state and t.action == action:
                self._state = t.to_state
                return self._state

        raise TransitionError(
            self._state.value,
            "unknown",
            f"No valid transition for action '{action}' from state '{self._state.value}'"
        )

    def respond(self, status: str) -> InviteState:
        """Apply a requested target status ('accepted' or 'rejected')."""
        action = self.ACTION_FOR_STATUS.get(status)
        if action is None:
            raise TransitionError(
                self._state.value,
                status,
                'Status must be either "accepted" or "rejected"'
            )
        return self.transition(action)

    @classmethod
    def from_state_string(cls, state_str: str) -> "InviteStateMachine":
        try:
            state = InviteState(state_str)
        except ValueError:
            state = InviteState.PENDING
        return cls(initial_state=state)
