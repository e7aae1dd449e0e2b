"""
Value types passed between the transition detector, the orchestrator and the event log.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class DoorState(Enum):
    OPEN = "open"
    CLOSED = "closed"

    @classmethod
    def from_level(cls, level: int) -> 'DoorState':
        """Map a raw pin level to a door state. With a pull-up an open contact reads high."""
        return cls.OPEN if level else cls.CLOSED

    @property
    def event_name(self) -> str:
        return "DOOR_OPEN" if self is DoorState.OPEN else "DOOR_CLOSE"


class PresenceResult(Enum):
    PRESENT = "present"
    ABSENT = "absent"
    UNKNOWN = "unknown"

    @property
    def phone_connected(self) -> bool | None:
        """Projection stored in the event log: True, False or None when the probe failed."""
        if self is PresenceResult.UNKNOWN:
            return None
        return self is PresenceResult.PRESENT


@dataclass(frozen=True)
class TransitionEvent:
    """A change of the observed door state between two consecutive polls."""
    new_state: DoorState
    occurred_at: datetime
    previous_occurred_at: datetime

    @property
    def elapsed_seconds(self) -> int:
        """Whole seconds since the previous transition, rounded half up and never negative."""
        delta = (self.occurred_at - self.previous_occurred_at).total_seconds()
        return max(0, math.floor(delta + 0.5))


@dataclass(frozen=True)
class EventRecord:
    """
    Durable projection of a transition and the presence outcome.

    The event log only ever appends these; nothing updates or deletes them.
    """
    event: str
    occurred_at: datetime
    phone_connected: bool | None

    @classmethod
    def from_transition(cls, event: TransitionEvent, presence: PresenceResult) -> 'EventRecord':
        return cls(
            event=event.new_state.event_name,
            occurred_at=event.occurred_at,
            phone_connected=presence.phone_connected,
        )

    @property
    def occurred_at_unix_ms(self) -> int:
        return (self.occurred_at - UNIX_EPOCH) // timedelta(milliseconds=1)
