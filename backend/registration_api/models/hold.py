"""
Reservation hold models.

A hold reserves one seat while payment is in flight. Holds for an event live
together in one ledger document so that hold creation can be checked against
capacity with a single conditional write.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from registration_api.models.registration import StoredModel


class HoldStatus(str, Enum):
    ACTIVE = "active"
    COMMITTED = "committed"
    RELEASED = "released"


TERMINAL_STATUSES = frozenset({HoldStatus.COMMITTED, HoldStatus.RELEASED})


class ReservationHold(StoredModel):
    hold_id: str
    event_id: str
    created_at: datetime
    expires_at: datetime
    status: HoldStatus = HoldStatus.ACTIVE
    committed_at: Optional[datetime] = None
    released_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_active(self, now: datetime) -> bool:
        return self.status == HoldStatus.ACTIVE and not self.is_expired(now)

    def seconds_remaining(self, now: datetime) -> int:
        if not self.is_active(now):
            return 0
        return max(0, int((self.expires_at - now).total_seconds()))


class EventLedger(StoredModel):
    """All holds recorded for one event."""

    event_id: str
    holds: list[ReservationHold] = Field(default_factory=list)

    def find(self, hold_id: str) -> Optional[ReservationHold]:
        for hold in self.holds:
            if hold.hold_id == hold_id:
                return hold
        return None

    def active_count(self, now: datetime) -> int:
        return sum(1 for hold in self.holds if hold.is_active(now))
