"""
Read-side capacity queries combining committed registrations and active holds.
"""

from dataclasses import dataclass
from typing import Optional

from registration_api.core.exceptions import RecordNotFound
from registration_api.services.registration_store import RegistrationStore
from registration_api.services.reservation_ledger import ReservationLedger

SOLD_OUT = "SoldOut"


@dataclass(frozen=True)
class CapacityDecision:
    allowed: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class CapacitySummary:
    event_id: str
    max_capacity: int
    current_registrations: int
    active_holds: int
    initialized: bool

    @property
    def remaining_seats(self) -> int:
        return max(0, self.max_capacity - self.current_registrations - self.active_holds)

    @property
    def is_sold_out(self) -> bool:
        return self.remaining_seats == 0


class CapacityService:
    def __init__(self, registrations: RegistrationStore, ledger: ReservationLedger):
        self.registrations = registrations
        self.ledger = ledger

    async def summary(
        self, event_id: str, default_capacity: Optional[int] = None
    ) -> CapacitySummary:
        """
        Capacity snapshot for an event.
        Events without a record yet use default_capacity with nothing
        committed; without a default they raise RecordNotFound.
        """
        record = await self.registrations.find(event_id)
        if record is None:
            if default_capacity is None:
                raise RecordNotFound(
                    f"Event {event_id} has no registration data", event_id=event_id
                )
            return CapacitySummary(
                event_id=event_id,
                max_capacity=default_capacity,
                current_registrations=0,
                active_holds=0,
                initialized=False,
            )

        active = await self.ledger.active_holds(event_id)
        return CapacitySummary(
            event_id=event_id,
            max_capacity=record.max_capacity,
            current_registrations=record.current_registrations,
            active_holds=active,
            initialized=True,
        )

    async def can_register(
        self, event_id: str, default_capacity: Optional[int] = None
    ) -> CapacityDecision:
        summary = await self.summary(event_id, default_capacity)
        if summary.current_registrations + summary.active_holds >= summary.max_capacity:
            return CapacityDecision(allowed=False, reason=SOLD_OUT)
        return CapacityDecision(allowed=True)

    async def remaining_seats(
        self, event_id: str, default_capacity: Optional[int] = None
    ) -> int:
        summary = await self.summary(event_id, default_capacity)
        return summary.remaining_seats
