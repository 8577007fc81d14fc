"""
Pydantic schemas for reservations, capacity and admin responses.
"""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from registration_api.models.hold import HoldStatus, ReservationHold
from registration_api.models.registration import EventType, Registrant, RegistrationRecord
from registration_api.schemas.registration import CamelModel
from registration_api.services.capacity_service import CapacityDecision, CapacitySummary


class ReservationCreate(CamelModel):
    event_id: str = Field(..., min_length=1, max_length=255)
    event_type: EventType = EventType.OTHER
    max_capacity: Optional[int] = Field(None, ge=0, le=1000)


class ReservationResponse(CamelModel):
    hold_id: str
    event_id: str
    status: HoldStatus
    created_at: datetime
    expires_at: datetime
    seconds_remaining: int

    @classmethod
    def from_hold(cls, hold: ReservationHold, now: datetime) -> "ReservationResponse":
        return cls(
            hold_id=hold.hold_id,
            event_id=hold.event_id,
            status=hold.status,
            created_at=hold.created_at,
            expires_at=hold.expires_at,
            seconds_remaining=hold.seconds_remaining(now),
        )


class CapacityResponse(CamelModel):
    event_id: str
    max_capacity: int
    current_registrations: int
    active_holds: int
    remaining_seats: int
    is_sold_out: bool
    can_register: bool
    reason: Optional[str] = None

    @classmethod
    def build(cls, summary: CapacitySummary, decision: CapacityDecision) -> "CapacityResponse":
        return cls(
            event_id=summary.event_id,
            max_capacity=summary.max_capacity,
            current_registrations=summary.current_registrations,
            active_holds=summary.active_holds,
            remaining_seats=summary.remaining_seats,
            is_sold_out=summary.is_sold_out,
            can_register=decision.allowed,
            reason=decision.reason,
        )


class RecordResponse(CamelModel):
    event_id: str
    event_type: str
    max_capacity: int
    current_registrations: int
    is_sold_out: bool
    registrations: list[Registrant]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_record(cls, record: RegistrationRecord) -> "RecordResponse":
        return cls(
            event_id=record.event_id,
            event_type=record.event_type,
            max_capacity=record.max_capacity,
            current_registrations=record.current_registrations,
            is_sold_out=record.is_sold_out,
            registrations=record.registrations,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class CapacityUpdate(CamelModel):
    max_capacity: int = Field(..., ge=0, le=1000)


class SweepResponse(CamelModel):
    released: int


class ContactMessage(CamelModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=40)
    message: str = Field(..., min_length=1, max_length=5000)
