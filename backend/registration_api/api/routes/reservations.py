"""
Reservation endpoints: hold, inspect and release a seat.
"""

from fastapi import APIRouter, Depends, status

from registration_api.api.deps import get_container
from registration_api.schemas.reservation import ReservationCreate, ReservationResponse
from registration_api.services.container import ServiceContainer

router = APIRouter(prefix="/reservations", tags=["Reservations"])


@router.post("", response_model=ReservationResponse, status_code=status.HTTP_201_CREATED)
async def begin_reservation(
    payload: ReservationCreate,
    container: ServiceContainer = Depends(get_container),
):
    """
    Hold one seat for the event.
    The record is created on first use with the event type's default
    capacity unless maxCapacity is given. Sold out returns 409.
    """
    await container.registrations.initialize(
        payload.event_id, payload.event_type, payload.max_capacity
    )
    hold = await container.reservations.begin_reservation(payload.event_id)
    return ReservationResponse.from_hold(hold, container.clock())


@router.get("/{hold_id}", response_model=ReservationResponse)
async def get_reservation(
    hold_id: str,
    container: ServiceContainer = Depends(get_container),
):
    """Hold status and seconds remaining, for the checkout countdown."""
    hold = await container.reservations.get_reservation(hold_id)
    return ReservationResponse.from_hold(hold, container.clock())


@router.delete("/{hold_id}", response_model=ReservationResponse)
async def release_reservation(
    hold_id: str,
    container: ServiceContainer = Depends(get_container),
):
    """Give the seat back. Releasing a finished hold is a no-op."""
    hold = await container.reservations.release(hold_id)
    return ReservationResponse.from_hold(hold, container.clock())
