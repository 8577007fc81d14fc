"""
Event capacity endpoint used by the calendar to show sold-out state.
"""

from fastapi import APIRouter, Depends, Query

from registration_api.api.deps import get_container
from registration_api.models.registration import EventType, default_capacity_for
from registration_api.schemas.reservation import CapacityResponse
from registration_api.services.capacity_service import SOLD_OUT, CapacityDecision
from registration_api.services.container import ServiceContainer

router = APIRouter(prefix="/events", tags=["Events"])


@router.get("/{event_id}/capacity", response_model=CapacityResponse)
async def get_capacity(
    event_id: str,
    event_type: EventType = Query(EventType.OTHER, alias="eventType"),
    container: ServiceContainer = Depends(get_container),
):
    """
    Remaining seats for an event.
    Events nobody has registered for yet report the default capacity for
    their type.
    """
    summary = await container.capacity.summary(
        event_id, default_capacity=default_capacity_for(event_type)
    )
    decision = (
        CapacityDecision(allowed=False, reason=SOLD_OUT)
        if summary.is_sold_out
        else CapacityDecision(allowed=True)
    )
    return CapacityResponse.build(summary, decision)
