"""
Admin endpoints for inspecting and correcting registration records.
All routes require the X-Admin-Key header.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from registration_api.api.deps import get_container, require_admin
from registration_api.core.logging import get_logger
from registration_api.schemas.reservation import CapacityUpdate, RecordResponse, SweepResponse
from registration_api.services.container import ServiceContainer

logger = get_logger(__name__)
router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin)])


@router.get("/registrations", response_model=list[RecordResponse])
async def list_registrations(container: ServiceContainer = Depends(get_container)):
    records = await container.registrations.list_records()
    return [RecordResponse.from_record(record) for record in records]


@router.get("/registrations/{event_id}", response_model=RecordResponse)
async def get_registration(
    event_id: str,
    container: ServiceContainer = Depends(get_container),
):
    record = await container.registrations.get(event_id)
    return RecordResponse.from_record(record)


@router.put("/registrations/{event_id}/capacity", response_model=RecordResponse)
async def set_capacity(
    event_id: str,
    payload: CapacityUpdate,
    container: ServiceContainer = Depends(get_container),
):
    """Change capacity. Lowering it below committed registrations returns 422."""
    record = await container.registrations.set_capacity(event_id, payload.max_capacity)
    logger.info("admin_capacity_updated", event_id=event_id, max_capacity=payload.max_capacity)
    return RecordResponse.from_record(record)


@router.delete("/registrations/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_registration(
    event_id: str,
    container: ServiceContainer = Depends(get_container),
):
    await container.registrations.delete(event_id)
    logger.warning("admin_record_deleted", event_id=event_id)


@router.post("/holds/sweep", response_model=SweepResponse)
async def sweep_holds(
    event_id: Optional[str] = Query(None, alias="eventId"),
    container: ServiceContainer = Depends(get_container),
):
    """Persist expiry of overdue holds, for one event or all of them."""
    released = await container.ledger.expire_holds(event_id)
    return SweepResponse(released=released)
