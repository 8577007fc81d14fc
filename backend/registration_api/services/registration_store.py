"""
Registration record store.

Every mutation reads the record, computes the new state and writes it back
conditioned on the version that was read. Invariants are checked before the
write, so a record that violates them is never stored:

  - current_registrations == len(registrations)
  - current_registrations <= max_capacity
"""

from typing import Optional

from registration_api.core.clock import Clock, utcnow
from registration_api.core.exceptions import (
    CapacityExceeded,
    ConcurrentModification,
    InvalidCapacity,
    RecordNotFound,
)
from registration_api.core.logging import get_logger
from registration_api.core.metrics import store_conflicts
from registration_api.models.registration import (
    EventType,
    Registrant,
    RegistrationRecord,
    default_capacity_for,
)
from registration_api.services.interfaces.store import DocumentStore, VersionedDocument

logger = get_logger(__name__)

RECORD_PREFIX = "registrations/"
MAX_WRITE_ATTEMPTS = 3


def record_key(event_id: str) -> str:
    return f"{RECORD_PREFIX}{event_id}.json"


class RegistrationStore:
    def __init__(self, store: DocumentStore, clock: Clock = utcnow):
        self.store = store
        self.clock = clock

    async def _load(self, event_id: str) -> tuple[RegistrationRecord, VersionedDocument]:
        document = await self.store.get(record_key(event_id))
        if document is None:
            raise RecordNotFound(f"Event {event_id} has no registration data", event_id=event_id)
        return RegistrationRecord.model_validate(document.data), document

    async def get(self, event_id: str) -> RegistrationRecord:
        record, _ = await self._load(event_id)
        return record

    async def find(self, event_id: str) -> Optional[RegistrationRecord]:
        document = await self.store.get(record_key(event_id))
        if document is None:
            return None
        return RegistrationRecord.model_validate(document.data)

    async def initialize(
        self,
        event_id: str,
        event_type: str,
        max_capacity: Optional[int] = None,
    ) -> RegistrationRecord:
        """
        Create the record for an event if it does not exist yet.
        An existing record is returned unchanged; capacity changes go
        through set_capacity.
        """
        if isinstance(event_type, EventType):
            event_type = event_type.value

        existing = await self.find(event_id)
        if existing is not None:
            return existing

        now = self.clock()
        record = RegistrationRecord(
            event_id=event_id,
            event_type=event_type,
            max_capacity=max_capacity if max_capacity is not None else default_capacity_for(event_type),
            current_registrations=0,
            registrations=[],
            created_at=now,
            updated_at=now,
        )
        try:
            await self.store.put(record_key(event_id), record.to_document(), expected_version=None)
        except ConcurrentModification:
            # Another request created it first
            return await self.get(event_id)

        logger.info(
            "registration_record_initialized",
            event_id=event_id,
            event_type=event_type,
            max_capacity=record.max_capacity,
        )
        return record

    async def append_registrant(
        self,
        event_id: str,
        registrant: Registrant,
        expected_count: int,
    ) -> RegistrationRecord:
        """
        Append a committed registrant.

        Raises:
            CapacityExceeded: expected_count already fills the event
            ConcurrentModification: the stored count is not expected_count,
                or another writer won the conditional write
        """
        record, document = await self._load(event_id)

        if expected_count >= record.max_capacity:
            raise CapacityExceeded(
                f"Event {event_id} is sold out",
                event_id=event_id,
                max_capacity=record.max_capacity,
            )
        if record.current_registrations != expected_count:
            store_conflicts.labels(document="registrations").inc()
            raise ConcurrentModification(
                event_id=event_id,
                expected=expected_count,
                actual=record.current_registrations,
            )

        updated = record.model_copy(
            update={
                "registrations": [*record.registrations, registrant],
                "current_registrations": record.current_registrations + 1,
                "updated_at": self.clock(),
            }
        )
        try:
            await self.store.put(record_key(event_id), updated.to_document(), document.version)
        except ConcurrentModification:
            store_conflicts.labels(document="registrations").inc()
            raise

        logger.info(
            "registrant_appended",
            event_id=event_id,
            registrant_id=registrant.id,
            current_registrations=updated.current_registrations,
            max_capacity=updated.max_capacity,
        )
        return updated

    async def set_capacity(self, event_id: str, max_capacity: int) -> RegistrationRecord:
        """Admin override of max_capacity. Never drops below committed count."""
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            record, document = await self._load(event_id)

            if max_capacity < 0 or max_capacity < record.current_registrations:
                raise InvalidCapacity(
                    f"Capacity {max_capacity} is below {record.current_registrations} "
                    f"committed registrations",
                    event_id=event_id,
                )

            updated = record.model_copy(
                update={"max_capacity": max_capacity, "updated_at": self.clock()}
            )
            try:
                await self.store.put(record_key(event_id), updated.to_document(), document.version)
            except ConcurrentModification:
                store_conflicts.labels(document="registrations").inc()
                logger.info("capacity_update_retry", event_id=event_id, attempt=attempt)
                if attempt == MAX_WRITE_ATTEMPTS:
                    raise
                continue

            logger.info(
                "capacity_updated",
                event_id=event_id,
                old_capacity=record.max_capacity,
                new_capacity=max_capacity,
            )
            return updated

        raise ConcurrentModification(event_id=event_id)

    async def delete(self, event_id: str) -> None:
        await self._load(event_id)
        await self.store.delete(record_key(event_id))
        logger.warning("registration_record_deleted", event_id=event_id)

    async def list_records(self) -> list[RegistrationRecord]:
        records = []
        for key in await self.store.list_keys(RECORD_PREFIX):
            document = await self.store.get(key)
            if document is not None:
                records.append(RegistrationRecord.model_validate(document.data))
        return records
