"""
Reservation ledger: time-bounded holds against event capacity.

STORAGE LAYOUT
==============

  holds/{event_id}.json       all holds for the event (one document)
  hold-index/{hold_id}.json   {holdId, eventId}, written once the hold is stored

Keeping an event's holds in one document means "active holds + committed
registrations < capacity" is checked and the new hold written in a single
conditional write. Two requests racing for the last seat both read the same
ledger version; only one conditional write can succeed.

LAZY EXPIRY
===========

An active hold past expires_at is treated as released by every read,
whether or not a sweep has persisted it yet. Sweeps are persisted on the
way through (best effort), and expire_holds() sweeps every ledger for an
admin or scheduled caller. A stale hold therefore never blocks a new
reservation, even if no background process ever runs.

Terminal holds are kept for HOLD_RETENTION_SECONDS so that a retried
payment webhook still finds its hold, then pruned on the next ledger write
along with their index documents. A rejected hold never gets an index
document, so the index only holds ids that are (or were) in a ledger.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from registration_api.core.clock import Clock, utcnow
from registration_api.core.exceptions import (
    CapacityExceeded,
    ConcurrentModification,
    HoldNotFound,
    StoreUnavailable,
)
from registration_api.core.logging import get_logger
from registration_api.core.metrics import record_hold, record_release, store_conflicts
from registration_api.models.hold import EventLedger, HoldStatus, ReservationHold
from registration_api.services.interfaces.store import DocumentStore
from registration_api.services.registration_store import RegistrationStore

logger = get_logger(__name__)

LEDGER_PREFIX = "holds/"
INDEX_PREFIX = "hold-index/"
MAX_WRITE_ATTEMPTS = 3


def ledger_key(event_id: str) -> str:
    return f"{LEDGER_PREFIX}{event_id}.json"


def index_key(hold_id: str) -> str:
    return f"{INDEX_PREFIX}{hold_id}.json"


class ReservationLedger:
    def __init__(
        self,
        store: DocumentStore,
        registrations: RegistrationStore,
        clock: Clock = utcnow,
        default_ttl: timedelta = timedelta(minutes=30),
        retention: timedelta = timedelta(days=7),
    ):
        self.store = store
        self.registrations = registrations
        self.clock = clock
        self.default_ttl = default_ttl
        self.retention = retention

    async def _load_ledger(self, event_id: str) -> tuple[EventLedger, Optional[str]]:
        document = await self.store.get(ledger_key(event_id))
        if document is None:
            return EventLedger(event_id=event_id), None
        return EventLedger.model_validate(document.data), document.version

    def _sweep(
        self, ledger: EventLedger, now: datetime
    ) -> tuple[EventLedger, int, list[str]]:
        """
        Release expired active holds and prune terminal holds past retention.

        Returns the swept ledger, how many holds expired, and the ids pruned.
        """
        expired = 0
        pruned = []
        holds = []
        for hold in ledger.holds:
            if hold.status == HoldStatus.ACTIVE and hold.is_expired(now):
                hold = hold.model_copy(
                    update={"status": HoldStatus.RELEASED, "released_at": hold.expires_at}
                )
                expired += 1
            if hold.is_terminal and self._finished_at(hold) + self.retention < now:
                pruned.append(hold.hold_id)
                continue
            holds.append(hold)
        return ledger.model_copy(update={"holds": holds}), expired, pruned

    @staticmethod
    def _finished_at(hold: ReservationHold) -> datetime:
        return hold.committed_at or hold.released_at or hold.expires_at

    async def _forget(self, hold_ids: list[str]) -> None:
        """Drop index documents of pruned holds. Leftovers only cost storage."""
        for hold_id in hold_ids:
            try:
                await self.store.delete(index_key(hold_id))
            except StoreUnavailable:
                logger.warning("hold_index_cleanup_failed", hold_id=hold_id)
                return

    async def _swept(self, expired: int, pruned: list[str]) -> None:
        """Bookkeeping once a swept ledger has been written."""
        record_release("expired", expired)
        await self._forget(pruned)

    async def _write_ledger(
        self, event_id: str, ledger: EventLedger, version: Optional[str]
    ) -> None:
        try:
            await self.store.put(ledger_key(event_id), ledger.to_document(), version)
        except ConcurrentModification:
            store_conflicts.labels(document="holds").inc()
            raise

    async def create_hold(
        self, event_id: str, ttl: Optional[timedelta] = None
    ) -> ReservationHold:
        """
        Reserve one seat.

        Raises:
            RecordNotFound: the event has no registration record
            CapacityExceeded: active holds plus committed registrations
                already fill the event, or the ledger stayed contended
        """
        ttl = ttl or self.default_ttl
        await self.registrations.get(event_id)
        hold_id = uuid.uuid4().hex

        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            ledger, version = await self._load_ledger(event_id)
            record = await self.registrations.get(event_id)
            now = self.clock()
            ledger, expired, pruned = self._sweep(ledger, now)

            active = ledger.active_count(now)
            if active + record.current_registrations >= record.max_capacity:
                record_hold(created=False)
                logger.info(
                    "hold_rejected_sold_out",
                    event_id=event_id,
                    active_holds=active,
                    current_registrations=record.current_registrations,
                    max_capacity=record.max_capacity,
                )
                raise CapacityExceeded(f"Event {event_id} is sold out", event_id=event_id)

            hold = ReservationHold(
                hold_id=hold_id,
                event_id=event_id,
                created_at=now,
                expires_at=now + ttl,
            )
            ledger = ledger.model_copy(update={"holds": [*ledger.holds, hold]})
            try:
                await self._write_ledger(event_id, ledger, version)
            except ConcurrentModification:
                logger.info("hold_retry", event_id=event_id, attempt=attempt)
                continue

            # The hold becomes reachable by id only once its seat is stored
            await self.store.put(
                index_key(hold_id), {"holdId": hold_id, "eventId": event_id}, expected_version=None
            )
            await self._swept(expired, pruned)
            record_hold(created=True)
            logger.info(
                "hold_created",
                event_id=event_id,
                hold_id=hold_id,
                expires_at=hold.expires_at.isoformat(),
                active_holds=active + 1,
            )
            return hold

        record_hold(created=False)
        logger.warning("hold_contention_exhausted", event_id=event_id)
        raise CapacityExceeded(
            "Event is in high demand. Please try again.", event_id=event_id
        )

    async def _event_for(self, hold_id: str) -> str:
        document = await self.store.get(index_key(hold_id))
        if document is None:
            raise HoldNotFound(hold_id=hold_id)
        return document.data["eventId"]

    async def get_hold(self, hold_id: str) -> ReservationHold:
        event_id = await self._event_for(hold_id)
        ledger, _ = await self._load_ledger(event_id)
        hold = ledger.find(hold_id)
        if hold is None:
            raise HoldNotFound(hold_id=hold_id)
        now = self.clock()
        if hold.status == HoldStatus.ACTIVE and hold.is_expired(now):
            return hold.model_copy(
                update={"status": HoldStatus.RELEASED, "released_at": hold.expires_at}
            )
        return hold

    async def _transition(
        self, hold_id: str, target: HoldStatus
    ) -> tuple[ReservationHold, bool]:
        event_id = await self._event_for(hold_id)

        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            ledger, version = await self._load_ledger(event_id)
            current = ledger.find(hold_id)
            if current is None:
                raise HoldNotFound(hold_id=hold_id)

            now = self.clock()
            ledger, expired, pruned = self._sweep(ledger, now)
            hold = ledger.find(hold_id) or current

            if hold.is_terminal:
                if hold.status != target:
                    logger.warning(
                        "hold_transition_ignored",
                        hold_id=hold_id,
                        status=hold.status.value,
                        requested=target.value,
                    )
                if (expired or pruned) and await self._persist_sweep(event_id, ledger, version):
                    await self._swept(expired, pruned)
                return hold, False

            stamp = "committed_at" if target == HoldStatus.COMMITTED else "released_at"
            updated_hold = hold.model_copy(update={"status": target, stamp: now})
            ledger = ledger.model_copy(
                update={
                    "holds": [
                        updated_hold if h.hold_id == hold_id else h for h in ledger.holds
                    ]
                }
            )
            try:
                await self._write_ledger(event_id, ledger, version)
            except ConcurrentModification:
                logger.info("hold_transition_retry", hold_id=hold_id, attempt=attempt)
                continue

            await self._swept(expired, pruned)
            logger.info(
                "hold_transitioned",
                hold_id=hold_id,
                event_id=event_id,
                status=target.value,
            )
            return updated_hold, True

        raise ConcurrentModification(hold_id=hold_id)

    async def release_hold(self, hold_id: str) -> ReservationHold:
        """Release a hold. Holds already committed or released are left as they are."""
        hold, changed = await self._transition(hold_id, HoldStatus.RELEASED)
        if changed:
            record_release("cancelled")
        return hold

    async def mark_committed(self, hold_id: str) -> ReservationHold:
        hold, _ = await self._transition(hold_id, HoldStatus.COMMITTED)
        return hold

    async def _persist_sweep(
        self, event_id: str, ledger: EventLedger, version: Optional[str]
    ) -> bool:
        if version is None:
            return False
        try:
            await self._write_ledger(event_id, ledger, version)
        except ConcurrentModification:
            # Someone else wrote the ledger; expiry is re-derived from the clock on every read
            return False
        return True

    async def active_holds(self, event_id: str) -> int:
        ledger, version = await self._load_ledger(event_id)
        now = self.clock()
        ledger, expired, pruned = self._sweep(ledger, now)
        if (expired or pruned) and await self._persist_sweep(event_id, ledger, version):
            await self._swept(expired, pruned)
            if expired:
                logger.info("holds_expired", event_id=event_id, count=expired)
        return ledger.active_count(now)

    async def expire_holds(self, event_id: Optional[str] = None) -> int:
        """Persist expiry of every overdue active hold. Returns how many were released."""
        if event_id is not None:
            event_ids = [event_id]
        else:
            event_ids = [
                key[len(LEDGER_PREFIX):-len(".json")]
                for key in await self.store.list_keys(LEDGER_PREFIX)
            ]

        released = 0
        for current_event in event_ids:
            for _ in range(MAX_WRITE_ATTEMPTS):
                ledger, version = await self._load_ledger(current_event)
                ledger, expired, pruned = self._sweep(ledger, self.clock())
                if not (expired or pruned):
                    break
                if await self._persist_sweep(current_event, ledger, version):
                    released += expired
                    await self._swept(expired, pruned)
                    break

        if released:
            logger.info("hold_sweep_completed", released=released, events=len(event_ids))
        return released
