"""
Reservation/commit state machine.

  NoHold -> Held -> Committed
                 -> Released

CONCURRENCY STRATEGY: Optimistic Commit with Bounded Retry
==========================================================

Problem:
  Payment webhooks for the same event arrive concurrently (last-seat race),
  and the provider redelivers a webhook when it does not get a timely 200.
  Both must never produce more registrants than seats, and a redelivered
  webhook must never register the same player twice.

Solution:
  1. Read the record and remember current_registrations
  2. append_registrant(..., expected_count=that count): the store rejects
     the write if the count moved or the conditional write loses
  3. On ConcurrentModification re-read and retry, at most
     COMMIT_MAX_ATTEMPTS times, then surface CapacityExceeded

  Idempotency: the registrant id is the hold id. Before every append we
  look for a registrant already carrying this hold id, so a redelivered or
  timed-out-then-retried commit returns the existing registrant instead of
  appending a second one.
"""

from datetime import timedelta
from typing import Optional

from registration_api.core.clock import Clock, utcnow
from registration_api.core.exceptions import (
    CapacityExceeded,
    ConcurrentModification,
    HoldExpired,
)
from registration_api.core.logging import get_logger
from registration_api.core.metrics import commit_retries, record_commit
from registration_api.models.hold import HoldStatus, ReservationHold
from registration_api.models.registration import Registrant
from registration_api.services.registration_store import RegistrationStore
from registration_api.services.reservation_ledger import ReservationLedger

logger = get_logger(__name__)

MAX_COMMIT_ATTEMPTS = 3


class ReservationService:
    def __init__(
        self,
        ledger: ReservationLedger,
        registrations: RegistrationStore,
        clock: Clock = utcnow,
        max_attempts: int = MAX_COMMIT_ATTEMPTS,
    ):
        self.ledger = ledger
        self.registrations = registrations
        self.clock = clock
        self.max_attempts = max_attempts

    async def begin_reservation(
        self, event_id: str, ttl: Optional[timedelta] = None
    ) -> ReservationHold:
        """Hold one seat. CapacityExceeded means the event is full."""
        return await self.ledger.create_hold(event_id, ttl)

    async def get_reservation(self, hold_id: str) -> ReservationHold:
        return await self.ledger.get_hold(hold_id)

    async def existing_registrant(self, hold: ReservationHold) -> Optional[Registrant]:
        """The registrant already committed for this hold, if any."""
        record = await self.registrations.find(hold.event_id)
        return record.find_registrant(hold.hold_id) if record else None

    async def _mark_committed(self, hold_id: str, event_id: str) -> None:
        """Close the hold after its registrant is stored. The registrant already counts."""
        try:
            final = await self.ledger.mark_committed(hold_id)
        except ConcurrentModification:
            # Left active, the hold lapses on its own at expires_at
            logger.warning("hold_commit_mark_deferred", hold_id=hold_id, event_id=event_id)
            return
        if final.status != HoldStatus.COMMITTED:
            logger.warning(
                "hold_lapsed_during_commit",
                hold_id=hold_id,
                event_id=event_id,
                status=final.status.value,
            )

    async def commit(self, hold_id: str, registrant: Registrant) -> Registrant:
        """
        Convert a hold into a permanent registrant.

        Raises:
            HoldNotFound: unknown hold id
            HoldExpired: hold released or past its expiry
            CapacityExceeded: no seat could be committed within the retry bound
        """
        hold = await self.ledger.get_hold(hold_id)

        if hold.status == HoldStatus.COMMITTED:
            existing = await self.existing_registrant(hold)
            if existing is not None:
                record_commit("duplicate")
                logger.info("commit_duplicate", hold_id=hold_id, event_id=hold.event_id)
                return existing

        if hold.status == HoldStatus.RELEASED:
            # A commit that appended before the hold lapsed still counts
            existing = await self.existing_registrant(hold)
            if existing is not None:
                record_commit("duplicate")
                return existing
            record_commit("expired")
            logger.warning("commit_rejected_hold_expired", hold_id=hold_id, event_id=hold.event_id)
            raise HoldExpired(hold_id=hold_id, event_id=hold.event_id)

        event_id = hold.event_id
        committed = registrant.model_copy(
            update={"id": hold_id, "hold_id": hold_id, "committed_at": self.clock()}
        )

        for attempt in range(1, self.max_attempts + 1):
            record = await self.registrations.get(event_id)

            existing = record.find_registrant(hold_id)
            if existing is not None:
                await self._mark_committed(hold_id, event_id)
                record_commit("duplicate")
                logger.info("commit_duplicate", hold_id=hold_id, event_id=event_id, attempt=attempt)
                return existing

            try:
                await self.registrations.append_registrant(
                    event_id, committed, expected_count=record.current_registrations
                )
            except ConcurrentModification:
                commit_retries.inc()
                logger.info(
                    "commit_retry",
                    hold_id=hold_id,
                    event_id=event_id,
                    attempt=attempt,
                    reason="concurrent_modification",
                )
                continue
            except CapacityExceeded:
                record_commit("sold_out")
                logger.warning("commit_rejected_sold_out", hold_id=hold_id, event_id=event_id)
                raise

            await self._mark_committed(hold_id, event_id)
            record_commit("committed")
            logger.info(
                "registration_committed",
                hold_id=hold_id,
                event_id=event_id,
                attempt=attempt,
            )
            return committed

        record_commit("sold_out")
        logger.warning("commit_contention_exhausted", hold_id=hold_id, event_id=event_id)
        raise CapacityExceeded(
            "Registration failed due to high demand. Please try again.",
            event_id=event_id,
        )

    async def release(self, hold_id: str) -> ReservationHold:
        """Release a hold in any state; terminal holds are returned unchanged."""
        hold = await self.ledger.release_hold(hold_id)
        logger.info("reservation_released", hold_id=hold_id, status=hold.status.value)
        return hold
