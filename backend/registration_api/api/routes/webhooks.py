"""
Payment provider webhooks.

Response policy: a 5xx makes the provider redeliver, so only transient
failures (store or network) propagate. Failures that a redelivery cannot
fix are logged and acknowledged with 200; those payments are refunded by
hand.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from registration_api.api.deps import get_container
from registration_api.core.exceptions import (
    CapacityExceeded,
    HoldExpired,
    HoldNotFound,
    InvalidInput,
)
from registration_api.core.logging import get_logger
from registration_api.schemas.registration import RegistrationForm
from registration_api.services.container import ServiceContainer
from registration_api.services.email_service import send_registration_confirmation
from registration_api.services.interfaces.payment import (
    CHECKOUT_COMPLETED,
    CHECKOUT_EXPIRED,
    PaymentEvent,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


async def _handle_completed(event: PaymentEvent, container: ServiceContainer) -> dict:
    hold_id = event.metadata.get("holdId")
    if not hold_id:
        logger.error("webhook_missing_hold_id", session_id=event.session_id)
        return {"received": True, "status": "ignored"}

    try:
        previous = await container.reservations.get_reservation(hold_id)
        # The registrant, not the hold status, decides whether this delivery
        # is a repeat: a hold whose commit mark was deferred stays active.
        already_committed = await container.reservations.existing_registrant(previous)
        form = RegistrationForm.from_metadata(event.metadata)
        amount = event.amount_total / 100 if event.amount_total is not None else None
        registrant = form.to_registrant(
            hold_id, payment_reference=event.session_id, amount=amount
        )
        committed = await container.reservations.commit(hold_id, registrant)
    except (HoldExpired, HoldNotFound, CapacityExceeded, InvalidInput) as e:
        logger.error(
            "webhook_commit_rejected",
            hold_id=hold_id,
            session_id=event.session_id,
            error=e.code,
            message=e.message,
        )
        return {"received": True, "status": e.code}

    if already_committed is not None:
        logger.info("webhook_duplicate", hold_id=hold_id, session_id=event.session_id)
        return {"received": True, "status": "duplicate", "registrantId": committed.id}

    await send_registration_confirmation(
        container.notifier,
        committed,
        event.metadata.get("eventSummary") or "Event Registration",
        container.settings.ADMIN_EMAIL,
    )
    return {"received": True, "status": "committed", "registrantId": committed.id}


async def _handle_expired(event: PaymentEvent, container: ServiceContainer) -> dict:
    hold_id = event.metadata.get("holdId")
    if not hold_id:
        return {"received": True, "status": "ignored"}
    try:
        hold = await container.reservations.release(hold_id)
    except HoldNotFound:
        logger.warning("webhook_release_unknown_hold", hold_id=hold_id)
        return {"received": True, "status": "ignored"}
    return {"received": True, "status": hold.status.value}


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    container: ServiceContainer = Depends(get_container),
):
    """Commit paid registrations and release abandoned checkouts."""
    payload = await request.body()
    event = container.payments.parse_webhook(payload, stripe_signature)

    logger.info("webhook_received", type=event.type, session_id=event.session_id)

    if event.type == CHECKOUT_COMPLETED:
        return await _handle_completed(event, container)
    if event.type == CHECKOUT_EXPIRED:
        return await _handle_expired(event, container)

    logger.info("webhook_ignored", type=event.type)
    return {"received": True, "status": "ignored"}
