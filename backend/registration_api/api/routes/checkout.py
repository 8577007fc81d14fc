"""
Checkout endpoint: reserve a seat, then hand the guardian to hosted checkout.
"""

from datetime import timedelta
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, status

from registration_api.api.deps import get_container
from registration_api.core.exceptions import PaymentProviderError
from registration_api.core.logging import get_logger
from registration_api.schemas.registration import CheckoutRequest, CheckoutResponse
from registration_api.services.container import ServiceContainer
from registration_api.services.interfaces.payment import CheckoutSessionRequest

logger = get_logger(__name__)
router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post("/sessions", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
async def create_checkout_session(
    payload: CheckoutRequest,
    container: ServiceContainer = Depends(get_container),
):
    """
    Start a paid registration.

    The seat is held before the checkout session exists, so a sold-out
    event is rejected with 409 instead of after payment. The session
    expires with the hold, and the hold is long enough for the session to
    meet the provider's minimum expiry. If the provider call fails the
    hold is released right away.
    """
    event = payload.event
    form = payload.form_data
    settings = container.settings

    await container.registrations.initialize(event.id, event.event_type, event.max_capacity)
    hold = await container.reservations.begin_reservation(
        event.id, ttl=timedelta(seconds=settings.checkout_hold_ttl_seconds)
    )

    metadata = {
        "holdId": hold.hold_id,
        **payload.event_metadata(),
        **form.to_metadata(),
    }
    cancel_query = urlencode({"event_id": event.id, "hold_id": hold.hold_id})
    request = CheckoutSessionRequest(
        idempotency_key=hold.hold_id,
        amount_cents=round(payload.total_price * 100),
        currency=settings.CURRENCY,
        product_name=payload.product_name,
        customer_email=str(form.guardian_email),
        success_url=f"{settings.SITE_URL}/register/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{settings.SITE_URL}/register/cancel?{cancel_query}",
        expires_at=int(hold.expires_at.timestamp()),
        metadata=metadata,
    )

    try:
        session = await container.payments.create_checkout_session(request)
    except PaymentProviderError:
        await container.reservations.release(hold.hold_id)
        logger.warning("checkout_failed_hold_released", hold_id=hold.hold_id, event_id=event.id)
        raise

    logger.info(
        "checkout_started",
        hold_id=hold.hold_id,
        event_id=event.id,
        session_id=session.id,
        player_count=form.player_count,
    )
    return CheckoutResponse(
        url=session.url,
        session_id=session.id,
        hold_id=hold.hold_id,
        expires_at=hold.expires_at,
    )
