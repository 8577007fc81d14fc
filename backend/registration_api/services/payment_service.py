"""
Stripe Checkout integration.

The Stripe SDK is synchronous; session creation runs in a worker thread and
is bounded by STRIPE_TIMEOUT_SECONDS. The hold id doubles as the Stripe
idempotency key, so retrying checkout for the same hold never creates a
second session.
"""

import asyncio
import json
from typing import Optional

import stripe

from registration_api.core.config import Settings
from registration_api.core.exceptions import InvalidSignature, PaymentProviderError
from registration_api.core.logging import get_logger
from registration_api.services.interfaces.payment import (
    CheckoutSession,
    CheckoutSessionRequest,
    PaymentEvent,
    PaymentProvider,
)

logger = get_logger(__name__)


class StripePaymentProvider(PaymentProvider):
    def __init__(
        self,
        secret_key: Optional[str],
        webhook_secret: Optional[str],
        timeout: float = 10.0,
        max_network_retries: int = 2,
    ):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.timeout = timeout
        stripe.max_network_retries = max_network_retries

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripePaymentProvider":
        return cls(
            secret_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            timeout=settings.STRIPE_TIMEOUT_SECONDS,
        )

    def _create_session(self, request: CheckoutSessionRequest):
        return stripe.checkout.Session.create(
            api_key=self.secret_key,
            idempotency_key=request.idempotency_key,
            payment_method_types=["card"],
            mode="payment",
            line_items=[
                {
                    "price_data": {
                        "currency": request.currency,
                        "product_data": {"name": request.product_name},
                        "unit_amount": request.amount_cents,
                    },
                    "quantity": 1,
                }
            ],
            customer_email=request.customer_email,
            metadata=request.metadata,
            success_url=request.success_url,
            cancel_url=request.cancel_url,
            expires_at=request.expires_at,
        )

    async def create_checkout_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        if not self.secret_key:
            logger.error("stripe_not_configured")
            raise PaymentProviderError("Payment processing not configured")

        try:
            session = await asyncio.wait_for(
                asyncio.to_thread(self._create_session, request),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("stripe_timeout", idempotency_key=request.idempotency_key)
            raise PaymentProviderError("Payment provider timed out") from e
        except stripe.StripeError as e:
            logger.error(
                "stripe_checkout_failed",
                idempotency_key=request.idempotency_key,
                error=str(e),
            )
            raise PaymentProviderError(
                getattr(e, "user_message", None) or "Failed to create checkout session"
            ) from e

        logger.info(
            "checkout_session_created",
            session_id=session.id,
            amount_cents=request.amount_cents,
        )
        return CheckoutSession(id=session.id, url=session.url)

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        if not signature or not self.webhook_secret:
            raise InvalidSignature("Missing webhook signature")

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.warning("webhook_signature_invalid", error=str(e))
            raise InvalidSignature("Invalid webhook signature") from e
        except ValueError as e:
            raise InvalidSignature("Malformed webhook payload") from e

        event = json.loads(payload)
        session = event.get("data", {}).get("object", {}) or {}
        return PaymentEvent(
            type=event.get("type", ""),
            session_id=session.get("id"),
            metadata={k: str(v) for k, v in (session.get("metadata") or {}).items()},
            amount_total=session.get("amount_total"),
            payment_status=session.get("payment_status"),
        )
