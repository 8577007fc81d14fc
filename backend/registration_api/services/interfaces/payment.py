"""
Payment provider interface.
Checkout sessions are correlated with reservations through metadata: the
hold id and event id go out with the session and come back on the webhook.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

CHECKOUT_COMPLETED = "checkout.session.completed"
CHECKOUT_EXPIRED = "checkout.session.expired"


@dataclass(frozen=True)
class CheckoutSessionRequest:
    idempotency_key: str
    amount_cents: int
    currency: str
    product_name: str
    customer_email: str
    success_url: str
    cancel_url: str
    expires_at: int  # unix seconds
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


@dataclass(frozen=True)
class PaymentEvent:
    type: str
    session_id: Optional[str]
    metadata: dict[str, str]
    amount_total: Optional[int] = None  # cents
    payment_status: Optional[str] = None


class PaymentProvider(ABC):
    """
    Interface for hosted-checkout payment providers.

    Implementations:
    - StripePaymentProvider: Stripe Checkout sessions and signed webhooks
    """

    @abstractmethod
    async def create_checkout_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        """
        Create a hosted checkout session.

        Raises:
            PaymentProviderError: provider unreachable, misconfigured or
                rejected the request
        """

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        """
        Verify and decode a webhook delivery.

        Raises:
            InvalidSignature: signature missing or invalid, or payload malformed
        """
