"""
Pytest fixtures for the registration core and the HTTP API.

Everything runs against the in-memory document store with a controllable
clock, so hold expiry is tested by advancing time instead of sleeping.
External services are replaced by fakes that record what they were asked.
"""

import json
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from registration_api.core.config import Settings
from registration_api.core.exceptions import InvalidSignature, PaymentProviderError
from registration_api.infrastructure.memory_store import MemoryDocumentStore
from registration_api.main import create_app
from registration_api.models.registration import Registrant
from registration_api.services.cache_service import build_cache_service
from registration_api.services.capacity_service import CapacityService
from registration_api.services.container import ServiceContainer, build_container
from registration_api.services.interfaces.notifier import Notifier
from registration_api.services.interfaces.payment import (
    CheckoutSession,
    CheckoutSessionRequest,
    PaymentEvent,
    PaymentProvider,
)
from registration_api.services.registration_store import RegistrationStore
from registration_api.services.reservation_ledger import ReservationLedger
from registration_api.services.reservation_service import ReservationService

ADMIN_KEY = "test-admin-key"
VALID_SIGNATURE = "t=1,v1=valid"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakePaymentProvider(PaymentProvider):
    """Checkout sessions that always succeed unless `fail` is set."""

    def __init__(self):
        self.requests: list[CheckoutSessionRequest] = []
        self.fail = False

    async def create_checkout_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        self.requests.append(request)
        if self.fail:
            raise PaymentProviderError("Payment provider timed out")
        session_id = f"cs_test_{len(self.requests)}"
        return CheckoutSession(id=session_id, url=f"https://checkout.test/{session_id}")

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        if signature != VALID_SIGNATURE:
            raise InvalidSignature("Invalid webhook signature")
        event = json.loads(payload)
        session = event["data"]["object"]
        return PaymentEvent(
            type=event["type"],
            session_id=session.get("id"),
            metadata=session.get("metadata") or {},
            amount_total=session.get("amount_total"),
            payment_status=session.get("payment_status"),
        )


class RecordingNotifier(Notifier):
    def __init__(self, succeed: bool = True):
        self.sent: list[dict] = []
        self.succeed = succeed

    async def send(self, subject, body, recipients) -> bool:
        self.sent.append({"subject": subject, "body": body, "recipients": list(recipients)})
        return self.succeed


def build_registrant(hold_id: str = "pending", **overrides) -> Registrant:
    data = {
        "id": hold_id,
        "hold_id": hold_id,
        "player_first_name": "Connor",
        "player_last_name": "Walsh",
        "player_date_of_birth": date(2014, 3, 2),
        "player_level_of_play": "10U A",
        "guardian_first_name": "Dana",
        "guardian_last_name": "Walsh",
        "guardian_email": "dana@example.com",
        "guardian_phone": "(555) 555-0101",
        "guardian_relationship": "Parent",
    }
    data.update(overrides)
    return Registrant(**data)


def build_form_data(**overrides) -> dict:
    data = {
        "playerFirstName": "Connor",
        "playerLastName": "Walsh",
        "playerDateOfBirth": "2014-03-02",
        "playerLevelOfPlay": "10U A",
        "guardianFirstName": "Dana",
        "guardianLastName": "Walsh",
        "guardianEmail": "dana@example.com",
        "guardianPhone": "(555) 555-0101",
        "guardianRelationship": "Parent",
        "emergencyName": "Sam Walsh",
        "emergencyPhone": "555-555-0102",
        "emergencyRelationship": "Uncle",
        "medicalNotes": "",
        "waiverAccepted": True,
    }
    data.update(overrides)
    return data


PLAYER_NAMES = ["Connor", "Maeve", "Liam", "Nora", "Owen", "Tess", "Finn"]


def build_at_home_form_data(player_count: int = 2, **overrides) -> dict:
    """At-home training booking: a players list and a training address."""
    data = build_form_data(
        players=[
            {
                "firstName": name,
                "lastName": "Walsh",
                "dateOfBirth": f"{2012 + i}-03-02",
                "levelOfPlay": "10U A",
            }
            for i, name in enumerate(PLAYER_NAMES[:player_count])
        ],
        addressStreet="12 Rink Road",
        addressUnit="",
        addressCity="Rockville",
        addressState="MD",
        addressZip="20850",
    )
    for key in ("playerFirstName", "playerLastName", "playerDateOfBirth", "playerLevelOfPlay"):
        del data[key]
    data.update(overrides)
    return data


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore()


@pytest.fixture
def registrations(store, clock) -> RegistrationStore:
    return RegistrationStore(store, clock=clock)


@pytest.fixture
def ledger(store, registrations, clock) -> ReservationLedger:
    return ReservationLedger(store, registrations, clock=clock)


@pytest.fixture
def reservations(ledger, registrations, clock) -> ReservationService:
    return ReservationService(ledger, registrations, clock=clock)


@pytest.fixture
def capacity(registrations, ledger) -> CapacityService:
    return CapacityService(registrations, ledger)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ENVIRONMENT="test",
        STORE_BACKEND="memory",
        ADMIN_API_KEY=ADMIN_KEY,
        ADMIN_EMAIL="admin@example.com",
        SITE_URL="https://hockey.test",
        REDIS_ENABLED=False,
    )


@pytest.fixture
def payments() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def oembed_handler():
    """Canned oEmbed upstream; tests set status_code, payload or error."""

    class Handler:
        def __init__(self):
            self.calls: list[httpx.Request] = []
            self.status_code = 200
            self.payload = {"html": "<blockquote>post</blockquote>", "author_name": "newerahockey"}
            self.error: Optional[Exception] = None

        def __call__(self, request: httpx.Request) -> httpx.Response:
            self.calls.append(request)
            if self.error is not None:
                raise self.error
            return httpx.Response(self.status_code, json=self.payload)

    return Handler()


@pytest_asyncio.fixture
async def container(settings, store, payments, notifier, clock, oembed_handler) -> AsyncGenerator[ServiceContainer, None]:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(oembed_handler))
    container = build_container(
        settings,
        store=store,
        payments=payments,
        notifier=notifier,
        clock=clock,
        cache=build_cache_service(settings, clock=clock),
        http_client=http_client,
    )
    yield container
    await container.close()


@pytest_asyncio.fixture
async def client(settings, container) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against an app wired to the test container."""
    app = create_app(settings)
    app.state.container = container

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict:
    return {"X-Admin-Key": ADMIN_KEY}


@pytest.fixture
def make_registrant():
    return build_registrant


@pytest.fixture
def form_data():
    return build_form_data


@pytest.fixture
def webhook_signature() -> str:
    return VALID_SIGNATURE


@pytest.fixture
def at_home_form_data():
    return build_at_home_form_data
