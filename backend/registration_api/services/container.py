"""
Wires the registration services together for one application instance.
Held on app.state; routes reach it through the dependencies in api/deps.py.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import httpx

from registration_api.core.clock import Clock, utcnow
from registration_api.core.config import Settings
from registration_api.services.cache_service import CacheService, build_cache_service
from registration_api.services.capacity_service import CapacityService
from registration_api.services.instagram_service import InstagramService
from registration_api.services.interfaces.notifier import Notifier
from registration_api.services.interfaces.payment import PaymentProvider
from registration_api.services.interfaces.store import DocumentStore
from registration_api.services.registration_store import RegistrationStore
from registration_api.services.reservation_ledger import ReservationLedger
from registration_api.services.reservation_service import ReservationService


@dataclass
class ServiceContainer:
    settings: Settings
    store: DocumentStore
    registrations: RegistrationStore
    ledger: ReservationLedger
    reservations: ReservationService
    capacity: CapacityService
    payments: PaymentProvider
    notifier: Notifier
    cache: CacheService
    instagram: InstagramService
    http_client: httpx.AsyncClient
    clock: Clock = utcnow

    async def close(self) -> None:
        await self.http_client.aclose()
        await self.cache.close()
        await self.store.close()


def build_container(
    settings: Settings,
    store: DocumentStore,
    payments: PaymentProvider,
    notifier: Notifier,
    clock: Clock = utcnow,
    cache: Optional[CacheService] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> ServiceContainer:
    registrations = RegistrationStore(store, clock=clock)
    ledger = ReservationLedger(
        store,
        registrations,
        clock=clock,
        default_ttl=timedelta(seconds=settings.HOLD_TTL_SECONDS),
        retention=timedelta(seconds=settings.HOLD_RETENTION_SECONDS),
    )
    cache = cache or build_cache_service(settings, clock=clock)
    http_client = http_client or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)

    return ServiceContainer(
        settings=settings,
        store=store,
        registrations=registrations,
        ledger=ledger,
        reservations=ReservationService(
            ledger, registrations, clock=clock, max_attempts=settings.COMMIT_MAX_ATTEMPTS
        ),
        capacity=CapacityService(registrations, ledger),
        payments=payments,
        notifier=notifier,
        cache=cache,
        instagram=InstagramService(http_client, cache, settings.INSTAGRAM_OEMBED_URL),
        http_client=http_client,
        clock=clock,
    )
