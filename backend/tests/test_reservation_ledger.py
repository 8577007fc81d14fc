"""
Tests for seat holds: creation against capacity, lazy expiry and release.
"""

import asyncio
from datetime import timedelta

import pytest

from registration_api.core.exceptions import CapacityExceeded, HoldNotFound, RecordNotFound
from registration_api.models.hold import HoldStatus
from registration_api.models.registration import EventType
from registration_api.services.reservation_ledger import index_key, ledger_key


@pytest.mark.asyncio
async def test_create_hold(ledger, registrations, clock):
    await registrations.initialize("evt", EventType.LESSON, max_capacity=2)

    hold = await ledger.create_hold("evt")

    assert hold.status == HoldStatus.ACTIVE
    assert hold.event_id == "evt"
    assert hold.expires_at == clock() + timedelta(minutes=30)
    assert await ledger.active_holds("evt") == 1


@pytest.mark.asyncio
async def test_create_hold_requires_record(ledger, store):
    with pytest.raises(RecordNotFound):
        await ledger.create_hold("missing")
    assert await store.list_keys("hold-index/") == []


@pytest.mark.asyncio
async def test_holds_count_against_capacity(ledger, registrations):
    await registrations.initialize("evt", EventType.LESSON, max_capacity=2)
    await ledger.create_hold("evt")
    await ledger.create_hold("evt")

    with pytest.raises(CapacityExceeded):
        await ledger.create_hold("evt")


@pytest.mark.asyncio
async def test_committed_registrations_count_against_capacity(ledger, registrations, make_registrant):
    await registrations.initialize("evt", EventType.LESSON, max_capacity=1)
    await registrations.append_registrant("evt", make_registrant("h0"), expected_count=0)

    with pytest.raises(CapacityExceeded):
        await ledger.create_hold("evt")


@pytest.mark.asyncio
async def test_concurrent_holds_never_exceed_capacity(ledger, registrations):
    await registrations.initialize("evt", EventType.LESSON, max_capacity=3)

    results = await asyncio.gather(
        *[ledger.create_hold("evt") for _ in range(10)], return_exceptions=True
    )

    created = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, CapacityExceeded)]
    assert len(created) <= 3
    assert len(created) + len(rejected) == 10
    assert await ledger.active_holds("evt") == len(created)


@pytest.mark.asyncio
async def test_expired_hold_frees_its_seat(ledger, registrations, clock):
    await registrations.initialize("evt", EventType.LESSON, max_capacity=1)
    first = await ledger.create_hold("evt")

    clock.advance(minutes=30)

    second = await ledger.create_hold("evt")
    assert second.hold_id != first.hold_id
    expired = await ledger.get_hold(first.hold_id)
    assert expired.status == HoldStatus.RELEASED
    assert expired.released_at == first.expires_at


@pytest.mark.asyncio
async def test_get_hold_reports_expiry_without_a_sweep(ledger, registrations, clock, store):
    await registrations.initialize("evt", EventType.LESSON)
    hold = await ledger.create_hold("evt", ttl=timedelta(minutes=5))

    clock.advance(minutes=5, seconds=1)

    assert (await ledger.get_hold(hold.hold_id)).status == HoldStatus.RELEASED
    stored = await store.get(ledger_key("evt"))
    assert stored.data["holds"][0]["status"] == "active"


@pytest.mark.asyncio
async def test_release_hold_is_idempotent(ledger, registrations):
    await registrations.initialize("evt", EventType.LESSON, max_capacity=1)
    hold = await ledger.create_hold("evt")

    released = await ledger.release_hold(hold.hold_id)
    again = await ledger.release_hold(hold.hold_id)

    assert released.status == HoldStatus.RELEASED
    assert again.status == HoldStatus.RELEASED
    assert again.released_at == released.released_at
    assert await ledger.active_holds("evt") == 0


@pytest.mark.asyncio
async def test_release_does_not_undo_commit(ledger, registrations):
    await registrations.initialize("evt", EventType.LESSON)
    hold = await ledger.create_hold("evt")
    await ledger.mark_committed(hold.hold_id)

    result = await ledger.release_hold(hold.hold_id)

    assert result.status == HoldStatus.COMMITTED


@pytest.mark.asyncio
async def test_unknown_hold(ledger):
    with pytest.raises(HoldNotFound):
        await ledger.get_hold("does-not-exist")
    with pytest.raises(HoldNotFound):
        await ledger.release_hold("does-not-exist")


@pytest.mark.asyncio
async def test_hold_index_points_at_event(ledger, registrations, store):
    await registrations.initialize("evt", EventType.CAMP)
    hold = await ledger.create_hold("evt")

    document = await store.get(index_key(hold.hold_id))
    assert document.data == {"holdId": hold.hold_id, "eventId": "evt"}


@pytest.mark.asyncio
async def test_expire_holds_persists_releases(ledger, registrations, clock, store):
    await registrations.initialize("a", EventType.CAMP)
    await registrations.initialize("b", EventType.CAMP)
    await ledger.create_hold("a")
    await ledger.create_hold("a")
    await ledger.create_hold("b", ttl=timedelta(hours=2))

    clock.advance(minutes=31)

    assert await ledger.expire_holds() == 2
    assert await ledger.expire_holds() == 0
    stored = await store.get(ledger_key("a"))
    assert {h["status"] for h in stored.data["holds"]} == {"released"}
    assert await ledger.active_holds("b") == 1


@pytest.mark.asyncio
async def test_terminal_holds_pruned_after_retention(ledger, registrations, clock, store):
    await registrations.initialize("evt", EventType.CAMP)
    old = await ledger.create_hold("evt")
    await ledger.release_hold(old.hold_id)

    clock.advance(days=8)
    await ledger.create_hold("evt")

    stored = await store.get(ledger_key("evt"))
    assert old.hold_id not in {h["holdId"] for h in stored.data["holds"]}
    with pytest.raises(HoldNotFound):
        await ledger.get_hold(old.hold_id)
    assert await store.get(index_key(old.hold_id)) is None


@pytest.mark.asyncio
async def test_rejected_holds_leave_no_index(ledger, registrations, store):
    await registrations.initialize("evt", EventType.OTHER, max_capacity=0)

    for _ in range(5):
        with pytest.raises(CapacityExceeded):
            await ledger.create_hold("evt")

    assert await store.list_keys("hold-index/") == []


@pytest.mark.asyncio
async def test_index_matches_stored_holds(ledger, registrations, store):
    await registrations.initialize("evt", EventType.LESSON, max_capacity=2)

    results = await asyncio.gather(
        *(ledger.create_hold("evt") for _ in range(6)), return_exceptions=True
    )

    held = {r.hold_id for r in results if not isinstance(r, Exception)}
    indexed = {key[len("hold-index/"):-len(".json")] for key in await store.list_keys("hold-index/")}
    assert 1 <= len(held) <= 2
    assert indexed == held


@pytest.mark.asyncio
async def test_expire_holds_prunes_old_index_documents(ledger, registrations, clock, store):
    await registrations.initialize("evt", EventType.CAMP)
    hold = await ledger.create_hold("evt")

    clock.advance(minutes=31)
    assert await ledger.expire_holds("evt") == 1
    assert await store.get(index_key(hold.hold_id)) is not None

    clock.advance(days=8)
    await ledger.expire_holds("evt")

    assert await store.get(index_key(hold.hold_id)) is None
    stored = await store.get(ledger_key("evt"))
    assert stored.data["holds"] == []
