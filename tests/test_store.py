"""Tests for SessionStore — per-caller sessions, locking and TTL eviction."""

import asyncio

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from booking_line.models.session import CallSession, DialogueState, ServiceType
from booking_line.store import SessionStore, redact_pii


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRedactPii:
    def test_masks_phone_number(self):
        assert redact_pii("+18435551234") == "+18***34"

    def test_short_values_fully_masked(self):
        assert redact_pii("12345") == "***"
        assert redact_pii("") == "***"


class TestSessionLifecycle:
    def test_get_or_create_is_lazy(self):
        store = SessionStore()
        assert store.get("+18435551234") is None
        session = store.get_or_create("+18435551234")
        assert session.state is DialogueState.MENU_SELECTION
        assert store.get_or_create("+18435551234") is session
        assert len(store) == 1

    def test_reset_replaces_session(self):
        store = SessionStore()
        old = store.get_or_create("+18435551234")
        old.name = "Maria"
        new = store.reset("+18435551234")
        assert new is not old
        assert new.name is None

    def test_discard(self):
        store = SessionStore()
        store.get_or_create("+18435551234")
        assert store.discard("+18435551234") is True
        assert store.discard("+18435551234") is False
        assert len(store) == 0

    def test_snapshot_returns_copies(self):
        store = SessionStore()
        store.get_or_create("+18435551234")
        copy = store.snapshot()[0]
        copy.name = "Changed"
        assert store.get("+18435551234").name is None


class TestUpdate:
    async def test_update_writes_back(self):
        store = SessionStore()

        def fill(session):
            session.service = ServiceType.HANDYMAN
            return session, "ok"

        assert await store.update("+18435551234", fill) == "ok"
        assert store.get("+18435551234").service is ServiceType.HANDYMAN

    async def test_update_none_drops_session(self):
        store = SessionStore()
        await store.update("+18435551234", lambda s: (None, True))
        assert store.get("+18435551234") is None

    async def test_update_accepts_coroutine_function(self):
        store = SessionStore()

        async def slow(session):
            await asyncio.sleep(0)
            session.name = "Maria"
            return session, session.name

        assert await store.update("+18435551234", slow) == "Maria"

    async def test_same_caller_turns_are_serialized(self):
        store = SessionStore()

        async def bump(session):
            count = session.failure_count
            await asyncio.sleep(0.01)
            session.failure_count = count + 1
            return session, None

        await asyncio.gather(*(store.update("+18435551234", bump) for _ in range(5)))
        assert store.get("+18435551234").failure_count == 5

    async def test_different_callers_do_not_block(self):
        store = SessionStore()
        release = asyncio.Event()

        async def wait_for_release(session):
            await release.wait()
            return session, "a"

        async def quick(session):
            release.set()
            return session, "b"

        results = await asyncio.wait_for(
            asyncio.gather(
                store.update("+18435550001", wait_for_release),
                store.update("+18435550002", quick),
            ),
            timeout=1,
        )
        assert results == ["a", "b"]

    async def test_error_leaves_session_untouched(self):
        store = SessionStore()
        store.get_or_create("+18435551234").name = "Maria"

        def boom(session):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await store.update("+18435551234", boom)
        assert store.get("+18435551234").name == "Maria"


class TestExpiry:
    def test_purge_expired(self):
        clock = FakeClock()
        store = SessionStore(ttl_seconds=60, clock=clock)
        store.get_or_create("+18435550001")
        clock.now += 30
        store.get_or_create("+18435550002")
        clock.now += 45

        assert store.purge_expired() == 1
        assert store.get("+18435550001") is None
        assert store.get("+18435550002") is not None

    def test_sweep_runs_on_access(self):
        clock = FakeClock()
        store = SessionStore(ttl_seconds=60, sweep_interval=10, clock=clock)
        store.get_or_create("+18435550001")
        clock.now += 120
        store.get_or_create("+18435550002")
        assert len(store) == 1

    def test_activity_refreshes_ttl(self):
        clock = FakeClock()
        store = SessionStore(ttl_seconds=60, clock=clock)
        store.get_or_create("+18435550001")
        clock.now += 50
        store.get_or_create("+18435550001")
        clock.now += 50
        assert store.purge_expired() == 0
