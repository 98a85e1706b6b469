import asyncio

import pytest

from catchup.models.domain.session_domain import TerminationReason
from catchup.services.lifecycle import LifecycleManager
from catchup.services.session_store import SessionStore, StoreEventKind


def test_schedule_without_loop_is_skipped():
    manager = LifecycleManager()

    armed = manager.schedule(0.01, lambda: None)

    assert armed is False
    assert manager.is_scheduled is False


@pytest.mark.asyncio
async def test_timer_fires_once():
    manager = LifecycleManager()
    fired = []

    assert manager.schedule(0.01, lambda: fired.append(True)) is True
    await asyncio.sleep(0.05)

    assert fired == [True]
    assert manager.is_scheduled is False


@pytest.mark.asyncio
async def test_cancel_prevents_firing():
    manager = LifecycleManager()
    fired = []

    manager.schedule(0.01, lambda: fired.append(True))
    manager.cancel()
    await asyncio.sleep(0.05)

    assert fired == []


@pytest.mark.asyncio
async def test_rescheduling_replaces_pending_timer():
    manager = LifecycleManager()
    fired = []

    manager.schedule(0.01, lambda: fired.append("old"))
    manager.schedule(0.02, lambda: fired.append("new"))
    await asyncio.sleep(0.06)

    assert fired == ["new"]


@pytest.mark.asyncio
async def test_callback_error_is_contained():
    manager = LifecycleManager()

    def explode():
        raise RuntimeError("boom")

    manager.schedule(0, explode)
    await asyncio.sleep(0.02)

    assert manager.is_scheduled is False


@pytest.mark.asyncio
async def test_store_expires_session_on_timer():
    store = SessionStore(ttl_seconds=0.05)
    closed = []
    store.subscribe(lambda e: closed.append(e.reason) if e.kind == StoreEventKind.SESSION_CLOSED else None)

    store.create_session("Quick sync", "Sarah")
    await asyncio.sleep(0.2)

    # Discarded by the timer itself, before anybody read the store
    assert closed == [TerminationReason.EXPIRED]
    assert store.has_session is False


@pytest.mark.asyncio
async def test_replaced_session_is_not_expired_by_old_timer():
    store = SessionStore(ttl_seconds=0.2)

    store.create_session("First plan", "Sarah")
    await asyncio.sleep(0.1)
    second = store.create_session("Second plan", "Mike")
    await asyncio.sleep(0.15)

    assert store.get_session(second.session_id).description == "Second plan"

    await asyncio.sleep(0.2)
    assert store.has_session is False
