import asyncio

import pytest

from helpmate.services.session_store import ChatSession, ExpiringStore, SessionStore


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.mark.asyncio
async def test_entries_expire_after_fixed_ttl(clock):
    store = ExpiringStore(ttl_seconds=60, clock=clock)
    await store.set("a", 1)

    clock.advance(59)
    assert await store.get("a") == 1

    clock.advance(1)
    assert await store.get("a") is None
    assert len(store) == 0


@pytest.mark.asyncio
async def test_reads_do_not_extend_expiry(clock):
    store = ExpiringStore(ttl_seconds=60, clock=clock)
    await store.set("a", 1)
    for _ in range(5):
        clock.advance(10)
        await store.get("a")
    clock.advance(10)
    assert await store.get("a") is None


@pytest.mark.asyncio
async def test_purge_drops_only_expired(clock):
    store = ExpiringStore(ttl_seconds=60, clock=clock)
    await store.set("old", 1)
    clock.advance(30)
    await store.set("new", 2)
    clock.advance(40)

    assert await store.purge_expired() == 1
    assert await store.get("new") == 2


@pytest.mark.asyncio
async def test_oldest_entry_is_evicted_when_full(clock):
    store = ExpiringStore(ttl_seconds=60, maxsize=2, clock=clock)
    await store.set("a", 1)
    await store.set("b", 2)
    await store.set("c", 3)

    assert len(store) == 2
    assert await store.get("a") is None
    assert await store.get("c") == 3


@pytest.mark.asyncio
async def test_set_default_keeps_live_value(clock):
    store = ExpiringStore(ttl_seconds=60, clock=clock)
    first, created = await store.set_default("k", lambda: "first")
    again, created_again = await store.set_default("k", lambda: "second")
    assert (first, created) == ("first", True)
    assert (again, created_again) == ("first", False)


@pytest.mark.asyncio
async def test_session_created_under_client_id(clock):
    sessions = SessionStore(ttl_seconds=3600, clock=clock)
    session, created = await sessions.get_or_create("visitor-chat-1", "integration-a", "v1")
    assert created
    assert session.session_id == "visitor-chat-1"
    assert session.visitor_id == "v1"

    same, created = await sessions.get_or_create("visitor-chat-1", "integration-a")
    assert not created
    assert same is session


@pytest.mark.asyncio
async def test_session_without_id_gets_fresh_id(clock):
    sessions = SessionStore(ttl_seconds=3600, clock=clock)
    session, created = await sessions.get_or_create(None, "integration-a")
    assert created
    assert len(session.session_id) == 32


@pytest.mark.asyncio
async def test_session_of_other_integration_is_not_shared(clock):
    sessions = SessionStore(ttl_seconds=3600, clock=clock)
    original, _ = await sessions.get_or_create("shared-id", "integration-a")
    original.add_message("user", "secret order number 42")

    other, created = await sessions.get_or_create("shared-id", "integration-b")
    assert created
    assert other.session_id != "shared-id"
    assert other.messages == []


@pytest.mark.asyncio
async def test_session_expires_after_ttl(clock):
    sessions = SessionStore(ttl_seconds=24 * 3600, clock=clock)
    session, _ = await sessions.get_or_create("s1", "integration-a")
    session.add_message("user", "hello")

    clock.advance(24 * 3600)
    fresh, created = await sessions.get_or_create("s1", "integration-a")
    assert created
    assert fresh.messages == []


def test_history_keeps_last_turns_without_timestamps():
    session = ChatSession(session_id="s", integration_id="i")
    for i in range(6):
        session.add_message("user" if i % 2 == 0 else "assistant", f"m{i}")

    history = session.history(4)
    assert [m["content"] for m in history] == ["m2", "m3", "m4", "m5"]
    assert set(history[0]) == {"role", "content"}


@pytest.mark.asyncio
async def test_purge_loop_drops_expired_sessions_and_pages(clock, monkeypatch):
    from helpmate.services import session_store as store_module

    sessions = SessionStore(ttl_seconds=60, clock=clock)
    pages = ExpiringStore(ttl_seconds=60, clock=clock)
    monkeypatch.setattr(store_module, "session_store", sessions)
    monkeypatch.setattr(store_module, "scrape_cache", pages)

    await sessions.get_or_create("s1", "integration-a")
    await pages.set("https://shop.com/faq", "FAQ")
    clock.advance(30)
    await sessions.get_or_create("s2", "integration-a")
    clock.advance(40)

    task = asyncio.create_task(store_module.purge_loop(0.01))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert len(sessions) == 1
    assert await sessions.get("s2") is not None
    assert len(pages) == 0
