# tests/test_coordinator.py
import asyncio

import pytest

from coordinator.cache import TTLCache
from coordinator.coordinator import FetchStatus, RequestCoordinator, is_enabled_key
from coordinator.errors import Cancelled, NetworkFailure


class GatedFetch:
    """
    Fetch stub whose calls block until the test opens the gate for their key.

    With ``stubborn=True`` the stub swallows task cancellation and keeps
    waiting, like a transport that cannot be aborted, so its late result
    still reaches the coordinator.
    """

    def __init__(self, stubborn=False):
        self.stubborn = stubborn
        self.gates = {}
        self.calls = []
        self.cancelled = []

    def gate(self, key):
        return self.gates.setdefault(key, asyncio.Event())

    def release(self, key):
        self.gate(key).set()

    async def __call__(self, key):
        self.calls.append(key)
        try:
            await self.gate(key).wait()
        except asyncio.CancelledError:
            self.cancelled.append(key)
            if not self.stubborn:
                raise
            await self.gate(key).wait()
        return f"result {key}"


class CountingFetch:
    def __init__(self, error=None):
        self.calls = 0
        self.error = error

    async def __call__(self, key):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return f"{key}-{self.calls}"


@pytest.mark.asyncio
async def test_latest_request_wins_when_older_response_arrives_last():
    """
    Test the supersede rule with a transport that ignores cancellation.

    Request A is issued, then B. B resolves first, then A resolves late.

    Asserts:
        - Only B's response is applied
        - A's late response is dropped, the state still shows B
        - A's handle is no longer current once B was issued
    """
    fetch = GatedFetch(stubborn=True)
    coord = RequestCoordinator("search")

    a = coord.request("A", fetch)
    await asyncio.sleep(0)
    b = coord.request("B", fetch)
    assert not a.is_current
    assert b.is_current

    fetch.release("B")
    state = await b.wait()
    assert state.is_settled
    assert state.value == "result B"

    fetch.release("A")
    await a.wait()
    assert coord.state.key == "B"
    assert coord.state.value == "result B"
    assert fetch.cancelled == ["A"]


@pytest.mark.asyncio
async def test_superseded_fetch_task_is_cancelled():
    fetch = GatedFetch()
    coord = RequestCoordinator("search")

    a = coord.request("A", fetch)
    await asyncio.sleep(0)
    coord.request("B", fetch)
    await a.wait()

    assert a.done
    assert fetch.cancelled == ["A"]
    assert coord.state.is_pending
    assert coord.state.key == "B"

    fetch.release("B")
    await coord.handle.wait()
    assert coord.state.value == "result B"


@pytest.mark.asyncio
async def test_disabled_key_goes_idle_without_fetching():
    fetch = CountingFetch()
    coord = RequestCoordinator("search")

    for key in (None, "", "   "):
        handle = coord.request(key, fetch)
        state = await handle.wait()
        assert state.status is FetchStatus.IDLE
        assert state.value is None

    assert fetch.calls == 0
    assert not is_enabled_key(" ")
    assert is_enabled_key(("ISBN:1", 90))


@pytest.mark.asyncio
async def test_disabled_key_supersedes_pending_request():
    fetch = GatedFetch()
    coord = RequestCoordinator("search")
    a = coord.request("A", fetch)
    await asyncio.sleep(0)
    coord.request("", fetch)
    await a.wait()
    assert coord.state.is_idle


@pytest.mark.asyncio
async def test_same_key_while_pending_reuses_request():
    fetch = GatedFetch()
    coord = RequestCoordinator("search")
    first = coord.request("q", fetch)
    second = coord.request("q", fetch)
    assert first is second
    fetch.release("q")
    await first.wait()
    assert fetch.calls == ["q"]


@pytest.mark.asyncio
async def test_fresh_cache_hit_settles_without_fetch(fake_clock):
    """
    Test that switching back to a recently settled key is served from memory.

    Args:
        fake_clock: Manually advanced clock shared by coordinator and cache

    Asserts:
        - The cached value is shown immediately, the handle is already done
        - No additional fetch is made
    """
    fetch = CountingFetch()
    coord = RequestCoordinator("search", max_age=60, cache_ttl=300, clock=fake_clock)

    await coord.request("q", fetch).wait()
    await coord.request("other", fetch).wait()
    assert fetch.calls == 2

    fake_clock.advance(30)
    handle = coord.request("q", fetch)
    assert handle.done
    assert coord.state.is_settled
    assert coord.state.value == "q-1"
    assert not coord.state.is_refreshing
    assert fetch.calls == 2


@pytest.mark.asyncio
async def test_stale_value_served_while_refreshing(fake_clock):
    """
    Test stale-while-revalidate after the max-age window has passed.

    Asserts:
        - The old value is visible at once, flagged stale and refreshing
        - After the refresh the new value replaces it and the flags clear
    """
    fetch = CountingFetch()
    coord = RequestCoordinator("search", max_age=60, cache_ttl=300, clock=fake_clock)
    await coord.request("q", fetch).wait()

    fake_clock.advance(120)
    handle = coord.request("q", fetch)
    state = coord.state
    assert state.is_settled
    assert state.value == "q-1"
    assert state.is_stale
    assert state.is_refreshing

    state = await handle.wait()
    assert state.value == "q-2"
    assert not state.is_stale
    assert not state.is_refreshing


@pytest.mark.asyncio
async def test_expired_cache_entry_fetches_from_scratch(fake_clock):
    fetch = CountingFetch()
    coord = RequestCoordinator("search", max_age=60, cache_ttl=300, clock=fake_clock)
    await coord.request("q", fetch).wait()
    await coord.request("other", fetch).wait()

    fake_clock.advance(301)
    coord.request("q", fetch)
    assert coord.state.is_pending
    assert coord.state.value is None
    await coord.handle.wait()
    assert coord.state.value == "q-3"


@pytest.mark.asyncio
async def test_failure_is_reported_and_not_retried_automatically():
    """
    Test that a failed fetch settles FAILED and only retry() fetches again.

    Asserts:
        - The state carries the NetworkFailure
        - Requesting the same key again does not refetch
        - retry() forces a new fetch, which can succeed
    """
    fetch = CountingFetch(error=NetworkFailure("backend down", status_code=503))
    coord = RequestCoordinator("search")

    state = await coord.request("q", fetch).wait()
    assert state.is_failed
    assert isinstance(state.error, NetworkFailure)
    assert state.value is None

    coord.request("q", fetch)
    await asyncio.sleep(0)
    assert fetch.calls == 1

    fetch.error = None
    state = await coord.retry().wait()
    assert state.is_settled
    assert state.value == "q-2"
    assert state.error is None


@pytest.mark.asyncio
async def test_failed_refresh_keeps_stale_value(fake_clock):
    fetch = CountingFetch()
    coord = RequestCoordinator("search", max_age=60, cache_ttl=300, clock=fake_clock)
    await coord.request("q", fetch).wait()

    fake_clock.advance(90)
    fetch.error = NetworkFailure("timeout")
    state = await coord.request("q", fetch).wait()
    assert state.is_failed
    assert state.value == "q-1"
    assert state.is_stale
    assert not state.is_refreshing


@pytest.mark.asyncio
async def test_cancelled_error_is_absorbed():
    fetch = CountingFetch(error=Cancelled())
    coord = RequestCoordinator("search")
    state = await coord.request("q", fetch).wait()
    assert state.is_idle
    assert state.error is None


@pytest.mark.asyncio
async def test_invalidate_drops_late_response():
    """
    Test teardown while a request is in flight.

    Asserts:
        - invalidate() returns a pending coordinator to IDLE
        - A response arriving afterwards is not applied
        - Old handles no longer cancel anything
    """
    fetch = GatedFetch(stubborn=True)
    coord = RequestCoordinator("detail")
    handle = coord.request("ISBN:1", fetch)
    await asyncio.sleep(0)

    coord.invalidate()
    assert coord.state.is_idle
    assert not handle.is_current

    fetch.release("ISBN:1")
    await handle.wait()
    assert coord.state.is_idle
    assert coord.state.value is None

    second = coord.request("ISBN:2", fetch)
    handle.cancel()
    assert second.is_current

    fetch.release("ISBN:2")
    state = await second.wait()
    assert state.value == "result ISBN:2"


@pytest.mark.asyncio
async def test_invalidate_during_refresh_keeps_value(fake_clock):
    fetch = GatedFetch()
    coord = RequestCoordinator("search", max_age=60, clock=fake_clock)
    fetch.release("q")
    await coord.request("q", fetch).wait()

    fetch.gates["q"] = asyncio.Event()
    fake_clock.advance(61)
    coord.request("q", fetch)
    assert coord.state.is_refreshing
    await asyncio.sleep(0)

    coord.invalidate()
    assert coord.state.is_settled
    assert coord.state.value == "result q"
    assert not coord.state.is_refreshing

    await asyncio.sleep(0)
    await asyncio.sleep(0)
    assert fetch.cancelled == ["q"]
    assert coord.state.value == "result q"


@pytest.mark.asyncio
async def test_listeners_follow_transitions():
    fetch = CountingFetch()
    coord = RequestCoordinator("search")
    seen = []
    unsubscribe = coord.subscribe(lambda s: seen.append(s.status))

    await coord.request("q", fetch).wait()
    assert seen == [FetchStatus.PENDING, FetchStatus.SETTLED]

    unsubscribe()
    await coord.request("r", fetch).wait()
    assert len(seen) == 2


@pytest.mark.asyncio
async def test_closed_coordinator_refuses_requests():
    fetch = CountingFetch()
    coord = RequestCoordinator("search")
    await coord.request("q", fetch).wait()
    coord.close()
    assert coord.closed
    assert len(coord.cache) == 0
    with pytest.raises(RuntimeError):
        coord.request("q", fetch)


def test_ttl_cache_expiry(fake_clock):
    cache = TTLCache(ttl=10, clock=fake_clock)
    cache.set("a", 1)
    fake_clock.advance(5)
    cache.set("b", 2)
    assert "a" in cache
    assert len(cache) == 2

    fake_clock.advance(6)
    assert cache.get("a") is None
    assert cache.get("b").value == 2

    cache.evict("b")
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_fetch_raising_cancelled_error_returns_to_idle():
    """
    Test a current fetch that ends in asyncio.CancelledError on its own.

    A transport may surface an abort as CancelledError without the
    coordinator having superseded it; the state must not stay PENDING.

    Asserts:
        - With no previous value the coordinator falls back to IDLE
        - With a previous value it keeps that value and stops refreshing
    """

    async def fetch(key):
        await asyncio.sleep(0)
        raise asyncio.CancelledError()

    coord = RequestCoordinator("search")
    handle = coord.request("python", fetch)
    state = await handle.wait()
    assert handle.is_current
    assert state.is_idle
    assert state.error is None


@pytest.mark.asyncio
async def test_fetch_cancelled_during_refresh_keeps_value(fake_clock):
    calls = []

    async def fetch(key):
        calls.append(key)
        if len(calls) > 1:
            raise asyncio.CancelledError()
        return "first"

    coord = RequestCoordinator("search", max_age=60, clock=fake_clock)
    await coord.request("python", fetch).wait()

    fake_clock.advance(61)
    state = await coord.request("python", fetch).wait()
    assert state.is_settled
    assert state.value == "first"
    assert not state.is_refreshing
