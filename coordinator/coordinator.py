# coordinator/coordinator.py
import asyncio
import functools
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Hashable, List, Optional, TypeVar

from utils.config import CACHE_TTL_SECONDS
from utils.logs import get_logger

from .cache import CacheEntry, TTLCache
from .errors import Cancelled

logger = get_logger("coordinator")

T = TypeVar("T")
FetchFn = Callable[[Any], Awaitable[Any]]
Listener = Callable[["FetchState"], None]


class FetchStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    SETTLED = "settled"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchState(Generic[T]):
    """
    Snapshot of one coordinated request, suitable for driving loading/error UI.

    A SETTLED state may be flagged ``is_stale`` (older than the coordinator's
    max-age) and ``is_refreshing`` (a background refresh is in flight). A
    FAILED state keeps the last known ``value`` for its key, if any, so a
    failed refresh does not blank data that is already on screen.
    """

    status: FetchStatus = FetchStatus.IDLE
    key: Optional[Hashable] = None
    token: Optional[int] = None
    value: Optional[T] = None
    error: Optional[Exception] = None
    updated_at: Optional[float] = None
    is_stale: bool = False
    is_refreshing: bool = False

    @property
    def is_idle(self):
        return self.status is FetchStatus.IDLE

    @property
    def is_pending(self):
        return self.status is FetchStatus.PENDING

    @property
    def is_settled(self):
        return self.status is FetchStatus.SETTLED

    @property
    def is_failed(self):
        return self.status is FetchStatus.FAILED


def is_enabled_key(key) -> bool:
    """A fetch only starts for a non-null, non-blank key."""
    if key is None:
        return False
    if isinstance(key, str):
        return bool(key.strip())
    return True


class RequestHandle(Generic[T]):
    """
    Returned by RequestCoordinator.request().

    A handle names one initiated request (its key and token). It becomes
    non-current as soon as a newer request supersedes it; awaiting ``wait()``
    still works afterwards and returns whatever the coordinator shows then.
    """

    def __init__(self, coordinator, key, token, finished=None):
        self._coordinator = coordinator
        self.key = key
        self.token = token
        self._finished = finished

    @property
    def is_current(self):
        return self._coordinator.generation == self.token

    @property
    def done(self):
        return self._finished is None or self._finished.done()

    def cancel(self):
        """Invalidate this request if it is still the current one."""
        self._coordinator.cancel(self.token)

    async def wait(self) -> FetchState:
        """Wait for the fetch behind this handle to finish, then return the current state."""
        if self._finished is not None and not self._finished.done():
            await asyncio.wait({self._finished})
        return self._coordinator.state


class RequestCoordinator(Generic[T]):
    """
    Supervise the fetches behind one changing key (a query string, a book id).

    Every request mints a new token from a generation counter. A response is
    applied only when its token still equals the current generation, so the
    visible state always follows the most recently initiated request, never
    merely the most recently completed one. Superseded fetch tasks are
    cancelled; if a transport ignores the cancellation its late result is
    still dropped by the token check.

    Args:
        name (str): Label used in log lines, e.g. "search"
        max_age (float): Seconds a settled value counts as fresh
        cache_ttl (float): Seconds a settled value is kept in memory after it
            was stored
        clock (Callable[[], float]): Monotonic time source, injectable for tests

    Note:
        Meant to be driven from a single asyncio event loop. All transitions
        happen in request()/invalidate() or in task completion callbacks on
        that loop, so no locking is needed. The coordinator never retries on
        its own; retry() is the caller's affordance.
    """

    def __init__(self, name, max_age=300.0, cache_ttl=CACHE_TTL_SECONDS, clock=time.monotonic):
        self.name = name
        self.max_age = max_age
        self._clock = clock
        self._cache = TTLCache(ttl=cache_ttl, clock=clock)
        self._generation = 0
        self._state: FetchState = FetchState()
        self._task: Optional[asyncio.Task] = None
        self._handle: Optional[RequestHandle] = None
        self._fetch: Optional[FetchFn] = None
        self._listeners: List[Listener] = []
        self._closed = False

    @property
    def state(self) -> FetchState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def handle(self) -> Optional[RequestHandle]:
        """Handle of the most recent request, None before the first one."""
        return self._handle

    @property
    def closed(self):
        return self._closed

    @property
    def cache(self) -> TTLCache:
        return self._cache

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(state)`` on every transition. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def request(self, key, perform_fetch: FetchFn, force=False) -> RequestHandle:
        """
        Make ``key`` the coordinated key and fetch it if needed.

        Args:
            key (Hashable): Query string, book id or tuple key. None or a blank
                string resets to IDLE without fetching.
            perform_fetch (Callable): ``async perform_fetch(key) -> value``.
                Cancellation is delivered as asyncio.CancelledError.
            force (bool): Fetch even if a fresh value or an in-flight request
                exists for the same key.

        Returns:
            RequestHandle: The in-flight handle when the same key is already
                pending, otherwise a handle for the new request

        Behavior:
            - Same key, pending or refreshing, not forced: reuse the handle
            - Same key, settled and fresh, or failed, not forced: no-op
            - Fresh cached value for the key: settle immediately, no fetch
            - Stale cached value: settle immediately with the stale value and
              refresh in the background
            - Otherwise: cancel the previous fetch and go PENDING
        """
        if self._closed:
            raise RuntimeError(f"{self.name} coordinator is closed")

        self._fetch = perform_fetch

        if not is_enabled_key(key):
            self._supersede()
            self._handle = RequestHandle(self, None, self._generation)
            self._set_state(FetchState())
            return self._handle

        current = self._state
        if not force and self._handle is not None and current.key == key:
            if current.is_pending or current.is_refreshing or current.is_failed:
                return self._handle
            if current.is_settled and not self._expired(current.updated_at):
                return self._handle

        entry = self._cache.get(key)
        if entry is None and current.key == key and current.value is not None:
            entry = CacheEntry(value=current.value, stored_at=current.updated_at)

        token = self._supersede()

        if entry is not None and not force and not self._expired(entry.stored_at):
            logger.debug("%s: serving cached value for %r", self.name, key)
            self._handle = RequestHandle(self, key, token)
            self._set_state(
                FetchState(FetchStatus.SETTLED, key, token, value=entry.value, updated_at=entry.stored_at)
            )
            return self._handle

        if entry is not None:
            state = FetchState(
                FetchStatus.SETTLED,
                key,
                token,
                value=entry.value,
                updated_at=entry.stored_at,
                is_stale=self._expired(entry.stored_at),
                is_refreshing=True,
            )
        else:
            state = FetchState(FetchStatus.PENDING, key, token)
        return self._start(key, token, perform_fetch, state)

    def retry(self) -> RequestHandle:
        """Force a new fetch for the current key, e.g. from a "Try again" button."""
        key = self._state.key
        if key is None or self._fetch is None:
            return self.request(None, self._fetch or _never)
        return self.request(key, self._fetch, force=True)

    def cancel(self, token=None):
        """Invalidate the pending request, or only if ``token`` is still current."""
        if token is not None and token != self._generation:
            return
        self.invalidate()

    def invalidate(self):
        """
        Drop the current token so no in-flight response can land.

        Called when the consumer of the request goes away. A pending request
        falls back to IDLE; a background refresh leaves the stale value in
        place.
        """
        self._supersede()
        state = self._state
        if state.is_pending:
            self._set_state(FetchState())
        elif state.is_refreshing:
            self._set_state(replace(state, is_refreshing=False))

    def close(self):
        """Tear down: invalidate, forget cached values and listeners, refuse new requests."""
        self.invalidate()
        self._closed = True
        self._cache.clear()
        self._listeners.clear()
        self._handle = None
        logger.debug("%s: coordinator closed", self.name)

    def _expired(self, stored_at) -> bool:
        if stored_at is None:
            return True
        return self._clock() - stored_at > self.max_age

    def _supersede(self) -> int:
        if self._task is not None and not self._task.done():
            logger.debug("%s: cancelling superseded fetch (token %d)", self.name, self._generation)
            self._task.cancel()
        self._task = None
        self._generation += 1
        return self._generation

    def _start(self, key, token, perform_fetch, state) -> RequestHandle:
        loop = asyncio.get_running_loop()
        finished = loop.create_future()
        task = loop.create_task(_run(perform_fetch, key))
        task.add_done_callback(functools.partial(self._complete, key, token, finished))
        self._task = task
        self._handle = RequestHandle(self, key, token, finished)
        self._set_state(state)
        logger.debug("%s: fetching %r (token %d)", self.name, key, token)
        return self._handle

    def _complete(self, key, token, finished, task):
        try:
            self._apply(key, token, task)
        finally:
            if not finished.done():
                finished.set_result(None)

    def _apply(self, key, token, task):
        if token != self._generation or self._closed:
            logger.debug(
                "%s: dropping stale response for %r (token %d, current %d)",
                self.name,
                key,
                token,
                self._generation,
            )
            return

        self._task = None
        previous = self._state
        error = None if task.cancelled() else task.exception()

        if task.cancelled() or isinstance(error, Cancelled):
            logger.debug("%s: fetch for %r cancelled (token %d)", self.name, key, token)
            if previous.value is not None:
                self._set_state(replace(previous, is_refreshing=False))
            else:
                self._set_state(FetchState())
        elif error is None:
            value = task.result()
            entry = self._cache.set(key, value)
            self._set_state(FetchState(FetchStatus.SETTLED, key, token, value=value, updated_at=entry.stored_at))
            logger.debug("%s: settled %r (token %d)", self.name, key, token)
        else:
            logger.warning("%s: fetch for %r failed: %s", self.name, key, error)
            self._set_state(
                FetchState(
                    FetchStatus.FAILED,
                    key,
                    token,
                    value=previous.value,
                    error=error,
                    updated_at=previous.updated_at,
                    is_stale=previous.is_stale,
                )
            )

    def _set_state(self, state: FetchState):
        self._state = state
        for listener in list(self._listeners):
            listener(state)


async def _run(perform_fetch, key):
    return await perform_fetch(key)


async def _never(key):
    return None
