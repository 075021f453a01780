# session/search.py
import time
from dataclasses import dataclass, field
from typing import List, Optional

from comparison import filters as filter_engine
from comparison.models import Book, FilterState
from comparison.recommend import ComparisonSummary, compare
from coordinator.coordinator import FetchStatus, RequestCoordinator, RequestHandle
from coordinator.debounce import SearchDebouncer
from utils.config import (
    SEARCH_DEBOUNCE_SECONDS,
    SEARCH_LIMIT,
    SEARCH_MIN_CHARS,
    SEARCH_STALE_SECONDS,
    SUGGEST_LIMIT,
    SUGGEST_STALE_SECONDS,
)
from utils.logs import get_logger

logger = get_logger("session")


@dataclass(frozen=True)
class SearchView:
    """
    Everything a result page needs to render one frame.

    ``results`` are already filtered; ``unfiltered_count`` is how many the
    source returned before filtering. A failed search has ``error`` set and
    ``is_empty`` False, so "something went wrong" and "no books match" are
    never confused.
    """

    text: str
    query: Optional[str]
    status: FetchStatus
    results: List[Book] = field(default_factory=list)
    total_results: int = 0
    unfiltered_count: int = 0
    filters: FilterState = field(default_factory=FilterState)
    comparison: Optional[ComparisonSummary] = None
    error: Optional[Exception] = None
    is_stale: bool = False
    is_refreshing: bool = False

    @property
    def is_loading(self):
        return self.status is FetchStatus.PENDING

    @property
    def is_empty(self):
        return self.status is FetchStatus.SETTLED and not self.results

    @property
    def has_error(self):
        return self.status is FetchStatus.FAILED


class SearchSession:
    """
    Search box plus result list: debounced input, one coordinated search, filters.

    Typing goes through on_input() and reaches the backend only after the
    quiet period; submit() skips the wait. Filter changes are explicit user
    actions through set_filters() and never trigger a fetch; they only change
    what view() derives from the last settled result set.

    Args:
        source (BookSource): Backend collaborator
        limit (int): Maximum results per search
        max_age (float): Seconds a result set stays fresh
        quiet_period (float): Debounce window in seconds
        min_length (int): Minimum trimmed query length
        call_later (Callable, optional): Timer factory for the debouncer
        clock (Callable, optional): Time source for the coordinator
        name (str): Coordinator name used in logs
    """

    def __init__(
        self,
        source,
        limit=SEARCH_LIMIT,
        max_age=SEARCH_STALE_SECONDS,
        quiet_period=SEARCH_DEBOUNCE_SECONDS,
        min_length=SEARCH_MIN_CHARS,
        call_later=None,
        clock=time.monotonic,
        name="search",
    ):
        self.source = source
        self.limit = limit
        self.coordinator = RequestCoordinator(name, max_age=max_age, clock=clock)
        self.debouncer = SearchDebouncer(
            forward=self.search,
            clear=self.clear,
            quiet_period=quiet_period,
            min_length=min_length,
            call_later=call_later,
        )
        self.filters = FilterState()

    @classmethod
    def suggestions(cls, source, **kwargs):
        """Auto-suggest variant: fewer results and a one minute freshness window."""
        kwargs.setdefault("limit", SUGGEST_LIMIT)
        kwargs.setdefault("max_age", SUGGEST_STALE_SECONDS)
        kwargs.setdefault("name", "suggest")
        return cls(source, **kwargs)

    def on_input(self, text):
        self.debouncer.on_input(text)

    def submit(self) -> Optional[RequestHandle]:
        """
        Search the current text right away (Enter key). Short text just clears.

        Pressing Enter again on a query whose search failed retries it; typed
        input that merely settles on a failed query does not.
        """
        self.debouncer.cancel()
        text = self.debouncer.raw_text.strip()
        if len(text) < self.debouncer.min_length:
            self.clear()
            return None
        state = self.coordinator.state
        if state.is_failed and state.key == text:
            logger.info(f"Retrying failed search {text!r}")
            return self.retry()
        return self.search(text)

    def search(self, query) -> RequestHandle:
        return self.coordinator.request(query, self._fetch)

    def retry(self) -> RequestHandle:
        return self.coordinator.retry()

    def clear(self) -> RequestHandle:
        return self.coordinator.request(None, self._fetch)

    def set_filters(self, filter_state: FilterState):
        self.filters = filter_state

    async def _fetch(self, query):
        logger.info(f"Searching {query!r} (limit {self.limit})")
        return await self.source.search_books(query, self.limit)

    def view(self) -> SearchView:
        state = self.coordinator.state
        result_set = state.value
        books = list(result_set.results) if result_set is not None else []
        visible = filter_engine.apply(books, self.filters)
        return SearchView(
            text=self.debouncer.raw_text,
            query=state.key,
            status=state.status,
            results=visible,
            total_results=result_set.total_results if result_set is not None else 0,
            unfiltered_count=len(books),
            filters=self.filters,
            comparison=compare(visible) if visible else None,
            error=state.error,
            is_stale=state.is_stale,
            is_refreshing=state.is_refreshing,
        )

    def close(self):
        """Tear down: drop the pending timer and any in-flight search."""
        self.debouncer.cancel()
        self.coordinator.close()
