# client/source.py
from typing import Protocol

from comparison.models import AlertRequest, Book, PriceHistory, SearchResultSet
from utils import config
from utils.logs import get_logger

logger = get_logger("client")


class BookSource(Protocol):
    """
    Backend operations the comparison engine consumes.

    Every call is a coroutine, so the coordinator can cancel it by cancelling
    its task. Implementations raise NotFound for unknown book ids,
    NetworkFailure for transport problems and ValidationFailure when the
    backend rejects an alert.
    """

    async def search_books(self, query: str, limit: int) -> SearchResultSet: ...

    async def get_book_detail(self, book_id: str) -> Book: ...

    async def get_price_history(self, book_id: str, days: int) -> PriceHistory: ...

    async def create_alert(self, request: AlertRequest) -> bool: ...


def build_source():
    """
    Return the backend source configured for this process.

    Uses HttpBookSource when BOOKWISE_API_BASE_URL is set, otherwise the
    bundled sample catalogue (MockBookSource) so the engine can be run without
    a backend.
    """
    if config.use_mock_data():
        from .mock import MockBookSource

        logger.info("No API base URL configured, serving sample data")
        return MockBookSource(latency=config.MOCK_LATENCY_SECONDS)

    from .api import HttpBookSource

    logger.info(f"Using backend at {config.API_BASE_URL}")
    return HttpBookSource(base_url=config.API_BASE_URL)
