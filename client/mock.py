# client/mock.py
import asyncio
import hashlib
from datetime import date, timedelta

from comparison.models import AlertRequest, Book, PriceHistory, SearchResultSet
from coordinator.errors import NotFound
from utils.logs import get_logger

logger = get_logger("client")

SAMPLE_SEARCH = {
    "query": "operating system concepts",
    "total_results": 3,
    "results": [
        {
            "book_id": "ISBN:9781118063330",
            "title": "Operating System Concepts",
            "authors": ["Abraham Silberschatz"],
            "cover": "https://covers.openlibrary.org/b/id/8601497-M.jpg",
            "rating": 4.3,
            "rating_count": 1245,
            "offers": [
                {
                    "platform": "Amazon",
                    "platform_id": "amazon:ASIN123",
                    "price": 599,
                    "currency": "INR",
                    "shipping": "Free (2-3 days)",
                    "link": "https://amazon.in/...",
                    "is_prime": True,
                    "last_checked": "2025-09-30T10:15:00Z",
                },
                {
                    "platform": "Flipkart",
                    "platform_id": "flipkart:ITEM456",
                    "price": 649,
                    "currency": "INR",
                    "shipping": "₹40 (3-5 days)",
                    "link": "https://flipkart.com/...",
                    "is_prime": False,
                    "last_checked": "2025-09-30T09:30:00Z",
                },
            ],
        },
        {
            "book_id": "ISBN:9780470128725",
            "title": "Operating Systems: Internals and Design Principles",
            "authors": ["William Stallings"],
            "cover": "https://covers.openlibrary.org/b/id/10779397-M.jpg",
            "rating": 4.1,
            "rating_count": 987,
            "offers": [
                {
                    "platform": "Amazon",
                    "platform_id": "amazon:ASIN789",
                    "price": 699,
                    "currency": "INR",
                    "shipping": "Free (2-3 days)",
                    "link": "https://amazon.in/...",
                    "is_prime": True,
                    "last_checked": "2025-09-30T10:15:00Z",
                }
            ],
        },
        {
            "book_id": "ISBN:9781292061351",
            "title": "Modern Operating Systems",
            "authors": ["Andrew S. Tanenbaum"],
            "cover": "https://covers.openlibrary.org/b/id/7883192-M.jpg",
            "rating": 4.5,
            "rating_count": 1102,
            "offers": [
                {
                    "platform": "Amazon",
                    "platform_id": "amazon:ASIN456",
                    "price": 749,
                    "currency": "INR",
                    "shipping": "Free (2-3 days)",
                    "link": "https://amazon.in/...",
                    "is_prime": True,
                    "last_checked": "2025-09-30T10:15:00Z",
                }
            ],
        },
    ],
}

SAMPLE_BOOK = {
    "book_id": "ISBN:9781118063330",
    "title": "Operating System Concepts",
    "subtitle": "Ninth Edition",
    "authors": ["Abraham Silberschatz", "Peter B. Galvin", "Greg Gagne"],
    "publisher": "Wiley",
    "published_date": "2012-07-26",
    "description": (
        "The ninth edition of Operating System Concepts continues to evolve to provide "
        "a solid theoretical foundation for understanding operating systems..."
    ),
    "page_count": 976,
    "categories": ["Computers / Operating Systems / General"],
    "language": "en",
    "cover": "https://covers.openlibrary.org/b/id/8601497-M.jpg",
    "rating": 4.3,
    "rating_count": 1245,
    "price_trend": [
        {"date": "2025-07-01", "price": 649},
        {"date": "2025-07-15", "price": 629},
        {"date": "2025-08-01", "price": 599},
        {"date": "2025-08-15", "price": 619},
        {"date": "2025-09-01", "price": 609},
        {"date": "2025-09-15", "price": 599},
        {"date": "2025-09-30", "price": 599},
    ],
    "offers": [
        {
            "platform": "Amazon",
            "platform_id": "amazon:ASIN123",
            "price": 599,
            "currency": "INR",
            "shipping": "Free (2-3 days)",
            "link": "https://amazon.in/...",
            "is_prime": True,
            "last_checked": "2025-09-30T10:15:00Z",
        },
        {
            "platform": "Flipkart",
            "platform_id": "flipkart:ITEM456",
            "price": 649,
            "currency": "INR",
            "shipping": "₹40 (3-5 days)",
            "link": "https://flipkart.com/...",
            "is_prime": False,
            "last_checked": "2025-09-30T09:30:00Z",
        },
        {
            "platform": "Bookswagon",
            "platform_id": "bookswagon:SKU789",
            "price": 679,
            "currency": "INR",
            "shipping": "₹50 (4-6 days)",
            "link": "https://bookswagon.com/...",
            "is_prime": False,
            "last_checked": "2025-09-30T08:45:00Z",
        },
    ],
    "ai_recommendation": {
        "type": "best_value",
        "reason": "Amazon offers the lowest price with free and fast delivery through Prime.",
    },
}


def synthetic_history(book_id, today=None, points=6, step_days=15):
    """
    Build a plausible price history for a book with no recorded trend.

    The start price (500-999) and each point's fluctuation (within +/-10%)
    are derived from a SHA-256 of the book id, so the same book always gets
    the same history.

    Args:
        book_id (str): Book to generate the history for
        today (date, optional): Date of the newest point. Defaults to today.
        points (int): Number of points. Defaults to 6.
        step_days (int): Days between points. Defaults to 15.

    Returns:
        list[dict]: ``{"date", "price"}`` dicts, oldest first
    """
    today = today or date.today()
    digest = hashlib.sha256(book_id.encode("utf-8")).digest()
    start_price = 500 + int.from_bytes(digest[:2], "big") % 500
    history = []
    for i in range(points):
        day = today - timedelta(days=i * step_days)
        fluctuation = (digest[2 + i] / 255.0) * 0.2 - 0.1
        history.append({"date": day.isoformat(), "price": round(start_price * (1 + fluctuation))})
    history.reverse()
    return history


class MockBookSource:
    """
    In-process BookSource serving the sample catalogue.

    Used when no backend URL is configured. ``latency`` simulates network
    delay in seconds; the sleep is a normal await, so cancelling the calling
    task cancels the call.
    """

    def __init__(self, latency=0.0, today=None):
        self.latency = latency
        self.today = today
        self.search_catalogue = SearchResultSet.model_validate(SAMPLE_SEARCH)
        self.detailed = {SAMPLE_BOOK["book_id"]: Book.model_validate(SAMPLE_BOOK)}
        self.alerts = []

    async def _delay(self, factor=1.0):
        if self.latency > 0:
            await asyncio.sleep(self.latency * factor)

    async def search_books(self, query, limit=10):
        await self._delay()
        if not query:
            return SearchResultSet(query="", total_results=0, results=[])
        needle = query.lower()
        matches = [
            book
            for book in self.search_catalogue.results
            if needle in book.title.lower() or any(needle in a.lower() for a in book.authors)
        ]
        return SearchResultSet(query=query, total_results=len(matches), results=matches[:limit])

    def _summary(self, book_id):
        for book in self.search_catalogue.results:
            if book.book_id == book_id:
                return book
        return None

    async def get_book_detail(self, book_id):
        await self._delay(1.4)
        if book_id in self.detailed:
            return self.detailed[book_id]

        summary = self._summary(book_id)
        if summary is None:
            raise NotFound(book_id)

        first_price = summary.offers[0].price if summary.offers else 0
        data = summary.model_dump()
        data.update(
            {
                "subtitle": "",
                "publisher": "Unknown Publisher",
                "published_date": "2025-01-01",
                "description": "No detailed description available.",
                "page_count": 0,
                "categories": [],
                "language": "en",
                "price_trend": [
                    {"date": "2025-07-01", "price": first_price},
                    {"date": "2025-09-30", "price": first_price},
                ],
                "ai_recommendation": {"type": "best_value", "reason": "Limited data available for this book."},
            }
        )
        return Book.model_validate(data)

    async def get_price_history(self, book_id, days=90):
        await self._delay(1.2)
        if book_id in self.detailed:
            return PriceHistory(book_id=book_id, points=self.detailed[book_id].price_trend)
        if self._summary(book_id) is None:
            raise NotFound(book_id)
        return PriceHistory.model_validate({"book_id": book_id, "points": synthetic_history(book_id, self.today)})

    async def create_alert(self, request: AlertRequest):
        await self._delay(1.6)
        self.alerts.append(request)
        logger.info(f"Alert stored for {request.book_id} at {request.target_price} via {request.notify_via}")
        return True
