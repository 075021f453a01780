# tests/conftest.py
import sys
import os

ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
sys.path.insert(0, ROOT_DIR)

from datetime import date

import pytest

from client.mock import MockBookSource
from comparison.models import Book, Offer


class FakeTimerHandle:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeTimer:
    """
    Deterministic stand-in for loop.call_later.

    Time is kept in integer milliseconds so schedules like 150ms + 300ms land
    exactly on 450ms. Callbacks only run inside advance(), in due order.

    Attributes:
        now (int): Current fake time in milliseconds
        fired (list[int]): Times at which callbacks ran
    """

    def __init__(self):
        self.now = 0
        self.fired = []
        self._scheduled = []
        self._seq = 0

    def call_later(self, delay, callback):
        handle = FakeTimerHandle()
        self._seq += 1
        self._scheduled.append((self.now + round(delay * 1000), self._seq, callback, handle))
        return handle

    def advance(self, ms):
        target = self.now + ms
        while True:
            due = sorted(
                (s for s in self._scheduled if s[0] <= target and not s[3].cancelled),
                key=lambda s: (s[0], s[1]),
            )
            if not due:
                break
            entry = due[0]
            self._scheduled.remove(entry)
            self.now = entry[0]
            self.fired.append(self.now)
            entry[2]()
        self.now = target

    @property
    def pending(self):
        return [s for s in self._scheduled if not s[3].cancelled]


class FakeClock:
    """Manually advanced monotonic clock, in seconds."""

    def __init__(self, start=1000.0):
        self.t = start

    def __call__(self):
        return self.t

    def advance(self, seconds):
        self.t += seconds


@pytest.fixture
def fake_timer():
    return FakeTimer()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def mock_source():
    """
    Sample catalogue source with no simulated latency.

    The history date is pinned so synthetic price histories are stable
    across test runs.
    """
    return MockBookSource(latency=0, today=date(2025, 9, 30))


def make_offer(platform, price, **kwargs):
    data = {
        "platform": platform,
        "platform_id": kwargs.pop("platform_id", f"{platform.lower()}:{int(price)}"),
        "price": price,
        "link": kwargs.pop("link", f"https://{platform.lower()}.example/item"),
    }
    data.update(kwargs)
    return Offer.model_validate(data)


def make_book(book_id, offers=(), **kwargs):
    data = {"book_id": book_id, "title": kwargs.pop("title", f"Book {book_id}")}
    data.update(kwargs)
    return Book.model_validate({**data, "offers": [o.model_dump() for o in offers]})


@pytest.fixture
def scenario_offers():
    """Amazon at 599 (prime, free 2-3 days) and Flipkart at 649 (no prime, no shipping text)."""
    return [
        make_offer("Amazon", 599, is_prime=True, shipping="Free (2-3 days)"),
        make_offer("Flipkart", 649, is_prime=False),
    ]


@pytest.fixture
def sample_books(scenario_offers):
    """
    Four books covering the optional-field cases the filters have to handle.

    Contents:
        - b1: scenario offers (Amazon 599 prime/free, Flipkart 649), rated 4.3
        - b2: Bookswagon 450 with "1-Day delivery", rated 3.9
        - b3: no offers at all, rated 4.8
        - b4: Flipkart 1200 "Same Day", no rating, tagged best_value
    """
    return [
        make_book("b1", scenario_offers, title="Operating System Concepts", rating=4.3),
        make_book(
            "b2",
            [make_offer("Bookswagon", 450, shipping="₹50 (1-Day delivery)", is_prime=False)],
            title="Modern Operating Systems",
            rating=3.9,
        ),
        make_book("b3", [], title="Out of Print Classic", rating=4.8),
        make_book(
            "b4",
            [make_offer("Flipkart", 1200, shipping="Same Day")],
            title="Operating Systems: Three Easy Pieces",
            ai_recommendation={"type": "best_value", "reason": "Great value"},
        ),
    ]
