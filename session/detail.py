# session/detail.py
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from comparison.alerts import AlertForm, default_form, suggest_target, validate_alert
from comparison.models import AlertRequest, Book, Offer, PriceHistory, PricePoint
from comparison.offers import PriceTrend, cheapest, fastest_delivery, price_trend
from coordinator.coordinator import FetchStatus, RequestCoordinator
from coordinator.errors import NetworkFailure, NotFound, ValidationFailure
from utils.config import DETAIL_STALE_SECONDS, HISTORY_STALE_SECONDS, PRICE_HISTORY_DAYS
from utils.logs import get_logger

logger = get_logger("session")


@dataclass(frozen=True)
class DetailView:
    """
    Product drawer contents for one book.

    ``book`` is the detail record once it has settled. Until then, or when the
    detail fetch fails, it is the summary from the search result that opened
    the drawer and ``is_degraded`` is True. ``history`` falls back to the
    book's embedded price trend when the price-history fetch has nothing.
    """

    book: Optional[Book]
    status: FetchStatus
    error: Optional[Exception] = None
    is_degraded: bool = False
    offers: List[Offer] = field(default_factory=list)
    cheapest: Optional[Offer] = None
    fastest: Optional[Offer] = None
    history: List[PricePoint] = field(default_factory=list)
    history_status: FetchStatus = FetchStatus.IDLE
    history_error: Optional[Exception] = None
    trend: Optional[PriceTrend] = None
    suggested_target: Optional[int] = None


@dataclass(frozen=True)
class AlertOutcome:
    ok: bool
    form: AlertForm
    request: Optional[AlertRequest] = None
    field_errors: Dict[str, str] = field(default_factory=dict)
    error: Optional[Exception] = None


class DetailSession:
    """
    Detail drawer: book detail and price history, each behind its own coordinator.

    Opening another book supersedes both in-flight fetches; close() invalidates
    them so late responses cannot reach a drawer that is gone. The cached
    values survive close(), reopening a recently seen book is instant.
    """

    def __init__(
        self,
        source,
        history_days=PRICE_HISTORY_DAYS,
        detail_max_age=DETAIL_STALE_SECONDS,
        history_max_age=HISTORY_STALE_SECONDS,
        clock=time.monotonic,
    ):
        self.source = source
        self.history_days = history_days
        self.detail = RequestCoordinator("detail", max_age=detail_max_age, clock=clock)
        self.history = RequestCoordinator("price_history", max_age=history_max_age, clock=clock)
        self.book_id: Optional[str] = None
        self.summary: Optional[Book] = None
        self.alert_form: Optional[AlertForm] = None
        self.alert_errors: Dict[str, str] = {}

    @property
    def is_open(self):
        return self.book_id is not None

    def open(self, book):
        """
        Show ``book`` (a Book from a result list, or a bare book id).

        Returns:
            tuple: (detail handle, price-history handle)
        """
        if isinstance(book, Book):
            summary, book_id = book, book.book_id
        else:
            summary, book_id = None, book

        if book_id != self.book_id:
            self.alert_form = None
            self.alert_errors = {}
        self.book_id = book_id or None
        self.summary = summary

        history_key = (book_id, self.history_days) if book_id else None
        return (
            self.detail.request(book_id, self._fetch_detail),
            self.history.request(history_key, self._fetch_history),
        )

    def retry(self):
        return self.detail.retry(), self.history.retry()

    def close(self):
        self.detail.invalidate()
        self.history.invalidate()
        self.book_id = None
        self.summary = None
        self.alert_form = None
        self.alert_errors = {}

    def dispose(self):
        self.close()
        self.detail.close()
        self.history.close()

    async def _fetch_detail(self, book_id):
        return await self.source.get_book_detail(book_id)

    async def _fetch_history(self, key):
        book_id, days = key
        return await self.source.get_price_history(book_id, days)

    def view(self) -> DetailView:
        state = self.detail.state
        detail_book = state.value if state.value is not None and state.key == self.book_id else None
        book = detail_book or self.summary
        offers = list(book.offers) if book is not None else []

        hstate = self.history.state
        history: Optional[PriceHistory] = None
        if hstate.key == (self.book_id, self.history_days):
            history = hstate.value
        points = list(history.points) if history is not None else []
        if not points and book is not None:
            points = list(book.price_trend)

        return DetailView(
            book=book,
            status=state.status,
            error=state.error,
            is_degraded=detail_book is None and book is not None,
            offers=offers,
            cheapest=cheapest(offers),
            fastest=fastest_delivery(offers),
            history=points,
            history_status=hstate.status,
            history_error=hstate.error,
            trend=price_trend(PriceHistory(book_id=self.book_id or "", points=points)),
            suggested_target=suggest_target(offers),
        )

    def current_alert_form(self) -> AlertForm:
        """The form as last submitted, or prefilled with the suggested target price."""
        if self.alert_form is not None:
            return self.alert_form
        return default_form(self.view().offers)

    async def create_alert(self, form: AlertForm) -> AlertOutcome:
        """
        Validate and submit a price alert for the open book.

        The submitted form is kept as entered whatever happens, so after a
        validation failure the user only corrects the flagged fields.

        Returns:
            AlertOutcome: ``ok`` with the sent request, or the per-field errors,
                or the network error
        """
        self.alert_form = form
        try:
            request = validate_alert(self.book_id, form)
            await self.source.create_alert(request)
        except ValidationFailure as e:
            self.alert_errors = e.field_errors
            return AlertOutcome(ok=False, form=form, field_errors=e.field_errors)
        except (NetworkFailure, NotFound) as e:
            logger.warning(f"Alert for {self.book_id} failed: {e}")
            self.alert_errors = {}
            return AlertOutcome(ok=False, form=form, error=e)

        self.alert_errors = {}
        logger.info(f"Price alert set for {request.book_id} at {request.target_price}")
        return AlertOutcome(ok=True, form=form, request=request)
