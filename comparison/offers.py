# comparison/offers.py
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .models import Book, Offer, PriceHistory

# free-text shipping markers treated as next-day delivery
FAST_DELIVERY_MARKERS = ("1-day", "same day")
FREE_SHIPPING_MARKER = "free"


@dataclass(frozen=True)
class BookOffer:
    """A book paired with the offer that made it win a comparison."""

    book: Book
    offer: Offer

    @property
    def price(self):
        return self.offer.price


@dataclass(frozen=True)
class PriceTrend:
    """Summary of a price history, as drawn next to the sparkline."""

    first: float
    current: float
    lowest: float
    highest: float
    change: float
    change_percent: Optional[int]
    direction: str  # "up", "down" or "flat"
    points: int


def _shipping_text(offer):
    return (offer.shipping or "").lower()


def cheapest(offers: Iterable[Offer]) -> Optional[Offer]:
    """
    Return the offer with the lowest price.

    Ties go to the offer that comes first in the input, so the result only
    depends on input order.

    Args:
        offers (Iterable[Offer]): Offers for a single book

    Returns:
        Offer or None: The cheapest offer, or None when there are no offers
    """
    best = None
    for offer in offers:
        if best is None or offer.price < best.price:
            best = offer
    return best


def fastest_delivery(offers: Iterable[Offer]) -> Optional[Offer]:
    """
    Return the first offer whose shipping text promises next-day delivery.

    Matches "1-day" or "same day" case-insensitively in the free-text
    ``shipping`` field. This is a text heuristic: an offer shipping in
    "24 hours" is not recognised, and a missing shipping text never matches.
    A structured delivery-speed field on the offer would replace it.

    Args:
        offers (Iterable[Offer]): Offers for a single book

    Returns:
        Offer or None: The first matching offer, or None
    """
    for offer in offers:
        text = _shipping_text(offer)
        if any(marker in text for marker in FAST_DELIVERY_MARKERS):
            return offer
    return None


def has_free_shipping(offer: Offer) -> bool:
    return FREE_SHIPPING_MARKER in _shipping_text(offer)


def discount_percent(original_price, current_price) -> Optional[int]:
    """
    Percentage saved going from ``original_price`` to ``current_price``.

    Returns None unless both prices are positive and the current price is
    strictly lower. Otherwise the result is rounded to the nearest integer
    (halves round up, e.g. 12.5 -> 13).
    """
    if original_price is None or current_price is None:
        return None
    if original_price <= 0 or current_price <= 0 or original_price <= current_price:
        return None
    pct = 100.0 * (original_price - current_price) / original_price
    return int(pct + 0.5)


def cheapest_across(books: Iterable[Book]) -> Optional[BookOffer]:
    """Book holding the globally cheapest offer; the first book wins ties."""
    best = None
    for book in books:
        offer = cheapest(book.offers)
        if offer is None:
            continue
        if best is None or offer.price < best.price:
            best = BookOffer(book=book, offer=offer)
    return best


def fastest_across(books: Iterable[Book]) -> Optional[BookOffer]:
    """First book, in list order, having a next-day offer."""
    for book in books:
        offer = fastest_delivery(book.offers)
        if offer is not None:
            return BookOffer(book=book, offer=offer)
    return None


def price_trend(history: PriceHistory) -> Optional[PriceTrend]:
    """
    Summarise a price history.

    ``current`` is the latest point by date and ``first`` the earliest one.
    ``change_percent`` is the drop from first to current using
    discount_percent(); it is None when the price did not fall.

    Returns:
        PriceTrend or None: None for an empty history
    """
    points: List = list(history.points)
    if not points:
        return None
    prices = [p.price for p in points]
    first, current = prices[0], prices[-1]
    change = current - first
    if change < 0:
        direction = "down"
    elif change > 0:
        direction = "up"
    else:
        direction = "flat"
    return PriceTrend(
        first=first,
        current=current,
        lowest=min(prices),
        highest=max(prices),
        change=change,
        change_percent=discount_percent(first, current),
        direction=direction,
        points=len(points),
    )
