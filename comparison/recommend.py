# comparison/recommend.py
from dataclasses import dataclass
from typing import List, Optional

from .models import Book, Offer
from .offers import BookOffer, cheapest, cheapest_across, fastest_across

TAGGED = "tagged"
DERIVED = "derived"

DERIVED_REASON = "Lowest price across all retailers"


@dataclass(frozen=True)
class BestOverall:
    """
    The top recommendation of a result set.

    ``source`` tells how it was chosen: TAGGED when the backend attached a
    best_overall/best_value recommendation to the book, DERIVED when it is the
    fallback (the book holding the globally cheapest offer). Presentation uses
    it to label the pick honestly.
    """

    book: Book
    source: str
    reason: str
    offer: Optional[Offer] = None

    @property
    def is_tagged(self):
        return self.source == TAGGED


@dataclass(frozen=True)
class ComparisonSummary:
    cheapest: Optional[BookOffer]
    fastest: Optional[BookOffer]
    best_overall: Optional[BestOverall]

    @property
    def alert_candidate(self) -> Optional[Book]:
        """Book a "Set Price Alert" action should target, if any."""
        if self.best_overall is not None:
            return self.best_overall.book
        return None


def best_overall(books: List[Book]) -> Optional[BestOverall]:
    """
    Pick the best overall book from a result set.

    The first book whose recommendation tag is ``best_overall`` or
    ``best_value`` wins. When no book is tagged, the book holding the globally
    cheapest offer is returned with source DERIVED. Books without offers can
    only be picked through a tag.

    Args:
        books (list[Book]): Result set in relevance order

    Returns:
        BestOverall or None: None for an empty list, or when nothing is tagged
            and no book has an offer

    Note:
        Only list order is consulted, so repeated calls with the same list
        always return the same pick.
    """
    for book in books:
        if book.recommendation_tag is not None:
            reason = book.ai_recommendation.reason or "Recommended based on overall value"
            return BestOverall(book=book, source=TAGGED, reason=reason, offer=cheapest(book.offers))

    fallback = cheapest_across(books)
    if fallback is None:
        return None
    return BestOverall(book=fallback.book, source=DERIVED, reason=DERIVED_REASON, offer=fallback.offer)


def compare(books: List[Book]) -> ComparisonSummary:
    """Build the comparison strip (cheapest, fastest, best overall) for a result list."""
    return ComparisonSummary(
        cheapest=cheapest_across(books),
        fastest=fastest_across(books),
        best_overall=best_overall(books),
    )
