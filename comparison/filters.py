# comparison/filters.py
from typing import Callable, Iterable, List

from .models import DEFAULT_PRICE_RANGE, Book, FilterState
from .offers import cheapest, has_free_shipping

Predicate = Callable[[Book], bool]


def is_default_price_range(price_range) -> bool:
    """True when the range is at least as wide as the default range."""
    low, high = price_range
    return low <= DEFAULT_PRICE_RANGE[0] and high >= DEFAULT_PRICE_RANGE[1]


def price_predicate(price_range) -> Predicate:
    """
    Keep books whose cheapest offer lies inside ``price_range`` (inclusive).

    Books without offers have no price. They are kept while the range is the
    default (or wider) and dropped as soon as the user narrows it.
    """
    low, high = price_range
    narrowed = not is_default_price_range(price_range)

    def check(book):
        offer = cheapest(book.offers)
        if offer is None:
            return not narrowed
        return low <= offer.price <= high

    return check


def platform_predicate(platforms) -> Predicate:
    def check(book):
        return any(offer.platform in platforms for offer in book.offers)

    return check


def rating_predicate(minimum) -> Predicate:
    def check(book):
        return book.rating is not None and book.rating >= minimum

    return check


def prime_predicate(book) -> bool:
    return any(offer.is_prime is True for offer in book.offers)


def free_shipping_predicate(book) -> bool:
    return any(has_free_shipping(offer) for offer in book.offers)


AVAILABILITY_PREDICATES = {
    "prime": prime_predicate,
    "free_shipping": free_shipping_predicate,
}


def build_predicates(filter_state: FilterState) -> List[Predicate]:
    """
    Translate a FilterState into the list of active predicate families.

    Families are combined with AND by apply(). Inside a family that represents
    a set (platforms), membership is an OR. An empty set or a zero rating adds
    no predicate at all. Availability flags are independent families, so
    selecting both prime and free_shipping requires both.

    Args:
        filter_state (FilterState): Current user filters

    Returns:
        list[Callable[[Book], bool]]: Active predicates, price first

    Note:
        ``category`` is not turned into a predicate; search results carry no
        category, the value is passed through for the caller's query.
    """
    predicates = [price_predicate(filter_state.price_range)]
    if filter_state.platforms:
        predicates.append(platform_predicate(filter_state.platforms))
    if filter_state.rating > 0:
        predicates.append(rating_predicate(filter_state.rating))
    for flag in sorted(filter_state.availability):
        predicates.append(AVAILABILITY_PREDICATES[flag])
    return predicates


def apply(books: Iterable[Book], filter_state: FilterState) -> List[Book]:
    """
    Filter a result list, preserving the input order.

    The output is always an order-preserving subsequence of ``books``, and
    neither the books nor the filter state are modified, so calling it twice
    with the same inputs gives the same list.

    Args:
        books (Iterable[Book]): Results in relevance order
        filter_state (FilterState): Active filters

    Returns:
        list[Book]: Books passing every active predicate
    """
    predicates = build_predicates(filter_state)
    return [book for book in books if all(p(book) for p in predicates)]


def active_filter_count(filter_state: FilterState) -> int:
    """Number of filter families narrowing the results, for a badge next to "Filters"."""
    count = 0
    if not is_default_price_range(filter_state.price_range):
        count += 1
    if filter_state.platforms:
        count += 1
    if filter_state.rating > 0:
        count += 1
    count += len(filter_state.availability)
    return count


def is_default(filter_state: FilterState) -> bool:
    return active_filter_count(filter_state) == 0 and not filter_state.category
