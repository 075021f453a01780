# cli/compare.py
import argparse
import asyncio
import logging
import sys

from client.source import build_source
from comparison.filters import active_filter_count
from comparison.models import DEFAULT_PRICE_RANGE, FilterState
from session.detail import DetailSession
from session.search import SearchSession
from utils.config import PRICE_HISTORY_DAYS, SEARCH_LIMIT
from utils.formatting import format_authors, format_date, format_price, format_rating, truncate_text
from utils.logs import get_logger

logger = get_logger("cli")


def build_parser():
    parser = argparse.ArgumentParser(description="Compare book prices across retailers")
    parser.add_argument("query", help="title or author to search for")
    parser.add_argument("--limit", type=int, default=SEARCH_LIMIT, help="maximum number of results")
    parser.add_argument("--min-price", type=float, default=DEFAULT_PRICE_RANGE[0])
    parser.add_argument("--max-price", type=float, default=DEFAULT_PRICE_RANGE[1])
    parser.add_argument(
        "--platform",
        action="append",
        default=[],
        help="only books offered on this platform (repeatable)",
    )
    parser.add_argument("--rating", type=int, default=0, choices=range(0, 6), help="minimum rating")
    parser.add_argument("--prime", action="store_true", help="only books with a Prime offer")
    parser.add_argument("--free-shipping", action="store_true", help="only books with free shipping")
    parser.add_argument("--detail", metavar="BOOK_ID", help="open the detail view for a book id")
    parser.add_argument("--days", type=int, default=PRICE_HISTORY_DAYS, help="price history window")
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    return parser


def filters_from_args(args):
    """Replay the command-line flags as the user actions a filter panel would emit."""
    state = FilterState().with_price_range(args.min_price, args.max_price)
    for platform in args.platform:
        state = state.toggle_platform(platform)
    if args.rating:
        state = state.with_rating(args.rating)
    if args.prime:
        state = state.toggle_availability("prime")
    if args.free_shipping:
        state = state.toggle_availability("free_shipping")
    return state


def render_search(view):
    if view.has_error:
        return [f"Search failed: {view.error}"]
    lines = [
        f"{len(view.results)} of {view.unfiltered_count} result(s) for {view.query!r}"
        f" ({active_filter_count(view.filters)} filter(s) active)"
    ]
    if view.is_empty:
        lines.append("No books match. Try adjusting your filters or search for something else.")
        return lines

    summary = view.comparison
    if summary.cheapest:
        c = summary.cheapest
        lines.append(f"Cheapest: {c.book.title} on {c.offer.platform} at {format_price(c.price, c.offer.currency)}")
    if summary.fastest:
        f = summary.fastest
        lines.append(f"Fastest delivery: {f.book.title} on {f.offer.platform} ({f.offer.shipping})")
    if summary.best_overall:
        b = summary.best_overall
        label = "Best overall" if b.is_tagged else "Best overall (lowest price)"
        lines.append(f"{label}: {b.book.title} - {b.reason}")

    lines.append("")
    for book in view.results:
        lines.append(f"[{book.book_id}] {book.title} by {format_authors(book.authors)} {format_rating(book.rating)}")
        for offer in book.offers:
            prime = " Prime" if offer.is_prime else ""
            lines.append(
                f"    {offer.platform:<12} {format_price(offer.price, offer.currency):>10}  {offer.shipping or ''}{prime}"
            )
    return lines


def render_detail(view):
    if view.book is None:
        return [f"Book details unavailable: {view.error}"]
    book = view.book
    lines = [f"{book.title}" + (f": {book.subtitle}" if book.subtitle else "")]
    lines.append(f"by {format_authors(book.authors)}  {format_rating(book.rating)}")
    if view.is_degraded and view.error is not None:
        lines.append(f"(showing search summary only: {view.error})")
    if book.description:
        lines.append(truncate_text(book.description, 160))
    for offer in view.offers:
        checked = format_date(offer.last_checked, with_time=True) if offer.last_checked else "N/A"
        lines.append(
            f"    {offer.platform:<12} {format_price(offer.price, offer.currency):>10}  "
            f"{offer.shipping or ''}  (checked {checked})"
        )
    if view.trend is not None:
        t = view.trend
        drop = f", down {t.change_percent}%" if t.change_percent else ""
        lines.append(
            f"Price trend over {t.points} point(s): lowest {format_price(t.lowest)}, "
            f"current {format_price(t.current)} ({t.direction}{drop})"
        )
    else:
        lines.append("No price history available")
    if view.suggested_target is not None:
        lines.append(f"Suggested alert target: {format_price(view.suggested_target)}")
    return lines


async def run(args, source=None, out=print):
    """
    Execute one comparison: search, filter, summarise, optionally open a detail view.

    Returns:
        int: 0 on success, 1 for a too-short query, 2 when the search failed
    """
    source = source or build_source()
    search = SearchSession(source, limit=args.limit)
    detail = DetailSession(source, history_days=args.days)
    try:
        search.set_filters(filters_from_args(args))
        search.on_input(args.query)
        handle = search.submit()
        if handle is None:
            out("Query must be at least 2 characters")
            return 1
        await handle.wait()
        view = search.view()
        for line in render_search(view):
            out(line)
        if view.has_error:
            return 2

        if args.detail:
            known = next((b for b in view.results if b.book_id == args.detail), None)
            detail_handle, history_handle = detail.open(known or args.detail)
            await asyncio.gather(detail_handle.wait(), history_handle.wait())
            out("")
            for line in render_detail(detail.view()):
                out(line)
        return 0
    finally:
        search.close()
        detail.dispose()
        close = getattr(source, "close", None)
        if close is not None:
            await close()


def configure_logging(verbose):
    level = logging.DEBUG if verbose else logging.INFO
    for name in ("cli", "client", "coordinator", "debounce", "session"):
        get_logger(name, level)


def main(argv=None):
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
