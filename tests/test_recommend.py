# tests/test_recommend.py
from comparison.recommend import DERIVED, DERIVED_REASON, TAGGED, best_overall, compare
from conftest import make_book, make_offer


def test_best_overall_prefers_tagged_book(sample_books):
    """
    Test that a backend recommendation tag beats the price-derived pick.

    b4 is tagged best_value although b2 is cheaper.

    Asserts:
        - The tagged book is returned with source TAGGED
        - The backend's reason is carried through
    """
    pick = best_overall(sample_books)
    assert pick.book.book_id == "b4"
    assert pick.source == TAGGED
    assert pick.is_tagged
    assert pick.reason == "Great value"
    assert pick.offer.platform == "Flipkart"


def test_best_overall_derived_fallback(sample_books):
    untagged = sample_books[:3]
    pick = best_overall(untagged)
    assert pick.book.book_id == "b2"
    assert pick.source == DERIVED
    assert not pick.is_tagged
    assert pick.reason == DERIVED_REASON


def test_best_overall_ignores_other_recommendation_types():
    a = make_book(
        "a",
        [make_offer("Amazon", 900)],
        ai_recommendation={"type": "fastest_delivery", "reason": "Arrives tomorrow"},
    )
    b = make_book("b", [make_offer("Amazon", 400)])
    pick = best_overall([a, b])
    assert pick.book.book_id == "b"
    assert pick.source == DERIVED


def test_best_overall_tag_without_reason():
    book = make_book("a", [], ai_recommendation={"type": "best_overall"})
    pick = best_overall([book])
    assert pick.source == TAGGED
    assert pick.reason == "Recommended based on overall value"
    assert pick.offer is None


def test_best_overall_empty_and_offerless():
    assert best_overall([]) is None
    assert best_overall([make_book("a"), make_book("b")]) is None


def test_best_overall_is_deterministic(sample_books):
    picks = {best_overall(sample_books).book.book_id for _ in range(5)}
    assert picks == {"b4"}


def test_compare_summary(sample_books):
    """
    Test the comparison strip built for a whole result list.

    Asserts:
        - cheapest and fastest both point at b2
        - best_overall is the tagged b4, which is also the alert candidate
        - An empty list yields an all-None summary
    """
    summary = compare(sample_books)
    assert summary.cheapest.book.book_id == "b2"
    assert summary.fastest.book.book_id == "b2"
    assert summary.best_overall.book.book_id == "b4"
    assert summary.alert_candidate.book_id == "b4"

    empty = compare([])
    assert empty.cheapest is None
    assert empty.fastest is None
    assert empty.best_overall is None
    assert empty.alert_candidate is None
