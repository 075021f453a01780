# comparison/models.py
import datetime as dt
from typing import FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from coordinator.errors import ValidationFailure

AVAILABILITY_FLAGS = frozenset({"prime", "free_shipping"})
DEFAULT_PRICE_RANGE = (0.0, 2000.0)
RECOMMENDATION_TAGS = ("best_overall", "best_value")


class Offer(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform: str
    platform_id: str = Field(..., description="Unique per platform, e.g. amazon:ASIN123")
    price: float = Field(..., ge=0)
    currency: str = "INR"
    shipping: Optional[str] = None  # free text, e.g. "Free (2-3 days)"
    is_prime: Optional[bool] = None
    last_checked: Optional[dt.datetime] = None
    link: str


class AiRecommendation(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    reason: Optional[str] = None


class PricePoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: dt.date
    price: float = Field(..., ge=0)


class Book(BaseModel):
    model_config = ConfigDict(frozen=True)

    book_id: str = Field(..., description="Stable id, usually ISBN derived")
    title: str
    authors: List[str] = Field(default_factory=list)
    cover: Optional[str] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    rating_count: Optional[int] = Field(None, ge=0)
    offers: List[Offer] = Field(default_factory=list)
    ai_recommendation: Optional[AiRecommendation] = None

    # detail-only fields
    subtitle: Optional[str] = None
    publisher: Optional[str] = None
    published_date: Optional[str] = None
    description: Optional[str] = None
    page_count: Optional[int] = None
    categories: List[str] = Field(default_factory=list)
    language: Optional[str] = None
    price_trend: List[PricePoint] = Field(default_factory=list)

    @field_validator("offers")
    @classmethod
    def _unique_offers(cls, offers):
        seen = set()
        uniq = []
        for offer in offers:
            if offer.platform_id not in seen:
                seen.add(offer.platform_id)
                uniq.append(offer)
        return uniq

    @property
    def recommendation_tag(self):
        """The recommendation type if it is one of the best-overall tags, else None."""
        if self.ai_recommendation and self.ai_recommendation.type in RECOMMENDATION_TAGS:
            return self.ai_recommendation.type
        return None


class PriceHistory(BaseModel):
    model_config = ConfigDict(frozen=True)

    book_id: str
    points: List[PricePoint] = Field(default_factory=list)

    @field_validator("points")
    @classmethod
    def _sorted_by_date(cls, points):
        return sorted(points, key=lambda p: p.date)


class SearchResultSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str
    total_results: int = Field(0, ge=0)
    results: List[Book] = Field(default_factory=list)


class FilterState(BaseModel):
    """
    User-selected filters for a result list.

    Immutable: every user action returns a new FilterState, so a state handed
    to the filter engine can never change underneath it. Empty ``platforms``
    and ``availability`` sets mean "no constraint".
    """

    model_config = ConfigDict(frozen=True)

    price_range: Tuple[float, float] = DEFAULT_PRICE_RANGE
    platforms: FrozenSet[str] = frozenset()
    rating: float = 0
    availability: FrozenSet[str] = frozenset()
    category: str = ""

    @model_validator(mode="after")
    def _check(self):
        low, high = self.price_range
        errors = {}
        if low > high:
            errors["price_range"] = "Minimum price must not exceed maximum price"
        if not 0 <= self.rating <= 5:
            errors["rating"] = "Rating must be between 0 and 5"
        unknown = self.availability - AVAILABILITY_FLAGS
        if unknown:
            errors["availability"] = f"Unknown availability flag(s): {', '.join(sorted(unknown))}"
        if errors:
            raise ValidationFailure(errors)
        return self

    def with_price_range(self, low, high):
        return self.model_copy(update={"price_range": (float(low), float(high))})._revalidated()

    def toggle_platform(self, platform):
        return self.model_copy(update={"platforms": self.platforms ^ {platform}})._revalidated()

    def toggle_availability(self, flag):
        return self.model_copy(update={"availability": self.availability ^ {flag}})._revalidated()

    def with_rating(self, rating):
        """Select a minimum rating; picking the active rating again clears it."""
        value = 0 if rating == self.rating else rating
        return self.model_copy(update={"rating": value})._revalidated()

    def with_category(self, category):
        return self.model_copy(update={"category": category or ""})

    def reset(self):
        return FilterState()

    def _revalidated(self):
        # model_copy skips validation
        return FilterState.model_validate(self.model_dump())


class AlertRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    book_id: str
    target_price: float
    notify_via: str
    contact: str
