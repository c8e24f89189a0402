"""Pydantic data models for the travel budget and activity scheduling system.

This module contains the models shared by the aggregation pipeline, the
activity scheduler and the HTTP layer. Field names are snake_case in Python
and camelCase on the wire (``referenceUrl``, ``numberOfReviews``...).

Key model categories:
- Price / *Reference: concrete priced items backing a tier bucket
- TierBucket / CategoryTiers: per-tier statistics for one budget category
- BudgetRequest / BudgetResponse: the budget aggregation envelope
- Activity / ScoredActivity: activity candidates and their derived ranking data
- TravelPreferences: user preferences driving scoring and scheduling
- Schedule*: the day-by-day, slot-by-slot itinerary
"""
from __future__ import annotations

import math
from datetime import date
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializeAsAny,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from src.core.coercion import parse_duration_hours, parse_price
from src.core.tiers import STYLE_TO_TIER, classify
from src.core.types import (
    TIME_SLOTS,
    TIERS,
    CabinClass,
    Confidence,
    ISO4217,
    NonNegMoney,
    PriceTier,
    Rating,
    TimeHHMM,
    TimeSlot,
    TravelStyle,
)

DEFAULT_SOURCE = "Default due to API error"


class CamelModel(BaseModel):
    """Base model that accepts both snake_case and camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Price(CamelModel):
    amount: NonNegMoney
    currency: ISO4217 = "USD"
    number_of_travelers: Optional[int] = Field(default=None, ge=1)

    model_config = ConfigDict(frozen=True)


class PricedReference(CamelModel):
    """A single concrete priced item backing a tier bucket.

    References are immutable once built; corrections produce a new bucket.

    Attributes:
        name: Display name (airline, hotel name, activity or vendor name)
        price: Amount and currency of the item
        reference_url: Booking or information link, when one is known
        provider: Provider or vendor name reported by the source
        details: Free-form description
        tier: Tier the item was filed under
    """

    name: str
    price: Price
    reference_url: Optional[str] = None
    provider: Optional[str] = None
    details: Optional[str] = None
    tier: Optional[PriceTier] = None

    model_config = ConfigDict(frozen=True)


class FlightReference(PricedReference):
    airline: str
    route: Optional[str] = None
    outbound: Optional[str] = None
    inbound: Optional[str] = None
    duration: Optional[str] = None
    layovers: int = Field(default=0, ge=0)
    flight_number: Optional[str] = None
    cabin_class: Optional[CabinClass] = None
    aircraft: Optional[str] = None


class HotelReference(PricedReference):
    hotel_id: Optional[str] = None
    location: Optional[str] = None
    hotel_type: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0)
    review_count: Optional[int] = Field(default=None, ge=0)
    amenities: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    check_in: Optional[str] = None
    check_out: Optional[str] = None


class ActivityReference(PricedReference):
    location: Optional[str] = None
    duration: Optional[str] = None
    category: Optional[str] = None
    rating: Optional[Rating] = None
    number_of_reviews: Optional[int] = Field(default=None, ge=0)


class TierBucket(CamelModel):
    """Aggregated statistics plus concrete references for one tier of one category."""

    min: NonNegMoney = 0
    max: NonNegMoney = 0
    average: NonNegMoney = 0
    confidence: Confidence = 0
    source: str = DEFAULT_SOURCE
    references: List[SerializeAsAny[PricedReference]] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_ordering(self) -> "TierBucket":
        if self.references and not (self.min <= self.average <= self.max):
            raise ValueError(
                f"Tier statistics out of order: min={self.min}, average={self.average}, max={self.max}"
            )
        return self

    @classmethod
    def default(cls, source: str = DEFAULT_SOURCE) -> "TierBucket":
        return cls(min=0, max=0, average=0, confidence=0, source=source, references=[])

    @classmethod
    def from_references(
        cls,
        references: List[PricedReference],
        *,
        confidence: float,
        source: str,
    ) -> "TierBucket":
        """Build a bucket whose statistics are derived from ``references``."""

        if not references:
            return cls.default()
        prices = [ref.price.amount for ref in references]
        return cls(
            min=min(prices),
            max=max(prices),
            average=round(sum(prices) / len(prices), 2),
            confidence=confidence,
            source=source,
            references=list(references),
        )


class CategoryTiers(CamelModel):
    """The ``{budget, medium, premium}`` triple for one budget category."""

    budget: TierBucket = Field(default_factory=TierBucket.default)
    medium: TierBucket = Field(default_factory=TierBucket.default)
    premium: TierBucket = Field(default_factory=TierBucket.default)

    @classmethod
    def default(cls, source: str = DEFAULT_SOURCE) -> "CategoryTiers":
        return cls(
            budget=TierBucket.default(source),
            medium=TierBucket.default(source),
            premium=TierBucket.default(source),
        )

    def buckets(self) -> Iterator[Tuple[PriceTier, TierBucket]]:
        for tier in TIERS:
            yield tier, getattr(self, tier)

    @property
    def is_default(self) -> bool:
        return all(bucket.confidence == 0 and not bucket.references for _, bucket in self.buckets())


class Location(CamelModel):
    code: str = Field(min_length=2, max_length=4)
    label: str = ""

    @field_validator("code")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


class BudgetRequest(CamelModel):
    """Validated budget request."""

    departure: Location
    destinations: List[Location] = Field(min_length=1)
    start_date: date
    end_date: date
    travelers: int = Field(ge=1)
    currency: ISO4217 = "USD"
    budget: Optional[NonNegMoney] = None
    travel_style: Optional[TravelStyle] = None
    interests: List[str] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="after")
    def _check_dates(self) -> "BudgetRequest":
        if self.end_date < self.start_date:
            raise ValueError("endDate must be on or after startDate")
        return self

    @computed_field(return_type=int)
    @property
    def days(self) -> int:
        """Trip length in days, at least one."""

        return max(1, (self.end_date - self.start_date).days)


class RequestDetails(CamelModel):
    departure_location: Location
    destinations: List[Location]
    travelers: int
    start_date: date
    end_date: date
    days: int
    currency: ISO4217
    budget: Optional[NonNegMoney] = None
    travel_style: Optional[TravelStyle] = None

    @classmethod
    def from_request(cls, request: BudgetRequest) -> "RequestDetails":
        return cls(
            departure_location=request.departure,
            destinations=request.destinations,
            travelers=request.travelers,
            start_date=request.start_date,
            end_date=request.end_date,
            days=request.days,
            currency=request.currency,
            budget=request.budget,
            travel_style=request.travel_style,
        )


class BudgetResponse(CamelModel):
    """Composite budget envelope. All five categories are always present."""

    request_details: RequestDetails
    flights: CategoryTiers = Field(default_factory=CategoryTiers.default)
    hotels: CategoryTiers = Field(default_factory=CategoryTiers.default)
    local_transportation: CategoryTiers = Field(default_factory=CategoryTiers.default)
    food: CategoryTiers = Field(default_factory=CategoryTiers.default)
    activities: CategoryTiers = Field(default_factory=CategoryTiers.default)


class Activity(CamelModel):
    """A candidate activity as returned by a search provider or the LLM.

    Attributes:
        name: Activity title
        description: Free text description used for time-slot inference
        duration: Length in hours, when known
        price: Price per person in ``currency``
        category: One of the activity categories (e.g. "Cultural & Historical")
        location: Neighbourhood, venue or city
        rating: Average rating on a 0-5 scale
        number_of_reviews: Review count backing ``rating``
        time_slot: Slot requested by the source, if any
        day_number: Day requested by the source, if any
        reference_url: Booking or information link
        booking_info: Provider booking metadata
        product_code: Provider product identifier
    """

    name: str = Field(min_length=1)
    description: str = ""
    duration: Optional[float] = Field(default=None, gt=0)
    price: NonNegMoney = 0
    currency: ISO4217 = "USD"
    category: Optional[str] = None
    location: str = ""
    rating: Rating = 0
    number_of_reviews: int = Field(default=0, ge=0)
    time_slot: Optional[TimeSlot] = None
    day_number: Optional[int] = Field(default=None, ge=1)
    reference_url: Optional[str] = None
    booking_info: Optional[Dict[str, Any]] = None
    product_code: Optional[str] = None
    images: List[str] = Field(default_factory=list)

    @field_validator("price", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> Any:
        parsed = parse_price(value)
        return value if parsed is None else parsed

    @field_validator("duration", mode="before")
    @classmethod
    def _coerce_duration(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return parse_duration_hours(value)

    @computed_field(return_type=str)
    @property
    def tier(self) -> PriceTier:
        return classify("activities", self.price)

    @property
    def key(self) -> str:
        """Identity key used to prevent reuse across a schedule."""

        return f"{self.name}-{self.location}"


class ScoredActivity(CamelModel):
    activity: Activity
    score: float
    preferred_time_slot: TimeSlot
    duration: float = Field(gt=0)

    @property
    def key(self) -> str:
        return self.activity.key

    @property
    def price(self) -> float:
        return self.activity.price

    @property
    def tier(self) -> PriceTier:
        return self.activity.tier


class TravelPreferences(CamelModel):
    """User preferences for activity scoring and scheduling.

    ``budget`` is the activity budget for the whole trip; it is split evenly
    across ``days`` unless ``daily_budget`` is given. No budget means unlimited.
    """

    destination: Optional[str] = None
    days: int = Field(default=1, ge=1, le=60)
    budget: Optional[NonNegMoney] = None
    daily_budget: Optional[NonNegMoney] = None
    currency: ISO4217 = "USD"
    travel_style: TravelStyle = "moderate"
    interests: List[str] = Field(default_factory=list)

    @property
    def preferred_tier(self) -> PriceTier:
        return STYLE_TO_TIER[self.travel_style]

    @property
    def day_budget(self) -> float:
        if self.daily_budget is not None:
            return float(self.daily_budget)
        if self.budget is not None:
            return float(self.budget) / self.days
        return math.inf


class ScheduledActivity(CamelModel):
    activity: Activity
    score: float
    time_slot: TimeSlot
    start_time: TimeHHMM
    day_number: int = Field(ge=1)
    plan_tier: Optional[PriceTier] = None


class ScheduleDay(CamelModel):
    day_number: int = Field(ge=1)
    budget: Optional[NonNegMoney] = None
    morning: Optional[ScheduledActivity] = None
    afternoon: Optional[ScheduledActivity] = None
    evening: Optional[ScheduledActivity] = None

    def slots(self) -> Iterator[Tuple[TimeSlot, Optional[ScheduledActivity]]]:
        for slot in TIME_SLOTS:
            yield slot, getattr(self, slot)

    @computed_field(return_type=float)
    @property
    def spent(self) -> float:
        return round(sum(item.activity.price for _, item in self.slots() if item is not None), 2)

    @computed_field(return_type=Optional[float])
    @property
    def remaining(self) -> Optional[float]:
        if self.budget is None:
            return None
        return round(self.budget - self.spent, 2)


class Schedule(CamelModel):
    """Day-by-day plan ordered by day number, possibly with empty slots."""

    days: List[ScheduleDay] = Field(default_factory=list)
    tier: Optional[PriceTier] = None

    def assignments(self) -> Iterator[ScheduledActivity]:
        for day in self.days:
            for _, item in day.slots():
                if item is not None:
                    yield item

    @computed_field(return_type=float)
    @property
    def total_cost(self) -> float:
        return round(sum(item.activity.price for item in self.assignments()), 2)

    @computed_field(return_type=int)
    @property
    def activity_count(self) -> int:
        return sum(1 for _ in self.assignments())

    @computed_field(return_type=Dict[str, int])
    @property
    def slot_distribution(self) -> Dict[str, int]:
        counts = {slot: 0 for slot in TIME_SLOTS}
        for item in self.assignments():
            counts[item.time_slot] += 1
        return counts

    @computed_field(return_type=Dict[str, int])
    @property
    def category_distribution(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for item in self.assignments():
            category = item.activity.category or "Uncategorized"
            counts[category] = counts.get(category, 0) + 1
        return counts


class SuggestedItineraries(CamelModel):
    budget: Schedule
    medium: Schedule
    premium: Schedule


class SchedulePlan(CamelModel):
    """Preference-ranked schedule plus the three tier-layered suggestions."""

    schedule: Schedule
    suggested_itineraries: SuggestedItineraries
    candidate_count: int = Field(default=0, ge=0)
