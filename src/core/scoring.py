"""Activity ranking against traveller preferences.

score = rating * 2                      (0-10 for a 0-5 rating)
      + min(reviews, 1000) / 1000       (0-1, saturating)
      + 1 if the price tier matches the travel style
      + duration fit: +1 for 2-4h, +0.5 under 2h, -0.5 over 4h

The preferred time slot is inferred separately from keywords and category
and does not affect the score.
"""
from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional, Tuple

from src.core.coercion import normalize_text
from src.core.schemas import Activity, ScoredActivity, TravelPreferences
from src.core.types import TimeSlot

RATING_WEIGHT = 2.0
REVIEW_SATURATION = 1000
TIER_MATCH_BONUS = 1.0
IDEAL_DURATION_BONUS = 1.0
SHORT_DURATION_BONUS = 0.5
LONG_DURATION_PENALTY = -0.5
IDEAL_DURATION_HOURS = (2.0, 4.0)
MAX_ACTIVITY_HOURS = 8.0

_EVENING_KEYWORDS = re.compile(r"\b(?:dinner|night|evening)")
_MORNING_KEYWORDS = re.compile(r"\b(?:breakfast|morning|sunrise)")

CATEGORY_SLOTS: Dict[str, TimeSlot] = {
    "cultural & historical": "morning",
    "food & entertainment": "evening",
}
CATEGORY_DURATIONS: Dict[str, float] = {
    "cultural & historical": 3.0,
    "nature & adventure": 4.0,
    "food & entertainment": 2.0,
}
DEFAULT_DURATION_HOURS = 2.0
DEFAULT_CATEGORY = "Cultural & Historical"

CATEGORY_KEYWORDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (
        "Cultural & Historical",
        ("museum", "gallery", "history", "historic", "art", "palace", "cathedral", "church", "monument", "heritage"),
    ),
    (
        "Nature & Adventure",
        ("hiking", "hike", "beach", "mountain", "nature", "park", "garden", "bike", "cycling", "kayak",
         "adventure", "diving", "climbing", "rafting", "zip line"),
    ),
    (
        "Food & Entertainment",
        ("food", "dinner", "lunch", "culinary", "restaurant", "cooking class", "wine", "tapas", "show",
         "concert", "theater", "theatre", "cabaret", "cruise"),
    ),
    (
        "Lifestyle & Local",
        ("shopping", "market", "boutique", "bazaar", "local", "neighborhood", "neighbourhood", "spa"),
    ),
)


def _category_key(category: Optional[str]) -> str:
    return (category or "").strip().lower()


def determine_category(text: Optional[str]) -> str:
    """Pick the first category whose keywords appear in ``text``."""

    haystack = f" {normalize_text(text)} "
    for category, keywords in CATEGORY_KEYWORDS:
        if any(f" {keyword}" in haystack for keyword in keywords):
            return category
    return DEFAULT_CATEGORY


def infer_time_slot(activity: Activity) -> TimeSlot:
    """Infer the best slot from the title, description and category."""

    text = f"{normalize_text(activity.name)} {normalize_text(activity.description)}"
    if _EVENING_KEYWORDS.search(text):
        return "evening"
    if _MORNING_KEYWORDS.search(text):
        return "morning"
    return CATEGORY_SLOTS.get(_category_key(activity.category), "afternoon")


def estimate_duration(activity: Activity) -> float:
    """Return the activity length in hours, estimating from the category when unknown."""

    if activity.duration is not None:
        return activity.duration
    return CATEGORY_DURATIONS.get(_category_key(activity.category), DEFAULT_DURATION_HOURS)


def duration_fit(hours: float) -> float:
    low, high = IDEAL_DURATION_HOURS
    if hours < low:
        return SHORT_DURATION_BONUS
    if hours <= high:
        return IDEAL_DURATION_BONUS
    return LONG_DURATION_PENALTY


def score_activity(activity: Activity, preferences: TravelPreferences) -> ScoredActivity:
    duration = estimate_duration(activity)
    score = (
        activity.rating * RATING_WEIGHT
        + min(activity.number_of_reviews, REVIEW_SATURATION) / REVIEW_SATURATION
        + (TIER_MATCH_BONUS if activity.tier == preferences.preferred_tier else 0.0)
        + duration_fit(duration)
    )
    return ScoredActivity(
        activity=activity,
        score=round(score, 4),
        preferred_time_slot=infer_time_slot(activity),
        duration=duration,
    )


def score_activities(
    activities: Iterable[Activity],
    preferences: TravelPreferences,
) -> List[ScoredActivity]:
    """Score every activity and return them best first.

    The sort is stable so equal scores keep their input order.
    """

    scored = [score_activity(activity, preferences) for activity in activities]
    return sorted(scored, key=lambda item: item.score, reverse=True)
