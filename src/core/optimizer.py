"""Greedy day-by-day schedule construction.

For each day and each slot (morning, afternoon, evening, in that order) the
optimizer commits the best-scoring unused candidate whose preferred slot is
the current one and whose price fits the money left for the day. Choices are
never revisited. An activity key (name + location) is used at most once per
schedule.

The tiered variant builds one plan per price tier. Each slot first looks at
the plan's own tier and then walks the fallback chain for that slot only:
medium falls back to budget, premium to medium and then budget.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from src.core.schemas import (
    ScheduleDay,
    Schedule,
    ScheduledActivity,
    ScoredActivity,
    SuggestedItineraries,
    TravelPreferences,
)
from src.core.types import TIME_SLOTS, PriceTier, TimeSlot

logger = logging.getLogger(__name__)

SLOT_START_TIMES: Mapping[TimeSlot, str] = {
    "morning": "09:00",
    "afternoon": "14:00",
    "evening": "19:00",
}

TIER_FALLBACKS: Mapping[PriceTier, Tuple[PriceTier, ...]] = {
    "budget": ("budget",),
    "medium": ("medium", "budget"),
    "premium": ("premium", "medium", "budget"),
}


def _rank(candidates: Iterable[ScoredActivity]) -> List[ScoredActivity]:
    return sorted(candidates, key=lambda item: item.score, reverse=True)


def _pick(
    pool: Sequence[ScoredActivity],
    slot: TimeSlot,
    remaining: float,
    used: Set[str],
) -> Optional[ScoredActivity]:
    for candidate in pool:
        if candidate.key in used or candidate.preferred_time_slot != slot:
            continue
        if candidate.price <= remaining:
            return candidate
    return None


def build_schedule(
    candidates: Sequence[ScoredActivity],
    preferences: TravelPreferences,
    *,
    tiers: Optional[Sequence[PriceTier]] = None,
) -> Schedule:
    """Assemble a ``preferences.days``-long schedule from scored candidates.

    Args:
        candidates: Scored activities, in any order.
        preferences: Trip length and daily budget.
        tiers: When given, only candidates of these tiers are eligible and
            each slot tries them in order. ``None`` means a single pool of
            every candidate.
    """

    if tiers:
        pools: List[List[ScoredActivity]] = [
            _rank(candidate for candidate in candidates if candidate.tier == tier) for tier in tiers
        ]
    else:
        pools = [_rank(candidates)]

    day_budget = preferences.day_budget
    used: Set[str] = set()
    days: List[ScheduleDay] = []
    for day_number in range(1, preferences.days + 1):
        remaining = day_budget
        cells: Dict[str, ScheduledActivity] = {}
        for slot in TIME_SLOTS:
            choice: Optional[ScoredActivity] = None
            for pool in pools:
                choice = _pick(pool, slot, remaining, used)
                if choice is not None:
                    break
            if choice is None:
                logger.debug("Day %s %s left empty", day_number, slot)
                continue
            used.add(choice.key)
            remaining -= choice.price
            cells[slot] = ScheduledActivity(
                activity=choice.activity,
                score=choice.score,
                time_slot=slot,
                start_time=SLOT_START_TIMES[slot],
                day_number=day_number,
                plan_tier=tiers[0] if tiers else None,
            )
        days.append(
            ScheduleDay(
                day_number=day_number,
                budget=None if day_budget == float("inf") else round(day_budget, 2),
                **cells,
            )
        )
    return Schedule(days=days, tier=tiers[0] if tiers else None)


def build_tiered_schedules(
    candidates: Sequence[ScoredActivity],
    preferences: TravelPreferences,
) -> SuggestedItineraries:
    """Build the budget, medium and premium suggested itineraries."""

    return SuggestedItineraries(
        **{
            tier: build_schedule(candidates, preferences, tiers=TIER_FALLBACKS[tier])
            for tier in TIER_FALLBACKS
        }
    )
