"""Activity search, ranking and scheduling.

Candidates flow through four steps before they reach the optimizer:

1. prefilter - drop anything longer than a day of sightseeing and exact repeats;
2. score - rank against the traveller's preferences;
3. collapse - fold near-duplicates competing for the same day and slot;
4. schedule - greedy fill of the day/slot grid, plus the tier-layered plans.
"""
from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from pydantic import Field, ValidationError

from src.core.dedup import collapse, drop_exact_duplicates
from src.core.errors import ActivityGenerationError
from src.core.json_repair import JsonExtractor, is_failure
from src.core.optimizer import build_schedule, build_tiered_schedules
from src.core.prompts import activity_list_prompt, activity_system_prompt, single_activity_prompt
from src.core.schemas import Activity, CamelModel, Schedule, SchedulePlan, ScoredActivity, TravelPreferences
from src.core.scoring import MAX_ACTIVITY_HOURS, score_activities
from src.core.tiers import ACTIVITY_THRESHOLDS
from src.core.types import ISO4217, NonNegMoney, TimeSlot
from src.services.fetcher import FetchError
from src.services.llm import CompletionRequest, LLMClient
from src.services.viator import ActivitySearchInput, ViatorClient

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_LIMIT = 30


def prefilter(activities: Iterable[Activity]) -> List[Activity]:
    """Drop overlong activities and exact duplicates, keeping input order."""

    kept: List[Activity] = []
    for activity in activities:
        if activity.duration is not None and activity.duration > MAX_ACTIVITY_HOURS:
            logger.debug("Dropping '%s': %.1fh is too long", activity.name, activity.duration)
            continue
        kept.append(activity)
    return drop_exact_duplicates(kept)


def rank_candidates(candidates: Iterable[Activity], preferences: TravelPreferences) -> List[ScoredActivity]:
    """Prefilter, score and collapse candidates, best first."""

    scored = score_activities(prefilter(candidates), preferences)
    return collapse(
        scored,
        activity_of=lambda item: item.activity,
        group_of=lambda item: (item.activity.day_number, item.preferred_time_slot),
    )


def schedule_activities(candidates: Iterable[Activity], preferences: TravelPreferences) -> Schedule:
    """Build the preference-ranked schedule from raw candidates."""

    ranked = rank_candidates(candidates, preferences)
    schedule = build_schedule(ranked, preferences)
    logger.info(
        "Scheduled %s of %s candidates over %s days",
        schedule.activity_count,
        len(ranked),
        preferences.days,
    )
    return schedule


def plan_schedule(candidates: Sequence[Activity], preferences: TravelPreferences) -> SchedulePlan:
    """Schedule plus budget/medium/premium suggested itineraries."""

    ranked = rank_candidates(candidates, preferences)
    return SchedulePlan(
        schedule=build_schedule(ranked, preferences),
        suggested_itineraries=build_tiered_schedules(ranked, preferences),
        candidate_count=len(ranked),
    )


class ActivityGenerationRequest(CamelModel):
    destination: str = Field(..., min_length=1)
    day_number: int = Field(1, ge=1)
    time_slot: TimeSlot = "morning"
    budget: NonNegMoney
    currency: ISO4217 = "USD"
    category: Optional[str] = None
    exclude: List[str] = Field(default_factory=list, description="Activity names already in the plan")


def _activity_items(parsed: Any) -> List[Any]:
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, Mapping):
        for key in ("activities", "activity", "results"):
            value = parsed.get(key)
            if isinstance(value, list):
                return value
            if isinstance(value, Mapping):
                return [value]
        if "name" in parsed:
            return [parsed]
    return []


def _validate_activities(items: Iterable[Any], *, currency: str, location: Optional[str]) -> List[Activity]:
    activities: List[Activity] = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        data = dict(item)
        data["currency"] = str(data.get("currency") or currency).strip().upper()
        if location and not data.get("location"):
            data["location"] = location
        try:
            activities.append(Activity.model_validate(data))
        except ValidationError as exc:
            logger.warning("Skipping invalid activity %r: %s", item.get("name"), exc.errors()[0]["msg"])
    return activities


class ActivityPlanner:
    """Finds candidate activities and turns them into schedules."""

    def __init__(
        self,
        llm: LLMClient,
        *,
        viator: Optional[ViatorClient] = None,
        extractor: Optional[JsonExtractor] = None,
    ) -> None:
        self.llm = llm
        self.viator = viator
        self.extractor = extractor or JsonExtractor()

    async def _viator_candidates(self, destination: str, preferences: TravelPreferences) -> List[Activity]:
        # Candidates keep only provider-supplied locations: a shared location plus
        # category marks two activities as duplicates.
        if self.viator is None:
            return []
        search = ActivitySearchInput(
            searchTerm=" ".join([destination, *preferences.interests[:2]]),
            currency=preferences.currency,
            limit=DEFAULT_SEARCH_LIMIT,
        )
        try:
            return await self.viator.search_activities(search)
        except FetchError as exc:
            logger.warning("Viator search for %s failed, falling back to LLM: %s", destination, exc)
            return []

    async def _llm_candidates(self, destination: str, preferences: TravelPreferences) -> List[Activity]:
        daily = preferences.day_budget
        prompt = activity_list_prompt.format(
            days=preferences.days,
            destination=destination,
            travel_style=preferences.travel_style,
            daily_budget="unlimited" if daily == float("inf") else f"{daily:.2f} {preferences.currency}",
            currency=preferences.currency,
            interests=", ".join(preferences.interests) or "general sightseeing",
            activity_budget_max=f"{ACTIVITY_THRESHOLDS.budget_max:g}",
            activity_medium_max=f"{ACTIVITY_THRESHOLDS.medium_max:g}",
            count=preferences.days * 9,
        )
        try:
            result = await self.llm.complete(
                CompletionRequest(system_prompt=activity_system_prompt, user_prompt=prompt),
                label="activity list",
            )
        except FetchError as exc:
            logger.warning("LLM activity search for %s failed: %s", destination, exc)
            return []
        parsed = self.extractor.extract(result.content, label="activities")
        if is_failure(parsed):
            logger.warning("Could not parse activity list (stage=%s): %s", parsed.stage, parsed.message)
            return []
        return _validate_activities(_activity_items(parsed), currency=preferences.currency, location=None)

    async def search(self, destination: str, preferences: TravelPreferences) -> List[Activity]:
        """Collect candidates from Viator, falling back to the chat model."""

        candidates = await self._viator_candidates(destination, preferences)
        if not candidates:
            candidates = await self._llm_candidates(destination, preferences)
        logger.info("Found %s activity candidates for %s", len(candidates), destination)
        return candidates

    async def plan(self, destination: str, preferences: TravelPreferences) -> SchedulePlan:
        """Search for candidates and schedule them."""

        candidates = await self.search(destination, preferences)
        return plan_schedule(candidates, preferences)

    async def generate_activity(self, request: ActivityGenerationRequest) -> Activity:
        """Ask the chat model for one activity that fits a specific slot.

        Raises:
            ActivityGenerationError: If the model output cannot be turned into
                an activity within budget.
        """

        exclude_line = f"- Do NOT suggest any of: {', '.join(request.exclude)}\n" if request.exclude else ""
        prompt = single_activity_prompt.format(
            category_hint=f"{request.category} " if request.category else "",
            destination=request.destination,
            day_number=request.day_number,
            time_slot=request.time_slot,
            budget=f"{request.budget:g}",
            currency=request.currency,
            exclude_line=exclude_line,
        )
        try:
            result = await self.llm.complete(
                CompletionRequest(system_prompt=activity_system_prompt, user_prompt=prompt, max_tokens=1000),
                label="single activity",
            )
        except FetchError as exc:
            raise ActivityGenerationError(f"Activity generation failed: {exc}") from exc

        parsed = self.extractor.extract(result.content, label="activity")
        if is_failure(parsed):
            raise ActivityGenerationError(f"Could not parse generated activity: {parsed.message}")
        activities = _validate_activities(
            _activity_items(parsed),
            currency=request.currency,
            location=request.destination,
        )
        if not activities:
            raise ActivityGenerationError("Model returned no valid activity")
        activity = activities[0]
        if activity.price > request.budget:
            raise ActivityGenerationError(
                f"Generated activity costs {activity.price:g} {activity.currency}, above the {request.budget:g} budget"
            )
        return activity.model_copy(update={"day_number": request.day_number, "time_slot": request.time_slot})
