"""Near-duplicate detection for activity candidates.

Providers and the LLM return the same tour several times under slightly
different titles ("Eiffel Tower Skip-the-Line Tour" / "Skip the Line: Eiffel
Tower Tour"). Within one day and time slot two candidates are the same when
their title tokens overlap by more than 70% (Jaccard) or when they share both
location and category. One survivor is kept per group.
"""
from __future__ import annotations

import logging
from typing import Callable, Hashable, List, Optional, Sequence, Set, TypeVar

from src.core.coercion import normalize_text, tokenize
from src.core.schemas import Activity
from src.core.scoring import infer_time_slot

logger = logging.getLogger(__name__)

T = TypeVar("T")

NAME_SIMILARITY_THRESHOLD = 0.7
RATING_GAP = 0.3
REVIEW_RATIO = 1.5


def name_similarity(left: str, right: str) -> float:
    """Token Jaccard similarity of two titles after normalisation."""

    left_tokens, right_tokens = set(tokenize(left)), set(tokenize(right))
    if not left_tokens or not right_tokens:
        return 0.0
    return len(left_tokens & right_tokens) / len(left_tokens | right_tokens)


def are_near_duplicates(left: Activity, right: Activity) -> bool:
    if name_similarity(left.name, right.name) > NAME_SIMILARITY_THRESHOLD:
        return True
    return bool(
        left.location
        and left.category
        and left.location == right.location
        and left.category == right.category
    )


def prefer(current: Activity, challenger: Activity) -> bool:
    """Return ``True`` when ``challenger`` should replace ``current``.

    Higher rating wins when the gap exceeds 0.3; otherwise the one with at
    least 1.5x the reviews wins; otherwise the cheaper one. Ties keep
    ``current``.
    """

    gap = round(challenger.rating - current.rating, 6)
    if abs(gap) > RATING_GAP:
        return gap > 0

    current_reviews, challenger_reviews = current.number_of_reviews, challenger.number_of_reviews
    if challenger_reviews > 0 and challenger_reviews >= REVIEW_RATIO * current_reviews:
        return True
    if current_reviews > 0 and current_reviews >= REVIEW_RATIO * challenger_reviews:
        return False

    return challenger.price < current.price


def _default_group(activity: Activity) -> Hashable:
    return activity.day_number, activity.time_slot or infer_time_slot(activity)


def collapse(
    items: Sequence[T],
    *,
    activity_of: Optional[Callable[[T], Activity]] = None,
    group_of: Optional[Callable[[T], Hashable]] = None,
) -> List[T]:
    """Fold near-duplicates and return one survivor per equivalence class.

    The result is a subset of ``items`` in first-seen order; a replaced
    survivor keeps the position of the item it replaced.
    """

    get_activity = activity_of or (lambda item: item)  # type: ignore[assignment, return-value]
    get_group = group_of or (lambda item: _default_group(get_activity(item)))

    survivors: List[T] = []
    groups: List[Hashable] = []
    for item in items:
        activity = get_activity(item)
        group = get_group(item)
        for index, existing in enumerate(survivors):
            if groups[index] != group or not are_near_duplicates(get_activity(existing), activity):
                continue
            if prefer(get_activity(existing), activity):
                logger.debug("Replacing duplicate '%s' with '%s'", get_activity(existing).name, activity.name)
                survivors[index] = item
            else:
                logger.debug("Dropping duplicate '%s' of '%s'", activity.name, get_activity(existing).name)
            break
        else:
            survivors.append(item)
            groups.append(group)
    return survivors


def drop_exact_duplicates(activities: Sequence[Activity]) -> List[Activity]:
    """Remove repeats of the same product code or the same name and location."""

    seen: Set[str] = set()
    unique: List[Activity] = []
    for activity in activities:
        keys = {f"name:{normalize_text(activity.name)}|{normalize_text(activity.location)}"}
        if activity.product_code:
            keys.add(f"code:{activity.product_code}")
        if keys & seen:
            continue
        seen.update(keys)
        unique.append(activity)
    return unique
