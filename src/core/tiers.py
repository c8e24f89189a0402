"""Per-domain price tier classification.

Every priced domain (flights, hotels, activities) owns its own threshold table.
Classification is a pure lookup against the table that is passed in, so each
domain can move its boundaries without affecting the others. Boundaries are
inclusive on the lower tier: a price equal to ``budget_max`` is still budget.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from src.core.types import PriceTier, TravelStyle


@dataclass(frozen=True, slots=True)
class TierThresholds:
    """Upper bounds for the budget and medium tiers of one domain."""

    budget_max: float
    medium_max: float
    cabin_overrides: Mapping[str, PriceTier] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.budget_max < 0 or self.medium_max < self.budget_max:
            raise ValueError(
                f"Invalid tier thresholds: budget_max={self.budget_max}, medium_max={self.medium_max}"
            )

    def bounds(self, tier: PriceTier) -> Tuple[float, float]:
        """Return the inclusive ``(lower, upper)`` price range of ``tier``."""

        if tier == "budget":
            return 0.0, self.budget_max
        if tier == "medium":
            return self.budget_max, self.medium_max
        return self.medium_max, math.inf


FLIGHT_THRESHOLDS = TierThresholds(
    budget_max=1000,
    medium_max=2000,
    cabin_overrides={
        "FIRST": "premium",
        "BUSINESS": "premium",
        "PREMIUM_ECONOMY": "medium",
    },
)
HOTEL_THRESHOLDS = TierThresholds(budget_max=200, medium_max=500)
ACTIVITY_THRESHOLDS = TierThresholds(budget_max=30, medium_max=100)

DEFAULT_THRESHOLDS: Mapping[str, TierThresholds] = {
    "flights": FLIGHT_THRESHOLDS,
    "hotels": HOTEL_THRESHOLDS,
    "activities": ACTIVITY_THRESHOLDS,
}

STYLE_TO_TIER: Mapping[TravelStyle, PriceTier] = {
    "budget": "budget",
    "moderate": "medium",
    "luxury": "premium",
}


def classify_price(price: float, thresholds: TierThresholds, *, cabin_class: Optional[str] = None) -> PriceTier:
    """Map a price (and optional cabin class) onto a tier using ``thresholds``."""

    if cabin_class:
        override = thresholds.cabin_overrides.get(cabin_class.strip().upper())
        if override is not None:
            return override
    if price <= thresholds.budget_max:
        return "budget"
    if price <= thresholds.medium_max:
        return "medium"
    return "premium"


def classify(
    domain: str,
    price: float,
    *,
    cabin_class: Optional[str] = None,
    table: Mapping[str, TierThresholds] = DEFAULT_THRESHOLDS,
) -> PriceTier:
    """Classify ``price`` for ``domain`` using the supplied threshold table.

    Raises:
        KeyError: If ``table`` has no thresholds for ``domain``.
    """

    try:
        thresholds = table[domain]
    except KeyError:
        raise KeyError(f"No tier thresholds configured for domain '{domain}'") from None
    return classify_price(price, thresholds, cabin_class=cabin_class)


def price_in_tier(price: float, tier: PriceTier, thresholds: TierThresholds) -> bool:
    """Whether a price alone places an item in ``tier``; boundaries belong to the lower tier."""

    return classify_price(price, thresholds) == tier
