"""Convert parsed provider/LLM payloads into validated tier models.

The LLM is asked for ``{category: {budget, medium, premium}}`` objects but the
shape it actually returns drifts: capitalised keys (``Minimum``), tier names
such as ``mid-range`` or ``luxury``, references under ``Examples`` or as bare
strings, prices as strings or ranges. Everything here tolerates that drift,
skips individual references that cannot be validated, and raises
:class:`PayloadShapeError` only when the category as a whole is unusable.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Type

from pydantic import ValidationError

from src.core.coercion import extract_url, parse_price
from src.core.schemas import (
    ActivityReference,
    CategoryTiers,
    FlightReference,
    HotelReference,
    PricedReference,
    TierBucket,
)
from src.core.tiers import DEFAULT_THRESHOLDS, TierThresholds, classify_price, price_in_tier
from src.core.types import CABIN_CLASSES, TIERS, PriceTier

logger = logging.getLogger(__name__)

LLM_DEFAULT_CONFIDENCE = 0.7
LLM_DEFAULT_SOURCE = "LLM estimate"

_TIER_ALIASES: Dict[str, PriceTier] = {
    "budget": "budget",
    "economy": "budget",
    "low": "budget",
    "medium": "medium",
    "mid": "medium",
    "midrange": "medium",
    "moderate": "medium",
    "standard": "medium",
    "premium": "premium",
    "luxury": "premium",
    "high": "premium",
    "upscale": "premium",
}
_CATEGORY_ALIASES: Dict[str, Tuple[str, ...]] = {
    "flights": ("flights", "flight"),
    "hotels": ("hotels", "hotel", "accommodation", "accommodations", "lodging"),
    "localTransportation": (
        "localtransportation",
        "localtransport",
        "transportation",
        "transport",
    ),
    "food": ("food", "dining", "meals"),
    "activities": ("activities", "activity", "attractions"),
}
_REFERENCE_MODELS: Dict[str, Type[PricedReference]] = {
    "flights": FlightReference,
    "hotels": HotelReference,
    "activities": ActivityReference,
}


class PayloadShapeError(ValueError):
    """Raised when a parsed payload cannot be read as a tier triple."""


def _compact(key: str) -> str:
    return "".join(char for char in key.lower() if char.isalnum())


def _lookup(data: Mapping[str, Any], *names: str) -> Any:
    """Return the first value whose key matches one of ``names`` ignoring case and separators."""

    wanted = {_compact(name) for name in names}
    for key, value in data.items():
        if isinstance(key, str) and _compact(key) in wanted:
            return value
    return None


def _tier_of_key(key: Any) -> Optional[PriceTier]:
    if not isinstance(key, str):
        return None
    return _TIER_ALIASES.get(_compact(key))


def find_category_payload(json_data: Any, category: str) -> Mapping[str, Any]:
    """Locate the tier mapping for ``category`` inside a parsed payload."""

    if not isinstance(json_data, Mapping):
        raise PayloadShapeError(
            f"Expected an object for {category}, got {type(json_data).__name__}"
        )
    aliases = _CATEGORY_ALIASES.get(category, (category,))
    nested = _lookup(json_data, *aliases)
    if isinstance(nested, Mapping):
        return nested
    if any(_tier_of_key(key) for key in json_data):
        return json_data
    raise PayloadShapeError(f"No {category} tiers found in payload keys {sorted(map(str, json_data))}")


def _split_tiers(payload: Mapping[str, Any], category: str) -> Dict[PriceTier, Mapping[str, Any]]:
    tiers: Dict[PriceTier, Mapping[str, Any]] = {}
    for key, value in payload.items():
        tier = _tier_of_key(key)
        if tier is None or tier in tiers:
            continue
        if not isinstance(value, Mapping):
            raise PayloadShapeError(f"{category}.{key} must be an object, got {type(value).__name__}")
        tiers[tier] = value
    missing = [tier for tier in TIERS if tier not in tiers]
    if missing:
        raise PayloadShapeError(f"{category} payload is missing tiers: {', '.join(missing)}")
    return tiers


def _number(raw: Mapping[str, Any], *names: str, field: str) -> Optional[float]:
    value = _lookup(raw, *names)
    if value is None:
        return None
    parsed = parse_price(value)
    if parsed is None:
        raise PayloadShapeError(f"Field '{field}' is not numeric: {value!r}")
    return parsed


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, Sequence):
        return [str(item) for item in value if item is not None]
    return []


def _flight_fields(item: Mapping[str, Any]) -> Dict[str, Any]:
    airline = _lookup(item, "airline", "carrier", "name", "provider")
    cabin = _lookup(item, "cabinClass", "class", "cabin", "travelClass")
    cabin_class = None
    if isinstance(cabin, str):
        normalised = cabin.strip().upper().replace(" ", "_").replace("-", "_")
        cabin_class = normalised if normalised in CABIN_CLASSES else None
    layovers = _lookup(item, "layovers", "stops")
    return {
        "airline": str(airline) if airline else "Unknown airline",
        "route": _lookup(item, "route"),
        "outbound": _lookup(item, "outbound", "departure", "departureTime"),
        "inbound": _lookup(item, "inbound", "return", "returnTime"),
        "duration": _lookup(item, "duration"),
        "layovers": int(parse_price(layovers) or 0) if layovers is not None else 0,
        "flight_number": _lookup(item, "flightNumber"),
        "cabin_class": cabin_class,
        "aircraft": _lookup(item, "aircraft"),
    }


def _hotel_fields(item: Mapping[str, Any]) -> Dict[str, Any]:
    rating = _lookup(item, "rating", "stars")
    review_count = _lookup(item, "reviewCount", "numberOfReviews", "reviews")
    policies = _lookup(item, "policies")
    policies = policies if isinstance(policies, Mapping) else {}
    return {
        "location": _lookup(item, "location", "address", "area"),
        "hotel_type": _lookup(item, "type", "hotelType"),
        "rating": parse_price(rating) if rating is not None else None,
        "review_count": int(parse_price(review_count) or 0) if review_count is not None else None,
        "amenities": _string_list(_lookup(item, "amenities", "features")),
        "images": _string_list(_lookup(item, "images")),
        "check_in": _lookup(policies, "checkIn"),
        "check_out": _lookup(policies, "checkOut"),
    }


def _activity_fields(item: Mapping[str, Any]) -> Dict[str, Any]:
    rating = _lookup(item, "rating")
    reviews = _lookup(item, "numberOfReviews", "reviewCount", "reviews")
    duration = _lookup(item, "duration")
    return {
        "location": _lookup(item, "location", "address"),
        "duration": str(duration) if duration is not None else None,
        "category": _lookup(item, "category", "type"),
        "rating": parse_price(rating) if rating is not None else None,
        "number_of_reviews": int(parse_price(reviews) or 0) if reviews is not None else None,
    }


_FIELD_BUILDERS: Dict[str, Callable[[Mapping[str, Any]], Dict[str, Any]]] = {
    "flights": _flight_fields,
    "hotels": _hotel_fields,
    "activities": _activity_fields,
}


def build_reference(
    category: str,
    item: Any,
    *,
    currency: str,
    tier: PriceTier,
) -> Optional[PricedReference]:
    """Build one reference model, or ``None`` when the item is unusable."""

    if isinstance(item, str):
        url = extract_url(item)
        name = item.replace(url, "").strip(" -:,") if url else item.strip()
        item = {"name": name or "Reference", "referenceUrl": url}
    if not isinstance(item, Mapping):
        logger.debug("Skipping %s reference of type %s", category, type(item).__name__)
        return None

    amount = parse_price(_lookup(item, "price", "totalPrice", "pricePerNight", "cost", "amount"))
    name = _lookup(item, "name", "hotelName", "title", "airline", "provider", "vendor", "type", "option")
    data: Dict[str, Any] = {
        "name": str(name) if name else "Unnamed option",
        "price": {"amount": amount if amount is not None else 0, "currency": currency},
        "reference_url": _lookup(item, "referenceUrl", "url", "link", "bookingUrl"),
        "provider": _lookup(item, "provider", "vendor", "company"),
        "details": _lookup(item, "details", "description", "notes"),
        "tier": tier,
    }
    builder = _FIELD_BUILDERS.get(category)
    if builder is not None:
        data.update(builder(item))
    model = _REFERENCE_MODELS.get(category, PricedReference)
    try:
        return model(**data)
    except (ValidationError, TypeError, ValueError) as exc:
        logger.warning("Skipping %s %s reference due to validation error: %s", category, tier, exc)
        return None


def _raw_references(raw: Mapping[str, Any], category: str) -> List[Any]:
    refs = _lookup(raw, "references", "examples", "options")
    if refs is None:
        return []
    if isinstance(refs, (str, Mapping)):
        return [refs]
    if isinstance(refs, Sequence):
        return list(refs)
    raise PayloadShapeError(f"{category} references must be an array, got {type(refs).__name__}")


def _rebucket(
    references: Dict[PriceTier, List[PricedReference]],
    thresholds: TierThresholds,
) -> Dict[PriceTier, List[PricedReference]]:
    """Move references whose price falls outside their tier into the right one."""

    result: Dict[PriceTier, List[PricedReference]] = {tier: [] for tier in TIERS}
    for tier, refs in references.items():
        for ref in refs:
            cabin = getattr(ref, "cabin_class", None)
            target = tier
            if (cabin and cabin in thresholds.cabin_overrides) or not price_in_tier(
                ref.price.amount, tier, thresholds
            ):
                target = classify_price(ref.price.amount, thresholds, cabin_class=cabin)
            if target != tier:
                logger.debug("Moving %s from %s to %s tier", ref.name, tier, target)
                ref = ref.model_copy(update={"tier": target})
            result[target].append(ref)
    return result


def _bucket(
    raw: Mapping[str, Any],
    references: List[PricedReference],
    *,
    category: str,
    tier: PriceTier,
) -> TierBucket:
    confidence = _number(raw, "confidence", field=f"{category}.{tier}.confidence")
    if confidence is None:
        confidence = LLM_DEFAULT_CONFIDENCE
    elif confidence > 1:
        confidence = confidence / 100 if confidence <= 100 else 1.0
    source = _lookup(raw, "source")
    if source is not None and not isinstance(source, str):
        raise PayloadShapeError(f"{category}.{tier}.source must be a string")
    source = source or LLM_DEFAULT_SOURCE

    if references:
        return TierBucket.from_references(references, confidence=confidence, source=source)

    low = _number(raw, "min", "minimum", field=f"{category}.{tier}.min")
    high = _number(raw, "max", "maximum", field=f"{category}.{tier}.max")
    average = _number(raw, "average", "avg", "mean", field=f"{category}.{tier}.average")
    values = [value for value in (low, high, average) if value is not None]
    if not values:
        raise PayloadShapeError(f"{category}.{tier} has neither prices nor references")
    low = low if low is not None else min(values)
    high = high if high is not None else max(values)
    if average is None:
        average = (low + high) / 2
    return TierBucket(
        min=low,
        max=high,
        average=round(average, 2),
        confidence=confidence,
        source=source,
        references=[],
    )


def build_category_tiers(
    json_data: Any,
    category: str,
    *,
    currency: str = "USD",
    thresholds: Mapping[str, TierThresholds] = DEFAULT_THRESHOLDS,
) -> CategoryTiers:
    """Validate and normalise one category of a parsed LLM payload.

    Raises:
        PayloadShapeError: If the payload is not a complete tier triple.
    """

    payload = find_category_payload(json_data, category)
    raw_tiers = _split_tiers(payload, category)

    references: Dict[PriceTier, List[PricedReference]] = {}
    for tier, raw in raw_tiers.items():
        built = [
            build_reference(category, item, currency=currency, tier=tier)
            for item in _raw_references(raw, category)
            if item is not None
        ]
        references[tier] = [ref for ref in built if ref is not None]

    domain_thresholds = thresholds.get(category)
    if domain_thresholds is not None:
        references = _rebucket(references, domain_thresholds)

    buckets: Dict[str, TierBucket] = {}
    for tier in TIERS:
        try:
            buckets[tier] = _bucket(raw_tiers[tier], references[tier], category=category, tier=tier)
        except ValidationError as exc:
            raise PayloadShapeError(f"{category}.{tier} failed validation: {exc}") from exc
    return CategoryTiers(**buckets)


def group_references(
    references: Sequence[PricedReference],
    *,
    confidence: float,
    source: str,
) -> CategoryTiers:
    """Group already-classified provider references into a tier triple.

    Tiers without references get the zero-valued default bucket.
    """

    grouped: Dict[PriceTier, List[PricedReference]] = {tier: [] for tier in TIERS}
    for ref in references:
        if ref.tier is None:
            logger.debug("Skipping unclassified reference %s", ref.name)
            continue
        grouped[ref.tier].append(ref)
    return CategoryTiers(
        **{
            tier: TierBucket.from_references(refs, confidence=confidence, source=source)
            for tier, refs in grouped.items()
        }
    )
