"""Budget aggregation: request validation, category fan-out and the hard timeout.

``compute_budget`` is the single entry point. Each of the five categories is
resolved independently and concurrently; a category whose provider or LLM
output is unusable degrades to the zero-confidence default triple so the
response envelope is always complete. Only invalid input and the request-level
timeout surface as errors.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from src.core.errors import BudgetTimeoutError, InvalidRequestError
from src.core.json_repair import JsonExtractor, is_failure
from src.core.post_processing import PayloadShapeError, build_category_tiers, group_references
from src.core.prompts import CATEGORY_PROMPTS, budget_system_prompt, trip_details
from src.core.schemas import BudgetRequest, BudgetResponse, CategoryTiers, PricedReference, RequestDetails
from src.core.tiers import DEFAULT_THRESHOLDS, TierThresholds
from src.core.types import CABIN_CLASSES
from src.data import city_label, is_known_airport, is_known_city, primary_airport_for_city
from src.services.amadeus import (
    AmadeusService,
    FlightSearchInput,
    HotelSearchInput,
    transform_flight_offer,
    transform_hotel_offer,
)
from src.services.fetcher import FetchError
from src.services.llm import CompletionRequest, LLMClient

logger = logging.getLogger(__name__)

PROVIDER_CONFIDENCE = 0.9
PROVIDER_SOURCE = "Amadeus"
# Amadeus prices at most nine adults per search.
MAX_PROVIDER_ADULTS = 9
REQUIRED_FIELDS = ("departure", "destinations", "startDate", "endDate", "travelers")
_FIELD_ALIASES = {
    "startDate": "start_date",
    "endDate": "end_date",
}


def _travelers(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidRequestError("travelers must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise InvalidRequestError(f"travelers must be an integer, got {value!r}")


def parse_budget_request(raw: Union[BudgetRequest, Mapping[str, Any]]) -> BudgetRequest:
    """Validate a raw request body.

    Raises:
        InvalidRequestError: For missing fields, a non-integer traveler count,
            unknown destination cities or an unknown departure.
    """

    if isinstance(raw, BudgetRequest):
        request = raw
    else:
        if not isinstance(raw, Mapping):
            raise InvalidRequestError("Request body must be an object")
        missing = [
            name
            for name in REQUIRED_FIELDS
            if raw.get(name) in (None, "", []) and raw.get(_FIELD_ALIASES.get(name, name)) in (None, "", [])
        ]
        if missing:
            raise InvalidRequestError(f"Missing required fields: {', '.join(missing)}")
        data = dict(raw)
        data["travelers"] = _travelers(data["travelers"])
        try:
            request = BudgetRequest.model_validate(data)
        except ValidationError as exc:
            details = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
            )
            raise InvalidRequestError(f"Invalid budget request: {details}") from exc

    unknown = [location.code for location in request.destinations if not is_known_city(location.code)]
    if unknown:
        raise InvalidRequestError(f"Unsupported destination: {', '.join(unknown)}")
    departure = request.departure.code
    if not (is_known_airport(departure) or is_known_city(departure)):
        raise InvalidRequestError(f"Unsupported departure location: {departure}")
    return request


def _destination_label(request: BudgetRequest) -> str:
    return ", ".join(
        location.label or city_label(location.code) or location.code for location in request.destinations
    )


def _money(value: float) -> str:
    return f"{value:g}"


class CategoryAggregator:
    """Resolves the five budget categories from Amadeus and the chat model."""

    def __init__(
        self,
        llm: LLMClient,
        *,
        amadeus: Optional[AmadeusService] = None,
        extractor: Optional[JsonExtractor] = None,
        thresholds: Mapping[str, TierThresholds] = DEFAULT_THRESHOLDS,
        soft_timeout_s: float = 25.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.llm = llm
        self.amadeus = amadeus
        self.extractor = extractor or JsonExtractor()
        self.thresholds = thresholds
        self.soft_timeout_s = soft_timeout_s
        self._clock = clock

    def build_prompt(self, category: str, request: BudgetRequest) -> str:
        """Render the category prompt for ``request``."""

        departure = request.departure.label or request.departure.code
        destination = _destination_label(request)
        details = trip_details.format(
            departure=departure,
            destination=destination,
            start_date=request.start_date.isoformat(),
            end_date=request.end_date.isoformat(),
            days=request.days,
            travelers=request.travelers,
            currency=request.currency,
            budget_line=f"- Total budget: {_money(request.budget)} {request.currency}\n" if request.budget else "",
            style_line=f"- Travel style: {request.travel_style}\n" if request.travel_style else "",
            interests_line=f"- Interests: {', '.join(request.interests)}\n" if request.interests else "",
        )
        return CATEGORY_PROMPTS[category].format(
            departure=departure,
            destination=destination,
            travelers=request.travelers,
            currency=request.currency,
            trip_details=details,
            flight_budget_max=_money(self.thresholds["flights"].budget_max),
            flight_medium_max=_money(self.thresholds["flights"].medium_max),
            hotel_budget_max=_money(self.thresholds["hotels"].budget_max),
            hotel_medium_max=_money(self.thresholds["hotels"].medium_max),
            activity_budget_max=_money(self.thresholds["activities"].budget_max),
            activity_medium_max=_money(self.thresholds["activities"].medium_max),
        )

    async def llm_category(self, category: str, request: BudgetRequest) -> CategoryTiers:
        """Ask the chat model for one category, defaulting on any unusable answer."""

        completion = CompletionRequest(
            system_prompt=budget_system_prompt,
            user_prompt=self.build_prompt(category, request),
        )
        try:
            result = await self.llm.complete(completion, label=f"{category} estimate")
        except FetchError as exc:
            logger.warning("LLM request for %s failed, using defaults: %s", category, exc)
            return CategoryTiers.default()

        parsed = self.extractor.extract(result.content, label=category)
        if is_failure(parsed):
            logger.warning(
                "Could not parse %s payload (stage=%s, position=%s): %s",
                category,
                parsed.stage,
                parsed.position,
                parsed.message,
            )
            return CategoryTiers.default()

        try:
            tiers = build_category_tiers(
                parsed,
                category,
                currency=request.currency,
                thresholds=self.thresholds,
            )
        except PayloadShapeError as exc:
            logger.warning("Invalid %s payload shape, using defaults: %s", category, exc)
            return CategoryTiers.default()
        logger.info("Resolved %s from LLM estimate", category)
        return tiers

    async def realtime_flights(self, request: BudgetRequest) -> Optional[CategoryTiers]:
        """Search every cabin class and group the offers by tier.

        Returns ``None`` when no cabin search produced a usable offer.
        """

        if self.amadeus is None:
            return None
        origin = primary_airport_for_city(request.departure.code)
        destination = primary_airport_for_city(request.destinations[0].code)
        return_date = request.end_date if request.end_date > request.start_date else None
        searches = [
            FlightSearchInput(
                originLocationCode=origin,
                destinationLocationCode=destination,
                departureDate=request.start_date,
                returnDate=return_date,
                adults=min(request.travelers, MAX_PROVIDER_ADULTS),
                travelClass=cabin,
                currencyCode=request.currency,
            )
            for cabin in CABIN_CLASSES
        ]
        results = await asyncio.gather(
            *(self.amadeus.search_flights(search) for search in searches),
            return_exceptions=True,
        )

        references: List[PricedReference] = []
        for search, result in zip(searches, results):
            if isinstance(result, BaseException):
                logger.warning("Amadeus %s flight search failed: %s", search.travelClass, result)
                continue
            offers, dictionaries = result
            for offer in offers:
                reference = transform_flight_offer(
                    offer,
                    dictionaries,
                    travelers=search.adults,
                    currency=request.currency,
                )
                if reference is not None:
                    references.append(reference)

        if not references:
            logger.warning("Amadeus returned no usable flights for %s-%s", origin, destination)
            return None
        logger.info("Resolved flights from %s Amadeus offers", len(references))
        return group_references(references, confidence=PROVIDER_CONFIDENCE, source=PROVIDER_SOURCE)

    async def realtime_hotels(self, request: BudgetRequest) -> Optional[CategoryTiers]:
        """Price hotels in the first destination, or ``None`` when nothing usable came back."""

        if self.amadeus is None:
            return None
        destination = request.destinations[0]
        try:
            search = HotelSearchInput(
                cityCode=destination.code,
                checkInDate=request.start_date,
                checkOutDate=request.start_date + timedelta(days=request.days),
                adults=min(request.travelers, MAX_PROVIDER_ADULTS),
                roomQuantity=1,
                currency=request.currency,
            )
            items = await self.amadeus.search_hotels(search)
        except (FetchError, ValidationError) as exc:
            logger.warning("Amadeus hotel search for %s failed: %s", destination.code, exc)
            return None

        label = destination.label or city_label(destination.code) or destination.code
        references = [
            reference
            for reference in (
                transform_hotel_offer(item, nights=search.nights, currency=request.currency, location=label)
                for item in items
            )
            if reference is not None
        ]
        if not references:
            logger.warning("Amadeus returned no priced hotels for %s", destination.code)
            return None
        logger.info("Resolved hotels from %s Amadeus offers", len(references))
        return group_references(references, confidence=PROVIDER_CONFIDENCE, source=PROVIDER_SOURCE)

    async def _flights(self, request: BudgetRequest) -> CategoryTiers:
        tiers = await self.realtime_flights(request)
        if tiers is not None:
            return tiers
        return await self.llm_category("flights", request)

    async def _hotels(self, request: BudgetRequest) -> CategoryTiers:
        tiers = await self.realtime_hotels(request)
        if tiers is not None:
            return tiers
        return await self.llm_category("hotels", request)

    async def aggregate(self, request: BudgetRequest) -> BudgetResponse:
        """Resolve every category concurrently and assemble the response."""

        started = self._clock()
        branches: Dict[str, Awaitable[CategoryTiers]] = {
            "flights": self._flights(request),
            "hotels": self._hotels(request),
            "localTransportation": self.llm_category("localTransportation", request),
            "food": self.llm_category("food", request),
            "activities": self.llm_category("activities", request),
        }
        results = await asyncio.gather(*branches.values(), return_exceptions=True)

        categories: Dict[str, CategoryTiers] = {}
        for category, result in zip(branches, results):
            if isinstance(result, BaseException):
                logger.warning("Category %s failed, using defaults: %s", category, result, exc_info=result)
                result = CategoryTiers.default()
            categories[category] = result

        defaulted = [category for category, tiers in categories.items() if tiers.is_default]
        if defaulted:
            logger.warning("Returning default tiers for %s", ", ".join(defaulted))

        elapsed = self._clock() - started
        if elapsed > self.soft_timeout_s:
            logger.warning(
                "Budget aggregation took %.1fs, above the %.0fs soft ceiling",
                elapsed,
                self.soft_timeout_s,
            )
        else:
            logger.info("Budget aggregation completed in %.1fs", elapsed)

        return BudgetResponse(
            request_details=RequestDetails.from_request(request),
            flights=categories["flights"],
            hotels=categories["hotels"],
            local_transportation=categories["localTransportation"],
            food=categories["food"],
            activities=categories["activities"],
        )


async def compute_budget(
    request: Union[BudgetRequest, Mapping[str, Any]],
    aggregator: CategoryAggregator,
    *,
    timeout_s: Optional[float] = None,
) -> BudgetResponse:
    """Validate ``request`` and aggregate its budget under a hard timeout.

    Raises:
        InvalidRequestError: If the request is invalid.
        BudgetTimeoutError: If aggregation exceeds ``timeout_s``; partial
            results are discarded.
    """

    budget_request = parse_budget_request(request)
    logger.info(
        "Computing budget %s -> %s for %s travelers",
        budget_request.departure.code,
        ",".join(location.code for location in budget_request.destinations),
        budget_request.travelers,
    )
    try:
        return await asyncio.wait_for(aggregator.aggregate(budget_request), timeout=timeout_s)
    except asyncio.TimeoutError:
        logger.error("Budget aggregation timed out after %ss", timeout_s)
        raise BudgetTimeoutError(timeout_s or 0) from None
