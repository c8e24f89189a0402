import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Tuple

from amadeus import Client
from amadeus.client.errors import NetworkError, ResponseError

from src.core.config import ApiSettings
from src.services.amadeus.schemas import FlightSearchInput, HotelSearchInput
from src.services.fetcher import RetryingFetcher

logger = logging.getLogger(__name__)


class AmadeusApiError(RuntimeError):
    """Amadeus SDK error carrying the HTTP response for retry decisions."""

    def __init__(self, message: str, *, response: Any = None) -> None:
        super().__init__(message)
        self.response = response


def create_amadeus_client(settings: ApiSettings) -> Client:
    """Instantiate the Amadeus SDK client using project configuration."""

    client_id = settings.ensure("amadeus_api_key")
    client_secret = settings.ensure("amadeus_api_secret")
    return Client(client_id=client_id, client_secret=client_secret, hostname=settings.amadeus_hostname)

def _format_response_error(exc: ResponseError) -> str:
    """Return a human-friendly message for Amadeus errors."""

    response = getattr(exc, "response", None)
    status = getattr(response, "status_code", None)
    raw_body = getattr(response, "body", None)

    details = None
    if raw_body:
        try:
            parsed = json.loads(raw_body)
        except json.JSONDecodeError:
            details = raw_body.strip()
        else:
            errors = parsed.get("errors") if isinstance(parsed, dict) else None
            if isinstance(errors, list):
                parts = []
                for item in errors:
                    if not isinstance(item, dict):
                        continue
                    code = item.get("code")
                    title = item.get("title")
                    detail = item.get("detail")
                    section = " ".join(str(part) for part in (code, title) if part)
                    if detail:
                        section = f"{section}: {detail}" if section else detail
                    if section:
                        parts.append(section)
                if parts:
                    details = "; ".join(parts)
    prefix = f"HTTP {status}" if status else "Amadeus API error"
    if details:
        return f"{prefix}: {details}"
    return prefix


class AmadeusService:
    """Async facade over the synchronous Amadeus SDK.

    SDK calls run in a worker thread and go through the provider fetcher so
    that retries, ``Retry-After`` handling and pacing are shared with every
    other Amadeus request in the process.
    """

    def __init__(self, client: Client, *, fetcher: RetryingFetcher) -> None:
        self._client = client
        self._fetcher = fetcher

    async def _execute(self, label: str, func: Callable[..., Any], **params: Any) -> Any:
        async def _operation() -> Any:
            try:
                return await asyncio.to_thread(func, **params)
            except NetworkError as exc:
                raise ConnectionError(_format_response_error(exc)) from exc
            except ResponseError as exc:
                raise AmadeusApiError(_format_response_error(exc), response=exc.response) from exc

        return await self._fetcher.call(_operation, label=label)

    async def search_flights(self, search: FlightSearchInput) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        """Return ``(offers, dictionaries)`` for one cabin-class search."""

        params = search.model_dump(mode="json", exclude_none=True)
        response = await self._execute(
            f"flight offers {search.travelClass or 'ANY'}",
            self._client.shopping.flight_offers_search.get,
            **params,
        )
        result = getattr(response, "result", None) or {}
        offers = result.get("data") or []
        logger.info(
            "Amadeus returned %s %s offers for %s-%s",
            len(offers),
            search.travelClass or "ANY",
            search.originLocationCode,
            search.destinationLocationCode,
        )
        return offers, result.get("dictionaries") or {}

    async def search_hotels(self, search: HotelSearchInput) -> List[Dict[str, Any]]:
        """List hotels in the city, then price up to ``maxHotels`` of them."""

        listing = await self._execute(
            f"hotel list {search.cityCode}",
            self._client.reference_data.locations.hotels.by_city.get,
            cityCode=search.cityCode,
        )
        hotel_ids = [
            item["hotelId"]
            for item in (getattr(listing, "data", None) or [])
            if isinstance(item, dict) and item.get("hotelId")
        ][: search.maxHotels]
        if not hotel_ids:
            logger.info("Amadeus has no hotels listed for %s", search.cityCode)
            return []

        params = search.model_dump(mode="json", exclude={"cityCode", "maxHotels"}, exclude_none=True)
        offers = await self._execute(
            f"hotel offers {search.cityCode}",
            self._client.shopping.hotel_offers_search.get,
            hotelIds=",".join(hotel_ids),
            **params,
        )
        data = getattr(offers, "data", None) or []
        logger.info("Amadeus returned %s priced hotels for %s", len(data), search.cityCode)
        return data
