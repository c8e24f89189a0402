import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from src.core.config import ApiSettings
from src.core.schemas import Activity
from src.core.scoring import determine_category
from src.services.fetcher import FetchError, RetryingFetcher
from src.services.viator.schemas import ActivitySearchInput

logger = logging.getLogger(__name__)


class ViatorClient:
    """Thin async wrapper around the Viator partner API v2."""

    def __init__(
        self,
        api_key: str,
        *,
        fetcher: RetryingFetcher,
        base_url: str = "https://api.viator.com/partner",
        timeout_s: float = 15.0,
    ) -> None:
        self.api_key = api_key
        self._fetcher = fetcher
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={
                "Accept": "application/json;version=2.0",
                "Accept-Language": "en-US",
                "exp-api-key": api_key,
            },
            timeout=httpx.Timeout(timeout_s, connect=10.0),
        )

    async def aclose(self) -> None:
        """Close the underlying HTTPX client."""

        await self._client.aclose()

    async def __aenter__(self) -> "ViatorClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self._client.aclose()

    async def _apost(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Send a POST through the provider fetcher and return the parsed JSON.

        Raises:
            FetchError: If the call fails or the body is not a JSON object.
        """

        request = self._client.build_request("POST", path, json=payload)
        response = await self._fetcher.send(self._client, request)
        try:
            data = response.json()
        except ValueError as exc:
            raise FetchError("viator", f"POST {path} returned a non-JSON body", status_code=response.status_code) from exc
        if not isinstance(data, dict):
            raise FetchError("viator", f"POST {path} returned {type(data).__name__}, expected an object")
        return data

    async def search_activities(self, search: ActivitySearchInput) -> List[Activity]:
        """Search products by free text and convert them into activities."""

        data = await self._apost("/search/freetext", search.to_payload())
        products = data.get("products")
        results = (products.get("results") if isinstance(products, dict) else None) or []
        if not results:
            logger.warning("No Viator products found for search term: %s", search.searchTerm)
            return []

        activities: List[Activity] = []
        for product in results if isinstance(results, list) else []:
            if not isinstance(product, dict):
                continue
            activity = product_to_activity(product, currency=search.currency, location=search.location)
            if activity is not None:
                activities.append(activity)
        logger.info("Viator returned %s usable products for %s", len(activities), search.searchTerm)
        return activities


def _image_urls(product: Dict[str, Any]) -> List[str]:
    urls: List[str] = []
    for image in product.get("images") or []:
        variants = image.get("variants") or []
        preferred = next(
            (variant for variant in variants if variant.get("width") == 480 and variant.get("height") == 320),
            variants[0] if variants else None,
        )
        if preferred and preferred.get("url"):
            urls.append(preferred["url"])
    return urls


def product_to_activity(
    product: Dict[str, Any],
    *,
    currency: str = "USD",
    location: Optional[str] = None,
) -> Optional[Activity]:
    """Map one Viator product onto an :class:`Activity`."""

    code = product.get("productCode")
    reviews = product.get("reviews") or {}
    pricing = product.get("pricing") or {}
    duration = product.get("duration") or {}
    title = product.get("title") or ""
    description = product.get("description") or ""
    try:
        return Activity(
            name=title,
            description=description,
            duration=duration.get("fixedDurationInMinutes") and duration["fixedDurationInMinutes"] / 60,
            price=(pricing.get("summary") or {}).get("fromPrice") or 0,
            currency=pricing.get("currency") or currency,
            category=determine_category(f"{title} {description}"),
            location=(product.get("location") or {}).get("address") or location or "",
            rating=reviews.get("combinedAverageRating") or 0,
            number_of_reviews=reviews.get("totalReviews") or 0,
            reference_url=product.get("productUrl") or (f"https://www.viator.com/tours/{code}" if code else None),
            booking_info={
                "productCode": code,
                "cancellationPolicy": (product.get("bookingInfo") or {}).get(
                    "cancellationPolicy", "Standard cancellation policy"
                ),
            },
            product_code=code,
            images=_image_urls(product),
        )
    except ValidationError as exc:
        logger.warning("Skipping Viator product %s due to validation error: %s", code, exc)
        return None


def create_viator_client(settings: ApiSettings, *, fetcher: RetryingFetcher) -> ViatorClient:
    """Instantiate the Viator client using project configuration."""

    return ViatorClient(settings.ensure("viator_api_key"), fetcher=fetcher)
