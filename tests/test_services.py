"""Tests for service modules."""
from __future__ import annotations

import json
from datetime import date

import pytest
from unittest.mock import Mock, patch, AsyncMock
import httpx
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from src.core.config import ApiSettings, FetchPolicy
from src.services.amadeus import (
    AmadeusApiError,
    AmadeusService,
    FlightSearchInput,
    HotelSearchInput,
    create_amadeus_client,
    total_duration,
    transform_flight_offer,
    transform_hotel_offer,
)
from src.services.fetcher import FetchError, RetryingFetcher
from src.services.llm import CompletionRequest, LLMClient, create_chat_model
from src.services.viator import ActivitySearchInput, ViatorClient, product_to_activity


class _NoSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def _fetcher(provider, **policy):
    sleep = _NoSleep()
    return RetryingFetcher(provider, FetchPolicy(**policy), sleep=sleep), sleep


FLIGHT_OFFER = {
    "id": "1",
    "itineraries": [
        {
            "segments": [
                {
                    "departure": {"iataCode": "JFK", "at": "2025-06-01T18:00:00"},
                    "arrival": {"iataCode": "KEF", "at": "2025-06-02T04:00:00"},
                    "carrierCode": "FI",
                    "number": "614",
                    "aircraft": {"code": "7M8"},
                    "duration": "PT5H40M",
                },
                {
                    "departure": {"iataCode": "KEF", "at": "2025-06-02T07:30:00"},
                    "arrival": {"iataCode": "CDG", "at": "2025-06-02T13:00:00"},
                    "carrierCode": "FI",
                    "number": "542",
                    "duration": "PT3H15M",
                },
            ]
        },
        {
            "segments": [
                {
                    "departure": {"iataCode": "CDG", "at": "2025-06-08T10:00:00"},
                    "arrival": {"iataCode": "JFK", "at": "2025-06-08T13:00:00"},
                    "carrierCode": "FI",
                    "number": "543",
                    "duration": "PT9H",
                }
            ]
        },
    ],
    "price": {"total": "850.40", "currency": "USD"},
    "validatingAirlineCodes": ["FI"],
    "travelerPricings": [{"fareDetailsBySegment": [{"cabin": "ECONOMY"}]}],
}

HOTEL_ITEM = {
    "hotel": {"name": "HOTEL LUTETIA", "hotelId": "PALUT", "cityCode": "PAR"},
    "offers": [
        {
            "price": {"total": "1400.00", "currency": "EUR"},
            "checkInDate": "2025-06-01",
            "checkOutDate": "2025-06-08",
            "room": {"typeEstimated": {"category": "DELUXE_ROOM"}, "description": {"text": "King bed"}},
        },
        {"price": {"total": "2100.00", "currency": "EUR"}},
        {"price": {}},
    ],
}

VIATOR_PRODUCT = {
    "productCode": "5678P1",
    "title": "Louvre Museum Skip-the-Line Tour",
    "description": "Guided visit of the highlights",
    "duration": {"fixedDurationInMinutes": 150},
    "pricing": {"summary": {"fromPrice": 65.5}, "currency": "EUR"},
    "reviews": {"combinedAverageRating": 4.7, "totalReviews": 3200},
    "images": [
        {
            "variants": [
                {"width": 200, "height": 100, "url": "https://img.example.com/small.jpg"},
                {"width": 480, "height": 320, "url": "https://img.example.com/480.jpg"},
            ]
        }
    ],
}


# Amadeus transform tests
def test_total_duration_sums_segments():
    assert total_duration(FLIGHT_OFFER["itineraries"][0]["segments"]) == "PT8H55M"
    assert total_duration([{"duration": "PT45M"}, {}]) == "PT0H45M"


def test_transform_flight_offer():
    """Test conversion of an Amadeus round-trip offer."""
    ref = transform_flight_offer(FLIGHT_OFFER, {"carriers": {"FI": "ICELANDAIR"}}, travelers=2, currency="USD")

    assert ref is not None
    assert ref.name == "ICELANDAIR FI614"
    assert ref.route == "JFK <-> CDG"
    assert ref.layovers == 1
    assert ref.duration == "PT8H55M"
    assert ref.aircraft == "Boeing 737 MAX 8"
    assert ref.cabin_class == "ECONOMY"
    assert ref.price.amount == 850.4
    assert ref.price.number_of_travelers == 2
    assert ref.inbound == "2025-06-08T13:00:00"
    assert ref.reference_url == "https://www.kayak.com/flights/JFK-CDG/2025-06-01/2025-06-08"
    assert ref.provider == "Amadeus"
    assert ref.tier == "budget"


def test_transform_flight_offer_business_cabin_is_premium():
    """Test that the cabin override wins over a low fare."""
    offer = {
        **FLIGHT_OFFER,
        "price": {"total": "400.00", "currency": "USD"},
        "travelerPricings": [{"fareDetailsBySegment": [{"cabin": "BUSINESS"}]}],
    }
    ref = transform_flight_offer(offer, {}, travelers=1, currency="USD")
    assert ref.tier == "premium"
    assert ref.airline == "FI"


def test_transform_flight_offer_skips_malformed_offers():
    assert transform_flight_offer({"id": "x"}, {}, travelers=1, currency="USD") is None
    assert transform_flight_offer({**FLIGHT_OFFER, "price": {"total": "n/a"}}, {}, travelers=1, currency="USD") is None


@pytest.mark.parametrize(
    "segments",
    [
        [{"arrival": {"iataCode": "CDG"}, "carrierCode": "AF"}],
        [{"departure": {"iataCode": "JFK"}, "carrierCode": "AF"}],
        [{"departure": None, "arrival": {"iataCode": "CDG"}}],
        [],
    ],
)
def test_transform_flight_offer_skips_broken_segments(segments):
    offer = {**FLIGHT_OFFER, "itineraries": [{"segments": segments}]}
    assert transform_flight_offer(offer, {}, travelers=1, currency="USD") is None


def test_transform_hotel_offer_uses_cheapest_nightly_rate():
    """Test hotel conversion picks the cheapest offer and prices it per night."""
    ref = transform_hotel_offer(HOTEL_ITEM, nights=7, currency="USD")

    assert ref.name == "Hotel Lutetia"
    assert ref.hotel_id == "PALUT"
    assert ref.price.amount == 200
    assert ref.price.currency == "EUR"
    assert ref.tier == "budget"
    assert ref.location == "PAR"
    assert ref.hotel_type == "DELUXE_ROOM"
    assert ref.check_in == "2025-06-01"
    assert ref.reference_url == "https://www.booking.com/search.html?ss=Hotel+Lutetia+PAR"


def test_transform_hotel_offer_without_prices():
    assert transform_hotel_offer({"hotel": {"name": "X"}, "offers": []}, nights=2, currency="USD") is None
    assert transform_hotel_offer({"offers": HOTEL_ITEM["offers"]}, nights=2, currency="USD") is None


def test_hotel_search_requires_checkout_after_checkin():
    with pytest.raises(ValueError):
        HotelSearchInput(cityCode="PAR", checkInDate=date(2025, 6, 2), checkOutDate=date(2025, 6, 2))


def test_create_amadeus_client_requires_credentials():
    with pytest.raises(RuntimeError):
        create_amadeus_client(ApiSettings())


# Amadeus service tests
class TestAmadeusService:
    """Test suite for the async Amadeus facade."""

    @pytest.fixture
    def sdk(self):
        return Mock()

    async def test_search_flights_passes_parameters(self, sdk):
        """Test that the search input is serialised into SDK keyword arguments."""
        sdk.shopping.flight_offers_search.get.return_value = Mock(
            result={"data": [FLIGHT_OFFER], "dictionaries": {"carriers": {"FI": "ICELANDAIR"}}}
        )
        fetcher, _ = _fetcher("amadeus")
        service = AmadeusService(sdk, fetcher=fetcher)

        offers, dictionaries = await service.search_flights(
            FlightSearchInput(
                originLocationCode="JFK",
                destinationLocationCode="CDG",
                departureDate=date(2025, 6, 1),
                adults=2,
                travelClass="BUSINESS",
            )
        )

        assert offers == [FLIGHT_OFFER]
        assert dictionaries["carriers"]["FI"] == "ICELANDAIR"
        sdk.shopping.flight_offers_search.get.assert_called_once_with(
            originLocationCode="JFK",
            destinationLocationCode="CDG",
            departureDate="2025-06-01",
            adults=2,
            travelClass="BUSINESS",
            currencyCode="USD",
            max=25,
        )

    async def test_rate_limited_call_is_retried(self, sdk):
        """Test that a 429 from the SDK goes through the fetcher's retry policy."""
        sdk.shopping.flight_offers_search.get.side_effect = [
            AmadeusApiError("HTTP 429", response=Mock(status_code=429, headers={})),
            Mock(result={"data": [], "dictionaries": {}}),
        ]
        fetcher, sleep = _fetcher("amadeus", default_retry_after_s=1.0, base_delay_s=0.5)
        service = AmadeusService(sdk, fetcher=fetcher)

        offers, _ = await service.search_flights(
            FlightSearchInput(originLocationCode="JFK", destinationLocationCode="CDG", departureDate=date(2025, 6, 1))
        )

        assert offers == []
        assert sleep.delays == [1.0]
        assert sdk.shopping.flight_offers_search.get.call_count == 2

    async def test_bad_request_raises_fetch_error(self, sdk):
        """Test that a 400 fails without retrying."""
        sdk.shopping.flight_offers_search.get.side_effect = AmadeusApiError(
            "HTTP 400: INVALID DATE", response=Mock(status_code=400, headers={})
        )
        fetcher, sleep = _fetcher("amadeus")
        service = AmadeusService(sdk, fetcher=fetcher)

        with pytest.raises(FetchError) as excinfo:
            await service.search_flights(
                FlightSearchInput(
                    originLocationCode="JFK",
                    destinationLocationCode="CDG",
                    departureDate=date(2025, 6, 1),
                )
            )
        assert excinfo.value.status_code == 400
        assert sleep.delays == []

    async def test_search_hotels_lists_then_prices(self, sdk):
        """Test the two-step hotel search."""
        sdk.reference_data.locations.hotels.by_city.get.return_value = Mock(
            data=[{"hotelId": "H1"}, {"hotelId": "H2"}, {"name": "no id"}, {"hotelId": "H3"}]
        )
        sdk.shopping.hotel_offers_search.get.return_value = Mock(data=[HOTEL_ITEM])
        fetcher, _ = _fetcher("amadeus")
        service = AmadeusService(sdk, fetcher=fetcher)

        hotels = await service.search_hotels(
            HotelSearchInput(
                cityCode="PAR",
                checkInDate=date(2025, 6, 1),
                checkOutDate=date(2025, 6, 8),
                adults=2,
                maxHotels=2,
            )
        )

        assert hotels == [HOTEL_ITEM]
        sdk.reference_data.locations.hotels.by_city.get.assert_called_once_with(cityCode="PAR")
        sdk.shopping.hotel_offers_search.get.assert_called_once_with(
            hotelIds="H1,H2",
            checkInDate="2025-06-01",
            checkOutDate="2025-06-08",
            adults=2,
            roomQuantity=1,
            currency="USD",
        )

    async def test_search_hotels_without_listing(self, sdk):
        """Test that an empty city listing skips the pricing call."""
        sdk.reference_data.locations.hotels.by_city.get.return_value = Mock(data=[])
        fetcher, _ = _fetcher("amadeus")
        service = AmadeusService(sdk, fetcher=fetcher)

        hotels = await service.search_hotels(
            HotelSearchInput(cityCode="PAR", checkInDate=date(2025, 6, 1), checkOutDate=date(2025, 6, 2))
        )

        assert hotels == []
        sdk.shopping.hotel_offers_search.get.assert_not_called()


# Viator tests
def test_product_to_activity():
    """Test conversion of a Viator product."""
    activity = product_to_activity(VIATOR_PRODUCT, currency="USD")

    assert activity.name == "Louvre Museum Skip-the-Line Tour"
    assert activity.duration == 2.5
    assert activity.price == 65.5
    assert activity.currency == "EUR"
    assert activity.category == "Cultural & Historical"
    assert activity.location == ""
    assert activity.rating == 4.7
    assert activity.number_of_reviews == 3200
    assert activity.reference_url == "https://www.viator.com/tours/5678P1"
    assert activity.images == ["https://img.example.com/480.jpg"]
    assert activity.tier == "medium"


def test_product_to_activity_skips_invalid_products():
    assert product_to_activity({"productCode": "X1"}) is None


class TestViatorClient:
    """Test suite for the Viator client."""

    @pytest.fixture
    def mock_client(self):
        """Create a mock HTTPX client for testing."""
        mock_client = AsyncMock(spec=httpx.AsyncClient)
        mock_response = Mock()  # httpx Response methods are sync
        mock_response.json.return_value = {"products": {"results": []}}
        mock_response.raise_for_status.return_value = None
        mock_client.send.return_value = mock_response
        return mock_client

    @pytest.fixture
    def viator_client(self, mock_client):
        """Create a Viator client with mocked HTTP client."""
        fetcher, _ = _fetcher("viator")
        with patch('httpx.AsyncClient', return_value=mock_client):
            return ViatorClient(api_key="test-key", fetcher=fetcher)

    async def test_init_sets_partner_headers(self):
        """Test Viator initialization with default parameters."""
        fetcher, _ = _fetcher("viator")
        with patch('httpx.AsyncClient') as mock_httpx:
            client = ViatorClient(api_key="test-key", fetcher=fetcher)
            mock_httpx.assert_called_once()
            kwargs = mock_httpx.call_args.kwargs
            assert kwargs["base_url"] == "https://api.viator.com/partner"
            assert kwargs["headers"]["exp-api-key"] == "test-key"
            assert client.api_key == "test-key"

    async def test_search_activities_success(self, viator_client, mock_client):
        """Test successful free-text product search."""
        mock_response = Mock()
        mock_response.json.return_value = {"products": {"results": [VIATOR_PRODUCT, {"productCode": "bad"}]}}
        mock_response.raise_for_status.return_value = None
        mock_client.send.return_value = mock_response

        activities = await viator_client.search_activities(
            ActivitySearchInput(searchTerm="Paris museums", currency="EUR", limit=10, location="Paris")
        )

        assert [activity.name for activity in activities] == ["Louvre Museum Skip-the-Line Tour"]
        assert activities[0].location == "Paris"
        method, path = mock_client.build_request.call_args.args
        assert (method, path) == ("POST", "/search/freetext")
        payload = mock_client.build_request.call_args.kwargs["json"]
        assert payload["searchTerm"] == "Paris museums"
        assert payload["searchTypes"][0]["pagination"]["limit"] == 10
        assert payload["productFiltering"] == {"rating": {"minimum": 3.5}}

    async def test_search_activities_empty_results(self, viator_client):
        """Test search with no matching products."""
        activities = await viator_client.search_activities(ActivitySearchInput(searchTerm="Nowhere"))
        assert activities == []

    async def test_api_error_handling(self, viator_client, mock_client):
        """Test that a client error surfaces as FetchError."""
        mock_client.send.side_effect = httpx.HTTPStatusError(
            "API Error", request=Mock(), response=Mock(status_code=401)
        )

        with pytest.raises(FetchError) as excinfo:
            await viator_client.search_activities(ActivitySearchInput(searchTerm="Paris"))
        assert excinfo.value.status_code == 401

    async def test_non_json_body_raises_fetch_error(self, viator_client, mock_client):
        """Test that a maintenance page served with 200 surfaces as FetchError."""
        mock_response = Mock(status_code=200)
        mock_response.json.side_effect = json.JSONDecodeError("Expecting value", "<html>maintenance</html>", 0)
        mock_response.raise_for_status.return_value = None
        mock_client.send.return_value = mock_response

        with pytest.raises(FetchError) as excinfo:
            await viator_client.search_activities(ActivitySearchInput(searchTerm="Paris"))
        assert excinfo.value.status_code == 200
        assert excinfo.value.provider == "viator"

    async def test_non_object_body_raises_fetch_error(self, viator_client, mock_client):
        """Test that a JSON body of the wrong shape surfaces as FetchError."""
        mock_client.send.return_value.json.return_value = ["unexpected"]

        with pytest.raises(FetchError):
            await viator_client.search_activities(ActivitySearchInput(searchTerm="Paris"))

    async def test_malformed_products_are_skipped(self, viator_client, mock_client):
        """Test that non-object entries in the results list are ignored."""
        mock_client.send.return_value.json.return_value = {"products": {"results": ["oops", VIATOR_PRODUCT]}}

        activities = await viator_client.search_activities(ActivitySearchInput(searchTerm="Paris"))
        assert [activity.product_code for activity in activities] == ["5678P1"]

    async def test_close_method(self, viator_client, mock_client):
        """Test explicit client closure."""
        await viator_client.aclose()
        mock_client.aclose.assert_called_once()


# LLM client tests
class TestLLMClient:
    """Test suite for the chat model wrapper."""

    @pytest.fixture
    def llm(self):
        llm = Mock()
        llm.model_name = "grok-test"
        llm.ainvoke = AsyncMock(return_value=AIMessage(content='{"ok": true}'))
        return llm

    async def test_complete_sends_system_and_user_messages(self, llm):
        fetcher, _ = _fetcher("llm")
        client = LLMClient(llm, fetcher=fetcher)

        result = await client.complete(CompletionRequest(system_prompt="sys", user_prompt="user", max_tokens=100))

        assert result.content == '{"ok": true}'
        assert result.model == "grok-test"
        messages = llm.ainvoke.call_args.args[0]
        assert isinstance(messages[0], SystemMessage) and messages[0].content == "sys"
        assert isinstance(messages[1], HumanMessage) and messages[1].content == "user"
        assert llm.ainvoke.call_args.kwargs == {"temperature": 0.1, "max_tokens": 100}

    async def test_model_override_and_list_content(self, llm):
        llm.ainvoke.return_value = AIMessage(content=[{"type": "text", "text": "{\"a\":"}, " 1}"])
        fetcher, _ = _fetcher("llm")
        client = LLMClient(llm, fetcher=fetcher)

        result = await client.complete(CompletionRequest(system_prompt="s", user_prompt="u", model="grok-other"))

        assert result.content == '{"a": 1}'
        assert result.model == "grok-other"
        assert llm.ainvoke.call_args.kwargs["model"] == "grok-other"

    async def test_transport_errors_are_retried(self, llm):
        llm.ainvoke.side_effect = [httpx.ConnectError("down"), AIMessage(content="{}")]
        fetcher, sleep = _fetcher("llm", base_delay_s=0.5)
        client = LLMClient(llm, fetcher=fetcher)

        result = await client.complete(CompletionRequest(system_prompt="s", user_prompt="u"))

        assert result.content == "{}"
        assert sleep.delays == [0.5]


def test_create_chat_model_requires_api_key():
    with pytest.raises(RuntimeError):
        create_chat_model(ApiSettings())
