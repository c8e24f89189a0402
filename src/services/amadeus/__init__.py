"""Amadeus flight and hotel search integration.

Public API:
    - create_amadeus_client: Factory function to create the Amadeus SDK client
    - AmadeusService: Async facade running SDK calls through the provider fetcher
    - FlightSearchInput / HotelSearchInput: Pydantic schemas for search parameters
    - transform_flight_offer / transform_hotel_offer: Offer to reference converters
"""
from src.services.amadeus.client import AmadeusApiError, AmadeusService, create_amadeus_client
from src.services.amadeus.schemas import FlightSearchInput, HotelSearchInput
from src.services.amadeus.transform import (
    booking_search_url,
    kayak_url,
    total_duration,
    transform_flight_offer,
    transform_hotel_offer,
)

__all__ = [
    "AmadeusApiError",
    "AmadeusService",
    "create_amadeus_client",
    "FlightSearchInput",
    "HotelSearchInput",
    "booking_search_url",
    "kayak_url",
    "total_duration",
    "transform_flight_offer",
    "transform_hotel_offer",
]
