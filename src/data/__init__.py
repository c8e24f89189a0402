"""Static reference data.

Public API:
    - CITIES / AIRPORTS: Supported destination cities and departure airports
    - is_known_city / is_known_airport: Membership checks used by request validation
    - primary_airport_for_city: City code to flight-search airport resolution
"""
from src.data.locations import (
    AIRPORTS,
    CITIES,
    Airport,
    City,
    city_label,
    is_known_airport,
    is_known_city,
    primary_airport_for_city,
)

__all__ = [
    "AIRPORTS",
    "CITIES",
    "Airport",
    "City",
    "city_label",
    "is_known_airport",
    "is_known_city",
    "primary_airport_for_city",
]
