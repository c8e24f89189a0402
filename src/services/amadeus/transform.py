"""Conversion of raw Amadeus offers into priced references."""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote_plus

from pydantic import ValidationError

from src.core.schemas import FlightReference, HotelReference, Price
from src.core.tiers import classify

logger = logging.getLogger(__name__)

_SEGMENT_DURATION = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?")

AIRCRAFT_CODES: Dict[str, str] = {
    "319": "Airbus A319",
    "320": "Airbus A320",
    "321": "Airbus A321",
    "32N": "Airbus A320neo",
    "32Q": "Airbus A321neo",
    "332": "Airbus A330-200",
    "333": "Airbus A330-300",
    "359": "Airbus A350-900",
    "388": "Airbus A380-800",
    "737": "Boeing 737",
    "738": "Boeing 737-800",
    "7M8": "Boeing 737 MAX 8",
    "744": "Boeing 747-400",
    "763": "Boeing 767-300",
    "772": "Boeing 777-200",
    "77W": "Boeing 777-300ER",
    "788": "Boeing 787-8 Dreamliner",
    "789": "Boeing 787-9 Dreamliner",
    "E90": "Embraer E190",
}


def total_duration(segments: List[Mapping[str, Any]]) -> str:
    """Sum segment ``PT#H#M`` durations into one ``PT{h}H{m}M`` string."""

    minutes = 0
    for segment in segments:
        match = _SEGMENT_DURATION.match(segment.get("duration") or "")
        if match:
            minutes += int(match.group(1) or 0) * 60 + int(match.group(2) or 0)
    return f"PT{minutes // 60}H{minutes % 60}M"


def kayak_url(origin: str, destination: str, departure: str, inbound: Optional[str] = None) -> str:
    url = f"https://www.kayak.com/flights/{origin}-{destination}/{departure[:10]}"
    if inbound:
        url = f"{url}/{inbound[:10]}"
    return url


def booking_search_url(name: str, location: Optional[str] = None) -> str:
    query = " ".join(part for part in (name, location) if part)
    return f"https://www.booking.com/search.html?ss={quote_plus(query)}"


def transform_flight_offer(
    offer: Mapping[str, Any],
    dictionaries: Mapping[str, Any],
    *,
    travelers: int,
    currency: str,
) -> Optional[FlightReference]:
    """Build a :class:`FlightReference` from one offer, or ``None`` if malformed."""

    try:
        itineraries = offer["itineraries"]
        outbound_segments = itineraries[0]["segments"]
        first, last_outbound = outbound_segments[0], outbound_segments[-1]
        inbound_segments = itineraries[1]["segments"] if len(itineraries) > 1 else []
        price_info = offer["price"]
        amount = float(price_info["total"])

        carrier = first.get("carrierCode", "")
        carriers = dictionaries.get("carriers") or {}
        validating = offer.get("validatingAirlineCodes") or [carrier]
        airline = carriers.get(carrier) or validating[0] or carrier

        cabin = None
        pricings = offer.get("travelerPricings") or []
        if pricings and pricings[0].get("fareDetailsBySegment"):
            cabin = pricings[0]["fareDetailsBySegment"][0].get("cabin")

        origin = first["departure"]["iataCode"]
        destination = last_outbound["arrival"]["iataCode"]
        departure_at = first["departure"].get("at", "")
        arrival_at = last_outbound["arrival"].get("at")
        inbound_at = inbound_segments[-1]["arrival"].get("at") if inbound_segments else None
        inbound_departure = inbound_segments[0]["departure"].get("at") if inbound_segments else None
        aircraft_code = (first.get("aircraft") or {}).get("code")
        duration = total_duration(outbound_segments)
    except (KeyError, IndexError, TypeError, ValueError, AttributeError) as exc:
        logger.warning("Skipping malformed Amadeus flight offer %s: %s", offer.get("id"), exc)
        return None

    arrow = "<->" if inbound_segments else "->"
    aircraft = AIRCRAFT_CODES.get(aircraft_code or "") or (dictionaries.get("aircraft") or {}).get(aircraft_code or "")

    try:
        return FlightReference(
            name=f"{airline} {carrier}{first.get('number', '')}".strip(),
            airline=airline,
            price=Price(
                amount=amount,
                currency=price_info.get("currency") or currency,
                number_of_travelers=travelers,
            ),
            route=f"{origin} {arrow} {destination}",
            outbound=departure_at,
            inbound=inbound_at or arrival_at,
            duration=duration,
            layovers=len(outbound_segments) - 1,
            flight_number=f"{carrier}{first.get('number', '')}",
            cabin_class=cabin,
            aircraft=aircraft or aircraft_code,
            reference_url=kayak_url(origin, destination, departure_at, inbound_departure),
            provider="Amadeus",
            tier=classify("flights", amount, cabin_class=cabin),
        )
    except ValidationError as exc:
        logger.warning("Skipping Amadeus flight offer %s due to validation error: %s", offer.get("id"), exc)
        return None


def transform_hotel_offer(
    item: Mapping[str, Any],
    *,
    nights: int,
    currency: str,
    location: Optional[str] = None,
) -> Optional[HotelReference]:
    """Build a :class:`HotelReference` priced per night from the cheapest offer."""

    hotel = item.get("hotel") or {}
    priced = []
    for offer in item.get("offers") or []:
        try:
            priced.append((float(offer["price"]["total"]), offer))
        except (KeyError, TypeError, ValueError):
            continue
    if not hotel.get("name") or not priced:
        logger.debug("Skipping hotel without name or priced offers: %s", hotel.get("hotelId"))
        return None

    total, offer = min(priced, key=lambda pair: pair[0])
    nightly = round(total / max(nights, 1), 2)
    name = str(hotel["name"]).title()
    room = offer.get("room") or {}
    policies = offer.get("policies") or {}
    try:
        return HotelReference(
            name=name,
            hotel_id=hotel.get("hotelId"),
            price=Price(amount=nightly, currency=(offer.get("price") or {}).get("currency") or currency),
            location=location or hotel.get("cityCode"),
            hotel_type=(room.get("typeEstimated") or {}).get("category"),
            details=(room.get("description") or {}).get("text"),
            check_in=offer.get("checkInDate"),
            check_out=offer.get("checkOutDate"),
            amenities=[str(policies["paymentType"])] if policies.get("paymentType") else [],
            reference_url=booking_search_url(name, location or hotel.get("cityCode")),
            provider="Amadeus",
            tier=classify("hotels", nightly),
        )
    except ValidationError as exc:
        logger.warning("Skipping Amadeus hotel %s due to validation error: %s", hotel.get("hotelId"), exc)
        return None
