"""Shared type aliases used across the budget and scheduling modules."""
from __future__ import annotations

from typing import Annotated, Literal

from pydantic import Field, StringConstraints

NonNegMoney = Annotated[float, Field(ge=0)]
Rating = Annotated[float, Field(ge=0, le=5)]
Confidence = Annotated[float, Field(ge=0, le=1)]
ISO4217 = Annotated[str, Field(pattern=r"^[A-Z]{3}$")]
IataCode = Annotated[
    str,
    StringConstraints(
        pattern=r"^[A-Z0-9]{3}$",
        strip_whitespace=True,
        to_upper=True,
    ),
]
TimeHHMM = Annotated[
    str,
    StringConstraints(
        pattern=r"^(?:[01]\d|2[0-3]):[0-5]\d$",
        strip_whitespace=True,
    ),
]

PriceTier = Literal["budget", "medium", "premium"]
TimeSlot = Literal["morning", "afternoon", "evening"]
TravelStyle = Literal["budget", "moderate", "luxury"]
Category = Literal["flights", "hotels", "localTransportation", "food", "activities"]
CabinClass = Literal["ECONOMY", "PREMIUM_ECONOMY", "BUSINESS", "FIRST"]

TIERS: tuple[PriceTier, ...] = ("budget", "medium", "premium")
TIME_SLOTS: tuple[TimeSlot, ...] = ("morning", "afternoon", "evening")
CATEGORIES: tuple[Category, ...] = (
    "flights",
    "hotels",
    "localTransportation",
    "food",
    "activities",
)
CABIN_CLASSES: tuple[CabinClass, ...] = ("ECONOMY", "PREMIUM_ECONOMY", "BUSINESS", "FIRST")
