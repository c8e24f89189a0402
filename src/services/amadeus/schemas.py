from datetime import date
from typing import Optional, Literal
from pydantic import BaseModel, Field, field_serializer, model_validator
from src.core.types import ISO4217

class FlightSearchInput(BaseModel):
    """Input schema mirroring the Amadeus flight offers endpoint."""

    originLocationCode: str = Field(..., description="Origin airport/city IATA code")
    destinationLocationCode: str = Field(..., description="Destination airport/city IATA code")
    departureDate: date = Field(..., description="Outbound date (YYYY-MM-DD)")
    returnDate: Optional[date] = Field(None, description="Return date for round trip")
    adults: int = Field(1, ge=1, le=9, description="Number of adults")
    travelClass: Optional[Literal["ECONOMY", "PREMIUM_ECONOMY", "BUSINESS", "FIRST"]] = Field(
        None,
        description="Cabin class: ECONOMY, PREMIUM_ECONOMY, BUSINESS, FIRST",
    )
    currencyCode: Optional[ISO4217] = Field("USD", description="Currency code")
    max: int = Field(25, ge=1, le=250, description="Number of flight offers to return")

    @field_serializer("departureDate", "returnDate", when_used="json")
    def _serialize_dates(self, value: Optional[date], _info) -> Optional[str]:
        if value is None:
            return None
        return value.strftime("%Y-%m-%d")


class HotelSearchInput(BaseModel):
    """Parameters for the two-step Amadeus hotel search (hotels by city, then offers)."""

    cityCode: str = Field(..., min_length=3, max_length=3, description="IATA city code")
    checkInDate: date = Field(..., description="Check-in date (YYYY-MM-DD)")
    checkOutDate: date = Field(..., description="Check-out date (YYYY-MM-DD)")
    adults: int = Field(1, ge=1, le=9, description="Guests per room")
    roomQuantity: int = Field(1, ge=1, le=9, description="Number of rooms")
    currency: Optional[ISO4217] = Field("USD", description="Currency code")
    maxHotels: int = Field(20, ge=1, le=50, description="Hotels to price from the city list")

    @model_validator(mode="after")
    def _check_dates(self) -> "HotelSearchInput":
        if self.checkOutDate <= self.checkInDate:
            raise ValueError("checkOutDate must be after checkInDate")
        return self

    @property
    def nights(self) -> int:
        return (self.checkOutDate - self.checkInDate).days

    @field_serializer("checkInDate", "checkOutDate", when_used="json")
    def _serialize_dates(self, value: date, _info) -> str:
        return value.strftime("%Y-%m-%d")
