from typing import Optional

from pydantic import BaseModel, Field

from src.core.types import ISO4217


class ActivitySearchInput(BaseModel):
    """Free-text product search parameters for the Viator partner API."""

    searchTerm: str = Field(..., min_length=1, description="Destination or activity keywords")
    currency: ISO4217 = Field("USD", description="Currency for returned prices")
    limit: int = Field(20, ge=1, le=50, description="Number of products to return")
    minRating: Optional[float] = Field(3.5, ge=0, le=5, description="Minimum average rating")
    location: Optional[str] = Field(None, description="Location label applied to results without an address")

    def to_payload(self) -> dict:
        payload = {
            "searchTerm": self.searchTerm,
            "searchTypes": [
                {"searchType": "PRODUCTS", "pagination": {"offset": 0, "limit": self.limit}},
            ],
            "currency": self.currency,
            "productSorting": {"sortBy": "POPULARITY", "sortOrder": "DESC"},
        }
        if self.minRating is not None:
            payload["productFiltering"] = {"rating": {"minimum": self.minRating}}
        return payload
