from typing import List

from pydantic import Field

from src.core.schemas import Activity, CamelModel, TravelPreferences
from src.data.locations import Airport, City


class ScheduleRequest(CamelModel):
    """Candidates and preferences for the schedule endpoint."""

    candidates: List[Activity] = Field(default_factory=list)
    preferences: TravelPreferences = Field(default_factory=TravelPreferences)


class PlanActivitiesRequest(CamelModel):
    """Search-and-schedule request for one destination."""

    destination: str = Field(..., min_length=1, description="Destination label, e.g. 'Paris, France'")
    preferences: TravelPreferences = Field(default_factory=TravelPreferences)


class GeneratedActivityResponse(CamelModel):
    activity: Activity


class LocationsResponse(CamelModel):
    """Supported destination cities and departure airports."""

    cities: List[City]
    airports: List[Airport]
