"""FastAPI surface for the travel budget and activity scheduling service."""
from __future__ import annotations

import os
# Load environment variables from .env file
from dotenv import load_dotenv

# Load .env file before any other imports that might need environment variables
load_dotenv()


from typing import Any, Dict
from fastapi import Body, FastAPI, HTTPException
import logging
from fastapi.middleware.cors import CORSMiddleware

from src.api.dependencies import lifespan, get_service_bundle
from src.api.schemas import (
    GeneratedActivityResponse,
    LocationsResponse,
    PlanActivitiesRequest,
    ScheduleRequest,
)
from src.core.errors import ActivityGenerationError, BudgetTimeoutError
from src.core.schemas import BudgetResponse, SchedulePlan
from src.data import AIRPORTS, CITIES
from src.workflows.activities import ActivityGenerationRequest

logger = logging.getLogger(__name__)

try:  # pragma: no cover - exercised through import side effects
    import sentry_sdk
except ImportError:  # pragma: no cover - only triggers in lean environments
    sentry_sdk = None  # type: ignore[assignment]
else:  # pragma: no cover - runtime configuration
    if os.getenv("SENTRY_DSN"):
        sentry_sdk.init(
            dsn=os.getenv("SENTRY_DSN"),
            enable_logs=True,
            send_default_pii=False,
            traces_sample_rate=1.0,
        )

app = FastAPI(title="Travel Budget API", version="0.1.0", lifespan=lifespan)

origins = [
    "http://localhost:3000",
    "http://localhost:3001",
    "http://localhost:5173",
]


app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.post("/budget/calculate", response_model=BudgetResponse)
async def calculate_budget(payload: Dict[str, Any] = Body(...)) -> BudgetResponse:
    """Aggregate a five-category, three-tier travel budget.

    Flights and hotels come from Amadeus when configured; the remaining
    categories (and flights/hotels without Amadeus) are estimated by the chat
    model. Any category whose source fails degrades to a zero-confidence
    default so the response always carries all five categories.

    Args:
        payload: Raw request body. Validated here rather than by FastAPI so
            that every invalid request is reported as a 400.

    Returns:
        BudgetResponse with ``requestDetails`` and the ``flights``, ``hotels``,
        ``localTransportation``, ``food`` and ``activities`` tier triples.

    Raises:
        HTTPException: 400 for invalid input, 504 when the request exceeds the
            hard timeout, 500 for configuration or unexpected errors.

    Example JSON payload:
        ```json
        {
            "departure": {"code": "JFK", "label": "New York (JFK)"},
            "destinations": [{"code": "PAR", "label": "Paris, France"}],
            "startDate": "2025-06-01",
            "endDate": "2025-06-08",
            "travelers": 2,
            "currency": "USD",
            "budget": 5000,
            "travelStyle": "moderate"
        }
        ```
    """

    logger.info("Budget calculation request received")
    logger.debug(f"Payload: {payload}")

    bundle = get_service_bundle()
    try:
        result = await bundle.calculate_budget(payload)
        logger.info("Budget calculation completed successfully")
    except BudgetTimeoutError as exc:
        logger.error(f"Budget calculation timed out: {str(exc)}")
        raise HTTPException(status_code=504, detail=str(exc)) from exc
    except RuntimeError as exc:
        logger.error(f"Runtime error during budget calculation: {str(exc)}")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except ValueError as exc:
        logger.error(f"Value error during budget calculation: {str(exc)}")
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.error(f"Unexpected error during budget calculation: {str(exc)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return result


@app.get("/budget/locations", response_model=LocationsResponse)
async def list_locations() -> LocationsResponse:
    """Supported destination cities and departure airports."""

    return LocationsResponse(cities=CITIES, airports=AIRPORTS)


@app.post("/activities/schedule", response_model=SchedulePlan)
async def schedule(payload: ScheduleRequest) -> SchedulePlan:
    """Schedule the supplied candidates and suggest budget/medium/premium itineraries."""

    logger.info(f"Schedule request received with {len(payload.candidates)} candidates")
    bundle = get_service_bundle()
    try:
        return bundle.schedule(payload.candidates, payload.preferences)
    except ValueError as exc:
        logger.error(f"Value error during scheduling: {str(exc)}")
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.error(f"Unexpected error during scheduling: {str(exc)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.post("/activities/plan", response_model=SchedulePlan)
async def plan_activities(payload: PlanActivitiesRequest) -> SchedulePlan:
    """Search activities for a destination, then rank, deduplicate and schedule them."""

    logger.info(f"Activity plan request for {payload.destination}, {payload.preferences.days} days")
    bundle = get_service_bundle()
    try:
        return await bundle.plan_activities(payload.destination, payload.preferences)
    except BudgetTimeoutError as exc:
        logger.error(f"Activity planning timed out: {str(exc)}")
        raise HTTPException(status_code=504, detail=str(exc)) from exc
    except RuntimeError as exc:
        logger.error(f"Runtime error during activity planning: {str(exc)}")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except ValueError as exc:
        logger.error(f"Value error during activity planning: {str(exc)}")
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.error(f"Unexpected error during activity planning: {str(exc)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(exc)) from exc


@app.post("/activities/generate", response_model=GeneratedActivityResponse)
async def generate_activity(payload: ActivityGenerationRequest) -> GeneratedActivityResponse:
    """Generate one replacement activity for a specific day and time slot."""

    logger.info(f"Activity generation request for {payload.destination} day {payload.day_number} {payload.time_slot}")
    bundle = get_service_bundle()
    try:
        activity = await bundle.generate_activity(payload)
    except ActivityGenerationError as exc:
        logger.warning(f"Activity generation produced no usable result: {str(exc)}")
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except RuntimeError as exc:
        logger.error(f"Runtime error during activity generation: {str(exc)}")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except Exception as exc:
        logger.error(f"Unexpected error during activity generation: {str(exc)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return GeneratedActivityResponse(activity=activity)


@app.get("/health")
async def health_check() -> Dict[str, str]:
    """Simple health endpoint used for readiness probes."""

    return {"status": "healthy", "service": "travel-budget-api"}
