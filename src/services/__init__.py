"""External service integrations for travel budgeting.

This package provides the outbound collaborators used by the budget and
activity workflows:

- Fetcher: Retrying, rate-limited execution shared by every provider call
- Amadeus: Real-time flight and hotel offers
- Viator: Activity and tour inventory
- LLM: Chat model completions for category estimates and activity ideas

Each service module exports:
    - create_*_client / create_chat_model: Factory using ApiSettings
    - Input schemas: Pydantic models for request parameters

Example Usage:
    >>> from src.core.config import ApiSettings
    >>> from src.services import RetryingFetcher, AmadeusService, create_amadeus_client
    >>>
    >>> settings = ApiSettings.from_env()
    >>> fetcher = RetryingFetcher("amadeus", settings.amadeus_policy)
    >>> service = AmadeusService(create_amadeus_client(settings), fetcher=fetcher)
"""

# Retry and pacing
from src.services.fetcher import FetchError, RateLimiter, RetryingFetcher

# Amadeus flights and hotels
from src.services.amadeus import (
    AmadeusApiError,
    AmadeusService,
    create_amadeus_client,
    FlightSearchInput,
    HotelSearchInput,
)

# Viator activities
from src.services.viator import (
    ViatorClient,
    create_viator_client,
    ActivitySearchInput,
)

# Chat model
from src.services.llm import (
    LLMClient,
    create_chat_model,
    CompletionRequest,
    CompletionResult,
)

__all__ = [
    # Fetcher
    "FetchError",
    "RateLimiter",
    "RetryingFetcher",
    # Amadeus
    "AmadeusApiError",
    "AmadeusService",
    "create_amadeus_client",
    "FlightSearchInput",
    "HotelSearchInput",
    # Viator
    "ViatorClient",
    "create_viator_client",
    "ActivitySearchInput",
    # LLM
    "LLMClient",
    "create_chat_model",
    "CompletionRequest",
    "CompletionResult",
]
