from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, Mapping, Optional, Union

from src.core.config import ApiSettings
from src.core.errors import BudgetTimeoutError
from src.core.schemas import Activity, BudgetRequest, BudgetResponse, SchedulePlan, TravelPreferences
from src.services import (
    AmadeusService,
    LLMClient,
    RetryingFetcher,
    ViatorClient,
    create_amadeus_client,
    create_chat_model,
    create_viator_client,
)
from src.workflows.activities import ActivityGenerationRequest, ActivityPlanner, plan_schedule
from src.workflows.budget import CategoryAggregator, compute_budget

logger = logging.getLogger(__name__)

REQUIRED_SETTINGS = [
    "xai_api_key",
]


def _ensure_configuration(settings: ApiSettings) -> None:
    missing = [field for field in REQUIRED_SETTINGS if not getattr(settings, field)]
    if missing:
        joined = ", ".join(missing)
        raise RuntimeError(
            f"Missing required environment variables for the budget service: {joined}"
        )


class ServiceBundle:
    """Container for the budget and activity workflows and their providers.

    One :class:`RetryingFetcher` is created per provider so that every request
    to that provider, from any endpoint, shares the same retry policy and
    rate limiter. Amadeus and Viator are optional; without them the chat model
    covers flights, hotels and activity search.

    Attributes:
        settings: API configuration with external service credentials
        llm: Chat model client used for estimates and activity ideas
        amadeus: Real-time flight and hotel search, when configured
        viator: Activity inventory search, when configured
        aggregator: Budget category aggregator
        planner: Activity search and scheduling
    """

    def __init__(self, settings: ApiSettings) -> None:
        _ensure_configuration(settings)
        self.settings = settings

        self.llm = LLMClient(
            create_chat_model(settings),
            fetcher=RetryingFetcher("llm", settings.llm_policy),
        )
        self.amadeus: Optional[AmadeusService] = None
        if settings.has_amadeus:
            self.amadeus = AmadeusService(
                create_amadeus_client(settings),
                fetcher=RetryingFetcher("amadeus", settings.amadeus_policy),
            )
        else:
            logger.warning("Amadeus credentials missing; flights and hotels will use LLM estimates")
        self.viator: Optional[ViatorClient] = None
        if settings.has_viator:
            self.viator = create_viator_client(
                settings,
                fetcher=RetryingFetcher("viator", settings.viator_policy),
            )
        else:
            logger.warning("Viator API key missing; activity search will use the LLM")

        self.aggregator = CategoryAggregator(
            self.llm,
            amadeus=self.amadeus,
            soft_timeout_s=settings.budget_soft_timeout_s,
        )
        self.planner = ActivityPlanner(self.llm, viator=self.viator)

    def __repr__(self) -> str:
        return (
            f"ServiceBundle(\n"
            f"  llm='{self.llm.model_name}',\n"
            f"  amadeus={'enabled' if self.amadeus else 'disabled'},\n"
            f"  viator={'enabled' if self.viator else 'disabled'},\n"
            f"  budget_timeout_s={self.settings.budget_timeout_s:g},\n"
            f"  schedule_timeout_s={self.settings.schedule_timeout_s:g}\n"
            f")"
        )

    async def close(self) -> None:
        if self.viator is not None:
            await self.viator.aclose()

    async def calculate_budget(self, payload: Union[BudgetRequest, Mapping[str, Any]]) -> BudgetResponse:
        return await compute_budget(payload, self.aggregator, timeout_s=self.settings.budget_timeout_s)

    def schedule(self, candidates: Iterable[Activity], preferences: TravelPreferences) -> SchedulePlan:
        return plan_schedule(list(candidates), preferences)

    async def plan_activities(self, destination: str, preferences: TravelPreferences) -> SchedulePlan:
        timeout_s = self.settings.schedule_timeout_s
        try:
            return await asyncio.wait_for(self.planner.plan(destination, preferences), timeout=timeout_s)
        except asyncio.TimeoutError:
            raise BudgetTimeoutError(timeout_s) from None

    async def generate_activity(self, request: ActivityGenerationRequest) -> Activity:
        return await self.planner.generate_activity(request)
