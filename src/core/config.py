"""Configuration helpers for API keys, timeouts and outbound request policy."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"Configuration value {name} must be numeric, got {raw!r}") from exc


@dataclass(frozen=True, slots=True)
class FetchPolicy:
    """Retry and pacing parameters for one outbound provider."""

    max_attempts: int = 3
    base_delay_s: float = 0.5
    max_delay_s: float = 8.0
    min_interval_s: float = 0.0
    default_retry_after_s: float = 5.0

    def backoff(self, attempt: int) -> float:
        """Delay before retrying after the given 1-based attempt."""

        return min(self.base_delay_s * (2 ** (attempt - 1)), self.max_delay_s)


LLM_FETCH_POLICY = FetchPolicy(base_delay_s=0.5, max_delay_s=4.0, min_interval_s=0.0)
AMADEUS_FETCH_POLICY = FetchPolicy(base_delay_s=1.0, max_delay_s=8.0, min_interval_s=0.5)
VIATOR_FETCH_POLICY = FetchPolicy(base_delay_s=2.0, max_delay_s=8.0, min_interval_s=1.0)


@dataclass(slots=True)
class ApiSettings:
    """Centralised container for the external service credentials and limits."""

    xai_api_key: Optional[str] = None
    llm_model: str = "grok-4-fast-reasoning"
    amadeus_api_key: Optional[str] = None
    amadeus_api_secret: Optional[str] = None
    amadeus_hostname: str = "test"
    viator_api_key: Optional[str] = None
    sentry_dsn: Optional[str] = None
    budget_timeout_s: float = 120.0
    budget_soft_timeout_s: float = 25.0
    schedule_timeout_s: float = 600.0
    llm_policy: FetchPolicy = field(default_factory=lambda: LLM_FETCH_POLICY)
    amadeus_policy: FetchPolicy = field(default_factory=lambda: AMADEUS_FETCH_POLICY)
    viator_policy: FetchPolicy = field(default_factory=lambda: VIATOR_FETCH_POLICY)

    @classmethod
    def from_env(cls) -> "ApiSettings":
        """Load settings from the process environment."""

        return cls(
            xai_api_key=os.getenv("XAI_API_KEY"),
            llm_model=os.getenv("LLM_MODEL", "grok-4-fast-reasoning"),
            amadeus_api_key=os.getenv("AMADEUS_API"),
            amadeus_api_secret=os.getenv("AMADEUS_SECRET"),
            amadeus_hostname=os.getenv("AMADEUS_HOSTNAME", "test"),
            viator_api_key=os.getenv("VIATOR_API_KEY"),
            sentry_dsn=os.getenv("SENTRY_DSN"),
            budget_timeout_s=_float_env("BUDGET_REQUEST_TIMEOUT_S", 120.0),
            budget_soft_timeout_s=_float_env("BUDGET_SOFT_TIMEOUT_S", 25.0),
            schedule_timeout_s=_float_env("SCHEDULE_REQUEST_TIMEOUT_S", 600.0),
        )

    def ensure(self, field: str) -> str:
        """Return the requested field and fail fast if it is missing."""

        value = getattr(self, field)
        if not value:
            raise RuntimeError(f"Missing configuration value: {field}")
        return value

    @property
    def has_amadeus(self) -> bool:
        return bool(self.amadeus_api_key and self.amadeus_api_secret)

    @property
    def has_viator(self) -> bool:
        return bool(self.viator_api_key)
