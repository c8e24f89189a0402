"""Request-level failures that are allowed to reach the caller."""
from __future__ import annotations


class InvalidRequestError(ValueError):
    """Raised when a budget or schedule request is missing or has unusable fields."""


class BudgetTimeoutError(TimeoutError):
    """Raised when a request exceeds its hard wall-clock limit."""

    def __init__(self, timeout_s: float) -> None:
        super().__init__(
            f"Request timed out after {timeout_s:g}s. Please try again with fewer destinations or a shorter trip."
        )
        self.timeout_s = timeout_s


class ActivityGenerationError(RuntimeError):
    """Raised when the model cannot produce a usable replacement activity."""
