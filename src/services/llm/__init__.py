"""Chat model access for category estimates and activity generation.

Public API:
    - LLMClient: Sends prompt pairs through the provider fetcher
    - create_chat_model: Factory function to create the configured chat model
    - CompletionRequest / CompletionResult: Pydantic schemas for one completion
"""
from src.services.llm.client import LLMClient, create_chat_model
from src.services.llm.schemas import CompletionRequest, CompletionResult

__all__ = [
    "LLMClient",
    "create_chat_model",
    "CompletionRequest",
    "CompletionResult",
]
