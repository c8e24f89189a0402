"""Viator partner API integration for activity inventory.

Public API:
    - ViatorClient: Async HTTP client for the Viator partner API
    - create_viator_client: Factory function to create the Viator client
    - ActivitySearchInput: Pydantic schema for free-text product search
    - product_to_activity: Product to Activity converter
"""
from src.services.viator.client import ViatorClient, create_viator_client, product_to_activity
from src.services.viator.schemas import ActivitySearchInput

__all__ = [
    "ViatorClient",
    "create_viator_client",
    "ActivitySearchInput",
    "product_to_activity",
]
