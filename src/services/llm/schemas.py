from typing import Optional

from pydantic import BaseModel, Field


class CompletionRequest(BaseModel):
    """One prompt pair sent to the chat model."""

    system_prompt: str = Field(..., min_length=1)
    user_prompt: str = Field(..., min_length=1)
    model: Optional[str] = Field(None, description="Overrides the configured model when set")
    temperature: float = Field(0.1, ge=0, le=2)
    max_tokens: int = Field(4000, ge=1)


class CompletionResult(BaseModel):
    content: str
    model: Optional[str] = None
