import logging
from typing import Any, Dict

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_xai import ChatXAI

from src.core.config import ApiSettings
from src.services.fetcher import RetryingFetcher
from src.services.llm.schemas import CompletionRequest, CompletionResult

logger = logging.getLogger(__name__)

DEFAULT_LLM_TIMEOUT_S = 90.0


def create_chat_model(settings: ApiSettings) -> ChatXAI:
    """Instantiate the chat model.

    SDK-level retries are disabled so the provider fetcher is the only place
    that retries and paces requests.
    """

    return ChatXAI(
        model=settings.llm_model,
        temperature=0.1,
        api_key=settings.ensure("xai_api_key"),
        max_retries=0,
        timeout=DEFAULT_LLM_TIMEOUT_S,
    )


def _message_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(str(part.get("text") or ""))
        return "".join(parts)
    return "" if content is None else str(content)


class LLMClient:
    """Sends completion requests to the chat model through the provider fetcher."""

    def __init__(self, llm: BaseChatModel, *, fetcher: RetryingFetcher) -> None:
        self.llm = llm
        self._fetcher = fetcher

    @property
    def model_name(self) -> str:
        return getattr(self.llm, "model_name", None) or getattr(self.llm, "model", None) or type(self.llm).__name__

    async def complete(self, request: CompletionRequest, *, label: str = "completion") -> CompletionResult:
        messages = [SystemMessage(content=request.system_prompt), HumanMessage(content=request.user_prompt)]
        kwargs: Dict[str, Any] = {"temperature": request.temperature, "max_tokens": request.max_tokens}
        if request.model:
            kwargs["model"] = request.model

        async def _operation():
            return await self.llm.ainvoke(messages, **kwargs)

        message = await self._fetcher.call(_operation, label=label)
        content = _message_text(getattr(message, "content", message))
        logger.debug("LLM %s returned %s characters", label, len(content))
        return CompletionResult(content=content, model=request.model or self.model_name)
