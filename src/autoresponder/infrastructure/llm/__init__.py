"""
LLM Client Infrastructure
==========================

Chat-completion client used by the analysis engine and the response
generator.

`OpenAILLMClient` talks to the OpenAI API; `MockLLMClient` answers with
fixed, well-formed payloads so the service runs without a key. Callers
only see `ILLMClient` and `ChatCompletionResult`.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Any, List, Optional

from openai import AsyncOpenAI

from autoresponder.config import settings
from autoresponder.core import LLMException, ConfigurationException
from autoresponder.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class ILLMClient(ABC):
    """
    Interface for LLM client operations.

    Following Interface Segregation Principle - only methods
    actually needed by the application are defined.
    """

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        json_response: bool = False,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""

    async def close(self) -> None:
        """Release any underlying connections."""


def parse_json_content(content: Optional[str]) -> Any:
    """
    Parse JSON from model output, tolerating ```json fences.

    Raises:
        ValueError: If the content is empty or not JSON
    """
    if not content:
        raise ValueError("Empty model response")

    text = content.strip()
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0].strip()
    elif "```" in text:
        text = text.split("```")[1].split("```")[0].strip()

    return json.loads(text)


class OpenAILLMClient(ILLMClient):
    """
    OpenAI client implementation for GPT models.

    Provides async wrapper around OpenAI SDK operations.
    """

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key or settings.openai_api_key
        if not self._api_key:
            raise ConfigurationException("OpenAI API key not configured")

        self._client = AsyncOpenAI(api_key=self._api_key)
        self._default_model = settings.ai_model

    async def chat_completion(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        json_response: bool = False,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion using OpenAI GPT.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model name (defaults to the configured drafting model)
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate
            json_response: Ask the API for a JSON object response
            operation: Operation name for logging (sentiment, urgency, draft...)

        Returns:
            ChatCompletionResult with generated text

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()
        model_name = model or self._default_model

        request: dict = {
            "model": model_name,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_response:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**request)
        except Exception as e:
            raise LLMException(f"Chat completion failed: {str(e)}")

        latency_ms = int((time.perf_counter() - start_time) * 1000)

        content = response.choices[0].message.content or ""
        usage = response.usage
        prompt_tokens = usage.prompt_tokens if usage else 0
        completion_tokens = usage.completion_tokens if usage else 0

        logger.info(
            "LLM call completed",
            extra={
                "operation": operation,
                "model": response.model or model_name,
                "tokens_used": prompt_tokens + completion_tokens,
                "latency_ms": latency_ms,
            }
        )

        return ChatCompletionResult(
            content=content,
            model=response.model or model_name,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=latency_ms
        )

    async def close(self) -> None:
        await self._client.close()


class MockLLMClient(ILLMClient):
    """
    Mock LLM client for local runs and tests.

    Returns predictable responses without calling external APIs.
    """

    async def chat_completion(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        json_response: bool = False,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Return mock response based on operation type."""
        if operation == "sentiment":
            content = json.dumps({
                "sentiment": "neutral", "confidence": 0.7, "score": 0.0, "emotions": []
            })
        elif operation == "urgency":
            content = json.dumps({
                "level": "medium", "confidence": 0.7, "factors": ["Mock analysis"], "score": 0.5
            })
        elif operation == "intent":
            content = json.dumps({
                "intent": "question", "confidence": 0.7, "sub_intents": [], "entities": []
            })
        else:
            content = (
                "Thank you for reaching out. We have received your request and "
                "our team is looking into it. We will follow up with next steps shortly."
            )

        return ChatCompletionResult(
            content=content,
            model=model or "mock-model",
            prompt_tokens=100,
            completion_tokens=len(content.split()),
            latency_ms=1
        )


def build_llm_client() -> ILLMClient:
    """Pick the LLM client for this process from settings."""
    if settings.mock_llm or not settings.openai_api_key:
        logger.warning("Using mock LLM client", extra={"mock_llm": settings.mock_llm})
        return MockLLMClient()
    return OpenAILLMClient(settings.openai_api_key)


__all__ = [
    "ChatCompletionResult",
    "ILLMClient",
    "OpenAILLMClient",
    "MockLLMClient",
    "parse_json_content",
    "build_llm_client",
]
