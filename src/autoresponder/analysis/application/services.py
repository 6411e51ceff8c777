"""
Analysis Application Services
=============================

Runs the four ticket classifiers concurrently and joins their results.

Each model-backed classifier falls back to its rule-based counterpart
when the model call fails or returns something unparsable, so
`AnalysisEngine.analyze` never raises.
"""

import asyncio
from typing import Any, Callable, List, Optional, Sequence, TypeVar

from autoresponder.analysis.domain import (
    AnalysisResult, AnalysisPromptBuilder, ConversationContext,
    SentimentResult, UrgencyResult, IntentResult,
    fallback_sentiment, fallback_urgency, fallback_intent,
    apply_priority_override, conversation_context,
)
from autoresponder.infrastructure.llm import ILLMClient, parse_json_content
from autoresponder.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)

ResultT = TypeVar("ResultT")

SENTIMENT_MAX_TOKENS = 200
URGENCY_MAX_TOKENS = 200
INTENT_MAX_TOKENS = 300


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def _label(value: Any) -> str:
    return str(value or "").strip().lower()


def _number(value: Any, default: float) -> Any:
    """Model-supplied number, or `default` only when the field is absent."""
    return default if value is None else value


class AnalysisEngine:
    """
    Sentiment, urgency, intent and conversation-context analysis.

    Classification calls use a cheaper analysis model at low temperature
    and request JSON output.
    """

    def __init__(
        self,
        llm_client: ILLMClient,
        model: str = "gpt-4o-mini",
        temperature: float = 0.3
    ):
        self._llm = llm_client
        self._model = model
        self._temperature = temperature

    async def analyze(
        self,
        text: str,
        subject: str,
        priority: Optional[str] = None,
        history: Optional[Sequence[str]] = None
    ) -> AnalysisResult:
        """Fan out the four classifiers and wait for all of them."""
        history = list(history or [])

        with log_latency(logger, "ticket_analysis", history_turns=len(history)):
            sentiment, urgency, intent, context = await asyncio.gather(
                self.analyze_sentiment(text, history),
                self.analyze_urgency(text, subject, priority, history),
                self.classify_intent(text, subject, history),
                self.analyze_context(history, text),
            )

        return AnalysisResult(
            sentiment=sentiment,
            urgency=urgency,
            intent=intent,
            conversation_context=context,
        )

    async def analyze_sentiment(self, text: str, history: Sequence[str]) -> SentimentResult:
        def build(data: dict) -> SentimentResult:
            return SentimentResult(
                sentiment=_label(data.get("sentiment")),
                confidence=_number(data.get("confidence"), 0.5),
                score=_number(data.get("score"), 0.0),
                emotions=[str(e) for e in _as_list(data.get("emotions"))],
            )

        return await self._classify(
            "sentiment",
            AnalysisPromptBuilder.sentiment_messages(text, history),
            SENTIMENT_MAX_TOKENS,
            build,
            lambda: fallback_sentiment(text),
        )

    async def analyze_urgency(
        self,
        text: str,
        subject: str,
        priority: Optional[str],
        history: Sequence[str]
    ) -> UrgencyResult:
        def build(data: dict) -> UrgencyResult:
            result = UrgencyResult(
                level=_label(data.get("level")),
                confidence=_number(data.get("confidence"), 0.5),
                factors=[str(f) for f in _as_list(data.get("factors"))],
                score=_number(data.get("score"), 0.5),
            )
            return apply_priority_override(result, priority)

        return await self._classify(
            "urgency",
            AnalysisPromptBuilder.urgency_messages(text, subject, priority, history),
            URGENCY_MAX_TOKENS,
            build,
            lambda: fallback_urgency(text, subject, priority),
        )

    async def classify_intent(self, text: str, subject: str, history: Sequence[str]) -> IntentResult:
        def build(data: dict) -> IntentResult:
            return IntentResult(
                intent=_label(data.get("intent")),
                confidence=_number(data.get("confidence"), 0.5),
                sub_intents=[str(s) for s in _as_list(data.get("sub_intents"))],
                entities=_as_list(data.get("entities")),
            )

        return await self._classify(
            "intent",
            AnalysisPromptBuilder.intent_messages(text, subject, history),
            INTENT_MAX_TOKENS,
            build,
            lambda: fallback_intent(text, subject),
        )

    async def analyze_context(self, history: Sequence[str], text: str) -> ConversationContext:
        if not history:
            return ConversationContext()
        return conversation_context(history, text)

    async def _classify(
        self,
        operation: str,
        messages: List[dict],
        max_tokens: int,
        build: Callable[[dict], ResultT],
        fallback: Callable[[], ResultT]
    ) -> ResultT:
        try:
            response = await self._llm.chat_completion(
                messages=messages,
                model=self._model,
                temperature=self._temperature,
                max_tokens=max_tokens,
                json_response=True,
                operation=operation,
            )
            data = parse_json_content(response.content)
            if not isinstance(data, dict):
                raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
            return build(data)
        except Exception as e:
            logger.warning(
                "Classifier fell back to rules",
                extra={"operation": operation, "error": str(e)}
            )
            return fallback()
