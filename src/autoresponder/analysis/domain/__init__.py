"""
Analysis Domain Layer
=====================

Domain layer for ticket analysis.

Contains:
- Entities: SentimentResult, UrgencyResult, IntentResult,
  ConversationContext, AnalysisResult
- Rules: deterministic keyword/regex classifiers
- Prompts: AnalysisPromptBuilder for the model-backed classifiers
"""

from autoresponder.analysis.domain.entities import (
    SentimentResult,
    UrgencyResult,
    IntentResult,
    ConversationContext,
    AnalysisResult,
    clamp,
)
from autoresponder.analysis.domain.rules import (
    fallback_sentiment,
    fallback_urgency,
    fallback_intent,
    apply_priority_override,
    conversation_context,
    extract_key_topics,
    extract_questions,
    STOP_WORDS,
)
from autoresponder.analysis.domain.prompts import AnalysisPromptBuilder

__all__ = [
    "SentimentResult",
    "UrgencyResult",
    "IntentResult",
    "ConversationContext",
    "AnalysisResult",
    "clamp",
    "fallback_sentiment",
    "fallback_urgency",
    "fallback_intent",
    "apply_priority_override",
    "conversation_context",
    "extract_key_topics",
    "extract_questions",
    "STOP_WORDS",
    "AnalysisPromptBuilder",
]
