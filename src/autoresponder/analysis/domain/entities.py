"""
Analysis Domain Entities
========================

Value objects produced by the analysis engine. Constructors clamp
scores and confidences into their documented ranges so no classifier,
model-backed or not, can hand out-of-range numbers downstream.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List

from autoresponder.config import (
    ConversationStage, SentimentLabel, UrgencyLevel, IntentType,
    SENTIMENT_LABELS, URGENCY_LEVELS, INTENT_TYPES
)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class SentimentResult:
    sentiment: str = SentimentLabel.NEUTRAL
    confidence: float = 0.5
    score: float = 0.0
    emotions: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.sentiment not in SENTIMENT_LABELS:
            self.sentiment = SentimentLabel.NEUTRAL
        self.confidence = clamp(float(self.confidence), 0.0, 1.0)
        self.score = clamp(float(self.score), -1.0, 1.0)


@dataclass
class UrgencyResult:
    level: str = UrgencyLevel.MEDIUM
    confidence: float = 0.5
    factors: List[str] = field(default_factory=list)
    score: float = 0.5

    def __post_init__(self):
        if self.level not in URGENCY_LEVELS:
            self.level = UrgencyLevel.MEDIUM
        self.confidence = clamp(float(self.confidence), 0.0, 1.0)
        self.score = clamp(float(self.score), 0.0, 1.0)


@dataclass
class IntentResult:
    intent: str = IntentType.OTHER
    confidence: float = 0.3
    sub_intents: List[str] = field(default_factory=list)
    entities: List[Any] = field(default_factory=list)

    def __post_init__(self):
        if self.intent not in INTENT_TYPES:
            self.intent = IntentType.OTHER
        self.confidence = clamp(float(self.confidence), 0.0, 1.0)


@dataclass
class ConversationContext:
    turn_count: int = 1
    stage: str = ConversationStage.INITIAL
    requires_follow_up: bool = False
    key_topics: List[str] = field(default_factory=list)
    unresolved_questions: List[str] = field(default_factory=list)


@dataclass
class AnalysisResult:
    """Joined output of the four classifiers."""
    sentiment: SentimentResult
    urgency: UrgencyResult
    intent: IntentResult
    conversation_context: ConversationContext

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
