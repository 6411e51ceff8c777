"""
Rule-Based Classifiers
======================

Deterministic keyword/regex classifiers. They back up the model-backed
classifiers and build the conversation context, which never calls a
model. None of these functions raise.
"""

import re
from collections import Counter
from typing import List, Optional, Sequence, Tuple

from autoresponder.config import (
    SentimentLabel, UrgencyLevel, IntentType, TicketPriority, ConversationStage
)
from autoresponder.analysis.domain.entities import (
    SentimentResult, UrgencyResult, IntentResult, ConversationContext, clamp
)
from autoresponder.tickets.domain.lifecycle import stage_for_turn

FALLBACK_CONFIDENCE = 0.6
NO_MATCH_CONFIDENCE = 0.3

NEGATIVE_WORDS = (
    "terrible", "awful", "horrible", "worst", "hate",
    "angry", "furious", "disappointed", "frustrated",
)
POSITIVE_WORDS = (
    "great", "excellent", "amazing", "love", "thank",
    "appreciate", "wonderful", "fantastic",
)
URGENT_WORDS = ("urgent", "asap", "immediately", "critical", "emergency", "broken", "down")

CRITICAL_WORDS = (
    "down", "broken", "crash", "emergency", "critical", "urgent",
    "asap", "immediately", "not working", "outage",
)
HIGH_WORDS = ("important", "soon", "quickly", "issue", "problem", "error", "failed")
LOW_WORDS = ("question", "wondering", "curious", "information", "general")

# Order matters: ties keep the earlier intent
INTENT_PATTERNS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (IntentType.QUESTION, (r"how do", r"what is", r"can you", r"is it possible", r"\?")),
    (IntentType.COMPLAINT, (r"not working", r"broken", r"terrible", r"disappointed", r"unhappy", r"issue")),
    (IntentType.REQUEST, (r"please", r"can you", r"would you", r"i need", r"i want")),
    (IntentType.COMPLIMENT, (r"thank", r"great", r"love", r"excellent", r"amazing")),
    (IntentType.BUG_REPORT, (r"bug", r"error", r"crash", r"glitch", r"not working")),
    (IntentType.FEATURE_REQUEST, (r"feature", r"add", r"suggest", r"would be nice")),
    (IntentType.REFUND, (r"refund", r"money back", r"cancel", r"return")),
    (IntentType.TECHNICAL_SUPPORT, (r"help", r"support", r"troubleshoot", r"fix")),
    (IntentType.ACCOUNT_ISSUE, (r"account", r"login", r"password", r"access")),
    (IntentType.BILLING, (r"billing", r"charge", r"payment", r"invoice", r"subscription")),
)
_COMPILED_INTENTS = tuple(
    (intent, tuple(re.compile(p, re.IGNORECASE) for p in patterns))
    for intent, patterns in INTENT_PATTERNS
)

FOLLOW_UP_MARKERS = ("?", "please", "can you", "would you")

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "is", "are", "was", "were", "be", "been", "have", "has", "had",
    "do", "does", "did", "will", "would", "could", "should", "may", "might", "can",
    "this", "that", "these", "those", "i", "you", "he", "she", "it", "we", "they",
})

QUESTION_PATTERN = re.compile(
    r"(?:how|what|when|where|why|who|can|will|is|are|do|does|did)\s+[^?.!]+[?.!]",
    re.IGNORECASE,
)
_WORD_SPLIT = re.compile(r"\W+")


def _count(text: str, words: Sequence[str]) -> int:
    return sum(1 for word in words if word in text)


def fallback_sentiment(text: str) -> SentimentResult:
    lowered = text.lower()
    negative = _count(lowered, NEGATIVE_WORDS)
    positive = _count(lowered, POSITIVE_WORDS)
    urgent = _count(lowered, URGENT_WORDS)

    label, score = SentimentLabel.NEUTRAL, 0.0
    if urgent > 0 and negative > 0:
        label, score = SentimentLabel.ANGRY, -0.8
    elif negative > positive:
        label = SentimentLabel.FRUSTRATED if negative > 2 else SentimentLabel.NEGATIVE
        score = -0.5 - negative * 0.1
    elif positive > negative:
        label, score = SentimentLabel.POSITIVE, 0.5 + positive * 0.1

    return SentimentResult(
        sentiment=label,
        confidence=FALLBACK_CONFIDENCE,
        score=clamp(score, -1.0, 1.0),
        emotions=[],
    )


def apply_priority_override(result: UrgencyResult, priority: Optional[str]) -> UrgencyResult:
    """Declared ticket priority puts a floor under the urgency."""
    if priority == TicketPriority.URGENT:
        result.level = UrgencyLevel.CRITICAL
        result.score = max(result.score, 0.95)
        result.factors.append("Ticket marked as urgent")
    elif priority == TicketPriority.HIGH:
        if result.level != UrgencyLevel.CRITICAL:
            result.level = UrgencyLevel.HIGH
        result.score = max(result.score, 0.7)
        result.factors.append("Ticket marked as high priority")
    return result


def fallback_urgency(text: str, subject: str, priority: Optional[str] = None) -> UrgencyResult:
    lowered = f"{text} {subject}".lower()
    critical = _count(lowered, CRITICAL_WORDS)
    high = _count(lowered, HIGH_WORDS)
    low = _count(lowered, LOW_WORDS)

    factors: List[str] = []
    level, score = UrgencyLevel.MEDIUM, 0.5
    if critical > 0:
        level, score = UrgencyLevel.CRITICAL, 0.9
        factors.append("Contains critical keywords")
    elif high > low:
        level, score = UrgencyLevel.HIGH, 0.7
        factors.append("Contains urgency indicators")
    elif low > high:
        level, score = UrgencyLevel.LOW, 0.3
        factors.append("Appears to be informational")

    result = UrgencyResult(level=level, confidence=FALLBACK_CONFIDENCE, factors=factors, score=score)
    return apply_priority_override(result, priority)


def fallback_intent(text: str, subject: str) -> IntentResult:
    lowered = f"{text} {subject}".lower()

    best, best_matches = IntentType.OTHER, 0
    for intent, patterns in _COMPILED_INTENTS:
        matches = sum(1 for pattern in patterns if pattern.search(lowered))
        if matches > best_matches:
            best, best_matches = intent, matches

    return IntentResult(
        intent=best,
        confidence=FALLBACK_CONFIDENCE if best_matches > 0 else NO_MATCH_CONFIDENCE,
    )


def extract_key_topics(texts: Sequence[str], limit: int = 5) -> List[str]:
    """Most frequent content words (length > 3, stop-words excluded)."""
    words = _WORD_SPLIT.split(" ".join(texts).lower())
    counts = Counter(w for w in words if len(w) > 3 and w not in STOP_WORDS)
    # most_common keeps first-seen order among equal counts
    return [word for word, _ in counts.most_common(limit)]


def extract_questions(message: str, limit: int = 3) -> List[str]:
    return [match.group(0) for match in QUESTION_PATTERN.finditer(message)][:limit]


def conversation_context(history: Sequence[str], message: str) -> ConversationContext:
    turn_count = len(history) + 1
    stage = stage_for_turn(turn_count)

    lowered = message.lower()
    requires_follow_up = (
        any(marker in lowered for marker in FOLLOW_UP_MARKERS)
        or stage == ConversationStage.CLARIFICATION
    )

    return ConversationContext(
        turn_count=turn_count,
        stage=stage,
        requires_follow_up=requires_follow_up,
        key_topics=extract_key_topics([*history, message]),
        unresolved_questions=extract_questions(message),
    )
