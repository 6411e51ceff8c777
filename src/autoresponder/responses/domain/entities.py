"""
Response Domain Entities
========================

Value objects and pure helpers for drafting replies: knowledge entries,
the generated draft, confidence scoring and cost accounting.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

KNOWLEDGE_PREVIEW_CHARS = 500
MAX_KNOWLEDGE_ENTRIES = 5
MAX_SEARCH_KEYWORDS = 10

HEDGE_PHRASES = (
    "i'm not sure",
    "i don't know",
    "i'm unable to",
    "i cannot",
    "unfortunately, i",
)

# USD per 1M tokens (input, output)
MODEL_PRICING: Dict[str, Tuple[float, float]] = {
    "gpt-4": (30.0, 60.0),
    "gpt-4-turbo": (10.0, 30.0),
    "gpt-4o": (5.0, 15.0),
    "gpt-4o-mini": (0.15, 0.6),
    "gpt-3.5-turbo": (0.5, 1.5),
}
DEFAULT_PRICING_MODEL = "gpt-3.5-turbo"

KEYWORD_STOP_WORDS = frozenset({
    "the", "and", "for", "are", "but", "not", "you", "all", "can", "her", "was",
    "one", "our", "out", "day", "get", "has", "him", "his", "how", "its", "may",
    "new", "now", "old", "see", "two", "who", "did", "she", "use", "way",
    "many", "then", "them", "these", "some", "would", "make", "like", "into", "time", "have", "this", "that", "with", "from", "they", "been",
    "what", "when", "your", "there", "their", "will", "about", "which", "could",
    "should", "please", "thanks", "thank", "hello", "regards",
})


@dataclass(frozen=True)
class KnowledgeEntry:
    """A knowledge-base article as seen by the prompt builder."""
    id: str
    title: str
    content: str
    category: Optional[str] = None

    @property
    def preview(self) -> str:
        if len(self.content) <= KNOWLEDGE_PREVIEW_CHARS:
            return self.content
        return self.content[:KNOWLEDGE_PREVIEW_CHARS] + "..."

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
        }


@dataclass
class GenerationOptions:
    """Caller overrides for one generation; None means use settings."""
    include_knowledge_base: bool = True
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass
class GeneratedResponse:
    """Output of one successful drafting call."""
    response_text: str
    confidence_score: float
    model_used: str
    tokens_used: int
    cost: float
    prompt_used: str
    knowledge_sources: List[str] = field(default_factory=list)


def score_confidence(response_text: str, knowledge_used: int) -> float:
    """
    Heuristic [0, 1] quality estimate for a draft.

    Starts at 0.5; +0.2 when knowledge was used; +0.1 for a 51-999 char
    reply; -0.2 for a reply under 30 chars; -0.1 for hedging language.
    """
    score = 0.5
    length = len(response_text)

    if knowledge_used > 0:
        score += 0.2
    if 50 < length < 1000:
        score += 0.1
    if length < 30:
        score -= 0.2

    lowered = response_text.lower()
    if any(phrase in lowered for phrase in HEDGE_PHRASES):
        score -= 0.1

    return max(0.0, min(1.0, round(score, 4)))


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Dollar cost of a call; unknown models are priced as gpt-3.5-turbo."""
    input_price, output_price = MODEL_PRICING.get(model, MODEL_PRICING[DEFAULT_PRICING_MODEL])
    cost = (prompt_tokens / 1_000_000) * input_price + (completion_tokens / 1_000_000) * output_price
    return round(cost, 6)


def extract_keywords(text: str, limit: int = MAX_SEARCH_KEYWORDS) -> List[str]:
    """First `limit` distinct content words longer than three characters."""
    cleaned = re.sub(r"[^\w\s]", " ", text.lower())
    keywords: List[str] = []
    for word in cleaned.split():
        if len(word) > 3 and word not in KEYWORD_STOP_WORDS and word not in keywords:
            keywords.append(word)
            if len(keywords) >= limit:
                break
    return keywords


def knowledge_search_text(initial_message: str, history: Sequence[str]) -> str:
    """Initial message plus the three most recent turns."""
    if not history:
        return initial_message
    return f"{initial_message}\n\n" + "\n".join(history[-3:])
