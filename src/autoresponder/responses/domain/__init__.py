"""
Responses Domain Layer
======================

Domain layer for draft generation.

Contains:
- Entities: KnowledgeEntry, GenerationOptions, GeneratedResponse
- Scoring: confidence heuristic and model cost table
- Prompts: ResponsePromptBuilder and history formatting
"""

from autoresponder.responses.domain.entities import (
    KnowledgeEntry,
    GenerationOptions,
    GeneratedResponse,
    score_confidence,
    calculate_cost,
    extract_keywords,
    knowledge_search_text,
    HEDGE_PHRASES,
    MODEL_PRICING,
    MAX_KNOWLEDGE_ENTRIES,
)
from autoresponder.responses.domain.prompts import ResponsePromptBuilder
from autoresponder.responses.domain.history import (
    format_history,
    plain_history,
    confidence_label,
)

__all__ = [
    "KnowledgeEntry",
    "GenerationOptions",
    "GeneratedResponse",
    "score_confidence",
    "calculate_cost",
    "extract_keywords",
    "knowledge_search_text",
    "HEDGE_PHRASES",
    "MODEL_PRICING",
    "MAX_KNOWLEDGE_ENTRIES",
    "ResponsePromptBuilder",
    "format_history",
    "plain_history",
    "confidence_label",
]
