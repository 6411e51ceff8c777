"""
Response Application Services
=============================

Draft generation: knowledge retrieval, prompt assembly, the completion
call and confidence scoring.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from autoresponder.config.runtime import AISettings
from autoresponder.core import LLMException
from autoresponder.infrastructure.llm import ILLMClient
from autoresponder.responses.domain import (
    KnowledgeEntry, GenerationOptions, GeneratedResponse, ResponsePromptBuilder,
    score_confidence, calculate_cost, extract_keywords, knowledge_search_text,
    MAX_KNOWLEDGE_ENTRIES,
)
from autoresponder.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


# ========== Repository Interfaces ==========

class IKnowledgeBaseRepository(ABC):
    """Interface for knowledge-base retrieval."""

    @abstractmethod
    async def search(self, keywords: Sequence[str], limit: int = MAX_KNOWLEDGE_ENTRIES) -> List[KnowledgeEntry]:
        """Active entries whose title or content matches any keyword."""

    @abstractmethod
    async def create(
        self,
        title: str,
        content: str,
        category: Optional[str] = None,
        tags: Optional[List[str]] = None
    ) -> KnowledgeEntry:
        """Store a new entry."""


# ========== Application Services ==========

class ResponseGenerator:
    """
    Service for drafting replies with the completion model.

    Has no fallback: a failed completion is raised as LLMException.
    """

    def __init__(self, llm_client: ILLMClient):
        self._llm = llm_client

    async def retrieve_knowledge(
        self,
        repository: IKnowledgeBaseRepository,
        initial_message: str,
        history: Sequence[str],
        options: Optional[GenerationOptions] = None
    ) -> List[KnowledgeEntry]:
        """Knowledge entries for the prompt; empty when the caller opted out."""
        if options is not None and not options.include_knowledge_base:
            return []
        keywords = extract_keywords(knowledge_search_text(initial_message, history))
        if not keywords:
            return []
        entries = await repository.search(keywords, limit=MAX_KNOWLEDGE_ENTRIES)
        return entries[:MAX_KNOWLEDGE_ENTRIES]

    async def generate(
        self,
        subject: str,
        initial_message: str,
        history: Sequence[str],
        ai_settings: AISettings,
        knowledge: Sequence[KnowledgeEntry] = (),
        options: Optional[GenerationOptions] = None,
        priority: Optional[str] = None,
        category: Optional[str] = None,
    ) -> GeneratedResponse:
        """
        Draft a reply for a ticket.

        Args:
            subject: Ticket subject
            initial_message: Opening customer message
            history: Labelled prior turns (see format_history)
            ai_settings: Effective AI settings
            knowledge: Entries from retrieve_knowledge
            options: Per-call overrides
            priority: Ticket priority, shown to the model
            category: Ticket category, shown to the model

        Returns:
            GeneratedResponse with text, confidence and accounting

        Raises:
            LLMException: If the completion call fails or returns nothing
        """
        options = options or GenerationOptions()
        knowledge = list(knowledge)[:MAX_KNOWLEDGE_ENTRIES]

        prompt = ResponsePromptBuilder.build_prompt(
            subject=subject,
            message=initial_message,
            brand_voice=ai_settings.brand_voice,
            history=history,
            knowledge=knowledge,
            priority=priority,
            category=category,
        )

        model = options.model or ai_settings.model
        temperature = options.temperature if options.temperature is not None else ai_settings.temperature
        max_tokens = options.max_tokens if options.max_tokens is not None else ai_settings.max_tokens

        messages = [
            {"role": "system", "content": ResponsePromptBuilder.get_system_prompt()},
            {"role": "user", "content": prompt},
        ]

        try:
            with log_latency(logger, "draft_generation", model=model, knowledge_used=len(knowledge)):
                completion = await self._llm.chat_completion(
                    messages=messages,
                    model=model,
                    temperature=temperature,
                    max_tokens=max_tokens,
                    operation="draft",
                )
        except Exception as e:
            reason = e.message if isinstance(e, LLMException) else str(e)
            raise LLMException(f"Failed to generate AI response: {reason}")

        text = (completion.content or "").strip()
        if not text:
            raise LLMException("Failed to generate AI response: empty completion")

        return GeneratedResponse(
            response_text=text,
            confidence_score=score_confidence(text, len(knowledge)),
            model_used=model,
            tokens_used=completion.total_tokens,
            cost=calculate_cost(model, completion.prompt_tokens, completion.completion_tokens),
            prompt_used=prompt,
            knowledge_sources=[entry.id for entry in knowledge],
        )
