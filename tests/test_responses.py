from uuid import uuid4

import pytest

from autoresponder.config import SenderType
from autoresponder.config.runtime import AISettings
from autoresponder.core import LLMException
from autoresponder.responses.application import ResponseGenerator
from autoresponder.responses.domain import (
    GenerationOptions,
    KnowledgeEntry,
    calculate_cost,
    extract_keywords,
    format_history,
    score_confidence,
)
from autoresponder.tickets.domain import Conversation, utcnow

from fakes import DRAFT_TEXT, FakeUnitOfWork, InMemoryStore, ScriptedLLM

SETTINGS = AISettings(model="gpt-4o", brand_voice="warm and upbeat")


def _entry(title, content="Steps to reset a password from the login page."):
    return KnowledgeEntry(id=str(uuid4()), title=title, content=content, category="account")


class TestScoring:
    def test_base_score_for_medium_reply(self):
        assert score_confidence("x" * 100, 0) == 0.6

    def test_knowledge_bonus(self):
        assert score_confidence("x" * 100, 2) == 0.8

    def test_short_reply_penalty(self):
        assert score_confidence("ok", 0) == 0.3

    def test_hedging_penalty(self):
        text = "I'm not sure about that, but you could try restarting the application again."
        assert score_confidence(text, 0) == 0.5

    def test_score_stays_in_unit_interval(self):
        assert 0.0 <= score_confidence("I cannot", 0) <= 1.0

    def test_cost_uses_model_table(self):
        assert calculate_cost("gpt-4o", 1_000_000, 1_000_000) == 20.0

    def test_unknown_model_priced_as_fallback(self):
        assert calculate_cost("mystery", 1_000_000, 0) == 0.5

    def test_keywords(self):
        assert extract_keywords("Please help: my PASSWORD reset email never arrives, password!") == [
            "help", "password", "reset", "email", "never", "arrives",
        ]


class TestHistory:
    def test_opening_customer_turn_is_skipped_and_turns_labelled(self):
        ticket_id = uuid4()
        turns = [
            Conversation(ticket_id=ticket_id, message="first", sender_type=SenderType.CUSTOMER),
            Conversation(ticket_id=ticket_id, message="draft", sender_type=SenderType.AI, ai_confidence=0.55),
            Conversation(ticket_id=ticket_id, message="edited", sender_type=SenderType.HUMAN, reviewed_at=utcnow()),
        ]
        assert format_history(turns) == [
            "AI Assistant: draft [Confidence: Medium]",
            "Support Agent: edited [Reviewed]",
        ]


class TestResponseGenerator:
    @pytest.mark.asyncio
    async def test_generates_with_knowledge(self):
        llm = ScriptedLLM()
        entries = [_entry("Password reset"), _entry("Login troubleshooting")]
        draft = await ResponseGenerator(llm).generate(
            subject="Cannot log in",
            initial_message="I cannot reset my password",
            history=[],
            ai_settings=SETTINGS,
            knowledge=entries,
            priority="high",
        )

        assert draft.response_text == DRAFT_TEXT
        assert draft.confidence_score == 0.8
        assert draft.model_used == "gpt-4o"
        assert draft.tokens_used == 160
        assert draft.knowledge_sources == [e.id for e in entries]
        assert "warm and upbeat" in draft.prompt_used
        assert "### Article 1: Password reset" in draft.prompt_used
        assert "**Priority:** high" in draft.prompt_used
        assert llm.calls[0]["operation"] == "draft"

    @pytest.mark.asyncio
    async def test_options_override_model(self):
        llm = ScriptedLLM()
        draft = await ResponseGenerator(llm).generate(
            "s", "m", [], SETTINGS, options=GenerationOptions(model="gpt-4o-mini")
        )
        assert draft.model_used == "gpt-4o-mini"
        assert llm.calls[0]["model"] == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_failure_raises_llm_exception(self):
        llm = ScriptedLLM({"draft": RuntimeError("connection reset")})
        with pytest.raises(LLMException) as exc:
            await ResponseGenerator(llm).generate("s", "m", [], SETTINGS)
        assert exc.value.message == "Failed to generate AI response: connection reset"

    @pytest.mark.asyncio
    async def test_empty_completion_raises(self):
        with pytest.raises(LLMException):
            await ResponseGenerator(ScriptedLLM({"draft": "   "})).generate("s", "m", [], SETTINGS)

    @pytest.mark.asyncio
    async def test_retrieve_knowledge_matches_keywords(self):
        store = InMemoryStore()
        async with FakeUnitOfWork(store) as uow:
            await uow.knowledge_base.create("Password reset", "Use the reset link on the login page.")
            await uow.knowledge_base.create("Shipping times", "Orders ship within two days.")
            await uow.commit()

        generator = ResponseGenerator(ScriptedLLM())
        async with FakeUnitOfWork(store) as uow:
            found = await generator.retrieve_knowledge(uow.knowledge_base, "My password reset fails", [])
            skipped = await generator.retrieve_knowledge(
                uow.knowledge_base, "My password reset fails", [], GenerationOptions(include_knowledge_base=False)
            )

        assert [entry.title for entry in found] == ["Password reset"]
        assert skipped == []
