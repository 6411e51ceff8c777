import pytest

from autoresponder.analysis.application import AnalysisEngine
from autoresponder.analysis.domain import (
    SentimentResult,
    conversation_context,
    fallback_intent,
    fallback_sentiment,
    fallback_urgency,
    extract_questions,
)
from autoresponder.config import ConversationStage
from autoresponder.core import LLMException
from autoresponder.infrastructure.llm import MockLLMClient, parse_json_content

from fakes import ScriptedLLM

DOWN = LLMException("model unavailable")


class TestFallbackRules:
    def test_urgent_and_negative_is_angry(self):
        result = fallback_sentiment("This is terrible, the site is down!")
        assert result.sentiment == "angry"
        assert result.score == -0.8
        assert result.confidence == 0.6

    def test_many_negative_words_is_frustrated(self):
        result = fallback_sentiment("awful, horrible and disappointed")
        assert result.sentiment == "frustrated"
        assert result.score == pytest.approx(-0.8)

    def test_positive(self):
        result = fallback_sentiment("Thank you, this is great")
        assert result.sentiment == "positive"
        assert result.score == pytest.approx(0.7)

    def test_no_signal_is_neutral(self):
        assert fallback_sentiment("Where is the settings page").sentiment == "neutral"

    def test_critical_keywords(self):
        result = fallback_urgency("Our checkout is not working", "Outage")
        assert result.level == "critical"
        assert result.score == 0.9

    def test_informational_is_low(self):
        assert fallback_urgency("Just a general question", "Info").level == "low"

    def test_urgent_priority_forces_critical(self):
        result = fallback_urgency("Just wondering", "hello", priority="urgent")
        assert result.level == "critical"
        assert result.score >= 0.95
        assert "Ticket marked as urgent" in result.factors

    def test_high_priority_never_lowers_critical(self):
        result = fallback_urgency("Everything is down", "help", priority="high")
        assert result.level == "critical"

    def test_intent_highest_match_wins(self):
        result = fallback_intent("I want a refund and my money back, please cancel", "Refund")
        assert result.intent == "refund"
        assert result.confidence == 0.6

    def test_intent_ties_keep_earlier_intent(self):
        # one question pattern, one billing pattern
        assert fallback_intent("invoice?", "").intent == "question"

    def test_intent_without_match(self):
        result = fallback_intent("zzz", "")
        assert result.intent == "other"
        assert result.confidence == 0.3

    def test_conversation_context(self):
        history = ["Customer: my invoice is wrong", "AI Assistant: which invoice?"]
        context = conversation_context(history, "The March invoice. Can you fix it?")
        assert context.turn_count == 3
        assert context.stage == ConversationStage.CLARIFICATION
        assert context.requires_follow_up
        assert context.key_topics[0] == "invoice"
        assert context.unresolved_questions == ["Can you fix it?"]

    def test_question_words_match_inside_longer_words(self):
        assert extract_questions("Somehow it broke again. Why does it fail?") == [
            "how it broke again.",
            "Why does it fail?",
        ]


class TestResultNormalization:
    def test_unknown_labels_and_out_of_range_values(self):
        result = SentimentResult(sentiment="ecstatic", confidence=3, score=-7)
        assert result.sentiment == "neutral"
        assert result.confidence == 1.0
        assert result.score == -1.0


class TestAnalysisEngine:
    @pytest.mark.asyncio
    async def test_model_answers_are_used(self):
        llm = ScriptedLLM({
            "sentiment": {"sentiment": "Negative", "confidence": 0.9, "score": -0.4, "emotions": ["annoyed"]},
            "intent": {"intent": "billing", "confidence": 0.85, "sub_intents": [], "entities": ["invoice"]},
        })
        result = await AnalysisEngine(llm).analyze("My invoice is wrong", "Invoice", "medium")

        assert result.sentiment.sentiment == "negative"
        assert result.sentiment.emotions == ["annoyed"]
        assert result.intent.intent == "billing"
        assert result.conversation_context.turn_count == 1
        assert sorted(llm.operations()) == ["intent", "sentiment", "urgency"]
        assert all(call["model"] == "gpt-4o-mini" for call in llm.calls)

    @pytest.mark.asyncio
    async def test_model_failures_fall_back_per_classifier(self):
        llm = ScriptedLLM({"sentiment": DOWN, "urgency": "not json at all"})
        result = await AnalysisEngine(llm).analyze("This is terrible, the site is down!", "Outage")

        assert result.sentiment.sentiment == "angry"
        assert result.urgency.level == "critical"
        # intent still came from the model
        assert result.intent.intent == "question"
        assert result.intent.confidence == 0.8

    @pytest.mark.asyncio
    async def test_zero_confidence_from_model_is_kept(self):
        llm = ScriptedLLM({
            "sentiment": {"sentiment": "neutral", "confidence": 0, "score": 0},
            "intent": {"intent": "other", "confidence": 0.0},
        })
        result = await AnalysisEngine(llm).analyze("hello", "hi")

        assert result.sentiment.confidence == 0.0
        assert result.sentiment.score == 0.0
        assert result.intent.confidence == 0.0

    @pytest.mark.asyncio
    async def test_missing_confidence_defaults(self):
        llm = ScriptedLLM({"intent": {"intent": "billing"}})
        result = await AnalysisEngine(llm).analyze("invoice", "Invoice")
        assert result.intent.confidence == 0.5

    @pytest.mark.asyncio
    async def test_urgency_model_answer_respects_priority(self):
        llm = ScriptedLLM({"urgency": {"level": "low", "confidence": 0.9, "factors": [], "score": 0.1}})
        result = await AnalysisEngine(llm).analyze("hello", "hi", priority="high")
        assert result.urgency.level == "high"
        assert result.urgency.score == 0.7

    @pytest.mark.asyncio
    async def test_fenced_json_is_accepted(self):
        llm = ScriptedLLM({"intent": '```json\n{"intent": "refund", "confidence": 0.7}\n```'})
        result = await AnalysisEngine(llm).analyze("money back", "Refund")
        assert result.intent.intent == "refund"

    @pytest.mark.asyncio
    async def test_history_drives_context(self):
        result = await AnalysisEngine(ScriptedLLM()).analyze(
            "thanks", "Login", history=["Customer: a", "AI Assistant: b", "Customer: c", "AI Assistant: d"]
        )
        assert result.conversation_context.stage == ConversationStage.RESOLUTION


class TestMockClient:
    @pytest.mark.asyncio
    async def test_mock_answers_are_well_formed(self):
        result = await AnalysisEngine(MockLLMClient()).analyze("Where is my parcel?", "Delivery", "medium")

        assert result.sentiment.sentiment == "neutral"
        assert result.urgency.level == "medium"
        assert result.intent.intent == "question"

    def test_fenced_json_is_unwrapped(self):
        assert parse_json_content('```json\n{"level": "high"}\n```') == {"level": "high"}

    def test_empty_content_is_rejected(self):
        with pytest.raises(ValueError):
            parse_json_content("")
