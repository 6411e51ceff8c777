"""
Analysis Prompt Builders
========================

Builds prompts for the model-backed classifiers.

Following DRY principle - all prompt logic in one place.
"""

from typing import List, Optional, Sequence


class AnalysisPromptBuilder:
    """Prompts for sentiment, urgency and intent classification."""

    SENTIMENT_SYSTEM_PROMPT = """You are an expert at analyzing customer sentiment in support tickets. Analyze the sentiment and return a JSON object with:
- sentiment: one of "positive", "neutral", "negative", "frustrated", "angry"
- confidence: a number between 0 and 1
- score: a number between -1 (very negative) and 1 (very positive)
- emotions: an array of detected emotions (e.g., ["frustrated", "confused", "hopeful"])

Be accurate and consider the full context."""

    URGENCY_SYSTEM_PROMPT = """You are an expert at assessing urgency in customer support tickets. Analyze the urgency and return a JSON object with:
- level: one of "low", "medium", "high", "critical"
- confidence: a number between 0 and 1
- factors: an array of reasons for the urgency assessment (e.g., ["mentions downtime", "affects multiple users"])
- score: a number between 0 (not urgent) and 1 (critical)

Consider factors like:
- Service outages or downtime
- Financial impact
- Security concerns
- Number of users affected
- Time-sensitive requests
- Escalation language"""

    INTENT_SYSTEM_PROMPT = """You are an expert at classifying customer intents in support tickets. Analyze the intent and return a JSON object with:
- intent: one of "question", "complaint", "request", "compliment", "bug_report", "feature_request", "refund", "technical_support", "account_issue", "billing", "other"
- confidence: a number between 0 and 1
- sub_intents: an array of additional intents if multiple are detected
- entities: an array of named entities found (e.g., [{"type": "product", "value": "mobile app"}])

Be accurate and consider the full context."""

    @staticmethod
    def _history_block(history: Sequence[str]) -> str:
        if not history:
            return ""
        return "Conversation History:\n" + "\n\n".join(history) + "\n\n"

    @classmethod
    def sentiment_messages(cls, text: str, history: Sequence[str]) -> List[dict]:
        scope = " and conversation history" if history else ""
        user = (
            f"Analyze the sentiment of this customer message{scope}:\n\n"
            f"{cls._history_block(history)}Current Message:\n{text}\n\n"
            "Return only valid JSON."
        )
        return [
            {"role": "system", "content": cls.SENTIMENT_SYSTEM_PROMPT},
            {"role": "user", "content": user},
        ]

    @classmethod
    def urgency_messages(
        cls,
        text: str,
        subject: str,
        priority: Optional[str],
        history: Sequence[str]
    ) -> List[dict]:
        scope = " considering conversation history" if history else ""
        priority_line = f"Current Priority: {priority}\n" if priority else ""
        user = (
            f"Assess the urgency of this support ticket{scope}:\n\n"
            f"Subject: {subject}\n{priority_line}"
            f"{cls._history_block(history)}Message:\n{text}\n\n"
            "Return only valid JSON."
        )
        return [
            {"role": "system", "content": cls.URGENCY_SYSTEM_PROMPT},
            {"role": "user", "content": user},
        ]

    @classmethod
    def intent_messages(cls, text: str, subject: str, history: Sequence[str]) -> List[dict]:
        scope = " considering conversation history" if history else ""
        user = (
            f"Classify the intent of this customer message{scope}:\n\n"
            f"Subject: {subject}\n"
            f"{cls._history_block(history)}Message:\n{text}\n\n"
            "Return only valid JSON."
        )
        return [
            {"role": "system", "content": cls.INTENT_SYSTEM_PROMPT},
            {"role": "user", "content": user},
        ]
