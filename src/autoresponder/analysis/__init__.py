"""
Analysis Module
===============

Bounded Context for classifying inbound customer messages.

Responsibilities:
- Sentiment, urgency and intent classification (model-backed with
  deterministic fallbacks)
- Conversation context: turn count, stage, key topics, open questions
"""
