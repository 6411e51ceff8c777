"""
Configuration Module
====================

Application settings and configuration management using Pydantic.

Process-level settings come from the environment (`Settings`). Runtime
settings that operators change while the service runs (AI thresholds,
brand voice, integrations) live in the settings store and are merged
over these defaults by `autoresponder.config.runtime`.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Uses Pydantic for validation and type safety.
    """

    # ========== Application ==========
    app_name: str = Field(default="ai-support-autoresponder", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(default="development", description="Environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # ========== Server ==========
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port", ge=1, le=65535)

    # ========== Database ==========
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/autoresponder",
        description="PostgreSQL connection URL (async)"
    )
    db_pool_size: int = Field(default=5, description="Database connection pool size", ge=1)
    db_max_overflow: int = Field(default=10, description="Max overflow connections", ge=0)

    # ========== OpenAI ==========
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key"
    )
    mock_llm: bool = Field(
        default=False,
        description="Use mock LLM responses for testing (no API calls)"
    )
    analysis_model: str = Field(
        default="gpt-4o-mini",
        description="Model used by the sentiment/urgency/intent classifiers"
    )
    analysis_temperature: float = Field(
        default=0.3,
        description="Temperature for classification calls",
        ge=0.0,
        le=2.0
    )

    # ========== AI Response Defaults ==========
    ai_model: str = Field(default="gpt-4o", description="Default drafting model")
    ai_temperature: float = Field(default=0.7, description="Default drafting temperature", ge=0.0, le=2.0)
    ai_max_tokens: int = Field(default=1000, description="Default max tokens for drafts", ge=1, le=8000)
    auto_send_threshold: float = Field(
        default=0.8,
        description="Confidence at or above which drafts are sent without review",
        ge=0.0,
        le=1.0
    )
    require_review_below: float = Field(
        default=0.6,
        description="Confidence below which drafts always require review",
        ge=0.0,
        le=1.0
    )
    brand_voice: str = Field(default="professional and helpful", description="Default brand voice")

    # ========== Inbound Webhooks ==========
    webhook_secret: Optional[str] = Field(
        default=None,
        description="Shared secret for inbound webhook signatures (empty disables verification)"
    )
    email_webhook_token: Optional[str] = Field(
        default=None,
        description="Verification token for email provider handshakes"
    )

    # ========== Email (SMTP) ==========
    email_enabled: bool = Field(default=False, description="Enable email integration")
    smtp_host: str = Field(default="localhost", description="SMTP host")
    smtp_port: int = Field(default=587, description="SMTP port", ge=1, le=65535)
    smtp_user: Optional[str] = Field(default=None, description="SMTP username")
    smtp_password: Optional[str] = Field(default=None, description="SMTP password")
    smtp_use_tls: bool = Field(default=False, description="Use implicit TLS instead of STARTTLS")
    from_email: str = Field(default="support@example.com", description="Sender address")
    from_name: str = Field(default="Support Team", description="Sender display name")
    email_thread_domain: str = Field(
        default="support.example.com",
        description="Domain used in ticket threading Message-IDs"
    )

    # ========== Notifications ==========
    dispatch_workers: int = Field(default=4, description="Notification worker count", ge=1, le=64)
    dispatch_queue_size: int = Field(default=1000, description="Max queued notification jobs", ge=1)
    http_timeout_seconds: float = Field(
        default=5.0,
        description="Timeout for outbound webhook and Slack calls",
        ge=0.1,
        le=30
    )

    # ========== CORS ==========
    cors_origins: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        description="Allowed CORS origins"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Ensure environment is one of allowed values."""
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Returns cached Settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


# ========== Constants ==========

class TicketStatus(str):
    """Ticket lifecycle statuses."""
    NEW = "new"
    AI_RESPONDED = "ai_responded"
    HUMAN_REVIEW = "human_review"
    RESOLVED = "resolved"
    ESCALATED = "escalated"
    CLOSED = "closed"


class TicketPriority(str):
    """Ticket priority levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TicketSource(str):
    """Channels a ticket can arrive through."""
    EMAIL = "email"
    WEBHOOK = "webhook"
    API = "api"
    CHAT = "chat"
    MANUAL = "manual"


class SenderType(str):
    """Author of a conversation turn."""
    CUSTOMER = "customer"
    AI = "ai"
    HUMAN = "human"


class AIResponseStatus(str):
    """Review lifecycle of a drafted reply."""
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    EDITED = "edited"
    REJECTED = "rejected"
    SENT = "sent"


class ConversationStage(str):
    """Stage of a ticket conversation, derived from the turn count."""
    INITIAL = "initial"
    CLARIFICATION = "clarification"
    RESOLUTION = "resolution"
    FOLLOW_UP = "follow_up"


class SentimentLabel(str):
    """Customer sentiment labels."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    FRUSTRATED = "frustrated"
    ANGRY = "angry"


class UrgencyLevel(str):
    """Ticket urgency levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class IntentType(str):
    """Closed set of customer intents."""
    QUESTION = "question"
    COMPLAINT = "complaint"
    REQUEST = "request"
    COMPLIMENT = "compliment"
    BUG_REPORT = "bug_report"
    FEATURE_REQUEST = "feature_request"
    REFUND = "refund"
    TECHNICAL_SUPPORT = "technical_support"
    ACCOUNT_ISSUE = "account_issue"
    BILLING = "billing"
    OTHER = "other"


class WebhookEvent(str):
    """Outbound webhook event types."""
    TICKET_CREATED = "ticket.created"
    TICKET_UPDATED = "ticket.updated"
    TICKET_RESOLVED = "ticket.resolved"
    TICKET_ESCALATED = "ticket.escalated"
    AI_RESPONSE_GENERATED = "ai.response.generated"
    AI_RESPONSE_REQUIRES_REVIEW = "ai.response.requires_review"
    AI_RESPONSE_APPROVED = "ai.response.approved"
    AI_RESPONSE_REJECTED = "ai.response.rejected"
    CONVERSATION_ADDED = "conversation.added"
    FEEDBACK_RECEIVED = "feedback.received"


# ========== Lists for validation ==========

VALID_PRIORITIES = [
    TicketPriority.LOW, TicketPriority.MEDIUM,
    TicketPriority.HIGH, TicketPriority.URGENT
]
VALID_SOURCES = [
    TicketSource.EMAIL, TicketSource.WEBHOOK, TicketSource.API,
    TicketSource.CHAT, TicketSource.MANUAL
]
SENTIMENT_LABELS = [
    SentimentLabel.POSITIVE, SentimentLabel.NEUTRAL, SentimentLabel.NEGATIVE,
    SentimentLabel.FRUSTRATED, SentimentLabel.ANGRY
]
URGENCY_LEVELS = [
    UrgencyLevel.LOW, UrgencyLevel.MEDIUM,
    UrgencyLevel.HIGH, UrgencyLevel.CRITICAL
]
INTENT_TYPES = [
    IntentType.QUESTION, IntentType.COMPLAINT, IntentType.REQUEST,
    IntentType.COMPLIMENT, IntentType.BUG_REPORT, IntentType.FEATURE_REQUEST,
    IntentType.REFUND, IntentType.TECHNICAL_SUPPORT, IntentType.ACCOUNT_ISSUE,
    IntentType.BILLING, IntentType.OTHER
]
WEBHOOK_EVENTS = [
    WebhookEvent.TICKET_CREATED, WebhookEvent.TICKET_UPDATED,
    WebhookEvent.TICKET_RESOLVED, WebhookEvent.TICKET_ESCALATED,
    WebhookEvent.AI_RESPONSE_GENERATED, WebhookEvent.AI_RESPONSE_REQUIRES_REVIEW,
    WebhookEvent.AI_RESPONSE_APPROVED, WebhookEvent.AI_RESPONSE_REJECTED,
    WebhookEvent.CONVERSATION_ADDED, WebhookEvent.FEEDBACK_RECEIVED
]
