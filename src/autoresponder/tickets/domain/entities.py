"""
Ticket Domain Entities
======================

Pure Python domain entities for tickets, their conversation ledger and
drafted AI responses.

Following Domain-Driven Design principles, these entities contain
business logic and are free of infrastructure concerns.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from autoresponder.config import (
    TicketStatus, TicketPriority, TicketSource, SenderType,
    AIResponseStatus, ConversationStage
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Ticket:
    """
    Ticket entity representing one customer issue.

    Status and cached analysis fields are written by the decision router;
    everything else is fixed at creation.
    """

    subject: str
    initial_message: str
    customer_email: str
    id: UUID = field(default_factory=uuid4)
    ticket_number: str = ""
    customer_name: Optional[str] = None
    priority: str = TicketPriority.MEDIUM
    category: Optional[str] = None
    source: str = TicketSource.API
    status: str = TicketStatus.NEW

    conversation_turn_count: int = 1
    conversation_stage: str = ConversationStage.INITIAL

    # Cached last analysis
    sentiment: Optional[str] = None
    sentiment_score: Optional[float] = None
    urgency_level: Optional[str] = None
    urgency_score: Optional[float] = None
    intent: Optional[str] = None
    intent_confidence: Optional[float] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None

    @property
    def is_finalized(self) -> bool:
        """Resolved/closed tickets are off-limits to the automated pipeline."""
        return self.status in (TicketStatus.RESOLVED, TicketStatus.CLOSED)

    def touch(self) -> None:
        self.updated_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "ticket_number": self.ticket_number,
            "subject": self.subject,
            "initial_message": self.initial_message,
            "customer_email": self.customer_email,
            "customer_name": self.customer_name,
            "priority": self.priority,
            "category": self.category,
            "source": self.source,
            "status": self.status,
            "conversation_turn_count": self.conversation_turn_count,
            "conversation_stage": self.conversation_stage,
            "sentiment": self.sentiment,
            "sentiment_score": self.sentiment_score,
            "urgency_level": self.urgency_level,
            "urgency_score": self.urgency_score,
            "intent": self.intent,
            "intent_confidence": self.intent_confidence,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
        }


@dataclass
class Conversation:
    """
    One turn of a ticket thread.

    Append-only: after creation only the review fields may change.
    """

    ticket_id: UUID
    message: str
    sender_type: str
    id: UUID = field(default_factory=uuid4)
    ai_confidence: Optional[float] = None
    is_ai_generated: bool = False
    requires_review: bool = False
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)

    def mark_reviewed(self, reviewed_by: str, timestamp: Optional[datetime] = None) -> None:
        self.reviewed_by = reviewed_by
        self.reviewed_at = timestamp or utcnow()
        self.requires_review = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "ticket_id": str(self.ticket_id),
            "message": self.message,
            "sender_type": self.sender_type,
            "ai_confidence": self.ai_confidence,
            "is_ai_generated": self.is_ai_generated,
            "requires_review": self.requires_review,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class AIResponse:
    """
    One drafted reply.

    Only `status` and `response_text` change after creation.
    """

    ticket_id: UUID
    response_text: str
    confidence_score: float
    model_used: str
    id: UUID = field(default_factory=uuid4)
    conversation_id: Optional[UUID] = None
    prompt_used: str = ""
    tokens_used: int = 0
    cost: float = 0.0
    knowledge_sources: List[str] = field(default_factory=list)
    status: str = AIResponseStatus.PENDING_REVIEW
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "ticket_id": str(self.ticket_id),
            "conversation_id": str(self.conversation_id) if self.conversation_id else None,
            "response_text": self.response_text,
            "confidence_score": self.confidence_score,
            "model_used": self.model_used,
            "prompt_used": self.prompt_used,
            "tokens_used": self.tokens_used,
            "cost": self.cost,
            "knowledge_sources": list(self.knowledge_sources),
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


def new_customer_turn(ticket_id: UUID, message: str) -> Conversation:
    return Conversation(ticket_id=ticket_id, message=message, sender_type=SenderType.CUSTOMER)
