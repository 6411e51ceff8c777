"""
Ticket Infrastructure Models
============================

SQLAlchemy ORM models for tickets, the conversation ledger, drafted
responses and the key/value settings store.
"""

from datetime import datetime, timezone
from typing import Any, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Integer, Float, Boolean, Text, Uuid, JSON, ForeignKey, event
from sqlalchemy.orm import Mapped, mapped_column

from autoresponder.infrastructure.database import Base
from autoresponder.config import (
    TicketStatus, TicketPriority, TicketSource, AIResponseStatus, ConversationStage
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


FIRST_TICKET_SEQUENCE = 1001


class TicketModel(Base):
    """
    Database model for Ticket entity.

    Maps to the 'tickets' table. `sequence` backs the TKT-<n> number.
    """
    __tablename__ = "tickets"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    # Business identifier
    sequence: Mapped[int] = mapped_column(Integer, unique=True, nullable=False)
    ticket_number: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)

    # Content
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    initial_message: Mapped[str] = mapped_column(Text, nullable=False)
    customer_email: Mapped[str] = mapped_column(String(320), nullable=False, index=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Classification
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default=TicketPriority.MEDIUM)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default=TicketSource.API)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=TicketStatus.NEW, index=True)

    # Turn accounting
    conversation_turn_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    conversation_stage: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ConversationStage.INITIAL
    )

    # Cached last analysis
    sentiment: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    sentiment_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    urgency_level: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    urgency_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    intent: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    intent_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class TicketCounterModel(Base):
    """
    Single-row counter handing out ticket sequence numbers.

    Incremented with an UPDATE so concurrent creates queue on the row lock
    instead of reading the same maximum.
    """
    __tablename__ = "ticket_counter"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    last_sequence: Mapped[int] = mapped_column(Integer, nullable=False)


@event.listens_for(TicketCounterModel.__table__, "after_create")
def _seed_ticket_counter(target, connection, **kw):
    connection.execute(target.insert().values(id=1, last_sequence=FIRST_TICKET_SEQUENCE - 1))


class ConversationModel(Base):
    """
    Database model for one conversation turn.

    Rows are only ever inserted; the review columns are the single exception.
    """
    __tablename__ = "conversations"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    ticket_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    message: Mapped[str] = mapped_column(Text, nullable=False)
    sender_type: Mapped[str] = mapped_column(String(20), nullable=False)
    ai_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    is_ai_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Review
    requires_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class AIResponseModel(Base):
    """Database model for a drafted reply and its generation accounting."""
    __tablename__ = "ai_responses"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    ticket_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    conversation_id: Mapped[Optional[UUID]] = mapped_column(
        Uuid,
        ForeignKey("conversations.id", ondelete="SET NULL"),
        nullable=True
    )

    response_text: Mapped[str] = mapped_column(Text, nullable=False)
    confidence_score: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=AIResponseStatus.PENDING_REVIEW, index=True
    )

    # Generation metadata
    model_used: Mapped[str] = mapped_column(String(100), nullable=False)
    prompt_used: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    knowledge_sources: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)


class SettingModel(Base):
    """One stored setting; values are JSON."""
    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(100), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
