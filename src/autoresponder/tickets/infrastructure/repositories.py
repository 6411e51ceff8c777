"""
Ticket Infrastructure Repositories
==================================

SQLAlchemy implementations of the ticket repositories and the unit of work
that binds them to one session.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from autoresponder.core import RepositoryException
from autoresponder.responses.infrastructure.repositories import SQLAlchemyKnowledgeBaseRepository
from autoresponder.tickets.application.services import (
    ITicketRepository,
    IConversationRepository,
    IAIResponseRepository,
    ISettingsRepository,
    IUnitOfWork,
)
from autoresponder.tickets.domain import Ticket, Conversation, AIResponse, utcnow
from autoresponder.tickets.infrastructure.models import (
    TicketModel, TicketCounterModel, ConversationModel, AIResponseModel, SettingModel,
)

# Ticket columns the pipeline and manual status changes may rewrite
TICKET_MUTABLE_FIELDS = (
    "status",
    "conversation_turn_count",
    "conversation_stage",
    "sentiment",
    "sentiment_score",
    "urgency_level",
    "urgency_score",
    "intent",
    "intent_confidence",
    "updated_at",
    "resolved_at",
)


def format_ticket_number(sequence: int) -> str:
    return f"TKT-{sequence}"


def _to_ticket(model: TicketModel) -> Ticket:
    return Ticket(
        id=model.id,
        ticket_number=model.ticket_number,
        subject=model.subject,
        initial_message=model.initial_message,
        customer_email=model.customer_email,
        customer_name=model.customer_name,
        priority=model.priority,
        category=model.category,
        source=model.source,
        status=model.status,
        conversation_turn_count=model.conversation_turn_count,
        conversation_stage=model.conversation_stage,
        sentiment=model.sentiment,
        sentiment_score=model.sentiment_score,
        urgency_level=model.urgency_level,
        urgency_score=model.urgency_score,
        intent=model.intent,
        intent_confidence=model.intent_confidence,
        created_at=model.created_at,
        updated_at=model.updated_at,
        resolved_at=model.resolved_at,
    )


def _to_conversation(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        ticket_id=model.ticket_id,
        message=model.message,
        sender_type=model.sender_type,
        ai_confidence=model.ai_confidence,
        is_ai_generated=model.is_ai_generated,
        requires_review=model.requires_review,
        reviewed_by=model.reviewed_by,
        reviewed_at=model.reviewed_at,
        created_at=model.created_at,
    )


def _to_response(model: AIResponseModel) -> AIResponse:
    return AIResponse(
        id=model.id,
        ticket_id=model.ticket_id,
        conversation_id=model.conversation_id,
        response_text=model.response_text,
        confidence_score=model.confidence_score,
        model_used=model.model_used,
        prompt_used=model.prompt_used,
        tokens_used=model.tokens_used,
        cost=model.cost,
        knowledge_sources=list(model.knowledge_sources or []),
        status=model.status,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


class SQLAlchemyTicketRepository(ITicketRepository):
    """SQLAlchemy implementation for tickets."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, ticket_id: UUID) -> Optional[Ticket]:
        model = await self._session.get(TicketModel, ticket_id)
        return _to_ticket(model) if model else None

    async def get_by_number(self, ticket_number: str) -> Optional[Ticket]:
        stmt = select(TicketModel).where(TicketModel.ticket_number == ticket_number)
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return _to_ticket(model) if model else None

    async def _next_sequence(self) -> int:
        # The UPDATE takes the counter row lock first, so the read below sees
        # this transaction's increment and nobody else's.
        await self._session.execute(
            update(TicketCounterModel)
            .where(TicketCounterModel.id == 1)
            .values(last_sequence=TicketCounterModel.last_sequence + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(
            select(TicketCounterModel.last_sequence).where(TicketCounterModel.id == 1)
        )
        sequence = result.scalar_one_or_none()
        if sequence is None:
            raise RepositoryException("Ticket counter missing, run create_tables()")
        return sequence

    async def create(self, ticket: Ticket) -> Ticket:
        """
        Insert the ticket with the next sequence number.

        Numbers come from the counter row, so concurrent creates receive
        distinct, increasing numbers. A rolled-back create gives its number
        back with the rest of the transaction.
        """
        try:
            sequence = await self._next_sequence()
        except SQLAlchemyError as e:
            raise RepositoryException("Failed to allocate ticket number", details={"error": str(e)})
        ticket.ticket_number = format_ticket_number(sequence)

        model = TicketModel(
            id=ticket.id,
            sequence=sequence,
            ticket_number=ticket.ticket_number,
            subject=ticket.subject,
            initial_message=ticket.initial_message,
            customer_email=ticket.customer_email,
            customer_name=ticket.customer_name,
            priority=ticket.priority,
            category=ticket.category,
            source=ticket.source,
            status=ticket.status,
            conversation_turn_count=ticket.conversation_turn_count,
            conversation_stage=ticket.conversation_stage,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
        )

        try:
            self._session.add(model)
            await self._session.flush()
        except IntegrityError as e:
            raise RepositoryException(
                "Ticket number already taken",
                details={"ticket_number": ticket.ticket_number, "error": str(e.orig)}
            )
        except SQLAlchemyError as e:
            raise RepositoryException("Failed to create ticket", details={"error": str(e)})

        return _to_ticket(model)

    async def update(self, ticket: Ticket) -> Ticket:
        model = await self._session.get(TicketModel, ticket.id)
        if model is None:
            raise RepositoryException(f"Ticket {ticket.id} disappeared during update")

        for name in TICKET_MUTABLE_FIELDS:
            setattr(model, name, getattr(ticket, name))

        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException("Failed to update ticket", details={"error": str(e)})

        return _to_ticket(model)


class SQLAlchemyConversationRepository(IConversationRepository):
    """SQLAlchemy implementation for the conversation ledger."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, conversation_id: UUID) -> Optional[Conversation]:
        model = await self._session.get(ConversationModel, conversation_id)
        return _to_conversation(model) if model else None

    async def add(self, conversation: Conversation) -> Conversation:
        model = ConversationModel(
            id=conversation.id,
            ticket_id=conversation.ticket_id,
            message=conversation.message,
            sender_type=conversation.sender_type,
            ai_confidence=conversation.ai_confidence,
            is_ai_generated=conversation.is_ai_generated,
            requires_review=conversation.requires_review,
            reviewed_by=conversation.reviewed_by,
            reviewed_at=conversation.reviewed_at,
            created_at=conversation.created_at,
        )

        try:
            self._session.add(model)
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException("Failed to store conversation turn", details={"error": str(e)})

        return _to_conversation(model)

    async def update_review(self, conversation: Conversation) -> Conversation:
        model = await self._session.get(ConversationModel, conversation.id)
        if model is None:
            raise RepositoryException(f"Conversation {conversation.id} not found")

        model.requires_review = conversation.requires_review
        model.reviewed_by = conversation.reviewed_by
        model.reviewed_at = conversation.reviewed_at

        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException("Failed to update conversation review", details={"error": str(e)})

        return _to_conversation(model)

    async def list_for_ticket(self, ticket_id: UUID) -> List[Conversation]:
        stmt = (
            select(ConversationModel)
            .where(ConversationModel.ticket_id == ticket_id)
            .order_by(ConversationModel.created_at.asc())
        )
        result = await self._session.execute(stmt)
        return [_to_conversation(model) for model in result.scalars().all()]


class SQLAlchemyAIResponseRepository(IAIResponseRepository):
    """SQLAlchemy implementation for drafted replies."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get(self, response_id: UUID) -> Optional[AIResponse]:
        model = await self._session.get(AIResponseModel, response_id)
        return _to_response(model) if model else None

    async def add(self, response: AIResponse) -> AIResponse:
        model = AIResponseModel(
            id=response.id,
            ticket_id=response.ticket_id,
            conversation_id=response.conversation_id,
            response_text=response.response_text,
            confidence_score=response.confidence_score,
            model_used=response.model_used,
            prompt_used=response.prompt_used,
            tokens_used=response.tokens_used,
            cost=response.cost,
            knowledge_sources=list(response.knowledge_sources),
            status=response.status,
            created_at=response.created_at,
            updated_at=response.updated_at,
        )

        try:
            self._session.add(model)
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException("Failed to store AI response", details={"error": str(e)})

        return _to_response(model)

    async def update(self, response: AIResponse) -> AIResponse:
        model = await self._session.get(AIResponseModel, response.id)
        if model is None:
            raise RepositoryException(f"AI response {response.id} not found")

        model.status = response.status
        model.response_text = response.response_text
        model.conversation_id = response.conversation_id
        model.updated_at = utcnow()

        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException("Failed to update AI response", details={"error": str(e)})

        return _to_response(model)

    async def list_for_ticket(self, ticket_id: UUID) -> List[AIResponse]:
        stmt = (
            select(AIResponseModel)
            .where(AIResponseModel.ticket_id == ticket_id)
            .order_by(AIResponseModel.created_at.desc())
        )
        result = await self._session.execute(stmt)
        return [_to_response(model) for model in result.scalars().all()]


class SQLAlchemySettingsRepository(ISettingsRepository):
    """Key/value settings stored as JSON."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_many(self, keys: Sequence[str]) -> Dict[str, Any]:
        if not keys:
            return {}
        stmt = select(SettingModel).where(SettingModel.key.in_(list(keys)))
        result = await self._session.execute(stmt)
        return {model.key: model.value for model in result.scalars().all()}

    async def set_many(self, values: Mapping[str, Any]) -> None:
        for key, value in values.items():
            model = await self._session.get(SettingModel, key)
            if model is None:
                self._session.add(SettingModel(key=key, value=value, updated_at=utcnow()))
            else:
                model.value = value
                model.updated_at = utcnow()

        try:
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException("Failed to store settings", details={"error": str(e)})


class SQLAlchemyUnitOfWork(IUnitOfWork):
    """
    Unit of work over one AsyncSession.

    Usage:
        async with SQLAlchemyUnitOfWork(session_maker) as uow:
            ticket = await uow.tickets.get(ticket_id)
            ...
            await uow.commit()
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker
        self._session: Optional[AsyncSession] = None

    async def __aenter__(self) -> "SQLAlchemyUnitOfWork":
        self._session = self._session_maker()
        self.tickets = SQLAlchemyTicketRepository(self._session)
        self.conversations = SQLAlchemyConversationRepository(self._session)
        self.ai_responses = SQLAlchemyAIResponseRepository(self._session)
        self.settings = SQLAlchemySettingsRepository(self._session)
        self.knowledge_base = SQLAlchemyKnowledgeBaseRepository(self._session)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self.rollback()
        finally:
            if self._session is not None:
                await self._session.close()
                self._session = None

    async def commit(self) -> None:
        try:
            await self._session.commit()
        except SQLAlchemyError as e:
            await self._session.rollback()
            raise RepositoryException("Failed to commit transaction", details={"error": str(e)})

    async def rollback(self) -> None:
        if self._session is not None:
            await self._session.rollback()
