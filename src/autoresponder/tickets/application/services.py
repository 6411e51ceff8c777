"""
Ticket Application Services
===========================

Repository interfaces, the unit of work, runtime settings access and the
ticket ledger service.

Following SOLID principles:
- Single Responsibility: Each service has one clear purpose
- Dependency Inversion: Depend on abstractions (repositories), not concrete implementations
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID

from autoresponder.config import Settings, TicketStatus, WebhookEvent, TicketSource
from autoresponder.config.runtime import (
    AISettings, IntegrationSettings, AI_SETTING_KEYS, INTEGRATIONS_KEY,
)
from autoresponder.core import ResourceNotFoundException, ValidationException
from autoresponder.intake.domain import (
    NewTicket, NewReply, looks_like_uuid, normalize_ticket_number,
)
from autoresponder.notifications.application import NotificationDispatcher
from autoresponder.notifications.domain import confirmation_email
from autoresponder.responses.application import IKnowledgeBaseRepository
from autoresponder.tickets.domain import (
    Ticket, Conversation, AIResponse,
    new_customer_turn, stage_for_turn, apply_manual_status,
)
from autoresponder.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Repository Interfaces (Dependency Inversion) ==========

class ITicketRepository(ABC):
    """Interface for ticket data access."""

    @abstractmethod
    async def get(self, ticket_id: UUID) -> Optional[Ticket]:
        """Get ticket by id."""

    @abstractmethod
    async def get_by_number(self, ticket_number: str) -> Optional[Ticket]:
        """Get ticket by its TKT-<n> number."""

    @abstractmethod
    async def create(self, ticket: Ticket) -> Ticket:
        """Insert a ticket, assigning the next ticket number."""

    @abstractmethod
    async def update(self, ticket: Ticket) -> Ticket:
        """Persist mutable ticket fields."""


class IConversationRepository(ABC):
    """Interface for the append-only conversation ledger."""

    @abstractmethod
    async def get(self, conversation_id: UUID) -> Optional[Conversation]:
        """Get one turn."""

    @abstractmethod
    async def add(self, conversation: Conversation) -> Conversation:
        """Append a turn."""

    @abstractmethod
    async def update_review(self, conversation: Conversation) -> Conversation:
        """Persist reviewed_by/reviewed_at/requires_review only."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: UUID) -> List[Conversation]:
        """All turns of a ticket, oldest first."""


class IAIResponseRepository(ABC):
    """Interface for drafted replies."""

    @abstractmethod
    async def get(self, response_id: UUID) -> Optional[AIResponse]:
        """Get one draft."""

    @abstractmethod
    async def add(self, response: AIResponse) -> AIResponse:
        """Store a new draft."""

    @abstractmethod
    async def update(self, response: AIResponse) -> AIResponse:
        """Persist status, text and conversation link."""

    @abstractmethod
    async def list_for_ticket(self, ticket_id: UUID) -> List[AIResponse]:
        """All drafts of a ticket, newest first."""


class ISettingsRepository(ABC):
    """Interface for the key/value settings store."""

    @abstractmethod
    async def get_many(self, keys: Sequence[str]) -> Dict[str, Any]:
        """Stored values for the keys that exist."""

    @abstractmethod
    async def set_many(self, values: Mapping[str, Any]) -> None:
        """Upsert several keys."""


class IUnitOfWork(ABC):
    """
    One transaction over every repository.

    Leaving the context without `commit()` rolls back.
    """

    tickets: ITicketRepository
    conversations: IConversationRepository
    ai_responses: IAIResponseRepository
    settings: ISettingsRepository
    knowledge_base: IKnowledgeBaseRepository

    async def __aenter__(self) -> "IUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.rollback()

    @abstractmethod
    async def commit(self) -> None:
        """Make every write durable."""

    @abstractmethod
    async def rollback(self) -> None:
        """Discard uncommitted writes."""


UnitOfWorkFactory = Callable[[], IUnitOfWork]


async def require_ticket(uow: IUnitOfWork, ticket_id: UUID) -> Ticket:
    ticket = await uow.tickets.get(ticket_id)
    if ticket is None:
        raise ResourceNotFoundException("Ticket", str(ticket_id))
    return ticket


async def require_response(uow: IUnitOfWork, response_id: UUID) -> AIResponse:
    response = await uow.ai_responses.get(response_id)
    if response is None:
        raise ResourceNotFoundException("AI response", str(response_id))
    return response


# ========== Runtime settings ==========

class RuntimeSettingsService:
    """Reads and writes the stored AI and integration settings."""

    def __init__(self, settings: Settings):
        self._ai_defaults = AISettings.defaults(settings)
        self._integration_defaults = IntegrationSettings.defaults(settings)

    async def ai_settings(self, uow: IUnitOfWork) -> AISettings:
        stored = await uow.settings.get_many(list(AI_SETTING_KEYS))
        return AISettings.from_store(self._ai_defaults, stored)

    async def integrations(self, uow: IUnitOfWork) -> IntegrationSettings:
        stored = await uow.settings.get_many([INTEGRATIONS_KEY])
        return IntegrationSettings.from_store(self._integration_defaults, stored.get(INTEGRATIONS_KEY))

    async def update_ai_settings(self, uow: IUnitOfWork, changes: Mapping[str, Any]) -> AISettings:
        """
        Apply a partial update and return the effective settings.

        A threshold given alone is checked against the stored partner.
        """
        current = await self.ai_settings(uow)
        candidate = {**current.to_store(), **changes}
        if candidate["require_review_below"] > candidate["auto_send_threshold"]:
            raise ValidationException(
                "require_review_below cannot exceed auto_send_threshold",
                details={
                    "auto_send_threshold": candidate["auto_send_threshold"],
                    "require_review_below": candidate["require_review_below"],
                }
            )
        updated = AISettings.from_store(self._ai_defaults, candidate)
        await uow.settings.set_many(updated.to_store())
        return updated

    async def update_integrations(self, uow: IUnitOfWork, changes: Mapping[str, Any]) -> IntegrationSettings:
        current = await self.integrations(uow)
        merged = current.model_dump()
        for section, values in changes.items():
            if isinstance(values, Mapping) and isinstance(merged.get(section), dict):
                merged[section] = {**merged[section], **values}
        updated = IntegrationSettings.from_store(self._integration_defaults, merged)
        await uow.settings.set_many({INTEGRATIONS_KEY: updated.model_dump()})
        return updated


# ========== Ticket ledger ==========

STATUS_EVENTS = {
    TicketStatus.RESOLVED: WebhookEvent.TICKET_RESOLVED,
    TicketStatus.ESCALATED: WebhookEvent.TICKET_ESCALATED,
}


class TicketService:
    """
    Service for ticket creation, lookup and customer turn accounting.

    Every operation commits before it enqueues notifications.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        runtime_settings: RuntimeSettingsService,
        dispatcher: NotificationDispatcher,
        thread_domain: str
    ):
        self._uow_factory = uow_factory
        self._runtime = runtime_settings
        self._dispatcher = dispatcher
        self._thread_domain = thread_domain

    async def create_ticket(self, new_ticket: NewTicket) -> Tuple[Ticket, Conversation]:
        """
        Store a ticket and its opening customer turn.

        Emits ticket.created, plus a confirmation email for email tickets.
        """
        async with self._uow_factory() as uow:
            ticket = await uow.tickets.create(Ticket(
                subject=new_ticket.subject,
                initial_message=new_ticket.message,
                customer_email=new_ticket.customer_email,
                customer_name=new_ticket.customer_name,
                priority=new_ticket.priority,
                category=new_ticket.category,
                source=new_ticket.source,
                status=TicketStatus.NEW,
                conversation_turn_count=1,
                conversation_stage=stage_for_turn(1),
            ))
            conversation = await uow.conversations.add(new_customer_turn(ticket.id, new_ticket.message))
            integrations = await self._runtime.integrations(uow)
            await uow.commit()

        logger.info(
            "Ticket created",
            extra={
                "ticket_id": str(ticket.id),
                "ticket_number": ticket.ticket_number,
                "source": ticket.source,
                "priority": ticket.priority,
            }
        )

        email = None
        if ticket.source == TicketSource.EMAIL:
            email = confirmation_email(ticket, integrations.email, self._thread_domain)
        self._dispatcher.notify(
            WebhookEvent.TICKET_CREATED,
            {"ticket": ticket.to_dict()},
            integrations,
            email=email,
        )

        return ticket, conversation

    async def get_ticket(self, reference: str) -> Ticket:
        """Look a ticket up by UUID or by ticket number."""
        async with self._uow_factory() as uow:
            ticket = await self._find(uow, reference)
        if ticket is None:
            raise ResourceNotFoundException("Ticket", reference)
        return ticket

    async def get_ticket_with_conversation(self, reference: str) -> Tuple[Ticket, List[Conversation]]:
        async with self._uow_factory() as uow:
            ticket = await self._find(uow, reference)
            if ticket is None:
                raise ResourceNotFoundException("Ticket", reference)
            conversation = await uow.conversations.list_for_ticket(ticket.id)
        return ticket, conversation

    async def resolve_reference(self, reference: str) -> Optional[UUID]:
        """Ticket id for an email reference, or None if nothing matches."""
        async with self._uow_factory() as uow:
            ticket = await self._find(uow, reference)
        return ticket.id if ticket else None

    async def list_responses(self, reference: str) -> List[AIResponse]:
        async with self._uow_factory() as uow:
            ticket = await self._find(uow, reference)
            if ticket is None:
                raise ResourceNotFoundException("Ticket", reference)
            return await uow.ai_responses.list_for_ticket(ticket.id)

    async def record_customer_reply(self, reply: NewReply) -> Tuple[Ticket, Conversation]:
        """
        Append a customer turn and advance the turn accounting.

        Emits conversation.added after commit.
        """
        async with self._uow_factory() as uow:
            ticket = await require_ticket(uow, reply.ticket_id)
            conversation = await uow.conversations.add(new_customer_turn(ticket.id, reply.message))

            ticket.conversation_turn_count += 1
            ticket.conversation_stage = stage_for_turn(ticket.conversation_turn_count)
            ticket.touch()
            ticket = await uow.tickets.update(ticket)

            integrations = await self._runtime.integrations(uow)
            await uow.commit()

        logger.info(
            "Customer reply recorded",
            extra={
                "ticket_id": str(ticket.id),
                "turn_count": ticket.conversation_turn_count,
                "stage": ticket.conversation_stage,
            }
        )

        self._dispatcher.notify(
            WebhookEvent.CONVERSATION_ADDED,
            {"ticket": ticket.to_dict(), "conversation": conversation.to_dict()},
            integrations,
        )
        return ticket, conversation

    async def update_status(self, ticket_id: UUID, status: str) -> Ticket:
        """Explicit status change; the only way out of resolved/closed."""
        async with self._uow_factory() as uow:
            ticket = await require_ticket(uow, ticket_id)
            previous = ticket.status
            changed = apply_manual_status(ticket, status)
            if changed:
                ticket = await uow.tickets.update(ticket)
            integrations = await self._runtime.integrations(uow)
            await uow.commit()

        if changed:
            logger.info(
                "Ticket status updated",
                extra={"ticket_id": str(ticket.id), "from_status": previous, "to_status": status}
            )
            self._dispatcher.notify(
                STATUS_EVENTS.get(status, WebhookEvent.TICKET_UPDATED),
                {"ticket": ticket.to_dict(), "previous_status": previous},
                integrations,
            )
        return ticket

    async def _find(self, uow: IUnitOfWork, reference: str) -> Optional[Ticket]:
        reference = reference.strip()
        if looks_like_uuid(reference):
            return await uow.tickets.get(UUID(reference))
        return await uow.tickets.get_by_number(normalize_ticket_number(reference))
