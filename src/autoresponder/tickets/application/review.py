"""
Review Service
==============

Human actions on held drafts: approve, edit, send and reject.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from autoresponder.config import AIResponseStatus, SenderType, TicketStatus, WebhookEvent
from autoresponder.config.runtime import IntegrationSettings
from autoresponder.core import ValidationException
from autoresponder.notifications.application import NotificationDispatcher
from autoresponder.notifications.domain import reply_email
from autoresponder.tickets.application.pipeline import TicketLocks
from autoresponder.tickets.application.services import (
    IUnitOfWork, UnitOfWorkFactory, RuntimeSettingsService,
    require_ticket, require_response,
)
from autoresponder.tickets.domain import (
    Ticket, Conversation, AIResponse,
    transition_response, apply_pipeline_status, utcnow,
)
from autoresponder.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

DEFAULT_REVIEWER = "system"

# Ticket statuses a sent reply moves to ai_responded
ANSWERABLE_STATUSES = frozenset({TicketStatus.NEW, TicketStatus.HUMAN_REVIEW})


def _result(
    response: AIResponse,
    conversation: Optional[Conversation] = None,
    ticket: Optional[Ticket] = None,
    **extra: Any
) -> Dict[str, Any]:
    result: Dict[str, Any] = {
        "ai_response": response.to_dict(),
        "conversation": conversation.to_dict() if conversation else None,
        "ticket": ticket.to_dict() if ticket else None,
    }
    result.update(extra)
    return result


class ReviewService:
    """
    Service for the review actions on an AIResponse.

    Each action runs under the owning ticket's lock so it cannot
    interleave with a pipeline run for the same ticket.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        runtime_settings: RuntimeSettingsService,
        dispatcher: NotificationDispatcher,
        locks: TicketLocks,
        thread_domain: str
    ):
        self._uow_factory = uow_factory
        self._runtime = runtime_settings
        self._dispatcher = dispatcher
        self._locks = locks
        self._thread_domain = thread_domain

    async def get_response(self, response_id: UUID) -> AIResponse:
        async with self._uow_factory() as uow:
            return await require_response(uow, response_id)

    async def approve(
        self,
        response_id: UUID,
        send: bool = True,
        reviewed_by: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Approve a pending draft, and by default send it straight away.

        Approve-only leaves the conversation ledger untouched.
        """
        ticket_id = await self._ticket_of(response_id)
        reviewer = reviewed_by or DEFAULT_REVIEWER

        async with self._locks.hold(ticket_id):
            async with self._uow_factory() as uow:
                response = await require_response(uow, response_id)
                transition_response(response, AIResponseStatus.APPROVED)

                conversation = None
                ticket = None
                if send:
                    conversation = await self._deliver_conversation(uow, response, reviewer)
                    ticket = await self._mark_answered(uow, response.ticket_id)
                    transition_response(response, AIResponseStatus.SENT)

                response = await uow.ai_responses.update(response)
                if ticket is None:
                    ticket = await require_ticket(uow, response.ticket_id)
                integrations = await self._runtime.integrations(uow)
                await uow.commit()

        logger.info(
            "AI response approved",
            extra={"ai_response_id": str(response.id), "sent": send, "reviewed_by": reviewer}
        )
        self._notify_sent(ticket, response, integrations, with_email=send)
        return _result(response, conversation, ticket, sent=send)

    async def edit(self, response_id: UUID, response_text: str) -> Dict[str, Any]:
        """Replace the draft text; the draft becomes `edited`."""
        if not isinstance(response_text, str) or not response_text.strip():
            raise ValidationException("response_text is required and must be a non-empty string")

        ticket_id = await self._ticket_of(response_id)
        async with self._locks.hold(ticket_id):
            async with self._uow_factory() as uow:
                response = await require_response(uow, response_id)
                transition_response(response, AIResponseStatus.EDITED)
                response.response_text = response_text.strip()
                response = await uow.ai_responses.update(response)
                await uow.commit()

        logger.info("AI response edited", extra={"ai_response_id": str(response.id)})
        return _result(response)

    async def send(self, response_id: UUID, reviewed_by: Optional[str] = None) -> Dict[str, Any]:
        """
        Send an approved or edited draft.

        Raises:
            InvalidStateTransitionException: Draft is not approved/edited
        """
        ticket_id = await self._ticket_of(response_id)
        reviewer = reviewed_by or DEFAULT_REVIEWER

        async with self._locks.hold(ticket_id):
            async with self._uow_factory() as uow:
                response = await require_response(uow, response_id)
                edited = response.status == AIResponseStatus.EDITED
                transition_response(response, AIResponseStatus.SENT)

                conversation = await self._deliver_conversation(uow, response, reviewer, edited)
                ticket = await self._mark_answered(uow, response.ticket_id)
                response = await uow.ai_responses.update(response)

                integrations = await self._runtime.integrations(uow)
                await uow.commit()

        logger.info(
            "AI response sent",
            extra={"ai_response_id": str(response.id), "reviewed_by": reviewer}
        )
        self._notify_sent(ticket, response, integrations, with_email=True)
        return _result(response, conversation, ticket)

    async def reject(self, response_id: UUID, reason: Optional[str] = None) -> Dict[str, Any]:
        ticket_id = await self._ticket_of(response_id)
        async with self._locks.hold(ticket_id):
            async with self._uow_factory() as uow:
                response = await require_response(uow, response_id)
                transition_response(response, AIResponseStatus.REJECTED)
                response = await uow.ai_responses.update(response)
                ticket = await require_ticket(uow, response.ticket_id)
                integrations = await self._runtime.integrations(uow)
                await uow.commit()

        logger.info("AI response rejected", extra={"ai_response_id": str(response.id), "reason": reason})
        self._dispatcher.notify(
            WebhookEvent.AI_RESPONSE_REJECTED,
            {"ticket": ticket.to_dict(), "ai_response": response.to_dict(), "reason": reason},
            integrations,
        )
        return _result(response, ticket=ticket, reason=reason)

    # ========== helpers ==========

    async def _ticket_of(self, response_id: UUID) -> UUID:
        async with self._uow_factory() as uow:
            response = await require_response(uow, response_id)
        return response.ticket_id

    async def _deliver_conversation(
        self,
        uow: IUnitOfWork,
        response: AIResponse,
        reviewer: str,
        edited: bool = False
    ) -> Conversation:
        """
        Make the conversation ledger reflect the text actually sent.

        The held AI turn is marked reviewed. If the text was edited, the
        edited text goes in as a new human turn and the draft links to it.
        """
        held = None
        if response.conversation_id is not None:
            held = await uow.conversations.get(response.conversation_id)

        if held is not None:
            held.mark_reviewed(reviewer)
            held = await uow.conversations.update_review(held)
            if held.message == response.response_text:
                return held
            edited = True

        conversation = await uow.conversations.add(Conversation(
            ticket_id=response.ticket_id,
            message=response.response_text,
            sender_type=SenderType.HUMAN if edited else SenderType.AI,
            ai_confidence=None if edited else response.confidence_score,
            is_ai_generated=not edited,
            requires_review=False,
            reviewed_by=reviewer,
            reviewed_at=utcnow(),
        ))
        response.conversation_id = conversation.id
        return conversation

    async def _mark_answered(self, uow: IUnitOfWork, ticket_id: UUID) -> Ticket:
        ticket = await require_ticket(uow, ticket_id)
        if ticket.status in ANSWERABLE_STATUSES and apply_pipeline_status(ticket, TicketStatus.AI_RESPONDED):
            ticket = await uow.tickets.update(ticket)
        return ticket

    def _notify_sent(
        self,
        ticket: Ticket,
        response: AIResponse,
        integrations: IntegrationSettings,
        with_email: bool
    ) -> None:
        email = None
        if with_email:
            email = reply_email(ticket, response.response_text, integrations.email, self._thread_domain)
        self._dispatcher.notify(
            WebhookEvent.AI_RESPONSE_APPROVED,
            {"ticket": ticket.to_dict(), "ai_response": response.to_dict()},
            integrations,
            email=email,
        )
