"""
Response Pipeline
=================

Analysis -> generation -> routing -> persistence -> notification for
one ticket at a time.

Runs for the same ticket are serialised by `TicketLocks`; different
tickets proceed concurrently. Nothing is written until the draft exists,
so a failed generation leaves the ticket exactly as it was.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple
from uuid import UUID

from autoresponder.analysis.application import AnalysisEngine
from autoresponder.analysis.domain import AnalysisResult
from autoresponder.config import SenderType, TicketStatus, WebhookEvent, AIResponseStatus
from autoresponder.config.runtime import IntegrationSettings
from autoresponder.core import LLMException
from autoresponder.intake.domain import NewTicket, NewReply
from autoresponder.notifications.application import NotificationDispatcher
from autoresponder.notifications.domain import reply_email
from autoresponder.responses.application import ResponseGenerator
from autoresponder.responses.domain import GenerationOptions, format_history, plain_history
from autoresponder.tickets.application.services import (
    UnitOfWorkFactory, RuntimeSettingsService, TicketService, require_ticket,
)
from autoresponder.tickets.domain import (
    Ticket, Conversation, AIResponse, RoutingDecision,
    route_decision, transition_response, apply_pipeline_status,
)
from autoresponder.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


class TicketLocks:
    """
    One asyncio.Lock per ticket id.

    Locks are held weakly: an entry disappears once no task holds or
    waits on it.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[UUID, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, ticket_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(ticket_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[ticket_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, ticket_id: UUID) -> AsyncIterator[None]:
        lock = self.lock_for(ticket_id)
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class RespondResult:
    """Outcome of one pipeline run."""
    ai_response: AIResponse
    conversation: Conversation
    ticket: Ticket
    decision: RoutingDecision
    analysis: AnalysisResult

    @property
    def auto_sent(self) -> bool:
        return self.decision.auto_send

    @property
    def requires_review(self) -> bool:
        return self.decision.requires_review

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ai_response": self.ai_response.to_dict(),
            "conversation": self.conversation.to_dict(),
            "ticket": self.ticket.to_dict(),
            "confidence_score": self.ai_response.confidence_score,
            "requires_review": self.requires_review,
            "auto_sent": self.auto_sent,
            "decision_reason": self.decision.reason,
            "analysis": self.analysis.to_dict(),
        }


def split_latest_customer_turn(turns: List[Conversation], fallback: str) -> Tuple[str, List[str]]:
    """The message to answer and the plain-text turns that preceded it."""
    for index in range(len(turns) - 1, -1, -1):
        if turns[index].sender_type == SenderType.CUSTOMER:
            return turns[index].message, plain_history(turns[:index])
    return fallback, plain_history(turns)


def fold_analysis(ticket: Ticket, analysis: AnalysisResult) -> None:
    ticket.sentiment = analysis.sentiment.sentiment
    ticket.sentiment_score = analysis.sentiment.score
    ticket.urgency_level = analysis.urgency.level
    ticket.urgency_score = analysis.urgency.score
    ticket.intent = analysis.intent.intent
    ticket.intent_confidence = analysis.intent.confidence


class ResponsePipeline:
    """
    Turns the latest customer message on a ticket into a routed draft.

    The Decision Router lives here: this is the only writer of the
    pipeline-owned ticket statuses and of fresh draft statuses.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        tickets: TicketService,
        analysis_engine: AnalysisEngine,
        generator: ResponseGenerator,
        runtime_settings: RuntimeSettingsService,
        dispatcher: NotificationDispatcher,
        locks: TicketLocks,
        thread_domain: str
    ):
        self._uow_factory = uow_factory
        self._tickets = tickets
        self._analysis = analysis_engine
        self._generator = generator
        self._runtime = runtime_settings
        self._dispatcher = dispatcher
        self._locks = locks
        self._thread_domain = thread_domain

    async def respond(self, ticket_id: UUID, options: Optional[GenerationOptions] = None) -> RespondResult:
        """
        Run the pipeline for one ticket.

        Raises:
            ResourceNotFoundException: Ticket does not exist
            LLMException: Draft generation failed (nothing was written)
            RepositoryException: Storage failed
        """
        async with self._locks.hold(ticket_id):
            return await self._respond_locked(ticket_id, options)

    async def analyze(self, ticket_id: UUID) -> Tuple[Ticket, AnalysisResult]:
        """Analyse the latest customer turn and cache the result on the ticket."""
        async with self._locks.hold(ticket_id):
            async with self._uow_factory() as uow:
                ticket = await require_ticket(uow, ticket_id)
                turns = await uow.conversations.list_for_ticket(ticket_id)

            message, history = split_latest_customer_turn(turns, ticket.initial_message)
            analysis = await self._analysis.analyze(message, ticket.subject, ticket.priority, history)

            async with self._uow_factory() as uow:
                ticket = await require_ticket(uow, ticket_id)
                fold_analysis(ticket, analysis)
                ticket.touch()
                ticket = await uow.tickets.update(ticket)
                await uow.commit()

        return ticket, analysis

    async def handle_new_ticket(self, new_ticket: NewTicket, auto_respond: bool = True) -> Dict[str, Any]:
        """
        Create a ticket, then optionally respond to it.

        The ticket is committed first; a generation failure is reported
        as `ai_error` and does not undo the ticket.
        """
        ticket, conversation = await self._tickets.create_ticket(new_ticket)
        result: Dict[str, Any] = {
            "ticket": ticket.to_dict(),
            "conversation": conversation.to_dict(),
        }
        if not auto_respond:
            return result

        try:
            outcome = await self.respond(ticket.id)
        except LLMException as e:
            logger.error(
                "Auto-respond failed for new ticket",
                extra={"ticket_id": str(ticket.id), "error": e.message}
            )
            result["ai_error"] = e.message
            return result

        result["ticket"] = outcome.ticket.to_dict()
        result["response"] = outcome.to_dict()
        return result

    async def handle_reply(self, reply: NewReply, auto_respond: bool = True) -> Dict[str, Any]:
        """
        Record a customer reply, then optionally respond, under one lock.

        The reply is committed before generation starts.
        """
        async with self._locks.hold(reply.ticket_id):
            ticket, conversation = await self._tickets.record_customer_reply(reply)
            result: Dict[str, Any] = {
                "ticket": ticket.to_dict(),
                "conversation": conversation.to_dict(),
            }
            if not auto_respond:
                return result

            try:
                outcome = await self._respond_locked(reply.ticket_id, None)
            except LLMException as e:
                logger.error(
                    "Auto-respond failed for reply",
                    extra={"ticket_id": str(reply.ticket_id), "error": e.message}
                )
                result["ai_error"] = e.message
                return result

        result["ticket"] = outcome.ticket.to_dict()
        result["response"] = outcome.to_dict()
        return result

    async def _respond_locked(self, ticket_id: UUID, options: Optional[GenerationOptions]) -> RespondResult:
        options = options or GenerationOptions()

        with log_latency(logger, "respond_pipeline", ticket_id=str(ticket_id)):
            # Read phase
            async with self._uow_factory() as uow:
                ticket = await require_ticket(uow, ticket_id)
                turns = await uow.conversations.list_for_ticket(ticket_id)
                ai_settings = await self._runtime.ai_settings(uow)
                prompt_history = format_history(turns)
                knowledge = await self._generator.retrieve_knowledge(
                    uow.knowledge_base, ticket.initial_message, prompt_history, options
                )

            message, history = split_latest_customer_turn(turns, ticket.initial_message)
            analysis = await self._analysis.analyze(message, ticket.subject, ticket.priority, history)

            generated = await self._generator.generate(
                subject=ticket.subject,
                initial_message=ticket.initial_message,
                history=prompt_history,
                ai_settings=ai_settings,
                knowledge=knowledge,
                options=options,
                priority=ticket.priority,
                category=ticket.category,
            )

            decision = route_decision(
                generated.confidence_score,
                ai_settings.auto_send_threshold,
                ai_settings.require_review_below,
            )

            # Write phase
            async with self._uow_factory() as uow:
                ticket = await require_ticket(uow, ticket_id)

                response = await uow.ai_responses.add(AIResponse(
                    ticket_id=ticket.id,
                    response_text=generated.response_text,
                    confidence_score=generated.confidence_score,
                    model_used=generated.model_used,
                    prompt_used=generated.prompt_used,
                    tokens_used=generated.tokens_used,
                    cost=generated.cost,
                    knowledge_sources=generated.knowledge_sources,
                    status=AIResponseStatus.PENDING_REVIEW,
                ))

                conversation = await uow.conversations.add(Conversation(
                    ticket_id=ticket.id,
                    message=generated.response_text,
                    sender_type=SenderType.AI,
                    ai_confidence=generated.confidence_score,
                    is_ai_generated=True,
                    requires_review=decision.requires_review,
                ))

                response.conversation_id = conversation.id
                if decision.auto_send:
                    transition_response(response, AIResponseStatus.APPROVED)
                    transition_response(response, AIResponseStatus.SENT)
                response = await uow.ai_responses.update(response)

                target = TicketStatus.AI_RESPONDED if decision.auto_send else TicketStatus.HUMAN_REVIEW
                if not apply_pipeline_status(ticket, target):
                    logger.info(
                        "Ticket status left unchanged",
                        extra={"ticket_id": str(ticket.id), "status": ticket.status, "target": target}
                    )
                fold_analysis(ticket, analysis)
                ticket.touch()
                ticket = await uow.tickets.update(ticket)

                integrations = await self._runtime.integrations(uow)
                await uow.commit()

        logger.info(
            "Draft routed",
            extra={
                "ticket_id": str(ticket.id),
                "ai_response_id": str(response.id),
                "confidence_score": generated.confidence_score,
                "decision": decision.action,
                "reason": decision.reason,
                "tokens_used": generated.tokens_used,
                "cost": generated.cost,
            }
        )

        result = RespondResult(
            ai_response=response,
            conversation=conversation,
            ticket=ticket,
            decision=decision,
            analysis=analysis,
        )
        self._notify(result, integrations)
        return result

    def _notify(self, result: RespondResult, integrations: IntegrationSettings) -> None:
        data = {
            "ticket": result.ticket.to_dict(),
            "ai_response": result.ai_response.to_dict(),
            "decision_reason": result.decision.reason,
        }
        self._dispatcher.notify(WebhookEvent.AI_RESPONSE_GENERATED, data, integrations)

        if result.decision.auto_send:
            self._dispatcher.notify(
                WebhookEvent.AI_RESPONSE_APPROVED,
                data,
                integrations,
                email=reply_email(
                    result.ticket, result.ai_response.response_text,
                    integrations.email, self._thread_domain,
                ),
            )
        else:
            self._dispatcher.notify(WebhookEvent.AI_RESPONSE_REQUIRES_REVIEW, data, integrations)
