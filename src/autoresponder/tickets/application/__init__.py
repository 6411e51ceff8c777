"""
Ticket Application Layer
========================

Application layer for the ticket ledger and decision router.

Contains:
- Services: TicketService, ResponsePipeline, ReviewService, RuntimeSettingsService
- Repository interfaces and the unit of work
- DTOs: request models for the HTTP layer

This layer depends on the domain layer and repository interfaces,
but not on concrete infrastructure implementations.
"""

from autoresponder.tickets.application.dto import (
    TicketCreateRequest,
    ReplyRequest,
    TicketStatusUpdate,
    RespondRequest,
    ApproveRequest,
    EditRequest,
    SendRequest,
    RejectRequest,
    KnowledgeEntryCreateRequest,
    AISettingsUpdate,
    IntegrationSettingsUpdate,
)
from autoresponder.tickets.application.services import (
    ITicketRepository,
    IConversationRepository,
    IAIResponseRepository,
    ISettingsRepository,
    IUnitOfWork,
    UnitOfWorkFactory,
    RuntimeSettingsService,
    TicketService,
)
from autoresponder.tickets.application.pipeline import (
    TicketLocks,
    ResponsePipeline,
    RespondResult,
)
from autoresponder.tickets.application.review import ReviewService

__all__ = [
    # DTOs
    "TicketCreateRequest",
    "ReplyRequest",
    "TicketStatusUpdate",
    "RespondRequest",
    "ApproveRequest",
    "EditRequest",
    "SendRequest",
    "RejectRequest",
    "KnowledgeEntryCreateRequest",
    "AISettingsUpdate",
    "IntegrationSettingsUpdate",
    # Repository Interfaces
    "ITicketRepository",
    "IConversationRepository",
    "IAIResponseRepository",
    "ISettingsRepository",
    "IUnitOfWork",
    "UnitOfWorkFactory",
    # Services
    "RuntimeSettingsService",
    "TicketService",
    "TicketLocks",
    "ResponsePipeline",
    "RespondResult",
    "ReviewService",
]
