"""
Ticket Controllers (API Routes)
===============================

FastAPI routes for tickets, drafted responses, runtime settings and the
knowledge base.

Controllers delegate to application services.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from autoresponder.config import TicketSource
from autoresponder.intake.application import IntakeNormalizer
from autoresponder.responses.domain import extract_keywords, MAX_KNOWLEDGE_ENTRIES
from autoresponder.tickets.application import (
    TicketService,
    ResponsePipeline,
    ReviewService,
    RuntimeSettingsService,
    UnitOfWorkFactory,
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
from autoresponder.tickets.interfaces.dependencies import (
    get_ticket_service,
    get_response_pipeline,
    get_review_service,
    get_runtime_settings,
    get_intake_normalizer,
    get_uow_factory,
)
from autoresponder.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/tickets", tags=["Tickets"])
responses_router = APIRouter(prefix="/ai-responses", tags=["AI Responses"])
settings_router = APIRouter(prefix="/settings", tags=["Settings"])
knowledge_router = APIRouter(prefix="/knowledge-base", tags=["Knowledge Base"])


# ========== Example payloads for Swagger ==========

CREATE_TICKET_EXAMPLE = {
    "subject": "Cannot log in",
    "initial_message": "I reset my password twice and still get 'invalid credentials'.",
    "customer_email": "jane@example.com",
    "customer_name": "Jane Doe",
    "priority": "high",
    "auto_respond": True
}

RESPOND_RESULT_EXAMPLE = {
    "ai_response": {"id": "uuid", "status": "sent", "confidence_score": 0.85},
    "conversation": {"id": "uuid", "sender_type": "ai", "requires_review": False},
    "ticket": {"id": "uuid", "ticket_number": "TKT-1001", "status": "ai_responded"},
    "confidence_score": 0.85,
    "requires_review": False,
    "auto_sent": True,
    "decision_reason": "auto_send",
    "analysis": {"sentiment": {"sentiment": "neutral"}, "urgency": {"level": "high"}}
}


# ========== Tickets ==========

@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    summary="Create a ticket",
    description="""
    Create a ticket from a direct API submission.

    With `auto_respond: true` the response pipeline runs right away and the
    result carries the routed draft under `response`. A model failure is
    reported as `ai_error`; the ticket is kept either way.
    """,
    responses={201: {"content": {"application/json": {"example": {"ticket": CREATE_TICKET_EXAMPLE}}}}}
)
async def create_ticket(
    payload: TicketCreateRequest,
    normalizer: IntakeNormalizer = Depends(get_intake_normalizer),
    pipeline: ResponsePipeline = Depends(get_response_pipeline)
) -> Dict[str, Any]:
    new_ticket = normalizer.build_ticket(
        subject=payload.subject,
        message=payload.initial_message,
        customer_email=payload.customer_email,
        customer_name=payload.customer_name,
        priority=payload.priority,
        category=payload.category,
        source=TicketSource.API,
    )
    return await pipeline.handle_new_ticket(new_ticket, auto_respond=payload.auto_respond)


@router.get("/{ticket_ref}", summary="Get a ticket with its conversation")
async def get_ticket(
    ticket_ref: str,
    service: TicketService = Depends(get_ticket_service)
) -> Dict[str, Any]:
    """Look up by UUID or ticket number (`TKT-1001` or `1001`)."""
    ticket, conversation = await service.get_ticket_with_conversation(ticket_ref)
    return {
        "ticket": ticket.to_dict(),
        "conversation": [turn.to_dict() for turn in conversation],
    }


@router.post(
    "/{ticket_ref}/replies",
    status_code=status.HTTP_201_CREATED,
    summary="Add a customer reply"
)
async def add_reply(
    ticket_ref: str,
    payload: ReplyRequest,
    service: TicketService = Depends(get_ticket_service),
    normalizer: IntakeNormalizer = Depends(get_intake_normalizer),
    pipeline: ResponsePipeline = Depends(get_response_pipeline)
) -> Dict[str, Any]:
    ticket = await service.get_ticket(ticket_ref)
    reply = normalizer.build_reply(ticket.id, payload.message)
    return await pipeline.handle_reply(reply, auto_respond=payload.auto_respond)


@router.post(
    "/{ticket_ref}/respond",
    summary="Draft and route a response",
    description="""
    Run analysis and draft generation for the ticket, then route the draft:

    - confidence >= `auto_send_threshold`: sent to the customer
    - confidence < `require_review_below`: held for review
    - otherwise: held for review (borderline)
    """,
    responses={
        200: {"content": {"application/json": {"example": RESPOND_RESULT_EXAMPLE}}},
        502: {"description": "Model call failed; nothing was stored"}
    }
)
async def respond_to_ticket(
    ticket_ref: str,
    payload: Optional[RespondRequest] = None,
    service: TicketService = Depends(get_ticket_service),
    pipeline: ResponsePipeline = Depends(get_response_pipeline)
) -> Dict[str, Any]:
    ticket = await service.get_ticket(ticket_ref)
    options = payload.to_options() if payload else None
    result = await pipeline.respond(ticket.id, options)
    return result.to_dict()


@router.post("/{ticket_ref}/analyze", summary="Analyse the latest customer message")
async def analyze_ticket(
    ticket_ref: str,
    service: TicketService = Depends(get_ticket_service),
    pipeline: ResponsePipeline = Depends(get_response_pipeline)
) -> Dict[str, Any]:
    ticket = await service.get_ticket(ticket_ref)
    ticket, analysis = await pipeline.analyze(ticket.id)
    return {"ticket": ticket.to_dict(), "analysis": analysis.to_dict()}


@router.patch("/{ticket_ref}/status", summary="Change a ticket's status")
async def update_ticket_status(
    ticket_ref: str,
    payload: TicketStatusUpdate,
    service: TicketService = Depends(get_ticket_service)
) -> Dict[str, Any]:
    ticket = await service.get_ticket(ticket_ref)
    ticket = await service.update_status(ticket.id, payload.status)
    return {"ticket": ticket.to_dict()}


@router.get("/{ticket_ref}/ai-responses", summary="List a ticket's drafts, newest first")
async def list_ticket_responses(
    ticket_ref: str,
    service: TicketService = Depends(get_ticket_service)
) -> Dict[str, Any]:
    drafts = await service.list_responses(ticket_ref)
    return {
        "ai_responses": [draft.to_dict() for draft in drafts],
        "count": len(drafts),
    }


# ========== Review actions ==========

@responses_router.get("/{response_id}", summary="Get one draft")
async def get_ai_response(
    response_id: UUID,
    review: ReviewService = Depends(get_review_service)
) -> Dict[str, Any]:
    response = await review.get_response(response_id)
    return {"ai_response": response.to_dict()}


@responses_router.post("/{response_id}/approve", summary="Approve a held draft (and send it)")
async def approve_ai_response(
    response_id: UUID,
    payload: Optional[ApproveRequest] = None,
    review: ReviewService = Depends(get_review_service)
) -> Dict[str, Any]:
    payload = payload or ApproveRequest()
    return await review.approve(response_id, send=payload.send, reviewed_by=payload.reviewed_by)


@responses_router.post("/{response_id}/edit", summary="Replace a draft's text")
async def edit_ai_response(
    response_id: UUID,
    payload: EditRequest,
    review: ReviewService = Depends(get_review_service)
) -> Dict[str, Any]:
    return await review.edit(response_id, payload.response_text)


@responses_router.post(
    "/{response_id}/send",
    summary="Send an approved or edited draft",
    responses={400: {"description": "Response must be approved or edited before sending"}}
)
async def send_ai_response(
    response_id: UUID,
    payload: Optional[SendRequest] = None,
    review: ReviewService = Depends(get_review_service)
) -> Dict[str, Any]:
    reviewed_by = payload.reviewed_by if payload else None
    return await review.send(response_id, reviewed_by=reviewed_by)


@responses_router.post("/{response_id}/reject", summary="Reject a draft")
async def reject_ai_response(
    response_id: UUID,
    payload: Optional[RejectRequest] = None,
    review: ReviewService = Depends(get_review_service)
) -> Dict[str, Any]:
    reason = payload.reason if payload else None
    return await review.reject(response_id, reason=reason)


# ========== Runtime settings ==========

@settings_router.get("/ai", summary="Effective AI settings")
async def get_ai_settings(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    runtime: RuntimeSettingsService = Depends(get_runtime_settings)
) -> Dict[str, Any]:
    async with uow_factory() as uow:
        ai_settings = await runtime.ai_settings(uow)
    return ai_settings.to_store()


@settings_router.put("/ai", summary="Update AI settings")
async def update_ai_settings(
    payload: AISettingsUpdate,
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    runtime: RuntimeSettingsService = Depends(get_runtime_settings)
) -> Dict[str, Any]:
    async with uow_factory() as uow:
        ai_settings = await runtime.update_ai_settings(uow, payload.changes())
        await uow.commit()

    logger.info("AI settings updated", extra={"fields": sorted(payload.changes())})
    return ai_settings.to_store()


@settings_router.get("/integrations", summary="Effective integration settings")
async def get_integration_settings(
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    runtime: RuntimeSettingsService = Depends(get_runtime_settings)
) -> Dict[str, Any]:
    async with uow_factory() as uow:
        integrations = await runtime.integrations(uow)
    return integrations.model_dump()


@settings_router.put("/integrations", summary="Update integration settings")
async def update_integration_settings(
    payload: IntegrationSettingsUpdate,
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    runtime: RuntimeSettingsService = Depends(get_runtime_settings)
) -> Dict[str, Any]:
    async with uow_factory() as uow:
        integrations = await runtime.update_integrations(uow, payload.changes())
        await uow.commit()

    logger.info("Integration settings updated", extra={"sections": sorted(payload.changes())})
    return integrations.model_dump()


# ========== Knowledge base ==========

@knowledge_router.post("", status_code=status.HTTP_201_CREATED, summary="Add a knowledge-base entry")
async def create_knowledge_entry(
    payload: KnowledgeEntryCreateRequest,
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory)
) -> Dict[str, Any]:
    async with uow_factory() as uow:
        entry = await uow.knowledge_base.create(
            title=payload.title,
            content=payload.content,
            category=payload.category,
            tags=payload.tags,
        )
        await uow.commit()

    logger.info("Knowledge base entry created", extra={"entry_id": entry.id})
    return {"entry": entry.to_dict()}


@knowledge_router.get("/search", summary="Search the knowledge base")
async def search_knowledge_base(
    q: str = Query(..., min_length=1, description="Free-text query"),
    limit: int = Query(MAX_KNOWLEDGE_ENTRIES, ge=1, le=MAX_KNOWLEDGE_ENTRIES),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory)
) -> Dict[str, Any]:
    keywords = extract_keywords(q)
    entries = []
    if keywords:
        async with uow_factory() as uow:
            entries = await uow.knowledge_base.search(keywords, limit=limit)
    return {
        "query": q,
        "keywords": keywords,
        "results": [entry.to_dict() for entry in entries],
    }
