"""
Intake Controllers (API Routes)
===============================

Inbound webhooks: signed ticket events from third-party systems and raw
MIME email from an inbound-mail provider.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from starlette.datastructures import UploadFile

from autoresponder.config import Settings
from autoresponder.core import AuthorizationException, IntegrationDisabledException, ValidationException
from autoresponder.intake.application import IntakeNormalizer
from autoresponder.intake.domain import NewReply, tokens_match
from autoresponder.intake.infrastructure import parse_email
from autoresponder.tickets.application import (
    TicketService, ResponsePipeline, RuntimeSettingsService, UnitOfWorkFactory,
)
from autoresponder.tickets.interfaces.dependencies import (
    get_app_settings,
    get_intake_normalizer,
    get_response_pipeline,
    get_runtime_settings,
    get_ticket_service,
    get_uow_factory,
)
from autoresponder.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Inbound Webhooks"])

SIGNATURE_HEADER = "X-Webhook-Signature"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _read_email_content(request: Request) -> bytes:
    """Raw MIME bytes from a multipart upload, a `text` form field or the body."""
    content_type = request.headers.get("content-type", "")
    if not content_type.startswith("multipart/form-data"):
        return await request.body()

    form = await request.form()
    part = form.get("email")
    if isinstance(part, UploadFile):
        return await part.read()
    if isinstance(part, str) and part.strip():
        return part.encode("utf-8")

    text = form.get("text")
    if isinstance(text, str):
        return text.encode("utf-8")
    return b""


# ========== Ticket webhooks ==========

@router.post(
    "/receive",
    status_code=status.HTTP_201_CREATED,
    summary="Receive a ticket event",
    description="""
    Accepts `{"event": "ticket.create" | "ticket.created", "data": {...}}`.

    When a webhook secret is configured the body must carry a valid
    `X-Webhook-Signature` (hex HMAC-SHA256 of the exact body bytes).

    Field fallbacks: `subject|title`, `message|description|body`,
    `customer_email|email|user.email`, `customer_name|name`, `category|type`.
    """,
    responses={
        400: {"description": "Malformed payload or unsupported event"},
        401: {"description": "Invalid webhook signature"}
    }
)
async def receive_webhook(
    request: Request,
    auto_respond: bool = Query(False, description="Run the response pipeline for the new ticket"),
    app_settings: Settings = Depends(get_app_settings),
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    runtime: RuntimeSettingsService = Depends(get_runtime_settings),
    normalizer: IntakeNormalizer = Depends(get_intake_normalizer),
    pipeline: ResponsePipeline = Depends(get_response_pipeline)
) -> Dict[str, Any]:
    body = await request.body()

    secret = app_settings.webhook_secret
    if not secret:
        async with uow_factory() as uow:
            integrations = await runtime.integrations(uow)
        secret = integrations.webhooks.secret

    new_ticket = normalizer.from_webhook(body, request.headers.get(SIGNATURE_HEADER), secret)
    result = await pipeline.handle_new_ticket(new_ticket, auto_respond=auto_respond)

    logger.info(
        "Webhook ticket accepted",
        extra={"ticket_id": result["ticket"]["id"], "auto_respond": auto_respond}
    )
    return {"success": True, **result}


@router.get("/receive", summary="Webhook handshake")
async def webhook_handshake(challenge: Optional[str] = Query(None)) -> Dict[str, Any]:
    if challenge:
        return {"challenge": challenge}
    return {"status": "active", "endpoint": "/webhooks/receive", "timestamp": _now()}


# ========== Email ==========

@router.post(
    "/email",
    summary="Receive an inbound email",
    description="""
    Accepts `multipart/form-data` with an `email` file (or `text` field),
    or a raw MIME body.

    Replies that reference a known ticket (In-Reply-To/References thread id,
    or a ticket number in the subject) are added to that ticket; anything
    else opens a new ticket. Both trigger the response pipeline.
    """,
    responses={
        400: {"description": "No email content found"},
        503: {"description": "Email integration is not enabled"}
    }
)
async def receive_email(
    request: Request,
    uow_factory: UnitOfWorkFactory = Depends(get_uow_factory),
    runtime: RuntimeSettingsService = Depends(get_runtime_settings),
    normalizer: IntakeNormalizer = Depends(get_intake_normalizer),
    tickets: TicketService = Depends(get_ticket_service),
    pipeline: ResponsePipeline = Depends(get_response_pipeline)
) -> Dict[str, Any]:
    async with uow_factory() as uow:
        integrations = await runtime.integrations(uow)
    if not integrations.email.enabled:
        raise IntegrationDisabledException("Email integration is not enabled")

    raw = await _read_email_content(request)
    if not raw.strip():
        raise ValidationException("No email content found")

    parsed = parse_email(raw)
    event = await normalizer.from_email(parsed, tickets.resolve_reference)

    if isinstance(event, NewReply):
        result = await pipeline.handle_reply(event, auto_respond=True)
        action = "reply_added"
    else:
        result = await pipeline.handle_new_ticket(event, auto_respond=True)
        action = "ticket_created"

    logger.info(
        "Inbound email processed",
        extra={"action": action, "ticket_id": result["ticket"]["id"], "message_id": parsed.message_id}
    )
    return {"success": True, "action": action, **result}


@router.get("/email", summary="Email provider handshake")
async def email_handshake(
    challenge: Optional[str] = Query(None),
    verify_token: Optional[str] = Query(None),
    app_settings: Settings = Depends(get_app_settings)
) -> Dict[str, Any]:
    if challenge:
        return {"challenge": challenge}
    if verify_token is not None:
        if tokens_match(verify_token, app_settings.email_webhook_token):
            return {"verified": True}
        raise AuthorizationException("Invalid verification token")
    return {"status": "active", "endpoint": "/webhooks/email", "timestamp": _now()}
