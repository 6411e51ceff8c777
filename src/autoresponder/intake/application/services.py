"""
Intake Application Services
===========================

Normalises every inbound channel into a NewTicket or NewReply.

Validation happens here, before anything is written: a rejected
payload never leaves a trace in the ticket store.
"""

import json
from typing import Any, Awaitable, Callable, Mapping, Optional, Union
from uuid import UUID

from email_validator import validate_email, EmailNotValidError

from autoresponder.config import TicketPriority, TicketSource, VALID_PRIORITIES, VALID_SOURCES
from autoresponder.core import (
    AuthorizationException,
    UnsupportedEventException,
    ValidationException,
)
from autoresponder.intake.domain import (
    NewTicket, NewReply, ParsedEmail,
    verify_signature, is_reply, extract_ticket_reference, clean_email_body,
)
from autoresponder.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

TICKET_CREATE_EVENTS = frozenset({"ticket.create", "ticket.created"})
DEFAULT_WEBHOOK_SUBJECT = "Support Request"

# Resolves an email ticket reference (UUID text or ticket number) to a ticket id
TicketResolver = Callable[[str], Awaitable[Optional[UUID]]]


def _first(data: Mapping[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _nested(data: Mapping[str, Any], parent: str, key: str) -> Optional[Any]:
    inner = data.get(parent)
    if isinstance(inner, Mapping):
        return inner.get(key) or None
    return None


def validate_email_address(value: Any) -> str:
    """
    Check address syntax and return the address exactly as given.

    Deliverability is never checked, and the stored address keeps the
    caller's spelling.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationException("customer_email is required")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationException(f"Invalid customer_email: {e}")
    return value


def _required_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationException(f"{field} is required")
    return value


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    return text if text.strip() else None


class IntakeNormalizer:
    """
    Converts webhook payloads, parsed emails and direct requests into
    canonical intake events.
    """

    def build_ticket(
        self,
        subject: Any,
        message: Any,
        customer_email: Any,
        customer_name: Any = None,
        priority: Any = None,
        category: Any = None,
        source: str = TicketSource.API
    ) -> NewTicket:
        """
        Validate and build a NewTicket.

        Raises:
            ValidationException: On a missing subject/message, an invalid
                email address, or an unknown priority/source
        """
        priority = (_optional_text(priority) or TicketPriority.MEDIUM).strip().lower()
        if priority not in VALID_PRIORITIES:
            raise ValidationException(
                f"Invalid priority: {priority}",
                details={"allowed": VALID_PRIORITIES}
            )
        if source not in VALID_SOURCES:
            raise ValidationException(f"Invalid source: {source}")

        return NewTicket(
            subject=_required_text(subject, "subject"),
            message=_required_text(message, "message"),
            customer_email=validate_email_address(customer_email),
            customer_name=_optional_text(customer_name),
            priority=priority,
            category=_optional_text(category),
            source=source,
        )

    def build_reply(self, ticket_id: UUID, message: Any) -> NewReply:
        return NewReply(ticket_id=ticket_id, message=_required_text(message, "message"))

    # ========== Webhook ==========

    def from_webhook(
        self,
        body: bytes,
        signature: Optional[str],
        secret: Optional[str]
    ) -> NewTicket:
        """
        Verify and normalise an inbound ticket webhook.

        Verification is skipped when no secret is configured.

        Raises:
            AuthorizationException: Signature missing or wrong
            UnsupportedEventException: Event is not a ticket creation
            ValidationException: Body is not a JSON object or lacks fields
        """
        if secret and not verify_signature(body, signature, secret):
            logger.warning("Rejected inbound webhook", extra={"reason": "invalid_signature"})
            raise AuthorizationException("Invalid webhook signature")

        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError):
            raise ValidationException("Webhook body must be valid JSON")
        if not isinstance(payload, dict):
            raise ValidationException("Webhook body must be a JSON object")

        event = payload.get("event")
        if event not in TICKET_CREATE_EVENTS:
            raise UnsupportedEventException(event)

        data = payload.get("data")
        if not isinstance(data, dict):
            raise ValidationException("Webhook data must be an object")

        return self.build_ticket(
            subject=_first(data, "subject", "title") or DEFAULT_WEBHOOK_SUBJECT,
            message=_first(data, "message", "description", "body"),
            customer_email=_first(data, "customer_email", "email") or _nested(data, "user", "email"),
            customer_name=_first(data, "customer_name", "name") or _nested(data, "user", "name"),
            priority=data.get("priority"),
            category=_first(data, "category", "type"),
            source=TicketSource.WEBHOOK,
        )

    # ========== Email ==========

    async def from_email(
        self,
        email: ParsedEmail,
        resolve_ticket: TicketResolver
    ) -> Union[NewTicket, NewReply]:
        """
        Classify an inbound email as a reply or a new ticket.

        A reply whose reference cannot be resolved becomes a new ticket.
        """
        message = clean_email_body(email.text)

        if is_reply(email):
            reference = extract_ticket_reference(email)
            ticket_id = await resolve_ticket(reference) if reference else None
            if ticket_id is not None:
                logger.info(
                    "Email threaded onto existing ticket",
                    extra={"ticket_id": str(ticket_id), "reference": reference}
                )
                return self.build_reply(ticket_id, message)
            logger.info(
                "Reply email did not resolve to a ticket, creating new ticket",
                extra={"reference": reference}
            )

        return self.build_ticket(
            subject=email.subject,
            message=message,
            customer_email=email.sender.email,
            customer_name=email.sender.name,
            source=TicketSource.EMAIL,
        )
