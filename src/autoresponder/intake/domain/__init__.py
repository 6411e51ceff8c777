"""
Intake Domain Layer
===================

Canonical intake events, webhook signatures and email threading rules.
"""

from autoresponder.intake.domain.entities import (
    NewTicket,
    NewReply,
    ParsedEmail,
    EmailAddress,
    EmailAttachment,
)
from autoresponder.intake.domain.signatures import sign_payload, verify_signature, tokens_match
from autoresponder.intake.domain.rules import (
    is_reply,
    extract_ticket_reference,
    extract_subject_reference,
    looks_like_uuid,
    normalize_ticket_number,
    clean_email_body,
)

__all__ = [
    "NewTicket",
    "NewReply",
    "ParsedEmail",
    "EmailAddress",
    "EmailAttachment",
    "sign_payload",
    "verify_signature",
    "tokens_match",
    "is_reply",
    "extract_ticket_reference",
    "extract_subject_reference",
    "looks_like_uuid",
    "normalize_ticket_number",
    "clean_email_body",
]
