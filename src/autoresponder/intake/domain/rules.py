"""
Email Intake Rules
==================

Reply detection, ticket-reference extraction and body cleanup for
inbound email.
"""

import re
from typing import Optional

from autoresponder.intake.domain.entities import ParsedEmail

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

THREAD_TOKEN_PATTERN = re.compile(r"ticket-([a-f0-9-]+)", re.IGNORECASE)

# Tried in order; first captured group wins
SUBJECT_REFERENCE_PATTERNS = (
    re.compile(r"\[?TKT-(\d+)\]?", re.IGNORECASE),
    re.compile(r"\[?TICKET-(\d+)\]?", re.IGNORECASE),
    re.compile(r"\[?#(\d+)\]?", re.IGNORECASE),
    re.compile(r"ticket\s*#?\s*(\d+)", re.IGNORECASE),
)

SIGNATURE_PATTERNS = (
    re.compile(r"^--\s*$", re.MULTILINE),
    re.compile(r"^Sent from .*$", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^Get Outlook for .*$", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^This email was sent to .*$", re.MULTILINE | re.IGNORECASE),
)

WROTE_PREAMBLE = re.compile(r"^On .+ wrote:.*$", re.MULTILINE | re.IGNORECASE)
EXTRA_BLANK_LINES = re.compile(r"\n\s*\n\s*\n+")

TICKET_NUMBER_PREFIX = "TKT-"


def is_reply(email: ParsedEmail) -> bool:
    subject = email.subject.lower()
    return bool(
        email.in_reply_to
        or email.references
        or subject.startswith("re:")
        or subject.startswith("re[")
    )


def extract_subject_reference(subject: str) -> Optional[str]:
    for pattern in SUBJECT_REFERENCE_PATTERNS:
        match = pattern.search(subject)
        if match:
            return match.group(1)
    return None


def extract_ticket_reference(email: ParsedEmail) -> Optional[str]:
    """
    Find the ticket an email replies to.

    Checks In-Reply-To, then each References entry, then the subject.
    Returns a UUID-shaped id or a bare ticket number, or None.
    """
    if email.in_reply_to:
        match = THREAD_TOKEN_PATTERN.search(email.in_reply_to)
        if match:
            return match.group(1)

    for reference in email.references:
        match = THREAD_TOKEN_PATTERN.search(reference)
        if match:
            return match.group(1)

    return extract_subject_reference(email.subject)


def looks_like_uuid(value: str) -> bool:
    return bool(UUID_PATTERN.match(value))


def normalize_ticket_number(reference: str) -> str:
    """'1042' and 'tkt-1042' both become 'TKT-1042'."""
    value = reference.strip().upper()
    if value.isdigit():
        return f"{TICKET_NUMBER_PREFIX}{value}"
    return value


def clean_email_body(text: str) -> str:
    """
    Strip signatures, quoted lines and reply preambles.

    Falls back to the trimmed raw text when cleaning leaves nothing.
    """
    cleaned = text.replace("\r\n", "\n")

    for pattern in SIGNATURE_PATTERNS:
        match = pattern.search(cleaned)
        if match:
            cleaned = cleaned[:match.start()].strip()

    cleaned = "\n".join(
        line for line in cleaned.split("\n")
        if not line.strip().startswith(">")
    )
    cleaned = WROTE_PREAMBLE.sub("", cleaned)
    cleaned = EXTRA_BLANK_LINES.sub("\n\n", cleaned).strip()

    return cleaned or text.strip()
