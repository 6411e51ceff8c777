"""
MIME Email Parser
=================

Turns raw RFC 5322 bytes into a ParsedEmail using the standard library
`email` package with the modern `policy.default`.
"""

import html
import re
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from email.utils import getaddresses
from typing import List, Optional, Union

from autoresponder.core import ValidationException
from autoresponder.intake.domain import ParsedEmail, EmailAddress, EmailAttachment

DEFAULT_SUBJECT = "(No Subject)"

_BLOCK_TAGS = re.compile(r"<\s*(br|/p|/div|/li|/tr|/h[1-6])[^>]*>", re.IGNORECASE)
_HIDDEN_BLOCKS = re.compile(r"<(script|style)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAGS = re.compile(r"<[^>]+>")
_BLANK_RUNS = re.compile(r"\n\s*\n\s*\n+")


def html_to_text(markup: str) -> str:
    text = _HIDDEN_BLOCKS.sub("", markup)
    text = _BLOCK_TAGS.sub("\n", text)
    text = _TAGS.sub("", text)
    text = html.unescape(text)
    return _BLANK_RUNS.sub("\n\n", text).strip()


def _addresses(message: EmailMessage, header: str) -> List[EmailAddress]:
    values = [str(v) for v in message.get_all(header, [])]
    return [
        EmailAddress(email=address, name=name or None)
        for name, address in getaddresses(values)
        if address
    ]


def _header(message: EmailMessage, name: str) -> Optional[str]:
    value = message.get(name)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _body_part(message: EmailMessage, subtype: str) -> Optional[str]:
    part = message.get_body(preferencelist=(subtype,))
    if part is None:
        return None
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError):
        payload = part.get_payload(decode=True) or b""
        return payload.decode("utf-8", errors="replace")


def parse_email(raw: Union[bytes, str]) -> ParsedEmail:
    """
    Parse a raw MIME message.

    Raises:
        ValidationException: If the input is empty or has no sender
    """
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    if not raw or not raw.strip():
        raise ValidationException("No email content found")

    message = BytesParser(policy=policy.default).parsebytes(raw)

    senders = _addresses(message, "From")
    if not senders:
        raise ValidationException("Email has no sender address")

    html_body = _body_part(message, "html")
    text_body = _body_part(message, "plain")
    if not text_body and html_body:
        text_body = html_to_text(html_body)

    attachments = []
    for part in message.iter_attachments():
        payload = part.get_payload(decode=True) or b""
        attachments.append(EmailAttachment(
            filename=part.get_filename() or "attachment",
            content_type=part.get_content_type() or "application/octet-stream",
            size=len(payload),
        ))

    references = _header(message, "References")

    return ParsedEmail(
        sender=senders[0],
        subject=_header(message, "Subject") or DEFAULT_SUBJECT,
        text=text_body or "",
        to=_addresses(message, "To"),
        html=html_body,
        message_id=_header(message, "Message-ID"),
        in_reply_to=_header(message, "In-Reply-To"),
        references=references.split() if references else [],
        headers={key: str(value) for key, value in message.items()},
        attachments=attachments,
    )
