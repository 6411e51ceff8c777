"""
Intake Domain Entities
======================

Canonical events produced by every intake channel, plus the parsed
form of an inbound email.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
from uuid import UUID

from autoresponder.config import TicketPriority, TicketSource


@dataclass(frozen=True)
class NewTicket:
    """A customer issue that does not belong to any existing ticket."""
    subject: str
    message: str
    customer_email: str
    customer_name: Optional[str] = None
    priority: str = TicketPriority.MEDIUM
    category: Optional[str] = None
    source: str = TicketSource.API


@dataclass(frozen=True)
class NewReply:
    """A further customer message on an existing ticket."""
    ticket_id: UUID
    message: str


@dataclass(frozen=True)
class EmailAddress:
    email: str
    name: Optional[str] = None


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content_type: str
    size: int


@dataclass
class ParsedEmail:
    """MIME message reduced to the fields intake cares about."""
    sender: EmailAddress
    subject: str
    text: str
    to: List[EmailAddress] = field(default_factory=list)
    html: Optional[str] = None
    message_id: Optional[str] = None
    in_reply_to: Optional[str] = None
    references: List[str] = field(default_factory=list)
    headers: Dict[str, str] = field(default_factory=dict)
    attachments: List[EmailAttachment] = field(default_factory=list)
