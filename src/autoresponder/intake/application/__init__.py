"""
Intake Application Layer
========================

The intake normaliser: every inbound channel becomes a NewTicket or NewReply.
"""

from autoresponder.intake.application.services import (
    IntakeNormalizer,
    TicketResolver,
    validate_email_address,
)

__all__ = [
    "IntakeNormalizer",
    "TicketResolver",
    "validate_email_address",
]
