"""
Notifications Domain Layer
==========================

Event envelopes, Slack formatting and customer email templates.
"""

from autoresponder.notifications.domain.events import (
    build_envelope,
    encode_envelope,
    build_slack_payload,
    slack_text,
    slack_colour,
)
from autoresponder.notifications.domain.templates import (
    thread_id,
    reply_email,
    confirmation_email,
)

__all__ = [
    "build_envelope",
    "encode_envelope",
    "build_slack_payload",
    "slack_text",
    "slack_colour",
    "thread_id",
    "reply_email",
    "confirmation_email",
]
