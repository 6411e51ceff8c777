"""
Notification Events
===================

The outbound event envelope and the Slack message built from it.
"""

import json
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from autoresponder.config import WebhookEvent

SLACK_USERNAME = "AI Support Bot"
SLACK_ICON = ":robot_face:"
SLACK_FOOTER = "AI Support Autoresponder"

COLOUR_GREEN = "#36a64f"
COLOUR_RED = "#ff0000"
COLOUR_ORANGE = "#ff9900"
COLOUR_GREY = "#808080"

# event -> (emoji, headline, colour)
SLACK_FORMATS = {
    WebhookEvent.TICKET_CREATED: ("🎫", "New ticket created", COLOUR_GREEN),
    WebhookEvent.TICKET_ESCALATED: ("⚠️", "Ticket escalated", COLOUR_RED),
    WebhookEvent.TICKET_RESOLVED: ("✅", "Ticket resolved", COLOUR_GREEN),
    WebhookEvent.AI_RESPONSE_REQUIRES_REVIEW: ("🔍", "AI response requires review for ticket", COLOUR_ORANGE),
}


def build_envelope(event: str, data: Mapping[str, Any], timestamp: datetime) -> Dict[str, Any]:
    return {
        "event": event,
        "timestamp": timestamp.isoformat(),
        "data": dict(data),
    }


def encode_envelope(envelope: Mapping[str, Any]) -> bytes:
    """Serialise once; the signature is computed over these exact bytes."""
    return json.dumps(envelope, default=str, separators=(",", ":")).encode("utf-8")


def _ticket_subject(data: Mapping[str, Any]) -> str:
    ticket = data.get("ticket")
    if isinstance(ticket, Mapping) and ticket.get("subject"):
        return str(ticket["subject"])
    return "Untitled"


def slack_text(event: str, data: Mapping[str, Any]) -> str:
    fmt = SLACK_FORMATS.get(event)
    if fmt is None:
        return f"📢 Event: {event}"
    emoji, headline, _ = fmt
    return f"{emoji} {headline}: {_ticket_subject(data)}"


def slack_colour(event: str) -> str:
    fmt = SLACK_FORMATS.get(event)
    return fmt[2] if fmt else COLOUR_GREY


def build_slack_payload(
    event: str,
    data: Mapping[str, Any],
    timestamp: datetime,
    channel: Optional[str] = None
) -> Dict[str, Any]:
    return {
        "channel": channel or "#support",
        "username": SLACK_USERNAME,
        "icon_emoji": SLACK_ICON,
        "attachments": [
            {
                "color": slack_colour(event),
                "text": slack_text(event, data),
                "fields": [
                    {"title": "Event", "value": event, "short": True},
                    {"title": "Time", "value": timestamp.isoformat(), "short": True},
                ],
                "footer": SLACK_FOOTER,
                "ts": int(timestamp.timestamp()),
            }
        ],
    }
