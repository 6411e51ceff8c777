"""
Notifications Infrastructure Layer
==================================

HTTP clients for the webhook and Slack sinks.
"""

from autoresponder.notifications.infrastructure.external import (
    WebhookClient,
    SlackClient,
    CircuitBreaker,
    CircuitState,
)

__all__ = [
    "WebhookClient",
    "SlackClient",
    "CircuitBreaker",
    "CircuitState",
]
