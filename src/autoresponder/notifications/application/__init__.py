"""
Notifications Application Layer
===============================

Dispatch queue, dispatcher and sink interfaces.
"""

from autoresponder.notifications.application.services import (
    DispatchQueue,
    NotificationDispatcher,
    IWebhookSink,
    ISlackSink,
)

__all__ = [
    "DispatchQueue",
    "NotificationDispatcher",
    "IWebhookSink",
    "ISlackSink",
]
