"""
Notifications Module
====================

Bounded Context for telling the outside world what the pipeline did.

Responsibilities:
- Email the customer (replies and confirmations) over SMTP
- POST signed JSON events to a generic webhook
- Post formatted messages to a Slack-style incoming webhook
- Keep all of it off the request path (bounded worker queue)
"""

__version__ = "1.0.0"
