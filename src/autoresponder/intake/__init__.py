"""
Intake Module
=============

Bounded Context for inbound customer messages.

Responsibilities:
- Verify signed ticket webhooks
- Parse inbound MIME email and thread replies onto existing tickets
- Validate direct API submissions
- Emit one canonical event: NewTicket or NewReply
"""

__version__ = "1.0.0"
