"""
Tickets Module
==============

Bounded Context for the ticket ledger and the decision router.

Responsibilities:
- Create tickets and keep the append-only conversation ledger
- Run analysis and draft generation for a ticket, one run per ticket at a time
- Route each draft to auto-send or human review by confidence
- Drive the review lifecycle of drafted responses
"""

__version__ = "1.0.0"
