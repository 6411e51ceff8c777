"""
Response Generation Module
==========================

Bounded Context for drafting customer replies.

Responsibilities:
- Retrieve knowledge-base articles relevant to a ticket
- Build the grounding prompt (ticket, history, knowledge, brand voice)
- Call the completion model and score the draft's confidence
- Account for tokens and cost
"""

__version__ = "1.0.0"
