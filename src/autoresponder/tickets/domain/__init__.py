"""
Tickets Domain Layer
====================

Domain layer for the ticket ledger and decision router.

Contains:
- Entities: Ticket, Conversation, AIResponse
- Lifecycle: stage function, routing rule, state machines

This layer is framework-agnostic and contains pure business logic.
"""

from autoresponder.tickets.domain.entities import (
    Ticket,
    Conversation,
    AIResponse,
    new_customer_turn,
    utcnow,
)
from autoresponder.tickets.domain.lifecycle import (
    RouteAction,
    RoutingDecision,
    route_decision,
    stage_for_turn,
    can_transition,
    transition_response,
    apply_pipeline_status,
    apply_manual_status,
    AI_RESPONSE_TRANSITIONS,
    SEND_REQUIRES_APPROVAL,
)

__all__ = [
    "Ticket",
    "Conversation",
    "AIResponse",
    "new_customer_turn",
    "utcnow",
    "RouteAction",
    "RoutingDecision",
    "route_decision",
    "stage_for_turn",
    "can_transition",
    "transition_response",
    "apply_pipeline_status",
    "apply_manual_status",
    "AI_RESPONSE_TRANSITIONS",
    "SEND_REQUIRES_APPROVAL",
]
