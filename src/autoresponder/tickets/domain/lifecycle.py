"""
Ticket Lifecycle Rules
======================

Pure functions and tables that decide how tickets and drafts move
between states. Stateless, in the same spirit as a calculator class:
all routing logic lives here so services only apply the outcome.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from autoresponder.config import AIResponseStatus, ConversationStage, TicketStatus
from autoresponder.core import InvalidStateTransitionException
from autoresponder.tickets.domain.entities import AIResponse, Ticket, utcnow


# ========== Conversation stage ==========

def stage_for_turn(turn_count: int) -> str:
    """Map a turn count to its conversation stage (total over all ints)."""
    if turn_count <= 1:
        return ConversationStage.INITIAL
    if turn_count <= 3:
        return ConversationStage.CLARIFICATION
    if turn_count <= 5:
        return ConversationStage.RESOLUTION
    return ConversationStage.FOLLOW_UP


# ========== Routing ==========

class RouteAction(str):
    AUTO_SEND = "auto_send"
    FORCED_REVIEW = "forced_review"
    BORDERLINE_HOLD = "borderline_hold"


@dataclass(frozen=True)
class RoutingDecision:
    """Outcome of routing one draft."""
    action: str
    reason: str
    confidence: float
    auto_send_threshold: float
    require_review_below: float

    @property
    def auto_send(self) -> bool:
        return self.action == RouteAction.AUTO_SEND

    @property
    def requires_review(self) -> bool:
        return not self.auto_send


def route_decision(
    confidence: float,
    auto_send_threshold: float,
    require_review_below: float
) -> RoutingDecision:
    """
    Decide what happens to a fresh draft.

    confidence >= auto_send_threshold  -> auto-send
    confidence <  require_review_below -> forced review (low confidence)
    otherwise                          -> hold for review (borderline)
    """
    if confidence >= auto_send_threshold:
        action, reason = RouteAction.AUTO_SEND, "auto_send"
    elif confidence < require_review_below:
        action, reason = RouteAction.FORCED_REVIEW, "low_confidence"
    else:
        action, reason = RouteAction.BORDERLINE_HOLD, "borderline"

    return RoutingDecision(
        action=action,
        reason=reason,
        confidence=confidence,
        auto_send_threshold=auto_send_threshold,
        require_review_below=require_review_below,
    )


# ========== AIResponse state machine ==========

AI_RESPONSE_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    AIResponseStatus.PENDING_REVIEW: frozenset({
        AIResponseStatus.APPROVED, AIResponseStatus.EDITED, AIResponseStatus.REJECTED
    }),
    AIResponseStatus.EDITED: frozenset({
        AIResponseStatus.EDITED, AIResponseStatus.SENT, AIResponseStatus.REJECTED
    }),
    AIResponseStatus.APPROVED: frozenset({AIResponseStatus.SENT}),
    AIResponseStatus.SENT: frozenset(),
    AIResponseStatus.REJECTED: frozenset(),
}

SEND_REQUIRES_APPROVAL = "Response must be approved or edited before sending"


def can_transition(current: str, target: str) -> bool:
    return target in AI_RESPONSE_TRANSITIONS.get(current, frozenset())


def transition_response(
    response: AIResponse,
    target: str,
    message: Optional[str] = None
) -> AIResponse:
    """Move a draft to `target` or raise InvalidStateTransitionException."""
    if not can_transition(response.status, target):
        if message is None and target == AIResponseStatus.SENT:
            message = SEND_REQUIRES_APPROVAL
        raise InvalidStateTransitionException("AI response", response.status, target, message)
    response.status = target
    response.updated_at = utcnow()
    return response


# ========== Ticket status ==========

# Statuses the automated pipeline is allowed to write
PIPELINE_STATUSES = frozenset({TicketStatus.AI_RESPONDED, TicketStatus.HUMAN_REVIEW})

# Statuses an explicit API call may set
MANUAL_STATUSES = frozenset({
    TicketStatus.NEW, TicketStatus.AI_RESPONDED, TicketStatus.HUMAN_REVIEW,
    TicketStatus.RESOLVED, TicketStatus.ESCALATED, TicketStatus.CLOSED,
})


def apply_pipeline_status(ticket: Ticket, target: str) -> bool:
    """
    Set a pipeline-owned status unless the ticket is resolved/closed.

    Returns True when the ticket changed.
    """
    if target not in PIPELINE_STATUSES:
        raise InvalidStateTransitionException("ticket", ticket.status, target)
    if ticket.is_finalized or ticket.status == target:
        return False
    ticket.status = target
    ticket.touch()
    return True


def apply_manual_status(ticket: Ticket, target: str) -> bool:
    """Explicit status change requested through the API."""
    if target not in MANUAL_STATUSES:
        raise InvalidStateTransitionException("ticket", ticket.status, target)
    if ticket.status == target:
        return False
    ticket.status = target
    if target == TicketStatus.RESOLVED:
        ticket.resolved_at = utcnow()
    ticket.touch()
    return True
