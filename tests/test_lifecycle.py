from uuid import uuid4

import pytest

from autoresponder.config import AIResponseStatus, ConversationStage, TicketStatus
from autoresponder.core import InvalidStateTransitionException
from autoresponder.tickets.domain import AIResponse, Ticket, route_decision, stage_for_turn
from autoresponder.tickets.domain.lifecycle import (
    SEND_REQUIRES_APPROVAL,
    RouteAction,
    apply_manual_status,
    apply_pipeline_status,
    transition_response,
)


def _ticket(status: str = TicketStatus.NEW) -> Ticket:
    return Ticket(subject="s", initial_message="m", customer_email="a@b.co", status=status)


def _draft(status: str = AIResponseStatus.PENDING_REVIEW) -> AIResponse:
    return AIResponse(ticket_id=uuid4(), response_text="hi", confidence_score=0.7, model_used="m", status=status)


@pytest.mark.parametrize("turns,stage", [
    (-3, ConversationStage.INITIAL),
    (0, ConversationStage.INITIAL),
    (1, ConversationStage.INITIAL),
    (2, ConversationStage.CLARIFICATION),
    (3, ConversationStage.CLARIFICATION),
    (4, ConversationStage.RESOLUTION),
    (5, ConversationStage.RESOLUTION),
    (6, ConversationStage.FOLLOW_UP),
    (42, ConversationStage.FOLLOW_UP),
])
def test_stage_for_turn(turns, stage):
    assert stage_for_turn(turns) == stage


class TestRouteDecision:
    def test_at_auto_send_threshold_sends(self):
        decision = route_decision(0.85, 0.85, 0.6)
        assert decision.action == RouteAction.AUTO_SEND
        assert decision.auto_send
        assert not decision.requires_review

    def test_below_review_threshold_is_forced_review(self):
        decision = route_decision(0.59, 0.85, 0.6)
        assert decision.action == RouteAction.FORCED_REVIEW
        assert decision.reason == "low_confidence"
        assert decision.requires_review

    def test_between_thresholds_is_held(self):
        decision = route_decision(0.7, 0.85, 0.6)
        assert decision.action == RouteAction.BORDERLINE_HOLD
        assert decision.reason == "borderline"
        assert decision.requires_review

    def test_at_review_threshold_is_borderline_not_forced(self):
        assert route_decision(0.6, 0.85, 0.6).action == RouteAction.BORDERLINE_HOLD

    def test_equal_thresholds_leave_no_borderline_band(self):
        assert route_decision(0.7, 0.7, 0.7).auto_send
        assert route_decision(0.69, 0.7, 0.7).action == RouteAction.FORCED_REVIEW

    @pytest.mark.parametrize("confidence", [0.0, 0.1, 0.33, 0.5, 0.61, 0.79, 0.8, 0.95, 1.0])
    def test_sends_exactly_when_at_or_above_threshold(self, confidence):
        assert route_decision(confidence, 0.8, 0.6).auto_send == (confidence >= 0.8)


class TestResponseTransitions:
    @pytest.mark.parametrize("target", [
        AIResponseStatus.APPROVED, AIResponseStatus.EDITED, AIResponseStatus.REJECTED,
    ])
    def test_pending_review_moves_to_review_outcomes(self, target):
        assert transition_response(_draft(), target).status == target

    def test_pending_review_cannot_be_sent(self):
        with pytest.raises(InvalidStateTransitionException) as exc:
            transition_response(_draft(), AIResponseStatus.SENT)
        assert exc.value.message == SEND_REQUIRES_APPROVAL

    def test_edited_can_be_edited_again(self):
        assert transition_response(_draft(AIResponseStatus.EDITED), AIResponseStatus.EDITED).status == "edited"

    def test_approved_only_goes_to_sent(self):
        with pytest.raises(InvalidStateTransitionException):
            transition_response(_draft(AIResponseStatus.APPROVED), AIResponseStatus.REJECTED)
        assert transition_response(_draft(AIResponseStatus.APPROVED), AIResponseStatus.SENT).status == "sent"

    @pytest.mark.parametrize("terminal", [AIResponseStatus.SENT, AIResponseStatus.REJECTED])
    @pytest.mark.parametrize("target", [
        AIResponseStatus.APPROVED, AIResponseStatus.EDITED,
        AIResponseStatus.SENT, AIResponseStatus.REJECTED,
    ])
    def test_terminal_states_never_move(self, terminal, target):
        with pytest.raises(InvalidStateTransitionException):
            transition_response(_draft(terminal), target)


class TestTicketStatus:
    @pytest.mark.parametrize("finalized", [TicketStatus.RESOLVED, TicketStatus.CLOSED])
    @pytest.mark.parametrize("target", [TicketStatus.AI_RESPONDED, TicketStatus.HUMAN_REVIEW])
    def test_pipeline_never_reopens_finalized_tickets(self, finalized, target):
        ticket = _ticket(finalized)
        assert apply_pipeline_status(ticket, target) is False
        assert ticket.status == finalized

    def test_pipeline_cannot_write_manual_statuses(self):
        with pytest.raises(InvalidStateTransitionException):
            apply_pipeline_status(_ticket(), TicketStatus.RESOLVED)

    def test_pipeline_moves_open_ticket(self):
        ticket = _ticket(TicketStatus.ESCALATED)
        assert apply_pipeline_status(ticket, TicketStatus.HUMAN_REVIEW) is True
        assert ticket.status == TicketStatus.HUMAN_REVIEW

    def test_manual_resolve_stamps_resolved_at(self):
        ticket = _ticket()
        assert apply_manual_status(ticket, TicketStatus.RESOLVED)
        assert ticket.resolved_at is not None

    def test_manual_status_can_reopen(self):
        ticket = _ticket(TicketStatus.CLOSED)
        assert apply_manual_status(ticket, TicketStatus.NEW)
        assert ticket.status == TicketStatus.NEW

    def test_manual_status_rejects_unknown(self):
        with pytest.raises(InvalidStateTransitionException):
            apply_manual_status(_ticket(), "archived")
