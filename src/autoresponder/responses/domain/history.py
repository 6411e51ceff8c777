"""
Prompt History Formatting
=========================

Turns conversation rows into the labelled lines used in prompts.
"""

from typing import List, Optional, Protocol, Sequence
from datetime import datetime

from autoresponder.config import SenderType

SENDER_LABELS = {
    SenderType.CUSTOMER: "Customer",
    SenderType.AI: "AI Assistant",
    SenderType.HUMAN: "Support Agent",
}


class ConversationTurn(Protocol):
    sender_type: str
    message: str
    ai_confidence: Optional[float]
    reviewed_at: Optional[datetime]


def confidence_label(confidence: float) -> str:
    if confidence >= 0.7:
        return "High"
    if confidence >= 0.5:
        return "Medium"
    return "Low"


def format_history(turns: Sequence[ConversationTurn]) -> List[str]:
    """
    Label each turn, skipping the opening customer message.

    The opening message is already in the prompt as the ticket body.
    """
    if not turns:
        return []

    opening = turns[0]
    lines: List[str] = []
    for index, turn in enumerate(turns):
        if index == 0 and opening.sender_type == SenderType.CUSTOMER:
            continue

        line = f"{SENDER_LABELS.get(turn.sender_type, 'Support Agent')}: {turn.message}"
        if turn.sender_type == SenderType.AI and turn.ai_confidence is not None:
            line += f" [Confidence: {confidence_label(turn.ai_confidence)}]"
        if turn.reviewed_at is not None:
            line += " [Reviewed]"
        lines.append(line)

    return lines


def plain_history(turns: Sequence[ConversationTurn]) -> List[str]:
    """Unlabelled turn text, as fed to the classifiers."""
    return [turn.message for turn in turns]
