"""
Ticket Infrastructure Layer
===========================

SQLAlchemy models, repositories and the unit of work.
"""

from autoresponder.tickets.infrastructure.models import (
    TicketModel,
    ConversationModel,
    AIResponseModel,
    SettingModel,
)
from autoresponder.tickets.infrastructure.repositories import (
    SQLAlchemyTicketRepository,
    SQLAlchemyConversationRepository,
    SQLAlchemyAIResponseRepository,
    SQLAlchemySettingsRepository,
    SQLAlchemyUnitOfWork,
    format_ticket_number,
)

__all__ = [
    "TicketModel",
    "ConversationModel",
    "AIResponseModel",
    "SettingModel",
    "SQLAlchemyTicketRepository",
    "SQLAlchemyConversationRepository",
    "SQLAlchemyAIResponseRepository",
    "SQLAlchemySettingsRepository",
    "SQLAlchemyUnitOfWork",
    "format_ticket_number",
]
