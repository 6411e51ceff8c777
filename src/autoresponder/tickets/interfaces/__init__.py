"""
Ticket Interfaces Layer
=======================

FastAPI routers for tickets, review actions, settings and the knowledge base.
"""

from autoresponder.tickets.interfaces.controllers import (
    router as tickets_router,
    responses_router,
    settings_router,
    knowledge_router,
)

__all__ = ["tickets_router", "responses_router", "settings_router", "knowledge_router"]
