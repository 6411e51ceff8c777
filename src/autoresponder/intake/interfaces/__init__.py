"""
Intake Interfaces Layer
=======================

FastAPI routes for inbound ticket webhooks and inbound email.
"""

from autoresponder.intake.interfaces.controllers import router as intake_router

__all__ = ["intake_router"]
