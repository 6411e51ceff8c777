"""
Interface Dependencies
======================

FastAPI dependencies that hand out the services built in the lifespan.
Tests swap them with `app.dependency_overrides`.
"""

from typing import Any

from fastapi import HTTPException, Request

from autoresponder.config import Settings, get_settings
from autoresponder.intake.application import IntakeNormalizer
from autoresponder.tickets.application import (
    TicketService,
    ResponsePipeline,
    ReviewService,
    RuntimeSettingsService,
    UnitOfWorkFactory,
)


def _from_state(request: Request, name: str, label: str) -> Any:
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(status_code=503, detail=f"{label} not available")
    return service


def get_app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def get_uow_factory(request: Request) -> UnitOfWorkFactory:
    return _from_state(request, "uow_factory", "Database")


def get_ticket_service(request: Request) -> TicketService:
    return _from_state(request, "ticket_service", "Ticket service")


def get_response_pipeline(request: Request) -> ResponsePipeline:
    return _from_state(request, "response_pipeline", "Response pipeline")


def get_review_service(request: Request) -> ReviewService:
    return _from_state(request, "review_service", "Review service")


def get_runtime_settings(request: Request) -> RuntimeSettingsService:
    return _from_state(request, "runtime_settings", "Settings service")


def get_intake_normalizer(request: Request) -> IntakeNormalizer:
    return _from_state(request, "intake_normalizer", "Intake normalizer")
