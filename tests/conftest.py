"""
Test configuration and fixtures.

Provides:
- Settings isolated from the environment's .env
- A harness of real services over in-memory fakes (see fakes.py)
- HTTPX AsyncClient against the app, with dependencies overridden
"""

from typing import Any, AsyncGenerator, Dict

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from autoresponder.config import Settings
from autoresponder.config.runtime import SlackIntegration, WebhookIntegration
from autoresponder.main import app
from autoresponder.tickets.interfaces.dependencies import (
    get_app_settings,
    get_intake_normalizer,
    get_response_pipeline,
    get_review_service,
    get_runtime_settings,
    get_ticket_service,
    get_uow_factory,
)

from fakes import Harness, build_harness, make_settings


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def enabled_integrations() -> Dict[str, Any]:
    """Integration settings with every sink switched on."""
    return {
        "email": {"enabled": True},
        "webhooks": WebhookIntegration(enabled=True, url="https://hooks.test/in", secret="s3cret").model_dump(),
        "slack": SlackIntegration(enabled=True, webhook_url="https://slack.test/hook").model_dump(),
    }


# =============================================================================
# Service Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def harness(settings) -> AsyncGenerator[Harness, None]:
    """Real services over a scripted LLM and in-memory storage."""
    h = build_harness(settings)
    await h.queue.start()
    yield h
    await h.queue.stop(timeout=1)


# =============================================================================
# HTTP Client Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def client(harness: Harness) -> AsyncGenerator[AsyncClient, None]:
    """
    AsyncClient wired to the harness services.

    ASGITransport does not run the lifespan, so every service the routes
    read from app.state is supplied through dependency overrides.
    """
    app.dependency_overrides[get_app_settings] = lambda: harness.settings
    app.dependency_overrides[get_uow_factory] = lambda: harness.uow
    app.dependency_overrides[get_ticket_service] = lambda: harness.tickets
    app.dependency_overrides[get_response_pipeline] = lambda: harness.pipeline
    app.dependency_overrides[get_review_service] = lambda: harness.review
    app.dependency_overrides[get_runtime_settings] = lambda: harness.runtime
    app.dependency_overrides[get_intake_normalizer] = lambda: harness.normalizer

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
