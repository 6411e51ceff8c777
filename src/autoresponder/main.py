"""
AI Support Autoresponder - Main Application
===========================================

Customer-support response orchestration service.

Modules:
- Intake: Signed webhooks, inbound email and direct API submissions
- Analysis: Sentiment, urgency, intent and conversation context
- Responses: Knowledge-grounded draft generation with confidence scoring
- Tickets: Ticket ledger, decision router and review lifecycle
- Notifications: Email, outbound webhooks and Slack, off the request path

Clean Architecture Layers:
- Interfaces: FastAPI controllers
- Application: Services and DTOs
- Domain: Entities, value objects and business rules
- Infrastructure: Database, LLM, SMTP, HTTP sinks
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

# Configuration and Core
from autoresponder.config import settings
from autoresponder.core import ApplicationException

# Infrastructure
from autoresponder.infrastructure.database import (
    init_database, close_database, create_tables, ping,
)
from autoresponder.infrastructure.llm import build_llm_client
from autoresponder.infrastructure.mail import SMTPMailClient

# Application services
from autoresponder.analysis.application import AnalysisEngine
from autoresponder.intake.application import IntakeNormalizer
from autoresponder.notifications.application import DispatchQueue, NotificationDispatcher
from autoresponder.notifications.infrastructure import WebhookClient, SlackClient
from autoresponder.responses.application import ResponseGenerator
from autoresponder.tickets.application import (
    RuntimeSettingsService, TicketService, ResponsePipeline, ReviewService, TicketLocks,
)
from autoresponder.tickets.infrastructure import SQLAlchemyUnitOfWork

# Module Routers
from autoresponder.intake.interfaces import intake_router
from autoresponder.tickets.interfaces import (
    tickets_router, responses_router, settings_router, knowledge_router,
)

# Logging
from autoresponder.shared.infrastructure.logging import setup_logging, get_logger
from autoresponder.shared.api.middleware import (
    RequestContextMiddleware,
    application_exception_handler,
    validation_exception_handler,
    http_exception_handler,
    global_exception_handler,
)

logger = get_logger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan manager.

    STARTUP:
    1. Setup structured logging
    2. Initialize database and create tables
    3. Build the LLM client
    4. Build (and verify) the SMTP client
    5. Start the notification queue and wire the services

    SHUTDOWN:
    1. Drain and stop the notification queue
    2. Close the HTTP sinks, SMTP and LLM clients
    3. Close database connections
    """
    # === STARTUP ===
    setup_logging(settings.log_level, settings.environment)
    logger.info("Starting AI Support Autoresponder", extra={
        "version": settings.app_version,
        "environment": settings.environment
    })

    # Initialize database
    logger.info("Initializing database")
    session_maker = init_database(settings)

    # Create tables (for development - use Alembic in production)
    # If the database is not reachable the server still starts; database-backed
    # endpoints fail until it is.
    logger.info("Creating database tables")
    try:
        await create_tables()
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Database not available - running in degraded mode: {e}")

    def uow_factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_maker)

    # Initialize LLM client
    logger.info("Initializing LLM client")
    llm_client = build_llm_client()

    # Initialize mail client
    mail_client = SMTPMailClient(settings)
    if settings.email_enabled:
        await mail_client.verify()

    # Notification dispatch
    queue = DispatchQueue(workers=settings.dispatch_workers, maxsize=settings.dispatch_queue_size)
    await queue.start()
    webhook_client = WebhookClient(timeout=settings.http_timeout_seconds)
    slack_client = SlackClient(timeout=settings.http_timeout_seconds)
    dispatcher = NotificationDispatcher(queue, mail_client, webhook_client, slack_client)

    # Services
    locks = TicketLocks()
    runtime_settings = RuntimeSettingsService(settings)
    ticket_service = TicketService(uow_factory, runtime_settings, dispatcher, settings.email_thread_domain)
    pipeline = ResponsePipeline(
        uow_factory=uow_factory,
        tickets=ticket_service,
        analysis_engine=AnalysisEngine(llm_client, settings.analysis_model, settings.analysis_temperature),
        generator=ResponseGenerator(llm_client),
        runtime_settings=runtime_settings,
        dispatcher=dispatcher,
        locks=locks,
        thread_domain=settings.email_thread_domain,
    )
    review_service = ReviewService(
        uow_factory, runtime_settings, dispatcher, locks, settings.email_thread_domain
    )

    # Store services in app state for dependency injection
    app.state.settings = settings
    app.state.uow_factory = uow_factory
    app.state.llm_client = llm_client
    app.state.dispatch_queue = queue
    app.state.runtime_settings = runtime_settings
    app.state.intake_normalizer = IntakeNormalizer()
    app.state.ticket_service = ticket_service
    app.state.response_pipeline = pipeline
    app.state.review_service = review_service

    logger.info("AI Support Autoresponder started successfully")

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Shutting down AI Support Autoresponder")

    await queue.stop()
    await webhook_client.close()
    await slack_client.close()
    await mail_client.close()
    await llm_client.close()

    await close_database()

    logger.info("AI Support Autoresponder shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="AI Support Autoresponder API",
    description="""
    ## Customer Support Response Orchestration

    Tickets arrive by webhook, email or API. Each customer message is analysed,
    a reply is drafted against the knowledge base, and the draft is either sent
    automatically or held for human review depending on its confidence.

    ---

    ### Intake
    - `POST /webhooks/receive` - Signed ticket events
    - `POST /webhooks/email` - Inbound MIME email (new tickets and threaded replies)
    - `POST /tickets` - Direct submission

    ### Tickets
    - `GET /tickets/{id}` - Ticket and conversation
    - `POST /tickets/{id}/replies` - Customer reply
    - `POST /tickets/{id}/respond` - Draft and route a response
    - `POST /tickets/{id}/analyze` - Analyse the latest customer message
    - `PATCH /tickets/{id}/status` - Resolve, escalate or close

    ### Review
    - `POST /ai-responses/{id}/approve | edit | send | reject`

    ### Routing

    | Confidence | Action |
    |------------|--------|
    | >= auto_send_threshold | sent to the customer |
    | < require_review_below | held for review |
    | in between | held for review (borderline) |

    ---
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# === CORS Middleware ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# === Custom Middleware (from shared) ===
app.add_middleware(RequestContextMiddleware)
app.add_exception_handler(ApplicationException, application_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# === Include Module Routers ===
app.include_router(intake_router)
app.include_router(tickets_router)
app.include_router(responses_router)
app.include_router(settings_router)
app.include_router(knowledge_router)

# === Health Check Endpoint ===

@app.get("/health", tags=["Health"], responses={
    200: {
        "description": "Service is healthy",
        "content": {
            "application/json": {
                "example": {
                    "status": "healthy",
                    "version": "1.0.0",
                    "environment": "development",
                    "checks": {
                        "database": "connected",
                        "llm_client": "OpenAILLMClient",
                        "dispatch_queue": "running (0 pending)"
                    }
                }
            }
        }
    }
})
async def health_check():
    """
    Health check endpoint for load balancers and orchestrators.

    Returns service health status including:
    - Database connectivity
    - LLM client in use
    - Notification queue state
    """
    checks = {"database": "connected"}
    try:
        await ping()
    except (RuntimeError, SQLAlchemyError, OSError) as e:
        checks["database"] = f"error: {e}"

    llm_client = getattr(app.state, "llm_client", None)
    checks["llm_client"] = type(llm_client).__name__ if llm_client else "not_configured"

    queue = getattr(app.state, "dispatch_queue", None)
    if queue is not None and queue.running:
        checks["dispatch_queue"] = f"running ({queue.pending} pending)"
    else:
        checks["dispatch_queue"] = "stopped"

    return {
        "status": "healthy" if checks["database"] == "connected" else "degraded",
        "version": settings.app_version,
        "environment": settings.environment,
        "checks": checks
    }

@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": "AI Support Autoresponder",
        "version": settings.app_version,
        "architecture": "Clean Architecture / Modular Monolith",
        "docs": "/docs",
        "health": "/health",
        "modules": {
            "intake": {
                "prefix": "/webhooks",
                "endpoints": [
                    "POST /webhooks/receive - Signed ticket webhook",
                    "POST /webhooks/email - Inbound email"
                ]
            },
            "tickets": {
                "prefix": "/tickets",
                "endpoints": [
                    "POST /tickets - Create ticket",
                    "GET /tickets/{id} - Ticket with conversation",
                    "POST /tickets/{id}/replies - Customer reply",
                    "POST /tickets/{id}/respond - Draft and route a response",
                    "POST /tickets/{id}/analyze - Analyse latest message",
                    "PATCH /tickets/{id}/status - Change status"
                ]
            },
            "ai_responses": {
                "prefix": "/ai-responses",
                "endpoints": [
                    "POST /ai-responses/{id}/approve",
                    "POST /ai-responses/{id}/edit",
                    "POST /ai-responses/{id}/send",
                    "POST /ai-responses/{id}/reject"
                ]
            },
            "settings": {"prefix": "/settings", "endpoints": ["/settings/ai", "/settings/integrations"]},
            "knowledge_base": {"prefix": "/knowledge-base", "endpoints": ["POST /knowledge-base", "GET /knowledge-base/search"]}
        }
    }

# === Development Entry Point ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "autoresponder.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info"
    )
