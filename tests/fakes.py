"""
In-memory fakes shared by the test-suite.

- Repositories behind a unit of work that only publishes its writes on
  commit (rollback after commit is a no-op)
- A scripted LLM client and a fixed-confidence draft generator
- Recording mail, webhook and Slack sinks
- A harness wiring the real services over those fakes
"""

import asyncio
import copy
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID, uuid4

from autoresponder.config import Settings
from autoresponder.core import DeliveryException, RepositoryException
from autoresponder.analysis.application import AnalysisEngine
from autoresponder.infrastructure.llm import ChatCompletionResult, ILLMClient
from autoresponder.infrastructure.mail import IMailClient, OutgoingEmail
from autoresponder.intake.application import IntakeNormalizer
from autoresponder.notifications.application import (
    DispatchQueue, NotificationDispatcher, IWebhookSink, ISlackSink,
)
from autoresponder.responses.application import IKnowledgeBaseRepository, ResponseGenerator
from autoresponder.responses.domain import KnowledgeEntry, GeneratedResponse, MAX_KNOWLEDGE_ENTRIES
from autoresponder.tickets.application import (
    ITicketRepository,
    IConversationRepository,
    IAIResponseRepository,
    ISettingsRepository,
    IUnitOfWork,
    RuntimeSettingsService,
    TicketService,
    ResponsePipeline,
    ReviewService,
    TicketLocks,
)
from autoresponder.tickets.domain import Ticket, Conversation, AIResponse

THREAD_DOMAIN = "support.test"

DRAFT_TEXT = (
    "Thanks for reaching out. Please clear your browser cache, then sign in again "
    "using the reset link we just emailed you."
)


# =============================================================================
# In-memory persistence
# =============================================================================

class InMemoryStore:
    """Committed state shared by every unit of work."""

    def __init__(self):
        self.tickets: Dict[UUID, Ticket] = {}
        self.conversations: Dict[UUID, Conversation] = {}
        self.ai_responses: Dict[UUID, AIResponse] = {}
        self.settings: Dict[str, Any] = {}
        self.knowledge: Dict[str, KnowledgeEntry] = {}
        self.commits = 0


class _Table:
    """Committed rows plus this unit of work's uncommitted writes."""

    def __init__(self, committed: Dict[Any, Any]):
        self._committed = committed
        self.pending: Dict[Any, Any] = {}

    def get(self, key: Any) -> Optional[Any]:
        if key in self.pending:
            return copy.deepcopy(self.pending[key])
        value = self._committed.get(key)
        return copy.deepcopy(value) if value is not None else None

    def put(self, key: Any, value: Any) -> None:
        self.pending[key] = copy.deepcopy(value)

    def __contains__(self, key: Any) -> bool:
        return key in self.pending or key in self._committed

    def rows(self) -> List[Any]:
        merged = {**self._committed, **self.pending}
        return [copy.deepcopy(value) for value in merged.values()]

    def publish(self) -> None:
        self._committed.update(self.pending)
        self.pending = {}


class FakeTicketRepository(ITicketRepository):
    def __init__(self, table: _Table):
        self._table = table

    async def get(self, ticket_id: UUID) -> Optional[Ticket]:
        return self._table.get(ticket_id)

    async def get_by_number(self, ticket_number: str) -> Optional[Ticket]:
        for ticket in self._table.rows():
            if ticket.ticket_number == ticket_number:
                return ticket
        return None

    async def create(self, ticket: Ticket) -> Ticket:
        ticket.ticket_number = f"TKT-{1001 + len(self._table.rows())}"
        self._table.put(ticket.id, ticket)
        return self._table.get(ticket.id)

    async def update(self, ticket: Ticket) -> Ticket:
        if ticket.id not in self._table:
            raise RepositoryException(f"Ticket {ticket.id} disappeared during update")
        self._table.put(ticket.id, ticket)
        return self._table.get(ticket.id)


class FakeConversationRepository(IConversationRepository):
    def __init__(self, table: _Table):
        self._table = table

    async def get(self, conversation_id: UUID) -> Optional[Conversation]:
        return self._table.get(conversation_id)

    async def add(self, conversation: Conversation) -> Conversation:
        self._table.put(conversation.id, conversation)
        return self._table.get(conversation.id)

    async def update_review(self, conversation: Conversation) -> Conversation:
        stored = self._table.get(conversation.id)
        if stored is None:
            raise RepositoryException(f"Conversation {conversation.id} not found")
        stored.requires_review = conversation.requires_review
        stored.reviewed_by = conversation.reviewed_by
        stored.reviewed_at = conversation.reviewed_at
        self._table.put(stored.id, stored)
        return self._table.get(stored.id)

    async def list_for_ticket(self, ticket_id: UUID) -> List[Conversation]:
        return [turn for turn in self._table.rows() if turn.ticket_id == ticket_id]


class FakeAIResponseRepository(IAIResponseRepository):
    def __init__(self, table: _Table):
        self._table = table

    async def get(self, response_id: UUID) -> Optional[AIResponse]:
        return self._table.get(response_id)

    async def add(self, response: AIResponse) -> AIResponse:
        self._table.put(response.id, response)
        return self._table.get(response.id)

    async def update(self, response: AIResponse) -> AIResponse:
        if response.id not in self._table:
            raise RepositoryException(f"AI response {response.id} not found")
        self._table.put(response.id, response)
        return self._table.get(response.id)

    async def list_for_ticket(self, ticket_id: UUID) -> List[AIResponse]:
        drafts = [draft for draft in self._table.rows() if draft.ticket_id == ticket_id]
        return list(reversed(drafts))


class FakeSettingsRepository(ISettingsRepository):
    def __init__(self, table: _Table):
        self._table = table

    async def get_many(self, keys: Sequence[str]) -> Dict[str, Any]:
        return {key: self._table.get(key) for key in keys if key in self._table}

    async def set_many(self, values: Mapping[str, Any]) -> None:
        for key, value in values.items():
            self._table.put(key, value)


class FakeKnowledgeBaseRepository(IKnowledgeBaseRepository):
    def __init__(self, table: _Table):
        self._table = table

    async def search(self, keywords: Sequence[str], limit: int = MAX_KNOWLEDGE_ENTRIES) -> List[KnowledgeEntry]:
        lowered = [keyword.lower() for keyword in keywords]
        matches = [
            entry for entry in self._table.rows()
            if any(k in entry.title.lower() or k in entry.content.lower() for k in lowered)
        ]
        return matches[:limit]

    async def create(
        self,
        title: str,
        content: str,
        category: Optional[str] = None,
        tags: Optional[List[str]] = None
    ) -> KnowledgeEntry:
        entry = KnowledgeEntry(id=str(uuid4()), title=title, content=content, category=category)
        self._table.put(entry.id, entry)
        return entry


class FakeUnitOfWork(IUnitOfWork):
    """Writes stay private until commit; leaving without commit drops them."""

    def __init__(self, store: InMemoryStore):
        self._store = store
        self._tables = [
            _Table(store.tickets),
            _Table(store.conversations),
            _Table(store.ai_responses),
            _Table(store.settings),
            _Table(store.knowledge),
        ]
        tickets, conversations, ai_responses, settings, knowledge = self._tables
        self.tickets = FakeTicketRepository(tickets)
        self.conversations = FakeConversationRepository(conversations)
        self.ai_responses = FakeAIResponseRepository(ai_responses)
        self.settings = FakeSettingsRepository(settings)
        self.knowledge_base = FakeKnowledgeBaseRepository(knowledge)

    async def commit(self) -> None:
        for table in self._tables:
            table.publish()
        self._store.commits += 1

    async def rollback(self) -> None:
        for table in self._tables:
            table.pending = {}


# =============================================================================
# LLM fakes
# =============================================================================

ANALYSIS_REPLIES = {
    "sentiment": {"sentiment": "neutral", "confidence": 0.8, "score": 0.0, "emotions": []},
    "urgency": {"level": "medium", "confidence": 0.8, "factors": ["scripted"], "score": 0.5},
    "intent": {"intent": "question", "confidence": 0.8, "sub_intents": [], "entities": []},
}


class ScriptedLLM(ILLMClient):
    """
    Answers by operation name.

    `replies[operation]` may be a dict (sent back as JSON), a string, or an
    exception instance to raise. Missing analysis operations get a neutral
    JSON reply; `draft` defaults to DRAFT_TEXT.
    """

    def __init__(self, replies: Optional[Dict[str, Any]] = None, delay: float = 0.0):
        self.replies: Dict[str, Any] = {**ANALYSIS_REPLIES, "draft": DRAFT_TEXT, **(replies or {})}
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def chat_completion(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 1000,
        json_response: bool = False,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        self.calls.append({"operation": operation, "model": model, "messages": messages})
        if self.delay:
            await asyncio.sleep(self.delay)

        reply = self.replies.get(operation, "")
        if isinstance(reply, BaseException):
            raise reply
        content = json.dumps(reply) if isinstance(reply, dict) else reply
        return ChatCompletionResult(
            content=content,
            model=model or "scripted",
            prompt_tokens=120,
            completion_tokens=40,
            latency_ms=1,
        )

    def operations(self) -> List[str]:
        return [call["operation"] for call in self.calls]


class FixedConfidenceGenerator(ResponseGenerator):
    """
    Draft generator with a scripted confidence (or failure).

    Tracks how many drafts are in flight per ticket subject so tests can
    check that runs for one ticket never overlap.
    """

    def __init__(
        self,
        llm_client: ILLMClient,
        confidence: float = 0.9,
        error: Optional[Exception] = None,
        delay: float = 0.0
    ):
        super().__init__(llm_client)
        self.confidence = confidence
        self.error = error
        self.delay = delay
        self.in_flight: Dict[str, int] = {}
        self.max_in_flight: Dict[str, int] = {}
        self.max_total_in_flight = 0
        self.calls = 0

    async def generate(self, subject, initial_message, history, ai_settings, knowledge=(), options=None,
                       priority=None, category=None) -> GeneratedResponse:
        self.calls += 1
        self.in_flight[subject] = self.in_flight.get(subject, 0) + 1
        self.max_in_flight[subject] = max(self.max_in_flight.get(subject, 0), self.in_flight[subject])
        self.max_total_in_flight = max(self.max_total_in_flight, sum(self.in_flight.values()))
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return GeneratedResponse(
                response_text=DRAFT_TEXT,
                confidence_score=self.confidence,
                model_used=ai_settings.model,
                tokens_used=160,
                cost=0.0012,
                prompt_used=f"prompt for {subject}",
                knowledge_sources=[entry.id for entry in knowledge],
            )
        finally:
            self.in_flight[subject] -= 1


# =============================================================================
# Notification fakes
# =============================================================================

class RecordingMailClient(IMailClient):
    def __init__(self, fail: bool = False):
        self.sent: List[OutgoingEmail] = []
        self.fail = fail

    async def send(self, email: OutgoingEmail) -> None:
        if self.fail:
            raise DeliveryException("email", "SMTP refused")
        self.sent.append(email)


class RecordingSink(IWebhookSink, ISlackSink):
    """Records every event regardless of the integration switches."""

    def __init__(self, fail: bool = False):
        self.events: List[Tuple[str, Dict[str, Any], datetime]] = []
        self.fail = fail

    async def deliver(self, config, event: str, data: Mapping[str, Any], timestamp: datetime) -> bool:
        self.events.append((event, dict(data), timestamp))
        if self.fail:
            raise RuntimeError(f"sink down for {event}")
        return True

    def names(self) -> List[str]:
        return [event for event, _, _ in self.events]


# =============================================================================
# Harness
# =============================================================================

@dataclass
class Harness:
    settings: Settings
    store: InMemoryStore
    llm: ScriptedLLM
    generator: ResponseGenerator
    queue: DispatchQueue
    mail: RecordingMailClient
    webhooks: RecordingSink
    slack: RecordingSink
    locks: TicketLocks
    runtime: RuntimeSettingsService
    tickets: TicketService
    pipeline: ResponsePipeline
    review: ReviewService
    normalizer: IntakeNormalizer = field(default_factory=IntakeNormalizer)

    def uow(self) -> FakeUnitOfWork:
        return FakeUnitOfWork(self.store)

    async def settle(self) -> None:
        """Wait until every queued notification has been delivered."""
        await self.queue.drain()

    async def set_thresholds(self, auto_send: float, review_below: float) -> None:
        async with self.uow() as uow:
            await self.runtime.update_ai_settings(
                uow, {"auto_send_threshold": auto_send, "require_review_below": review_below}
            )
            await uow.commit()

    async def set_integrations(self, values: Dict[str, Any]) -> None:
        async with self.uow() as uow:
            await self.runtime.update_integrations(uow, values)
            await uow.commit()


def make_settings(**overrides: Any) -> Settings:
    values = {
        "openai_api_key": None,
        "mock_llm": True,
        "email_enabled": True,
        "webhook_secret": None,
        "email_webhook_token": "provider-token",
        "email_thread_domain": THREAD_DOMAIN,
        "database_url": "sqlite+aiosqlite://",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def build_harness(
    settings: Optional[Settings] = None,
    llm: Optional[ScriptedLLM] = None,
    generator: Optional[ResponseGenerator] = None,
    mail: Optional[RecordingMailClient] = None,
    webhooks: Optional[RecordingSink] = None,
    slack: Optional[RecordingSink] = None,
) -> Harness:
    settings = settings or make_settings()
    store = InMemoryStore()
    llm = llm or ScriptedLLM()
    generator = generator or ResponseGenerator(llm)
    mail = mail or RecordingMailClient()
    webhooks = webhooks or RecordingSink()
    slack = slack or RecordingSink()

    def uow_factory() -> FakeUnitOfWork:
        return FakeUnitOfWork(store)

    queue = DispatchQueue(workers=2, maxsize=100)
    dispatcher = NotificationDispatcher(queue, mail, webhooks, slack)
    locks = TicketLocks()
    runtime = RuntimeSettingsService(settings)
    tickets = TicketService(uow_factory, runtime, dispatcher, THREAD_DOMAIN)
    pipeline = ResponsePipeline(
        uow_factory=uow_factory,
        tickets=tickets,
        analysis_engine=AnalysisEngine(llm, settings.analysis_model, settings.analysis_temperature),
        generator=generator,
        runtime_settings=runtime,
        dispatcher=dispatcher,
        locks=locks,
        thread_domain=THREAD_DOMAIN,
    )
    review = ReviewService(uow_factory, runtime, dispatcher, locks, THREAD_DOMAIN)

    return Harness(
        settings=settings,
        store=store,
        llm=llm,
        generator=generator,
        queue=queue,
        mail=mail,
        webhooks=webhooks,
        slack=slack,
        locks=locks,
        runtime=runtime,
        tickets=tickets,
        pipeline=pipeline,
        review=review,
    )


def ticket_request(**overrides: Any) -> Dict[str, Any]:
    values = {
        "subject": "Cannot log in",
        "initial_message": "I reset my password twice and still cannot sign in to my account.",
        "customer_email": "jane@example.com",
        "customer_name": "Jane Doe",
        "priority": "medium",
    }
    values.update(overrides)
    return values


