import asyncio
from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import autoresponder.responses.infrastructure.models  # noqa: F401
from autoresponder.config import AIResponseStatus, SenderType, TicketStatus
from autoresponder.infrastructure.database import Base
from autoresponder.tickets.domain import AIResponse, Conversation, Ticket, utcnow
from autoresponder.tickets.infrastructure import SQLAlchemyUnitOfWork, format_ticket_number


@pytest_asyncio.fixture
async def uow_factory():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    yield lambda: SQLAlchemyUnitOfWork(session_maker)

    await engine.dispose()


@pytest_asyncio.fixture
async def file_uow_factory(tmp_path):
    """Units of work on separate connections to one database file."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'tickets.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    yield lambda: SQLAlchemyUnitOfWork(session_maker)

    await engine.dispose()


def _ticket(subject="Cannot log in"):
    return Ticket(subject=subject, initial_message="Help please", customer_email="jane@example.com")


async def _stored_ticket(uow_factory):
    async with uow_factory() as uow:
        ticket = await uow.tickets.create(_ticket())
        await uow.commit()
    return ticket


async def _create_and_hold(uow_factory, subject):
    async with uow_factory() as uow:
        ticket = await uow.tickets.create(_ticket(subject))
        await asyncio.sleep(0.05)
        await uow.commit()
    return ticket.ticket_number


class TestTickets:
    def test_number_format(self):
        assert format_ticket_number(1001) == "TKT-1001"

    @pytest.mark.asyncio
    async def test_numbers_are_sequential(self, uow_factory):
        async with uow_factory() as uow:
            first = await uow.tickets.create(_ticket("First"))
            second = await uow.tickets.create(_ticket("Second"))
            await uow.commit()

        assert first.ticket_number == "TKT-1001"
        assert second.ticket_number == "TKT-1002"

    @pytest.mark.asyncio
    async def test_stored_fields_read_back_unchanged(self, uow_factory):
        original = Ticket(
            subject="  Cannot log in ",
            initial_message="Hello,\n  I cannot log in.\n",
            customer_email="Jane.Doe@Example.COM",
            customer_name="Jane Doe",
            priority="high",
            category="Account",
            source="webhook",
        )
        async with uow_factory() as uow:
            created = await uow.tickets.create(original)
            await uow.commit()

        async with uow_factory() as uow:
            reloaded = await uow.tickets.get(created.id)

        for name in (
            "ticket_number", "subject", "initial_message", "customer_email",
            "customer_name", "priority", "category", "source", "status",
            "conversation_turn_count", "conversation_stage",
        ):
            assert getattr(reloaded, name) == getattr(created, name), name
        assert reloaded.customer_email == "Jane.Doe@Example.COM"
        assert reloaded.subject == "  Cannot log in "

    @pytest.mark.asyncio
    async def test_concurrent_creates_get_distinct_numbers(self, file_uow_factory):
        numbers = await asyncio.gather(
            _create_and_hold(file_uow_factory, "First"),
            _create_and_hold(file_uow_factory, "Second"),
            _create_and_hold(file_uow_factory, "Third"),
        )

        assert sorted(numbers) == ["TKT-1001", "TKT-1002", "TKT-1003"]
        async with file_uow_factory() as uow:
            for number in numbers:
                assert (await uow.tickets.get_by_number(number)) is not None

    @pytest.mark.asyncio
    async def test_rolled_back_create_releases_its_number(self, uow_factory):
        async with uow_factory() as uow:
            await uow.tickets.create(_ticket("Abandoned"))

        ticket = await _stored_ticket(uow_factory)
        assert ticket.ticket_number == "TKT-1001"

    @pytest.mark.asyncio
    async def test_lookup_by_number_and_update(self, uow_factory):
        ticket = await _stored_ticket(uow_factory)

        async with uow_factory() as uow:
            found = await uow.tickets.get_by_number("TKT-1001")
            found.status = TicketStatus.ESCALATED
            found.intent = "complaint"
            await uow.tickets.update(found)
            await uow.commit()

        async with uow_factory() as uow:
            reloaded = await uow.tickets.get(ticket.id)
            assert reloaded.status == TicketStatus.ESCALATED
            assert reloaded.intent == "complaint"
            assert await uow.tickets.get_by_number("TKT-9999") is None

    @pytest.mark.asyncio
    async def test_uncommitted_work_is_rolled_back(self, uow_factory):
        async with uow_factory() as uow:
            await uow.tickets.create(_ticket())

        async with uow_factory() as uow:
            assert await uow.tickets.get_by_number("TKT-1001") is None


class TestConversations:
    @pytest.mark.asyncio
    async def test_turns_listed_oldest_first_and_review_updates(self, uow_factory):
        ticket = await _stored_ticket(uow_factory)
        start = utcnow()

        async with uow_factory() as uow:
            ai_turn = await uow.conversations.add(Conversation(
                ticket_id=ticket.id, message="draft", sender_type=SenderType.AI,
                is_ai_generated=True, requires_review=True, created_at=start + timedelta(seconds=1),
            ))
            await uow.conversations.add(Conversation(
                ticket_id=ticket.id, message="hello", sender_type=SenderType.CUSTOMER, created_at=start,
            ))
            await uow.commit()

        async with uow_factory() as uow:
            turn = await uow.conversations.get(ai_turn.id)
            turn.mark_reviewed("agent-7")
            turn.requires_review = False
            await uow.conversations.update_review(turn)
            await uow.commit()

        async with uow_factory() as uow:
            turns = await uow.conversations.list_for_ticket(ticket.id)

        assert [t.message for t in turns] == ["hello", "draft"]
        assert turns[1].reviewed_by == "agent-7"
        assert turns[1].requires_review is False


class TestAIResponses:
    @pytest.mark.asyncio
    async def test_update_and_list_newest_first(self, uow_factory):
        ticket = await _stored_ticket(uow_factory)
        start = utcnow()

        async with uow_factory() as uow:
            older = await uow.ai_responses.add(AIResponse(
                ticket_id=ticket.id, response_text="one", confidence_score=0.4,
                model_used="gpt-4o", knowledge_sources=["kb-1"], created_at=start,
            ))
            await uow.ai_responses.add(AIResponse(
                ticket_id=ticket.id, response_text="two", confidence_score=0.7,
                model_used="gpt-4o", created_at=start + timedelta(seconds=1),
            ))
            await uow.commit()

        async with uow_factory() as uow:
            response = await uow.ai_responses.get(older.id)
            response.status = AIResponseStatus.EDITED
            response.response_text = "one, edited"
            await uow.ai_responses.update(response)
            await uow.commit()

        async with uow_factory() as uow:
            listed = await uow.ai_responses.list_for_ticket(ticket.id)

        assert [r.response_text for r in listed] == ["two", "one, edited"]
        assert listed[1].status == AIResponseStatus.EDITED
        assert listed[1].knowledge_sources == ["kb-1"]


class TestSettingsAndKnowledge:
    @pytest.mark.asyncio
    async def test_settings_upsert(self, uow_factory):
        async with uow_factory() as uow:
            await uow.settings.set_many({"ai_model": "gpt-4o", "auto_send_threshold": 0.9})
            await uow.commit()

        async with uow_factory() as uow:
            await uow.settings.set_many({"auto_send_threshold": 0.95})
            await uow.commit()

        async with uow_factory() as uow:
            stored = await uow.settings.get_many(["ai_model", "auto_send_threshold", "missing"])

        assert stored == {"ai_model": "gpt-4o", "auto_send_threshold": 0.95}

    @pytest.mark.asyncio
    async def test_knowledge_search_is_case_insensitive(self, uow_factory):
        async with uow_factory() as uow:
            created = await uow.knowledge_base.create("Password Reset", "Use the link on the login page.", "account")
            await uow.knowledge_base.create("Shipping", "Orders ship within two days.")
            await uow.commit()

        async with uow_factory() as uow:
            found = await uow.knowledge_base.search(["password"])
            assert await uow.knowledge_base.search([]) == []

        assert [entry.id for entry in found] == [created.id]
        assert found[0].category == "account"
