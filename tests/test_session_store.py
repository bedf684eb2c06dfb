"""
Unit tests for the session reducer and the chat session turn loop.

Run with: pytest tests/test_session_store.py -v
"""

import asyncio

import httpx
import pytest

from ticket_ai.agents.action_executor import ActionExecutor
from ticket_ai.agents.assistant_agent import AssistantSession
from ticket_ai.interfaces.data_interface import HttpDataAPI
from ticket_ai.interfaces.knowledge_sync import KnowledgeSynchronizer
from ticket_ai.interfaces.session_store import (
    EMPTY_CONVERSATION,
    AddMessage,
    ClearMessages,
    SessionState,
    SetError,
    SetLoading,
    ToggleChat,
    UpdateContext,
    conversation_window,
    reduce,
)
from ticket_ai.llm.dispatcher import FALLBACK_MESSAGE
from ticket_ai.schemas.ai_schemas import ActionType, ChatMessage, MessageRole, Resource

from .conftest import SAMPLE_EVENTS


def message(role, content):
    return ChatMessage(role=role, content=content)


class TestReduce:
    """Test the pure state reducer."""

    def test_toggle(self):
        state = SessionState()
        opened = reduce(state, ToggleChat())

        assert opened.is_open
        assert not state.is_open
        assert not reduce(opened, ToggleChat()).is_open

    def test_add_message_does_not_mutate(self):
        state = SessionState()
        added = reduce(state, AddMessage(message(MessageRole.USER, "hi")))

        assert state.messages == ()
        assert [m.content for m in added.messages] == ["hi"]

    def test_clear_messages_keeps_context(self):
        state = SessionState(messages=(message(MessageRole.USER, "hi"),), context={"current_page": "/"})
        cleared = reduce(state, ClearMessages())

        assert cleared.messages == ()
        assert cleared.context == {"current_page": "/"}

    def test_update_context_merges(self):
        state = SessionState(context={"a": 1, "b": 2})
        updated = reduce(state, UpdateContext({"b": 3, "c": 4}))

        assert updated.context == {"a": 1, "b": 3, "c": 4}
        assert state.context == {"a": 1, "b": 2}

    def test_loading_and_error(self):
        state = reduce(reduce(SessionState(), SetLoading(True)), SetError("boom"))

        assert state.is_loading
        assert state.error == "boom"
        assert reduce(state, SetError(None)).error is None

    def test_unknown_event_is_ignored(self):
        state = SessionState()
        assert reduce(state, object()) is state


class TestConversationWindow:
    """Test the prompt conversation excerpt."""

    def test_empty(self):
        assert conversation_window(SessionState()) == EMPTY_CONVERSATION

    def test_last_three(self):
        messages = tuple(message(MessageRole.USER, f"m{i}") for i in range(5))
        window = conversation_window(SessionState(messages=messages))

        assert window == "user: m2 | user: m3 | user: m4"


class TestAssistantSession:
    """Test one full chat turn through the session."""

    @pytest.mark.asyncio
    async def test_turn_appends_user_and_assistant_messages(self, session):
        response = await session.send_message("มีอีเว้นท์อะไรบ้าง")

        roles = [m.role for m in session.state.messages]
        assert roles == [MessageRole.USER, MessageRole.ASSISTANT]
        assert session.state.messages[1].content == response.message
        assert session.state.messages[1].metadata["intent"] == "get_events"
        assert not session.state.is_loading
        assert session.state.error is None

    @pytest.mark.asyncio
    async def test_turn_refreshes_knowledge(self, session, user):
        await session.send_message("สวัสดี", user=user, current_page="/events")

        assert Resource.TICKETS in session.memory.last_fetch_time
        assert session.state.context["current_page"] == "/events"

    @pytest.mark.asyncio
    async def test_options_carry_over_to_checkout(self, session, user, navigation_sink):
        """Options picker, then a bare ticket type, lands on checkout."""
        offered = await session.send_message("อยากจอง Jazz Night", user=user)
        assert offered.action.type == ActionType.SHOW_TICKET_OPTIONS
        assert session.state.context["ticket_options"]["eventId"] == "evt-jazz"

        confirmed = await session.send_message("จอง VIP", user=user)

        assert confirmed.action.type == ActionType.NAVIGATE
        assert confirmed.action.payload["url"] == "/events/evt-jazz/booking"
        assert navigation_sink.calls == [(
            "/events/evt-jazz/booking",
            {"eventId": "evt-jazz", "ticketType": "vip", "eventTitle": "Jazz Night"},
        )]
        assert session.state.context["ticket_options"] is None

    @pytest.mark.asyncio
    async def test_booking_choices_carry_over(self, session, user):
        await session.send_message("ช่วยจองตั๋วให้หน่อย", user=user)

        choices = session.state.context["booking_choices"]
        assert [e["id"] for e in choices] == ["evt-jazz", "evt-tech"]

    @pytest.mark.asyncio
    async def test_navigation_confirmation_across_turns(self, session, navigation_sink):
        await session.send_message("พาไป Tech Summit")
        assert navigation_sink.calls == []

        await session.send_message("ไปเลย")
        assert navigation_sink.calls[0][0] == "/events/evt-tech"

    @pytest.mark.asyncio
    async def test_prompt_sees_previous_turns(self, session, client_factory, monkeypatch):
        prompts = []
        original = session.executor.dispatcher.generate

        async def capture(prompt):
            prompts.append(prompt)
            return await original(prompt)

        monkeypatch.setattr(session.executor.dispatcher, "generate", capture)

        await session.send_message("สวัสดี")
        await session.send_message("อากาศดีไหม")

        assert EMPTY_CONVERSATION in prompts[0]
        assert "user: สวัสดี" in prompts[1]

    @pytest.mark.asyncio
    async def test_unexpected_failure_sets_error(self, session, monkeypatch):
        async def boom(*args, **kwargs):
            raise RuntimeError("sync crashed")

        monkeypatch.setattr(session.synchronizer, "refresh_all", boom)
        response = await session.send_message("มีอีเว้นท์อะไรบ้าง")

        assert response.message == FALLBACK_MESSAGE
        assert session.state.error is not None
        assert not session.state.is_loading
        assert [m.role for m in session.state.messages] == [MessageRole.USER]

    @pytest.mark.asyncio
    async def test_concurrent_turns_are_serialized(self, session):
        await asyncio.gather(
            session.send_message("มีอีเว้นท์อะไรบ้าง"),
            session.send_message("หมวดหมู่"),
        )

        roles = [m.role for m in session.state.messages]
        assert roles == [MessageRole.USER, MessageRole.ASSISTANT, MessageRole.USER, MessageRole.ASSISTANT]

    @pytest.mark.asyncio
    async def test_manual_refresh_forces_fetch(self, session, data_api):
        await session.send_message("หมวดหมู่")
        results = await session.refresh()

        assert all(r.refreshed for r in results)
        assert data_api.calls["events"] == 2

    @pytest.mark.asyncio
    async def test_picker_expires_after_an_unrelated_turn(self, session, user, navigation_sink):
        await session.send_message("อยากจอง Jazz Night", user=user)
        await session.send_message("หมวดหมู่", user=user)

        assert session.state.context["ticket_options"] is None
        response = await session.send_message("ยืนยันการจอง", user=user)

        assert navigation_sink.calls == []
        assert response.action is None or response.action.type != ActionType.NAVIGATE

    @pytest.mark.asyncio
    async def test_tickets_follow_the_current_user(self, session, user, data_api):
        first = await session.send_message("ดูตั๋วของฉัน", user=user)
        assert len(first.data) == 2

        data_api.tickets = []
        other = user.model_copy(update={"id": "user-2"})
        second = await session.send_message("ดูตั๋วของฉัน", user=other)

        assert second.data == []

    @pytest.mark.asyncio
    async def test_logout_drops_tickets_from_memory(self, session, user):
        await session.send_message("ดูตั๋วของฉัน", user=user)
        await session.send_message("สวัสดี")

        assert session.memory.tickets == []
        assert session.memory.stats.totalTickets == 0

    @pytest.mark.asyncio
    async def test_broken_tickets_payload_still_answers(self, pending_store, dispatcher, user, clock):
        def handler(request):
            if request.url.path.endswith("/event-tickets"):
                return httpx.Response(200, json={"bookings": []})
            return httpx.Response(200, json=SAMPLE_EVENTS)

        client = httpx.AsyncClient(base_url="http://data.test/api", transport=httpx.MockTransport(handler))
        synchronizer = KnowledgeSynchronizer(HttpDataAPI(client=client), max_age=60, clock=clock.now)
        session = AssistantSession(
            "sess-http",
            executor=ActionExecutor(synchronizer, pending_store, dispatcher),
            synchronizer=synchronizer,
        )

        response = await session.send_message("ช่วยเหลือ", user=user)

        assert response.message != FALLBACK_MESSAGE
        assert response.message.startswith("ฉันสามารถช่วยคุณได้")
        assert session.state.error is None

    def test_toggle_and_view(self, session):
        session.toggle()
        view = session.view()

        assert view.is_open
        assert view.messages == []
        assert view.session_id == "sess-test"


class TestSessionManager:
    """Test the session registry."""

    def test_get_or_create(self, executor, synchronizer):
        from ticket_ai.agents.assistant_agent import SessionManager

        manager = SessionManager(executor, synchronizer)
        created = manager.get_or_create()

        assert created.session_id.startswith("sess_")
        assert manager.get_or_create(created.session_id) is created
        assert manager.get_or_create("custom").session_id == "custom"
        assert len(manager) == 2
        assert len(list(manager.caches())) == 2

        assert manager.delete("custom")
        assert not manager.delete("custom")
        assert manager.get("custom") is None
