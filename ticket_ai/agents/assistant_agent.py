# agents/assistant_agent.py
"""
Assistant Agent
Composes the session store, knowledge synchronizer, intent parser and
action executor into a chat session, plus the registry of live sessions.
"""

import asyncio
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterator, List, Optional

from loguru import logger

from ..cache.ttl_cache import TTLCache
from ..config import settings
from ..interfaces.knowledge_sync import KnowledgeSynchronizer
from ..interfaces.session_memory import SessionMemory
from ..interfaces.session_store import (
    AddMessage,
    ClearMessages,
    SessionEvent,
    SessionState,
    SetError,
    SetLoading,
    ToggleChat,
    UpdateContext,
    conversation_window,
    reduce,
)
from ..llm.dispatcher import FALLBACK_MESSAGE, FALLBACK_SUGGESTIONS
from ..llm.intent_parser import IntentParser, intent_parser
from ..schemas.ai_schemas import (
    ActionType,
    AIResponse,
    ChatMessage,
    CurrentUser,
    MessageRole,
    RefreshResult,
    SessionView,
)
from .action_executor import ActionExecutor, TurnContext


class NavigationSink(ABC):
    """Host-side navigation; fire-and-forget"""

    @abstractmethod
    def navigate(self, url: str, params: Dict[str, Any]) -> None:
        pass


class LoggingNavigationSink(NavigationSink):
    """Server-side sink: the navigate action itself travels back in the chat response"""

    def navigate(self, url: str, params: Dict[str, Any]) -> None:
        logger.info(f"Navigate -> {url} {params}")


class AssistantSession:
    """
    One chat session.

    send_message() holds a per-session lock for the whole turn, so
    concurrent callers on the same session are processed one at a time.
    """

    def __init__(self, session_id: str, executor: ActionExecutor,
                 synchronizer: KnowledgeSynchronizer,
                 memory: Optional[SessionMemory] = None,
                 parser: Optional[IntentParser] = None,
                 navigation_sink: Optional[NavigationSink] = None,
                 window: Optional[int] = None):
        self.session_id = session_id
        self.executor = executor
        self.synchronizer = synchronizer
        self.memory = memory or SessionMemory(settings.SEARCH_CACHE_TTL)
        self.parser = parser or intent_parser
        self.navigation_sink = navigation_sink or LoggingNavigationSink()
        self.window = settings.CONVERSATION_WINDOW if window is None else window
        self.state = SessionState()
        self._lock = asyncio.Lock()

    def dispatch(self, event: SessionEvent) -> SessionState:
        self.state = reduce(self.state, event)
        return self.state

    def toggle(self) -> SessionState:
        return self.dispatch(ToggleChat())

    def clear_messages(self) -> SessionState:
        return self.dispatch(ClearMessages())

    async def refresh(self, user: Optional[CurrentUser] = None) -> List[RefreshResult]:
        """Forced refresh of every resource the user may see"""
        async with self._lock:
            results = await self.synchronizer.refresh_all(self.memory, user=user, force_refresh=True)
            self.memory.search_results.clear()
            return results

    def _carry_over(self, response: AIResponse):
        """Remember pickers offered this turn for the next one only"""
        action = response.action
        if action and action.type == ActionType.SHOW_TICKET_OPTIONS:
            self.dispatch(UpdateContext({"ticket_options": action.payload, "booking_choices": None}))
        elif action and action.type == ActionType.SHOW_BOOKING_CHOICES:
            self.dispatch(UpdateContext({
                "booking_choices": action.payload.get("events", []),
                "ticket_options": None,
            }))
        else:
            self.dispatch(UpdateContext({"booking_choices": None, "ticket_options": None}))

    async def send_message(self, text: str, user: Optional[CurrentUser] = None,
                           current_page: Optional[str] = None) -> AIResponse:
        """
        Process one user turn

        Args:
            text: Message typed by the user
            user: Authenticated user, None when logged out
            current_page: Storefront route the user is on

        Returns:
            AIResponse (never raises)
        """
        async with self._lock:
            self.dispatch(SetLoading(True))
            self.dispatch(SetError(None))
            self.dispatch(UpdateContext({"current_user": user, "current_page": current_page}))

            conversation = conversation_window(self.state, self.window)
            self.dispatch(AddMessage(ChatMessage(
                role=MessageRole.USER,
                content=text,
                metadata={"userId": user.id if user else None, "page": current_page}
            )))

            try:
                await self.synchronizer.refresh_all(self.memory, user=user)

                titles = [e["title"] for e in self.memory.events if isinstance(e.get("title"), str)]
                intent = self.parser.classify(text, titles)

                turn = TurnContext(
                    session_id=self.session_id,
                    user_input=text,
                    memory=self.memory,
                    user=user,
                    current_page=current_page,
                    conversation=conversation,
                    carry_over=dict(self.state.context),
                )
                response = await self.executor.execute(intent, turn)
                self._carry_over(response)

                self.dispatch(AddMessage(ChatMessage(
                    role=MessageRole.ASSISTANT,
                    content=response.message,
                    metadata={
                        "intent": intent.type.value,
                        "action": response.action.type.value if response.action else None,
                        "suggestions": response.suggestions,
                    }
                )))

                if response.action and response.action.type == ActionType.NAVIGATE:
                    payload = dict(response.action.payload)
                    self.navigation_sink.navigate(payload.pop("url"), payload)

                return response

            except Exception as e:
                logger.exception(f"[{self.session_id}] Turn failed: {e}")
                self.dispatch(SetError("เกิดข้อผิดพลาดในการประมวลผล"))
                return AIResponse(message=FALLBACK_MESSAGE, suggestions=list(FALLBACK_SUGGESTIONS))

            finally:
                self.dispatch(SetLoading(False))

    def view(self) -> SessionView:
        return SessionView(
            session_id=self.session_id,
            is_open=self.state.is_open,
            is_loading=self.state.is_loading,
            error=self.state.error,
            messages=list(self.state.messages),
            last_fetch_time={r.value: t for r, t in self.memory.last_fetch_time.items()},
            stats=self.memory.stats,
        )


class SessionManager:
    """Registry of live sessions; each gets its own memory and search cache"""

    def __init__(self, executor: ActionExecutor, synchronizer: KnowledgeSynchronizer,
                 navigation_sink: Optional[NavigationSink] = None,
                 search_ttl: Optional[float] = None,
                 cache_clock: Callable[[], float] = time.time):
        self.executor = executor
        self.synchronizer = synchronizer
        self.navigation_sink = navigation_sink
        self.search_ttl = settings.SEARCH_CACHE_TTL if search_ttl is None else search_ttl
        self.cache_clock = cache_clock
        self._sessions: Dict[str, AssistantSession] = {}

    def get(self, session_id: str) -> Optional[AssistantSession]:
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: Optional[str] = None) -> AssistantSession:
        if session_id and session_id in self._sessions:
            return self._sessions[session_id]

        session_id = session_id or f"sess_{uuid.uuid4().hex[:12]}"
        session = AssistantSession(
            session_id,
            executor=self.executor,
            synchronizer=self.synchronizer,
            memory=SessionMemory(self.search_ttl, clock=self.cache_clock),
            navigation_sink=self.navigation_sink,
        )
        self._sessions[session_id] = session
        logger.info(f"Created new session: {session_id}")
        return session

    def delete(self, session_id: str) -> bool:
        removed = self._sessions.pop(session_id, None) is not None
        if removed:
            logger.info(f"Deleted session: {session_id}")
        return removed

    def caches(self) -> Iterator[TTLCache]:
        for session in list(self._sessions.values()):
            yield session.memory.search_results

    def __len__(self) -> int:
        return len(self._sessions)
