"""
Shared pytest fixtures for the ticket assistant tests.

Provides:
- A controllable clock (float seconds for caches, datetime for knowledge)
- An in-memory Data API with per-resource failure switches
- Scripted generation clients for the dispatcher
- Wired-up synchronizer / executor / session fixtures
"""

import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest

from ticket_ai.agents.action_executor import ActionExecutor
from ticket_ai.agents.assistant_agent import AssistantSession, NavigationSink
from ticket_ai.errors import DataFetchError, TransientUpstreamError, UpstreamError
from ticket_ai.interfaces.data_interface import DataAPI
from ticket_ai.interfaces.knowledge_sync import KnowledgeSynchronizer
from ticket_ai.interfaces.pending_store import PendingActionStore
from ticket_ai.interfaces.session_memory import SessionMemory
from ticket_ai.llm.credential_pool import CredentialPool
from ticket_ai.llm.dispatcher import GenerationClient, UpstreamDispatcher
from ticket_ai.schemas.ai_schemas import CurrentUser, UserRole


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def iso(moment: datetime) -> str:
    return moment.isoformat().replace("+00:00", "Z")


# ============================================================================
# Clock
# ============================================================================

class FakeClock:
    """Manually advanced clock shared by caches (seconds) and knowledge (datetime)"""

    def __init__(self, start: datetime = NOW):
        self.t = start.timestamp()

    def time(self) -> float:
        return self.t

    def now(self) -> datetime:
        return datetime.fromtimestamp(self.t, tz=timezone.utc)

    def advance(self, seconds: float):
        self.t += seconds


# ============================================================================
# Data API
# ============================================================================

SAMPLE_EVENTS: List[Dict[str, Any]] = [
    {
        "id": "evt-jazz",
        "title": "Jazz Night",
        "description": "Live jazz by the river",
        "category": "ดนตรี",
        "tags": ["jazz", "music"],
        "status": "active",
        "featured": True,
        "schedule": {"startDate": iso(NOW + timedelta(days=10)), "endDate": iso(NOW + timedelta(days=10, hours=4))},
        "location": {"type": "onsite", "venue": "Riverside Hall"},
        "pricing": {"currency": "THB", "vip": 2000, "regular": 800, "earlyBird": 600, "vvip": 5000},
        "capacity": {"max": 100, "registered": 40, "available": 60},
    },
    {
        "id": "evt-tech",
        "title": "Tech Summit",
        "description": "Annual developer conference",
        "category": "สัมมนา",
        "tags": ["tech"],
        "status": "active",
        "schedule": {"startDate": iso(NOW + timedelta(days=20)), "endDate": iso(NOW + timedelta(days=21))},
        "pricing": {"currency": "THB", "regular": 1500, "student": 500},
        "capacity": {"max": 50, "registered": 40, "available": 10},
    },
    {
        "id": "evt-food",
        "title": "Food Festival",
        "description": "Street food from every region",
        "category": "อาหาร",
        "status": "completed",
        "schedule": {"startDate": iso(NOW - timedelta(days=10)), "endDate": iso(NOW - timedelta(days=9))},
        "pricing": {"currency": "THB", "regular": 300},
        "capacity": {"max": 200, "registered": 150, "available": 50},
    },
    {
        "id": "evt-full",
        "title": "Sold Out Concert",
        "description": "Arena show",
        "category": "ดนตรี",
        "status": "active",
        "schedule": {"startDate": iso(NOW + timedelta(days=5)), "endDate": iso(NOW + timedelta(days=5, hours=3))},
        "pricing": {"currency": "THB", "regular": 1000},
        "capacity": {"max": 500, "registered": 500, "available": 0},
    },
]

SAMPLE_CATEGORIES: List[Dict[str, Any]] = [
    {"id": "cat-music", "name": "ดนตรี", "description": "คอนเสิร์ตและการแสดงสด"},
    {"id": "cat-seminar", "name": "สัมมนา", "description": "งานสัมมนาและประชุม"},
    {"id": "cat-food", "name": "อาหาร", "description": "เทศกาลอาหาร"},
]

SAMPLE_TICKETS: List[Dict[str, Any]] = [
    {
        "id": "bk-1-regular",
        "eventId": "evt-jazz",
        "ticketType": "regular",
        "price": 800,
        "totalAmount": 1600,
        "purchaseDate": iso(NOW - timedelta(days=3)),
        "status": "confirmed",
    },
    {
        "id": "bk-2-student",
        "eventId": "evt-tech",
        "ticketType": "student",
        "price": 500,
        "purchaseDate": iso(NOW - timedelta(days=40)),
        "status": "pending",
    },
]


class FakeDataAPI(DataAPI):
    """In-memory Data API; `failing` holds resource names that raise DataFetchError"""

    def __init__(self, events=None, categories=None, tickets=None):
        self.events = copy.deepcopy(SAMPLE_EVENTS if events is None else events)
        self.categories = copy.deepcopy(SAMPLE_CATEGORIES if categories is None else categories)
        self.tickets = copy.deepcopy(SAMPLE_TICKETS if tickets is None else tickets)
        self.failing = set()
        self.calls: Dict[str, int] = {"events": 0, "categories": 0, "tickets": 0, "systemStats": 0}
        self.bookings: List[Dict[str, Any]] = []

    def _check(self, resource: str):
        self.calls[resource] += 1
        if resource in self.failing:
            raise DataFetchError(resource, "Network error: connection refused")

    async def list_events(self, filters: Optional[Dict[str, Any]] = None) -> Tuple[List[Dict], Dict]:
        self._check("events")
        return copy.deepcopy(self.events), {"total": len(self.events)}

    async def get_event(self, event_id: str) -> Optional[Dict]:
        self._check("events")
        return next((copy.deepcopy(e) for e in self.events if e["id"] == event_id), None)

    async def list_categories(self) -> List[Dict]:
        self._check("categories")
        return copy.deepcopy(self.categories)

    async def list_user_tickets(self, user_id: Optional[str] = None) -> List[Dict]:
        self._check("tickets")
        return copy.deepcopy(self.tickets)

    async def create_booking(self, request: Dict[str, Any]) -> Dict:
        self.bookings.append(request)
        return {"id": f"bk-{len(self.bookings)}", **request}

    async def get_system_stats(self, period: str = "month") -> Dict[str, Any]:
        self._check("systemStats")
        return await super().get_system_stats(period)


# ============================================================================
# Generation
# ============================================================================

class ScriptedClient(GenerationClient):
    """Generation client whose outcome is chosen per credential"""

    def __init__(self, key: str, outcomes: Dict[str, Any], log: List[str]):
        self.key = key
        self.outcomes = outcomes
        self.log = log

    async def generate(self, prompt: str) -> str:
        self.log.append(self.key)
        outcome = self.outcomes.get(self.key, "สวัสดีค่ะ")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class ScriptedClientFactory:
    """Builds ScriptedClients and records every build and call"""

    def __init__(self, outcomes: Optional[Dict[str, Any]] = None):
        self.outcomes = outcomes or {}
        self.built: List[str] = []
        self.calls: List[str] = []

    def __call__(self, key: str) -> ScriptedClient:
        self.built.append(key)
        return ScriptedClient(key, self.outcomes, self.calls)


def rate_limited(key: str = "") -> TransientUpstreamError:
    return TransientUpstreamError(f"429 RESOURCE_EXHAUSTED for {key}", status_code=429)


def server_error() -> UpstreamError:
    return UpstreamError("500 internal error", status_code=500)


class RecordingNavigationSink(NavigationSink):
    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def navigate(self, url: str, params: Dict[str, Any]) -> None:
        self.calls.append((url, params))


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def data_api() -> FakeDataAPI:
    return FakeDataAPI()


@pytest.fixture
def memory(clock) -> SessionMemory:
    return SessionMemory(search_ttl=300, clock=clock.time)


@pytest.fixture
def synchronizer(data_api, clock) -> KnowledgeSynchronizer:
    return KnowledgeSynchronizer(data_api, max_age=60, clock=clock.now)


@pytest.fixture
def pending_store() -> PendingActionStore:
    return PendingActionStore()


@pytest.fixture
def client_factory() -> ScriptedClientFactory:
    return ScriptedClientFactory()


@pytest.fixture
def dispatcher(client_factory) -> UpstreamDispatcher:
    return UpstreamDispatcher(CredentialPool(["key-a", "key-b"]), client_factory)


@pytest.fixture
def executor(synchronizer, pending_store, dispatcher) -> ActionExecutor:
    return ActionExecutor(synchronizer, pending_store, dispatcher)


@pytest.fixture
def navigation_sink() -> RecordingNavigationSink:
    return RecordingNavigationSink()


@pytest.fixture
def session(executor, synchronizer, memory, navigation_sink) -> AssistantSession:
    return AssistantSession(
        "sess-test",
        executor=executor,
        synchronizer=synchronizer,
        memory=memory,
        navigation_sink=navigation_sink,
    )


@pytest.fixture
def user() -> CurrentUser:
    return CurrentUser(id="user-1", name="Somchai", role=UserRole.USER)


@pytest.fixture
def admin() -> CurrentUser:
    return CurrentUser(id="admin-1", name="Admin", role=UserRole.ADMIN)
