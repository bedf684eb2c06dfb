"""
Pydantic v2 schemas for the ticket assistant
Covers chat messages, actions, knowledge stats and the HTTP surface
"""

import uuid
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from enum import Enum


# ============================================
# Enums
# ============================================

class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class UserRole(str, Enum):
    ADMIN = "admin"
    USER = "user"


class Resource(str, Enum):
    EVENTS = "events"
    CATEGORIES = "categories"
    TICKETS = "tickets"
    SYSTEM_STATS = "systemStats"


class IntentType(str, Enum):
    """Closed set of intents the classifier can produce"""
    CONFIRM_BOOKING = "confirm_booking"
    CONFIRM_NAVIGATION = "confirm_navigation"
    AUTO_NAVIGATE = "auto_navigate"
    AUTO_NAVIGATE_BOOKING = "auto_navigate_booking"
    AUTO_NAVIGATE_DETAIL = "auto_navigate_detail"
    FORCE_REALTIME_UPDATE = "force_realtime_update"
    AI_BOOKING = "ai_booking"
    SPECIFIC_EVENT_BOOKING = "specific_event_booking"
    GET_EVENTS = "get_events"
    RECOMMEND_EVENTS = "recommend_events"
    SEARCH_EVENTS = "search_events"
    GET_TICKETS = "get_tickets"
    GET_STATS = "get_stats"
    GLOBAL_SEARCH = "global_search"
    HELP = "help"
    BROWSE_CATEGORIES = "browse_categories"
    GENERAL_QUERY = "general_query"


class ActionType(str, Enum):
    """Side effects the host UI is asked to perform"""
    NAVIGATE = "navigate"
    API_CALL = "api_call"
    DISPLAY_DATA = "display_data"
    SHOW_TICKET_OPTIONS = "show_ticket_options"
    SHOW_BOOKING_CHOICES = "show_booking_choices"


# ============================================
# Conversation
# ============================================

class CurrentUser(BaseModel):
    """Authenticated storefront user"""
    id: str
    name: str = ""
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


class AIAction(BaseModel):
    """Tagged instruction returned alongside a chat message"""
    type: ActionType
    payload: Dict[str, Any] = Field(default_factory=dict)


class ChatMessage(BaseModel):
    """Single chat message; never mutated after it is appended"""
    model_config = {"frozen": True}

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    metadata: Optional[Dict[str, Any]] = None


class AIResponse(BaseModel):
    """Structured reply consumed by the presentation layer"""
    message: str
    action: Optional[AIAction] = None
    suggestions: List[str] = Field(default_factory=list)
    data: Optional[Any] = None


class Intent(BaseModel):
    """Classifier output for one user turn"""
    type: IntentType
    payload: Dict[str, Any] = Field(default_factory=dict)


class TicketOption(BaseModel):
    """One sellable ticket type for an event"""
    type: str
    label: str
    price: float


# ============================================
# Knowledge
# ============================================

class KnowledgeStats(BaseModel):
    """Aggregates derived from the current events/tickets collections"""
    totalEvents: int = 0
    activeEvents: int = 0
    upcomingEvents: int = 0
    pastEvents: int = 0
    totalTickets: int = 0
    totalRevenue: float = 0
    averageTicketPrice: float = 0
    popularCategories: List[str] = Field(default_factory=list)


class KnowledgeSnapshot(BaseModel):
    """Derived view the assistant reasons over"""
    events: List[Dict[str, Any]] = Field(default_factory=list)
    categories: List[Dict[str, Any]] = Field(default_factory=list)
    tickets: List[Dict[str, Any]] = Field(default_factory=list)
    stats: KnowledgeStats = Field(default_factory=KnowledgeStats)
    admin_stats: Optional[Dict[str, Any]] = None


class RefreshResult(BaseModel):
    """Outcome of one resource refresh"""
    resource: Resource
    refreshed: bool = False
    count: int = 0
    warning: Optional[str] = None


class GenerationResult(BaseModel):
    """Dispatcher outcome: text on success, error + fallback otherwise"""
    text: str
    error: Optional[str] = None
    attempts: int = 0
    suggestions: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.error is None


# ============================================
# API
# ============================================

class ChatRequest(BaseModel):
    """Chat request model"""
    message: str = Field(..., min_length=1, max_length=2000, description="User's message")
    session_id: Optional[str] = Field(None, description="Session ID for context continuity")
    user: Optional[CurrentUser] = Field(None, description="Authenticated user, if any")
    current_page: Optional[str] = Field(None, description="Storefront route the user is on")


class ChatResponse(BaseModel):
    """Chat response model"""
    session_id: str
    message: str
    action: Optional[AIAction] = None
    suggestions: List[str] = Field(default_factory=list)
    data: Optional[Any] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class SessionView(BaseModel):
    """Snapshot of one session for the UI shell"""
    session_id: str
    is_open: bool
    is_loading: bool
    error: Optional[str] = None
    messages: List[ChatMessage]
    last_fetch_time: Dict[str, datetime] = Field(default_factory=dict)
    stats: KnowledgeStats


class RefreshResponse(BaseModel):
    session_id: str
    results: List[RefreshResult]


class HealthResponse(BaseModel):
    status: str
    sessions: int
    credential_pool_size: int
    credential_index: int
    timestamp: datetime = Field(default_factory=datetime.utcnow)
