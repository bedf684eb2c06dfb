"""
Session State Store
Conversation state for one chat session, changed only through reduce()
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Tuple, Union

from ..schemas.ai_schemas import ChatMessage

EMPTY_CONVERSATION = "เริ่มต้นการสนทนา"


@dataclass(frozen=True)
class SessionState:
    """
    Immutable snapshot of a session.

    context holds turn-to-turn carry-over: current_user, current_page,
    ticket_options and booking_choices offered in the previous reply.
    """
    is_open: bool = False
    is_loading: bool = False
    error: Optional[str] = None
    messages: Tuple[ChatMessage, ...] = ()
    context: Dict[str, Any] = field(default_factory=dict)


# ============================================
# Events
# ============================================

@dataclass(frozen=True)
class ToggleChat:
    pass


@dataclass(frozen=True)
class SetLoading:
    value: bool


@dataclass(frozen=True)
class AddMessage:
    message: ChatMessage


@dataclass(frozen=True)
class ClearMessages:
    pass


@dataclass(frozen=True)
class UpdateContext:
    values: Dict[str, Any]


@dataclass(frozen=True)
class SetError:
    message: Optional[str]


SessionEvent = Union[ToggleChat, SetLoading, AddMessage, ClearMessages, UpdateContext, SetError]


def reduce(state: SessionState, event: SessionEvent) -> SessionState:
    """
    Apply one event and return the next state. Never mutates `state`.

    Unknown events return the state unchanged.
    """
    if isinstance(event, ToggleChat):
        return replace(state, is_open=not state.is_open)
    if isinstance(event, SetLoading):
        return replace(state, is_loading=event.value)
    if isinstance(event, AddMessage):
        return replace(state, messages=state.messages + (event.message,))
    if isinstance(event, ClearMessages):
        return replace(state, messages=())
    if isinstance(event, UpdateContext):
        return replace(state, context={**state.context, **event.values})
    if isinstance(event, SetError):
        return replace(state, error=event.message)
    return state


def conversation_window(state: SessionState, size: int = 3) -> str:
    """Last `size` messages as a single line for prompt composition"""
    recent = state.messages[-size:] if size > 0 else ()
    if not recent:
        return EMPTY_CONVERSATION
    return " | ".join(f"{m.role.value}: {m.content}" for m in recent)
