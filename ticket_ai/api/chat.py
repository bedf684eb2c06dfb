# api/chat.py
"""
Chat API Endpoint
Conversational interface for the ticket assistant.

Every chat turn answers 200 with a message and suggestions; only
unknown session ids produce an HTTP error.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from loguru import logger

from ..agents.assistant_agent import AssistantSession, SessionManager
from ..llm.credential_pool import CredentialPool
from ..schemas.ai_schemas import (
    ChatRequest,
    ChatResponse,
    CurrentUser,
    HealthResponse,
    RefreshResponse,
    SessionView,
)


router = APIRouter(prefix="/api/ai", tags=["chat"])


# ============================================
# Dependencies
# ============================================

def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_credential_pool(request: Request) -> CredentialPool:
    return request.app.state.credential_pool


def get_existing_session(session_id: str,
                         manager: SessionManager = Depends(get_session_manager)) -> AssistantSession:
    session = manager.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    return session


# ============================================
# API Endpoints
# ============================================

@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, manager: SessionManager = Depends(get_session_manager)):
    """
    Chat with the ticket assistant.

    Creates the session when `session_id` is missing or unknown.

    Example messages:
    - "มีอีเว้นท์อะไรบ้าง"
    - "ค้นหาอีเว้นท์ jazz"
    - "จองตั๋ว Jazz Night"
    - "ยืนยันการจอง VIP"
    """
    session = manager.get_or_create(request.session_id)
    logger.info(f"Chat request: session={session.session_id}, message={request.message[:50]}...")

    response = await session.send_message(request.message, request.user, request.current_page)

    return ChatResponse(
        session_id=session.session_id,
        message=response.message,
        action=response.action,
        suggestions=response.suggestions,
        data=response.data,
        timestamp=datetime.utcnow()
    )


@router.get("/sessions/{session_id}", response_model=SessionView)
async def get_session(session: AssistantSession = Depends(get_existing_session)):
    """Messages, UI flags and knowledge freshness for one session"""
    return session.view()


@router.post("/sessions/{session_id}/toggle", response_model=SessionView)
async def toggle_chat(session: AssistantSession = Depends(get_existing_session)):
    session.toggle()
    return session.view()


@router.delete("/sessions/{session_id}/messages", response_model=SessionView)
async def clear_messages(session: AssistantSession = Depends(get_existing_session)):
    """Clear the conversation; the session's knowledge is kept"""
    session.clear_messages()
    return session.view()


@router.post("/sessions/{session_id}/refresh", response_model=RefreshResponse)
async def refresh_knowledge(user: Optional[CurrentUser] = None,
                            session: AssistantSession = Depends(get_existing_session)):
    """Force-refresh every resource the user may see"""
    results = await session.refresh(user)
    return RefreshResponse(session_id=session.session_id, results=results)


@router.get("/health", response_model=HealthResponse)
async def health_check(manager: SessionManager = Depends(get_session_manager),
                       pool: CredentialPool = Depends(get_credential_pool)):
    return HealthResponse(
        status="healthy" if pool.size else "degraded",
        sessions=len(manager),
        credential_pool_size=pool.size,
        credential_index=pool.current_index,
    )
