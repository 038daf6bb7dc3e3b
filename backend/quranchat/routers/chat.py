import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from quranchat.config import settings
from quranchat.dependencies import get_chat_service, get_session_store, require_session
from quranchat.middleware.rate_limit import limiter
from quranchat.models.schemas import (
    ChatReply,
    ChatSendRequest,
    ChatSession,
    ChatSessionDetailResponse,
    RecentSessionListResponse,
)
from quranchat.services.conversation import ChatService
from quranchat.services.session_store import SessionStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chat", tags=["chat"])


def _detail(session: ChatSession) -> ChatSessionDetailResponse:
    return ChatSessionDetailResponse(
        id=session.id,
        messages=session.messages,
        last_read_verse=session.last_read_verse,
    )


# ---------------------------------------------------------------------------
# Session CRUD
# ---------------------------------------------------------------------------

@router.post("/sessions", response_model=ChatSessionDetailResponse, status_code=201)
def create_session(service: ChatService = Depends(get_chat_service)):
    """Start a new chat (greeted) and make it the active one."""
    return _detail(service.start_new_chat())


@router.get("/sessions", response_model=RecentSessionListResponse)
def list_sessions(sessions: SessionStore = Depends(get_session_store)):
    """Recent chats, most recently active first."""
    return RecentSessionListResponse(sessions=sessions.recent_sessions())


@router.get("/sessions/active", response_model=ChatSessionDetailResponse)
def get_active_session(service: ChatService = Depends(get_chat_service)):
    """Reopen the last active chat, or start one if there is none."""
    return _detail(service.resume_chat())


@router.get("/sessions/{session_id}", response_model=ChatSessionDetailResponse)
def get_session_detail(
    session_id: str,
    service: ChatService = Depends(get_chat_service),
):
    """Load a chat's history and make it the active one."""
    require_session(session_id, service.sessions)
    return _detail(service.open_chat(session_id))


# ---------------------------------------------------------------------------
# Send message (core endpoint)
# ---------------------------------------------------------------------------

@router.post("/sessions/{session_id}/messages", response_model=ChatReply)
@limiter.limit(settings.message_rate_limit)
async def send_message(
    request: Request,
    session_id: str,
    body: ChatSendRequest,
    service: ChatService = Depends(get_chat_service),
):
    """Interpret one utterance and return the structured reply."""
    await run_in_threadpool(require_session, session_id, service.sessions)
    return await service.handle_message(session_id, body.message)
