from fastapi import HTTPException, Request

from quranchat.models.schemas import ChatSession
from quranchat.services.conversation import ChatService
from quranchat.services.corpus import CorpusIndex
from quranchat.services.session_store import SessionStore


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_corpus(request: Request) -> CorpusIndex:
    return request.app.state.corpus


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def require_session(session_id: str, sessions: SessionStore) -> ChatSession:
    """Load a chat session or raise 404."""
    session = sessions.load_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session
