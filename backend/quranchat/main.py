import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

logging.basicConfig(level=logging.INFO)
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from quranchat.config import settings
from quranchat.database import engine, session_factory
from quranchat.middleware.rate_limit import limiter
from quranchat.models.db import Base
from quranchat.models.schemas import HealthResponse
from quranchat.routers import chat, corpus
from quranchat.services.conversation import ChatService
from quranchat.services.corpus import CorpusIndex, build_http_client
from quranchat.services.intent_router import IntentRouter
from quranchat.services.reference_resolver import ReferenceResolver
from quranchat.services.session_store import SessionStore, SqlKeyValueStore


def build_chat_service(corpus_index: CorpusIndex, sessions: SessionStore) -> ChatService:
    router = IntentRouter(
        ReferenceResolver(corpus_index),
        max_search_results=settings.max_search_results,
    )
    return ChatService(corpus_index, router, sessions)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # A missing or malformed manifest is fatal: the app does not start.
    corpus_index = CorpusIndex(build_http_client())
    await corpus_index.load_manifest()

    Base.metadata.create_all(engine)
    sessions = SessionStore(
        SqlKeyValueStore(session_factory),
        max_recent_sessions=settings.max_recent_sessions,
        preview_length=settings.preview_length,
    )

    app.state.corpus = corpus_index
    app.state.session_store = sessions
    app.state.chat_service = build_chat_service(corpus_index, sessions)
    yield
    await corpus_index.aclose()
    engine.dispose()


app = FastAPI(
    title="Qurani Maai",
    description="Conversational companion for reading and searching the Quran",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
)


app.include_router(chat.router)
app.include_router(corpus.router)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    return HealthResponse(status="ok", version="0.1.0")
