"""Chat sessions, reading position and khatma progress over a key/value store.

Key layout (string keys, JSON string values):

    chat_<id>               message history (list of Message)
    lastRead_<id>           last-read ayah (VerseReference)
    quranRecentChats        recent-sessions index, most recent first
    quranKhatmaReadSurahs   surah ids viewed in full
    quranLastActiveChatID   id of the active session (plain string)
"""

import json
import logging
import re
import threading
import time
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy.orm import sessionmaker

from quranchat.models.db import KeyValueEntry
from quranchat.models.schemas import ChatSession, Message, RecentSession, VerseReference
from quranchat.services.corpus import TOTAL_CHAPTERS

logger = logging.getLogger(__name__)

RECENT_SESSIONS_KEY = "quranRecentChats"
COMPLETION_KEY = "quranKhatmaReadSurahs"
ACTIVE_SESSION_KEY = "quranLastActiveChatID"

NEW_SESSION_PREVIEW = "محادثة جديدة"

_TAG_RE = re.compile(r"<[^>]+>")


def history_key(session_id: str) -> str:
    return f"chat_{session_id}"


def last_read_key(session_id: str) -> str:
    return f"lastRead_{session_id}"


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class MemoryKeyValueStore:
    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class SqlKeyValueStore:
    """Key/value pairs in the ``kv_entries`` table. Last write wins."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        with self._session_factory() as session:
            entry = session.get(KeyValueEntry, key)
            return entry.value if entry is not None else None

    def set(self, key: str, value: str) -> None:
        with self._session_factory() as session:
            entry = session.get(KeyValueEntry, key)
            if entry is None:
                session.add(KeyValueEntry(key=key, value=value))
            else:
                entry.value = value
            session.commit()


def make_preview(text: str, length: int = 35) -> str:
    return text[:length] + ("..." if len(text) > length else "")


class SessionStore:
    def __init__(
        self,
        store: KeyValueStore,
        max_recent_sessions: int = 7,
        preview_length: int = 35,
    ):
        self._store = store
        self._max_recent = max_recent_sessions
        self._preview_length = preview_length
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self) -> ChatSession:
        """Persist a new empty session and make it the active one."""
        with self._lock:
            session_id = self._new_session_id()
            self._store.set(history_key(session_id), "[]")
            self.set_active_session(session_id)
        logger.info("Created chat session %s", session_id)
        return ChatSession(id=session_id)

    def load_session(self, session_id: str) -> ChatSession | None:
        raw = self._store.get(history_key(session_id))
        if raw is None:
            return None
        return ChatSession(
            id=session_id,
            messages=self._decode_history(raw),
            last_read_verse=self.get_last_read(session_id),
        )

    def resume_or_create(self) -> tuple[ChatSession, bool]:
        """Return the active session if it still exists, else a new one.

        The boolean is True when a new session was created.
        """
        with self._lock:
            active_id = self.active_session_id()
            if active_id:
                session = self.load_session(active_id)
                if session is not None:
                    return session, False
            return self.create_session(), True

    def active_session_id(self) -> str | None:
        return self._store.get(ACTIVE_SESSION_KEY)

    def set_active_session(self, session_id: str) -> None:
        self._store.set(ACTIVE_SESSION_KEY, session_id)

    def _new_session_id(self) -> str:
        stamp = time.time_ns() // 1_000_000
        while self._store.get(history_key(str(stamp))) is not None:
            stamp += 1
        return str(stamp)

    # ------------------------------------------------------------------
    # Messages + recent index
    # ------------------------------------------------------------------

    def append_message(self, session_id: str, message: Message) -> None:
        with self._lock:
            history = self._decode_history(self._store.get(history_key(session_id)))
            history.append(message)
            self._store.set(
                history_key(session_id),
                json.dumps([m.model_dump(mode="json") for m in history], ensure_ascii=False),
            )

            user_messages = sum(1 for m in history if m.sender == "user")
            if message.sender == "user" and user_messages <= 1:
                preview = message.content
                if message.is_markup:
                    preview = " ".join(_TAG_RE.sub(" ", preview).split())
                self._touch_recent(session_id, preview)
            elif len(history) == 1:
                self._touch_recent(session_id, NEW_SESSION_PREVIEW)
            else:
                self._touch_recent(session_id)

    def recent_sessions(self) -> list[RecentSession]:
        raw = self._store.get(RECENT_SESSIONS_KEY)
        if not raw:
            return []
        return [RecentSession.model_validate(item) for item in json.loads(raw)]

    def _touch_recent(self, session_id: str, preview: str | None = None) -> None:
        now = datetime.now(timezone.utc)
        recent = self.recent_sessions()
        entry = next((r for r in recent if r.session_id == session_id), None)
        if entry is None:
            entry = RecentSession(
                session_id=session_id,
                last_activity=now,
                preview=make_preview(preview or NEW_SESSION_PREVIEW, self._preview_length),
            )
        else:
            recent.remove(entry)
            entry = entry.model_copy(update={
                "last_activity": now,
                "preview": make_preview(preview, self._preview_length) if preview else entry.preview,
            })
        recent.insert(0, entry)
        self._store.set(
            RECENT_SESSIONS_KEY,
            json.dumps(
                [r.model_dump(mode="json") for r in recent[: self._max_recent]],
                ensure_ascii=False,
            ),
        )

    @staticmethod
    def _decode_history(raw: str | None) -> list[Message]:
        if not raw:
            return []
        return [Message.model_validate(item) for item in json.loads(raw)]

    # ------------------------------------------------------------------
    # Reading position
    # ------------------------------------------------------------------

    def set_last_read(self, session_id: str, reference: VerseReference) -> None:
        self._store.set(last_read_key(session_id), reference.model_dump_json())

    def get_last_read(self, session_id: str) -> VerseReference | None:
        raw = self._store.get(last_read_key(session_id))
        if not raw:
            return None
        return VerseReference.model_validate_json(raw)

    # ------------------------------------------------------------------
    # Khatma progress
    # ------------------------------------------------------------------

    def mark_chapter_complete(self, chapter_id: str) -> bool:
        """Record a surah as read in full. Returns False if it already was."""
        with self._lock:
            completed = self._completed_list()
            if chapter_id in completed:
                return False
            completed.append(chapter_id)
            self._store.set(COMPLETION_KEY, json.dumps(completed))
        logger.info("Surah %s marked complete (%d/%d)", chapter_id, len(completed), TOTAL_CHAPTERS)
        return True

    def completed_chapters(self) -> set[str]:
        return set(self._completed_list())

    def completion_percentage(self) -> float:
        return len(self._completed_list()) / TOTAL_CHAPTERS * 100

    def _completed_list(self) -> list[str]:
        raw = self._store.get(COMPLETION_KEY)
        return list(json.loads(raw)) if raw else []
