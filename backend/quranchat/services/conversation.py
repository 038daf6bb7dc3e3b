"""Process one chat utterance end to end.

user message -> IntentRouter -> fetch ayah/surah text -> system/quran
messages appended to history -> last-read and khatma updates -> ChatReply.
"""

import logging

from fastapi.concurrency import run_in_threadpool

from quranchat.models.schemas import (
    ChapterMeta,
    ChatReply,
    ChatSession,
    Message,
    SearchHit,
    VerseReference,
    VerseView,
)
from quranchat.services.corpus import CorpusIndex, FetchError
from quranchat.services.intent_router import Intent, IntentRouter
from quranchat.services.session_store import SessionStore
from quranchat.services.text_normalizer import to_arabic_indic_digits as ar

logger = logging.getLogger(__name__)

WELCOME_GREETING = (
    'السلام عليكم ورحمة الله. أنا "قرآني معاي"، رفيقك في رحلة تدبر كلام الله. '
    "📖✨ كيف يمكنني مساعدتك؟"
)
NEW_CHAT_GREETING = "أهلاً بك في محادثة جديدة. ✨ ماذا في خاطرك اليوم؟"
UNEXPECTED_ERROR_NOTICE = "أعتذر، حدث خطأ غير متوقع. 😥 الرجاء المحاولة مرة أخرى."

SINGLE_VERSE_TOOLS = ["tafsir", "play", "share", "zen"]
QUICK_TOOLS = ["copy", "tafsir", "play", "zen"]

# Surahs whose recitation does not open with the basmala
_NO_INVOCATION = {"1", "9"}


def fetch_failed_notice(chapter_id: str) -> str:
    return f"عفواً، لم أتمكن من تحميل بيانات سورة رقم {ar(chapter_id)}."


def verse_label(meta: ChapterMeta, verse_number: int) -> str:
    return f"سورة {meta.canonical_name} - الآية {ar(verse_number)}"


class ChatService:
    def __init__(
        self,
        corpus: CorpusIndex,
        router: IntentRouter,
        sessions: SessionStore,
    ):
        self.corpus = corpus
        self.router = router
        self.sessions = sessions

    # ------------------------------------------------------------------
    # Session entry points
    # ------------------------------------------------------------------

    def start_new_chat(self) -> ChatSession:
        session = self.sessions.create_session()
        self.sessions.append_message(session.id, Message(sender="system", content=NEW_CHAT_GREETING))
        return self.sessions.load_session(session.id)

    def resume_chat(self) -> ChatSession:
        """Reopen the active session, greeting it if it has no messages yet."""
        session, _created = self.sessions.resume_or_create()
        if not session.messages:
            self.sessions.append_message(session.id, Message(sender="system", content=WELCOME_GREETING))
            session = self.sessions.load_session(session.id)
        return session

    def open_chat(self, session_id: str) -> ChatSession | None:
        session = self.sessions.load_session(session_id)
        if session is not None:
            self.sessions.set_active_session(session_id)
        return session

    # ------------------------------------------------------------------
    # Query processing
    # ------------------------------------------------------------------

    async def handle_message(self, session_id: str, text: str) -> ChatReply | None:
        """Answer one utterance. Returns None (and stores nothing) for blank input."""
        query = text.strip()
        if not query:
            return None

        await run_in_threadpool(
            self.sessions.append_message, session_id, Message(sender="user", content=query),
        )
        session = await run_in_threadpool(self.sessions.load_session, session_id)

        turn = _Turn(self, session_id)
        try:
            intent = self.router.route(query, session or ChatSession(id=session_id))
            reply = await self._execute(intent, turn)
        except FetchError as exc:
            logger.error("Corpus fetch failed while answering %r: %s", query, exc)
            notice = fetch_failed_notice(exc.chapter_id) if exc.chapter_id else UNEXPECTED_ERROR_NOTICE
            await turn.system(notice)
            reply = turn.reply("error")
        except Exception:
            logger.exception("Error processing query %r", query)
            await turn.system(UNEXPECTED_ERROR_NOTICE)
            reply = turn.reply("error")

        reply.completion_percentage = await run_in_threadpool(self.sessions.completion_percentage)
        return reply

    async def _execute(self, intent: Intent, turn: "_Turn") -> ChatReply:
        if intent.kind == "continue":
            meta, previous = intent.chapter, intent.previous
            await turn.system(
                f"حسناً، لنتابع من بعد الآية {ar(previous.verse_number)} من سورة {meta.canonical_name}."
            )
            if intent.chapter_complete:
                await turn.system(f"ما شاء الله، لقد أتممت سورة {meta.canonical_name}. 🌸")
                return turn.reply("continue", chapter_complete=True)
            await self._show_verse(turn, meta, intent.reference)
            return turn.reply("continue")

        if intent.kind == "single_verse":
            await self._show_verse(turn, intent.chapter, intent.reference)
            return turn.reply("single_verse")

        if intent.kind == "full_chapter":
            return await self._show_chapter(turn, intent.chapter)

        if intent.kind == "search":
            return await self._search(turn, intent.keyword, intent.max_results)

        await turn.system(intent.reply)
        return turn.reply(intent.kind)

    async def _show_verse(self, turn: "_Turn", meta: ChapterMeta, ref: VerseReference) -> None:
        chapter = await self.corpus.get_chapter_text(meta.id)
        text = chapter.verse(ref.verse_number)
        if text is None:
            raise FetchError(f"Surah {meta.id} has no ayah {ref.verse_number}", meta.id)

        await turn.quran(f"﴿{text}﴾ {verse_label(meta, ref.verse_number)}")
        turn.verses.append(VerseView(
            reference=ref, chapter_name=meta.canonical_name, text=text, tools=SINGLE_VERSE_TOOLS,
        ))
        await run_in_threadpool(self.sessions.set_last_read, turn.session_id, ref)

    async def _show_chapter(self, turn: "_Turn", meta: ChapterMeta) -> ChatReply:
        chapter = await self.corpus.get_chapter_text(meta.id)
        await turn.system(f"جاري عرض سورة {meta.canonical_name} كاملة...")

        invocation = chapter.invocation if meta.id not in _NO_INVOCATION else None
        numbers = chapter.verse_numbers()
        body = " ".join(f"{chapter.verses[n]} ﴿{ar(n)}﴾" for n in numbers)
        await turn.quran("\n".join(part for part in (invocation, meta.canonical_name, body) if part))
        turn.verses.extend(
            VerseView(
                reference=VerseReference(chapter_id=meta.id, verse_number=n),
                chapter_name=meta.canonical_name,
                text=chapter.verses[n],
                tools=QUICK_TOOLS,
            )
            for n in numbers
        )
        if numbers:
            await run_in_threadpool(
                self.sessions.set_last_read,
                turn.session_id,
                VerseReference(chapter_id=meta.id, verse_number=numbers[-1]),
            )
        await run_in_threadpool(self.sessions.mark_chapter_complete, meta.id)
        return turn.reply("full_chapter", invocation=invocation)

    async def _search(self, turn: "_Turn", keyword: str, max_results: int) -> ChatReply:
        await turn.system(f'جاري البحث عن آيات تتعلق بـ "{keyword}"... ⏳')
        result = await self.corpus.search_keyword(keyword, max_results)
        hits: list[SearchHit] = result.hits

        if result.failed_chapters:
            # No hits plus unloadable surahs is a failure, never "nothing found"
            if not hits:
                raise FetchError(
                    f"{len(result.failed_chapters)} surahs unavailable during search",
                    result.failed_chapters[0],
                )
            await turn.system(fetch_failed_notice(result.failed_chapters[0]))

        if not hits:
            await turn.system(f'لم أعثر على آيات تذكر "{keyword}" بشكل مباشر.')
            return turn.reply("search_results")

        await turn.system(f"وجدت {ar(len(hits))} آية. إليك أبرزها:")
        for hit in hits:
            meta = self.corpus.get_chapter_meta(hit.reference.chapter_id)
            await turn.quran(f"﴿{hit.text}﴾ {meta.canonical_name}: {ar(hit.reference.verse_number)}")
            turn.verses.append(VerseView(
                reference=hit.reference, chapter_name=meta.canonical_name, text=hit.text, tools=QUICK_TOOLS,
            ))
        await run_in_threadpool(self.sessions.set_last_read, turn.session_id, hits[-1].reference)
        return turn.reply("search_results")


class _Turn:
    """Messages and verses produced while answering one utterance."""

    def __init__(self, service: ChatService, session_id: str):
        self._sessions = service.sessions
        self.session_id = session_id
        self.messages: list[Message] = []
        self.verses: list[VerseView] = []

    async def system(self, content: str) -> None:
        await self._add(Message(sender="system", content=content))

    async def quran(self, content: str) -> None:
        await self._add(Message(sender="quran", content=content))

    async def _add(self, message: Message) -> None:
        self.messages.append(message)
        await run_in_threadpool(self._sessions.append_message, self.session_id, message)

    def reply(self, kind: str, **fields) -> ChatReply:
        return ChatReply(kind=kind, messages=list(self.messages), verses=list(self.verses), **fields)
