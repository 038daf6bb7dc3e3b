"""Classify a chat utterance into exactly one intent.

Interpreters are tried in a fixed order and the first one that returns an
Intent wins:

    continue -> direct ayah reference -> full surah -> keyword search
    -> greeting / thanks -> fallback

Each interpreter is a plain object with ``attempt(utterance, session)``
returning an ``Intent`` or None, so every rule can be tested on its own.
The router does no I/O: fetching the text for the chosen intent is the
caller's job.
"""

import logging
import re
from dataclasses import dataclass
from typing import Protocol

from quranchat.models.schemas import ChapterMeta, ChatSession, VerseReference
from quranchat.services.reference_resolver import ReferenceResolver
from quranchat.services.text_normalizer import normalize

logger = logging.getLogger(__name__)

CONTINUE_KEYWORDS = ("تابع", "اكمل", "متابعة")

GREETING_PHRASES = ("السلام عليكم", "مرحبا", "اهلا")
THANKS_PHRASES = ("شكرا", "جزاك الله خيرا")

GREETING_REPLY = "وعليكم السلام ورحمة الله وبركاته. أهلاً بك. 🙏"
THANKS_REPLY = "وإياكم، بارك الله فيكم. في الخدمة دائمًا. 😊"
FALLBACK_REPLY = (
    "عفواً، لم أفهم طلبك. 😅 جرب طلب سورة (مثل 'البقرة')، "
    "أو آية ('البقرة 255')، أو ابحث عن موضوع ('آيات عن الصبر')."
)

_CHAPTER_MARKER_RE = re.compile(r"^سورة\s*")
_SEARCH_PREFIX_RE = re.compile(
    r"^(?:آيات عن|ايات عن|ابحث عن|ماذا يقول القرآن عن|ماذا يقول القران عن)\s*(.+)",
    re.IGNORECASE | re.DOTALL,
)


@dataclass
class Intent:
    kind: str  # "continue" | "single_verse" | "full_chapter" | "search" | "acknowledgement" | "fallback"
    chapter: ChapterMeta | None = None
    reference: VerseReference | None = None
    previous: VerseReference | None = None  # continue: the ayah we resume after
    chapter_complete: bool = False  # continue: last ayah of the surah already read
    keyword: str | None = None
    max_results: int = 0
    reply: str | None = None


class IntentInterpreter(Protocol):
    def attempt(self, utterance: str, session: ChatSession | None) -> Intent | None: ...


class ContinueReading:
    def __init__(self, resolver: ReferenceResolver):
        self._resolver = resolver
        self._keywords = [normalize(k) for k in CONTINUE_KEYWORDS]

    def attempt(self, utterance: str, session: ChatSession | None) -> Intent | None:
        text = normalize(utterance)
        if not any(k in text for k in self._keywords):
            return None
        last = session.last_read_verse if session else None
        if last is None:
            return None
        meta = self._resolver.resolve_chapter(last.chapter_id)
        if meta is None:
            return None

        next_number = last.verse_number + 1
        if next_number > meta.verse_count:
            return Intent(kind="continue", chapter=meta, previous=last, chapter_complete=True)
        return Intent(
            kind="continue",
            chapter=meta,
            previous=last,
            reference=VerseReference(chapter_id=meta.id, verse_number=next_number),
        )


class DirectReference:
    def __init__(self, resolver: ReferenceResolver):
        self._resolver = resolver

    def attempt(self, utterance: str, session: ChatSession | None) -> Intent | None:
        ref = (
            self._resolver.resolve_named_verse(utterance)
            or self._resolver.resolve_chapter_verse_pair(utterance)
            or self._resolver.resolve_numeric_reference(utterance)
        )
        if ref is None:
            return None
        meta = self._resolver.resolve_chapter(ref.chapter_id)
        return Intent(kind="single_verse", chapter=meta, reference=ref)


class FullChapter:
    def __init__(self, resolver: ReferenceResolver):
        self._resolver = resolver

    def attempt(self, utterance: str, session: ChatSession | None) -> Intent | None:
        meta = self._resolver.resolve_chapter(_CHAPTER_MARKER_RE.sub("", utterance.strip()))
        if meta is None:
            return None
        return Intent(kind="full_chapter", chapter=meta)


class KeywordSearch:
    def __init__(self, max_results: int):
        self._max_results = max_results

    def attempt(self, utterance: str, session: ChatSession | None) -> Intent | None:
        m = _SEARCH_PREFIX_RE.match(utterance.strip())
        if not m:
            return None
        keyword = m.group(1).strip()
        if not keyword:
            return None
        return Intent(kind="search", keyword=keyword, max_results=self._max_results)


class Greeting:
    """Literal phrase check: no normalisation, so only the written forms match."""

    def attempt(self, utterance: str, session: ChatSession | None) -> Intent | None:
        if any(p in utterance for p in GREETING_PHRASES):
            return Intent(kind="acknowledgement", reply=GREETING_REPLY)
        if any(p in utterance for p in THANKS_PHRASES):
            return Intent(kind="acknowledgement", reply=THANKS_REPLY)
        return None


class Fallback:
    def attempt(self, utterance: str, session: ChatSession | None) -> Intent | None:
        return Intent(kind="fallback", reply=FALLBACK_REPLY)


class IntentRouter:
    def __init__(
        self,
        resolver: ReferenceResolver,
        max_search_results: int = 7,
        interpreters: list[IntentInterpreter] | None = None,
    ):
        self.interpreters: list[IntentInterpreter] = interpreters or [
            ContinueReading(resolver),
            DirectReference(resolver),
            FullChapter(resolver),
            KeywordSearch(max_search_results),
            Greeting(),
            Fallback(),
        ]

    def route(self, utterance: str, session: ChatSession | None = None) -> Intent:
        for interpreter in self.interpreters:
            intent = interpreter.attempt(utterance, session)
            if intent is not None:
                logger.info("Utterance %r routed to %s", utterance, intent.kind)
                return intent
        # Fallback always matches; only reachable with a custom interpreter list
        return Intent(kind="fallback", reply=FALLBACK_REPLY)
