"""Read-only access to the static Quran corpus.

The manifest (114 surah entries) is loaded once at startup. Surah text is
fetched on demand and cached for the life of the process: the corpus is
immutable, so a cached surah is never re-fetched. Tafsir is fetched per
ayah and not cached.
"""

import logging
import re

import httpx
from pydantic import BaseModel, ValidationError

from quranchat.config import settings
from quranchat.models.schemas import (
    ChapterMeta,
    ChapterText,
    KeywordSearchResult,
    SearchHit,
    VerseReference,
)
from quranchat.services.text_normalizer import normalize

logger = logging.getLogger(__name__)

TOTAL_CHAPTERS = 114

_VERSE_KEY_RE = re.compile(r"^verse_(\d+)$")


class CorpusError(Exception):
    """Base class for corpus failures."""


class FetchError(CorpusError):
    """A corpus or tafsir resource was unreachable, non-200 or unreadable."""

    def __init__(self, message: str, chapter_id: str | None = None):
        super().__init__(message)
        self.chapter_id = chapter_id


class MalformedDataError(CorpusError):
    """The surah manifest is empty or has the wrong shape."""


class _ChapterPayload(BaseModel):
    verse: dict[str, str]


def parse_chapter_payload(chapter_id: str, payload: object) -> ChapterText:
    """Validate a ``surah_<n>.json`` payload into a ChapterText.

    Raises ValueError (or pydantic's ValidationError) on a bad shape.
    """
    raw = _ChapterPayload.model_validate(payload)
    verses: dict[int, str] = {}
    for key, text in raw.verse.items():
        m = _VERSE_KEY_RE.match(key)
        if not m:
            raise ValueError(f"unexpected verse key {key!r} in surah {chapter_id}")
        verses[int(m.group(1))] = text
    invocation = verses.pop(0, None)
    return ChapterText(chapter_id=chapter_id, verses=verses, invocation=invocation)


class CorpusIndex:
    """Surah metadata plus a lazily filled surah-text cache."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client
        self._chapters: list[ChapterMeta] = []
        self._by_id: dict[str, ChapterMeta] = {}
        self._text_cache: dict[str, ChapterText] = {}
        self._manifest_version = 0

    @property
    def manifest_version(self) -> int:
        """Bumped on every successful manifest load."""
        return self._manifest_version

    @property
    def chapters(self) -> list[ChapterMeta]:
        """All surahs in manifest order."""
        return list(self._chapters)

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    async def load_manifest(self) -> list[ChapterMeta]:
        """Fetch and validate the manifest. Any failure here is fatal."""
        data = await self._get_json(settings.manifest_path)
        if not isinstance(data, list) or not data:
            raise MalformedDataError("Surah manifest is empty or not an array")
        self.set_chapters(data)
        logger.info("Loaded manifest: %d surahs", len(self._chapters))
        return self.chapters

    def set_chapters(self, records: list) -> None:
        try:
            chapters = [ChapterMeta.model_validate(r) for r in records]
        except ValidationError as exc:
            raise MalformedDataError(f"Invalid surah manifest entry: {exc}") from exc

        if len(chapters) != TOTAL_CHAPTERS:
            raise MalformedDataError(
                f"Surah manifest has {len(chapters)} entries, expected {TOTAL_CHAPTERS}"
            )
        by_id = {c.id: c for c in chapters}
        if len(by_id) != len(chapters):
            raise MalformedDataError("Surah manifest contains duplicate ids")

        self._chapters = chapters
        self._by_id = by_id
        self._manifest_version += 1

    def get_chapter_meta(self, chapter_id: str) -> ChapterMeta | None:
        return self._by_id.get(chapter_id)

    # ------------------------------------------------------------------
    # Surah text
    # ------------------------------------------------------------------

    async def get_chapter_text(self, chapter_id: str) -> ChapterText:
        """Return a surah's text, fetching it on first use."""
        cached = self._text_cache.get(chapter_id)
        if cached is not None:
            return cached

        path = settings.chapter_path_template.format(chapter_id=chapter_id)
        data = await self._get_json(path, chapter_id=chapter_id)
        try:
            chapter = parse_chapter_payload(chapter_id, data)
        except (ValidationError, ValueError) as exc:
            logger.error("Malformed payload for surah %s: %s", chapter_id, exc)
            raise FetchError(f"Malformed payload for surah {chapter_id}", chapter_id) from exc

        # setdefault: a concurrent fetch of the same surah may have landed first
        return self._text_cache.setdefault(chapter_id, chapter)

    async def search_keyword(self, keyword: str, max_results: int) -> KeywordSearchResult:
        """Substring search over normalised ayah text, in mushaf order.

        Stops as soon as ``max_results`` hits are collected. Verse 0 (the
        basmala slot) is never a hit. Surahs that fail to load are skipped
        and reported in ``failed_chapters`` so the caller can tell the user.
        """
        needle = normalize(keyword)
        if not needle or max_results <= 0:
            return KeywordSearchResult()

        hits: list[SearchHit] = []
        failed: list[str] = []
        for meta in self._chapters:
            try:
                chapter = await self.get_chapter_text(meta.id)
            except FetchError as exc:
                logger.warning("Skipping surah %s during search: %s", meta.id, exc)
                failed.append(meta.id)
                continue

            for number in chapter.verse_numbers():
                text = chapter.verses[number]
                if needle in normalize(text):
                    hits.append(SearchHit(
                        reference=VerseReference(chapter_id=meta.id, verse_number=number),
                        text=text,
                    ))
                    if len(hits) >= max_results:
                        break
            if len(hits) >= max_results:
                break

        logger.info(
            "Keyword search found %d matches for %r (%d surahs unavailable)",
            len(hits), keyword, len(failed),
        )
        return KeywordSearchResult(hits=hits, failed_chapters=failed)

    # ------------------------------------------------------------------
    # Tafsir
    # ------------------------------------------------------------------

    async def get_commentary(self, chapter_id: str, verse_number: int) -> str | None:
        """Tafsir text for one ayah.

        Returns None when no tafsir exists (404 or an empty record).
        Raises FetchError for anything else that goes wrong.
        """
        path = settings.commentary_path_template.format(
            chapter_id=chapter_id, verse_number=verse_number,
        )
        try:
            resp = await self._client.get(path)
        except httpx.HTTPError as exc:
            logger.error("Tafsir request for %s:%s failed: %s", chapter_id, verse_number, exc)
            raise FetchError(f"Could not reach tafsir for {chapter_id}:{verse_number}") from exc

        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            logger.error("Tafsir %s:%s returned %s", chapter_id, verse_number, resp.status_code)
            raise FetchError(f"Tafsir service returned {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise FetchError(f"Unreadable tafsir for {chapter_id}:{verse_number}") from exc

        if not isinstance(data, dict):
            raise FetchError(f"Unreadable tafsir for {chapter_id}:{verse_number}")
        return data.get("text") or None

    # ------------------------------------------------------------------

    async def _get_json(self, path: str, chapter_id: str | None = None) -> object:
        try:
            resp = await self._client.get(path)
        except httpx.HTTPError as exc:
            logger.error("Corpus request %s failed: %s", path, exc)
            raise FetchError(f"Could not reach {path}", chapter_id) from exc

        if resp.status_code != 200:
            logger.error("Corpus returned %s for %s", resp.status_code, path)
            raise FetchError(f"Corpus returned {resp.status_code} for {path}", chapter_id)

        try:
            return resp.json()
        except ValueError as exc:
            raise FetchError(f"Corpus returned invalid JSON for {path}", chapter_id) from exc


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=settings.corpus_base_url, timeout=settings.http_timeout)
