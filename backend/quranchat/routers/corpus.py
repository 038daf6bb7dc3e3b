import logging

from fastapi import APIRouter, Depends, HTTPException

from quranchat.dependencies import get_corpus, get_session_store
from quranchat.models.schemas import ChapterListResponse, CommentaryResponse, ProgressResponse
from quranchat.services.corpus import CorpusIndex, FetchError
from quranchat.services.session_store import SessionStore

logger = logging.getLogger(__name__)
router = APIRouter(tags=["corpus"])


@router.get("/chapters", response_model=ChapterListResponse)
async def list_chapters(corpus: CorpusIndex = Depends(get_corpus)):
    return ChapterListResponse(chapters=corpus.chapters)


@router.get(
    "/chapters/{chapter_id}/verses/{verse_number}/commentary",
    response_model=CommentaryResponse,
)
async def get_commentary(
    chapter_id: str,
    verse_number: int,
    corpus: CorpusIndex = Depends(get_corpus),
):
    """Tafsir for one ayah. ``available`` is False when none exists."""
    meta = corpus.get_chapter_meta(chapter_id)
    if meta is None or not 1 <= verse_number <= meta.verse_count:
        raise HTTPException(status_code=404, detail="Ayah not found")

    try:
        text = await corpus.get_commentary(chapter_id, verse_number)
    except FetchError as exc:
        logger.error("Tafsir fetch failed for %s:%s: %s", chapter_id, verse_number, exc)
        raise HTTPException(status_code=502, detail="تعذر تحميل التفسير حاليًا.")

    return CommentaryResponse(
        chapter_id=chapter_id,
        verse_number=verse_number,
        available=text is not None,
        text=text,
    )


@router.get("/progress", response_model=ProgressResponse)
def get_progress(sessions: SessionStore = Depends(get_session_store)):
    """Khatma progress: surahs viewed in full."""
    completed = sorted(sessions.completed_chapters(), key=int)
    return ProgressResponse(completed=completed, percentage=sessions.completion_percentage())
