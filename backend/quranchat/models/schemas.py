from datetime import datetime, timezone
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Corpus ---

class ChapterMeta(BaseModel):
    """One entry of the surah manifest.

    Accepts both our own field names and the manifest's
    (``index`` / ``name`` / ``name_simple`` / ``englishName`` / ``verses``).
    """

    id: str = Field(validation_alias=AliasChoices("id", "index"))
    canonical_name: str = Field(
        min_length=1,
        validation_alias=AliasChoices("canonical_name", "canonicalName", "name"),
    )
    name_variants: tuple[str, ...] = Field(
        default=(),
        validation_alias=AliasChoices("name_variants", "nameVariants", "variants"),
    )
    verse_count: int = Field(
        gt=0,
        validation_alias=AliasChoices("verse_count", "verseCount", "verses"),
    )

    model_config = {"frozen": True, "populate_by_name": True}

    @model_validator(mode="before")
    @classmethod
    def _collect_variants(cls, data):
        if not isinstance(data, dict):
            return data
        if any(k in data for k in ("name_variants", "nameVariants", "variants")):
            return data
        variants = [data.get(k) for k in ("name_simple", "englishName")]
        return {**data, "name_variants": [v for v in variants if v]}

    @field_validator("id", mode="before")
    @classmethod
    def _canonical_id(cls, v) -> str:
        # Manifests sometimes zero-pad ("002"); ids are compared as "2".
        text = str(v).strip()
        if not text.isdigit() or not 1 <= int(text) <= 114:
            raise ValueError(f"chapter id must be 1..114, got {v!r}")
        return str(int(text))


class VerseReference(BaseModel):
    chapter_id: str
    verse_number: int = Field(ge=1)

    model_config = {"frozen": True}


class ChapterText(BaseModel):
    chapter_id: str
    verses: dict[int, str]
    invocation: str | None = None  # verse_0 slot, never a numbered verse

    model_config = {"frozen": True}

    def verse(self, number: int) -> str | None:
        return self.verses.get(number)

    def verse_numbers(self) -> list[int]:
        return sorted(n for n in self.verses if n > 0)


class SearchHit(BaseModel):
    reference: VerseReference
    text: str


class KeywordSearchResult(BaseModel):
    hits: list[SearchHit] = Field(default_factory=list)
    failed_chapters: list[str] = Field(default_factory=list)  # surahs that could not be loaded


# --- Sessions ---

class Message(BaseModel):
    sender: Literal["user", "system", "quran"]
    content: str
    is_markup: bool = False
    timestamp: datetime = Field(default_factory=_utcnow)


class ChatSession(BaseModel):
    id: str
    messages: list[Message] = Field(default_factory=list)
    last_read_verse: VerseReference | None = None


class RecentSession(BaseModel):
    session_id: str
    last_activity: datetime
    preview: str


# --- Chat replies ---

class VerseView(BaseModel):
    reference: VerseReference
    chapter_name: str
    text: str
    tools: list[str] = Field(default_factory=list)


class ChatReply(BaseModel):
    """Structured result of one utterance, handed to the renderer."""

    kind: Literal[
        "continue",
        "single_verse",
        "full_chapter",
        "search_results",
        "acknowledgement",
        "fallback",
        "error",
    ]
    messages: list[Message]
    verses: list[VerseView] = Field(default_factory=list)
    invocation: str | None = None
    chapter_complete: bool = False
    completion_percentage: float = 0.0


# --- API ---

class ChatSendRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)

    @field_validator("message")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v


class ChatSessionDetailResponse(BaseModel):
    id: str
    messages: list[Message]
    last_read_verse: VerseReference | None = None


class RecentSessionListResponse(BaseModel):
    sessions: list[RecentSession]


class ChapterListResponse(BaseModel):
    chapters: list[ChapterMeta]


class CommentaryResponse(BaseModel):
    chapter_id: str
    verse_number: int
    available: bool
    text: str | None = None


class ProgressResponse(BaseModel):
    completed: list[str]
    percentage: float


class HealthResponse(BaseModel):
    status: str
    version: str
