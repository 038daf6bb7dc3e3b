"""Resolve surah names and ayah references in user text.

All three resolvers return None on a miss: a miss is a normal negative
result that lets the intent router fall through to the next intent.
"""

import re

from quranchat.models.schemas import ChapterMeta, VerseReference
from quranchat.services.corpus import CorpusIndex
from quranchat.services.text_normalizer import normalize, to_ascii_digits

# Surah id as typed: 1..114, no leading zeros
_CHAPTER_ID_RE = re.compile(r"^([1-9]|[1-9]\d|10\d|11[0-4])$")

# "[سورة] <name> [آية|اية|رقم] <digits>"
_CHAPTER_VERSE_RE = re.compile(r"(?:سورة\s*)?([^\d\s]+)\s*(?:آية|اية|رقم)?\s*(\d+)")

# "2:255"
_NUMERIC_REFERENCE_RE = re.compile(r"(?<!\d)(\d{1,3})\s*:\s*(\d{1,3})(?!\d)")

# Well-known ayahs referred to by name. First match wins, in table order.
NAMED_VERSES: dict[str, tuple[str, int]] = {
    "آية الكرسي": ("2", 255),
    "آية الدين": ("2", 282),
    "آية النور": ("24", 35),
}

# Below this length a partial name is too ambiguous to match on containment
_MIN_PARTIAL_NAME_LENGTH = 2


class ReferenceResolver:
    def __init__(self, corpus: CorpusIndex):
        self._corpus = corpus
        self._normalized_names: list[tuple[ChapterMeta, str, set[str]]] = []
        self._names_version: int | None = None
        self._named_verses = [(normalize(name), ref) for name, ref in NAMED_VERSES.items()]

    def _name_table(self) -> list[tuple[ChapterMeta, str, set[str]]]:
        # Rebuilt whenever the corpus loads a new manifest.
        if self._names_version != self._corpus.manifest_version:
            table = []
            for meta in self._corpus.chapters:
                canonical = normalize(meta.canonical_name)
                names = {canonical} | {normalize(v) for v in meta.name_variants}
                table.append((meta, canonical, names))
            self._normalized_names = table
            self._names_version = self._corpus.manifest_version
        return self._normalized_names

    def resolve_chapter(self, identifier: str | None) -> ChapterMeta | None:
        """Find a surah by number, exact (normalised) name, or partial name."""
        cleaned = to_ascii_digits(str(identifier or "").strip())
        if _CHAPTER_ID_RE.match(cleaned):
            return self._corpus.get_chapter_meta(cleaned)

        wanted = normalize(cleaned)
        if not wanted:
            return None

        table = self._name_table()
        for meta, _canonical, names in table:
            if wanted in names:
                return meta

        if len(wanted) >= _MIN_PARTIAL_NAME_LENGTH:
            for meta, canonical, _names in table:
                if wanted in canonical:
                    return meta
        return None

    def resolve_named_verse(self, utterance: str) -> VerseReference | None:
        text = normalize(utterance)
        for name, (chapter_id, verse_number) in self._named_verses:
            if name in text:
                return self._checked_reference(chapter_id, verse_number)
        return None

    def resolve_chapter_verse_pair(self, utterance: str) -> VerseReference | None:
        """Parse "<surah> <ayah number>", e.g. "البقرة 255" or "سورة البقرة آية 255"."""
        m = _CHAPTER_VERSE_RE.search(utterance or "")
        if not m:
            return None
        meta = self.resolve_chapter(m.group(1).strip())
        if meta is None:
            return None
        return self._checked_reference(meta.id, int(m.group(2)))

    def resolve_numeric_reference(self, utterance: str) -> VerseReference | None:
        """Parse "<surah number>:<ayah number>", e.g. "2:255"."""
        m = _NUMERIC_REFERENCE_RE.search(utterance or "")
        if not m:
            return None
        meta = self.resolve_chapter(str(int(m.group(1))))
        if meta is None:
            return None
        return self._checked_reference(meta.id, int(m.group(2)))

    def _checked_reference(self, chapter_id: str, verse_number: int) -> VerseReference | None:
        meta = self._corpus.get_chapter_meta(chapter_id)
        if meta is None or not 1 <= verse_number <= meta.verse_count:
            return None
        return VerseReference(chapter_id=chapter_id, verse_number=verse_number)
