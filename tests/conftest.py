"""Shared fixtures: a 114-surah manifest and an in-process corpus server."""

import re
from collections import Counter

import httpx
import pytest

from quranchat.services.conversation import ChatService
from quranchat.services.corpus import CorpusIndex
from quranchat.services.intent_router import IntentRouter
from quranchat.services.reference_resolver import ReferenceResolver
from quranchat.services.session_store import MemoryKeyValueStore, SessionStore

# fmt: off
ARABIC_NAMES = [
    "الفاتحة", "البقرة", "آل عمران", "النساء", "المائدة",
    "الأنعام", "الأعراف", "الأنفال", "التوبة", "يونس",
    "هود", "يوسف", "الرعد", "إبراهيم", "الحجر",
    "النحل", "الإسراء", "الكهف", "مريم", "طه",
    "الأنبياء", "الحج", "المؤمنون", "النور", "الفرقان",
    "الشعراء", "النمل", "القصص", "العنكبوت", "الروم",
    "لقمان", "السجدة", "الأحزاب", "سبأ", "فاطر",
    "يس", "الصافات", "ص", "الزمر", "غافر",
    "فصلت", "الشورى", "الزخرف", "الدخان", "الجاثية",
    "الأحقاف", "محمد", "الفتح", "الحجرات", "ق",
    "الذاريات", "الطور", "النجم", "القمر", "الرحمن",
    "الواقعة", "الحديد", "المجادلة", "الحشر", "الممتحنة",
    "الصف", "الجمعة", "المنافقون", "التغابن", "الطلاق",
    "التحريم", "الملك", "القلم", "الحاقة", "المعارج",
    "نوح", "الجن", "المزمل", "المدثر", "القيامة",
    "الإنسان", "المرسلات", "النبأ", "النازعات", "عبس",
    "التكوير", "الانفطار", "المطففين", "الانشقاق", "البروج",
    "الطارق", "الأعلى", "الغاشية", "الفجر", "البلد",
    "الشمس", "الليل", "الضحى", "الشرح", "التين",
    "العلق", "القدر", "البينة", "الزلزلة", "العاديات",
    "القارعة", "التكاثر", "العصر", "الهمزة", "الفيل",
    "قريش", "الماعون", "الكوثر", "الكافرون", "النصر",
    "المسد", "الإخلاص", "الفلق", "الناس",
]

ENGLISH_NAMES = [
    "Al-Fatihah", "Al-Baqarah", "Aal-E-Imran", "An-Nisa", "Al-Ma'idah",
    "Al-An'am", "Al-A'raf", "Al-Anfal", "At-Tawbah", "Yunus",
    "Hud", "Yusuf", "Ar-Ra'd", "Ibrahim", "Al-Hijr",
    "An-Nahl", "Al-Isra", "Al-Kahf", "Maryam", "Ta-Ha",
    "Al-Anbiya", "Al-Hajj", "Al-Mu'minun", "An-Nur", "Al-Furqan",
    "Ash-Shu'ara", "An-Naml", "Al-Qasas", "Al-Ankabut", "Ar-Rum",
    "Luqman", "As-Sajdah", "Al-Ahzab", "Saba", "Fatir",
    "Ya-Sin", "As-Saffat", "Sad", "Az-Zumar", "Ghafir",
    "Fussilat", "Ash-Shura", "Az-Zukhruf", "Ad-Dukhan", "Al-Jathiyah",
    "Al-Ahqaf", "Muhammad", "Al-Fath", "Al-Hujurat", "Qaf",
    "Adh-Dhariyat", "At-Tur", "An-Najm", "Al-Qamar", "Ar-Rahman",
    "Al-Waqi'ah", "Al-Hadid", "Al-Mujadila", "Al-Hashr", "Al-Mumtahanah",
    "As-Saf", "Al-Jumu'ah", "Al-Munafiqun", "At-Taghabun", "At-Talaq",
    "At-Tahrim", "Al-Mulk", "Al-Qalam", "Al-Haqqah", "Al-Ma'arij",
    "Nuh", "Al-Jinn", "Al-Muzzammil", "Al-Muddaththir", "Al-Qiyamah",
    "Al-Insan", "Al-Mursalat", "An-Naba", "An-Nazi'at", "Abasa",
    "At-Takwir", "Al-Infitar", "Al-Mutaffifin", "Al-Inshiqaq", "Al-Buruj",
    "At-Tariq", "Al-A'la", "Al-Ghashiyah", "Al-Fajr", "Al-Balad",
    "Ash-Shams", "Al-Layl", "Ad-Duhaa", "Ash-Sharh", "At-Tin",
    "Al-Alaq", "Al-Qadr", "Al-Bayyinah", "Az-Zalzalah", "Al-Adiyat",
    "Al-Qari'ah", "At-Takathur", "Al-Asr", "Al-Humazah", "Al-Fil",
    "Quraysh", "Al-Ma'un", "Al-Kawthar", "Al-Kafirun", "An-Nasr",
    "Al-Masad", "Al-Ikhlas", "Al-Falaq", "An-Nas",
]

VERSE_COUNTS = [
    7, 286, 200, 176, 120, 165, 206, 75, 129, 109, 123, 111, 43, 52, 99,
    128, 111, 110, 98, 135, 112, 78, 118, 64, 77, 227, 93, 88, 69, 60,
    34, 30, 73, 54, 45, 83, 182, 88, 75, 85, 54, 53, 89, 59, 37,
    35, 38, 29, 18, 45, 60, 49, 62, 55, 78, 96, 29, 22, 24, 13,
    14, 11, 11, 18, 12, 12, 30, 52, 52, 44, 28, 28, 20, 56, 40,
    31, 50, 40, 46, 42, 29, 19, 36, 25, 22, 17, 19, 26, 30, 20,
    15, 21, 11, 8, 8, 19, 5, 8, 8, 11, 11, 8, 3, 9, 5,
    4, 7, 3, 6, 3, 5, 4, 5, 6,
]
# fmt: on

BASMALA = "بِسْمِ اللَّهِ الرَّحْمَٰنِ الرَّحِيمِ"
AYAT_AL_KURSI = "اللَّهُ لَا إِلَٰهَ إِلَّا هُوَ الْحَيُّ الْقَيُّومُ"

# Ayahs mentioning patience ("بِالصَّبْرِ"), in mushaf order. Eight of them,
# so a 7-result search is always capped.
PATIENCE_VERSES = [
    ("2", 45), ("2", 153), ("2", 250), ("3", 200),
    ("16", 127), ("18", 28), ("90", 17), ("103", 3),
]

_CHAPTER_PATH_RE = re.compile(r"^/surah/surah_(\d+)\.json$")
_TAFSIR_PATH_RE = re.compile(r"^/tafseer/(\d+)/(\d+)\.json$")


def manifest_records() -> list[dict]:
    return [
        {"index": str(i), "name": ar, "name_simple": en, "verses": count}
        for i, (ar, en, count) in enumerate(zip(ARABIC_NAMES, ENGLISH_NAMES, VERSE_COUNTS), start=1)
    ]


def verse_text(chapter_id: str, number: int) -> str:
    if (chapter_id, number) == ("2", 255):
        return AYAT_AL_KURSI
    if (chapter_id, number) in PATIENCE_VERSES:
        return f"وَاسْتَعِينُوا بِالصَّبْرِ وَالصَّلَاةِ {chapter_id}:{number}"
    return f"نص الآية {number} من السورة {chapter_id}"


def chapter_payload(chapter_id: str) -> dict:
    count = VERSE_COUNTS[int(chapter_id) - 1]
    # The basmala slot deliberately mentions patience: it must never be a search hit.
    verses = {"verse_0": f"{BASMALA} بِالصَّبْرِ"} if chapter_id == "2" else {"verse_0": BASMALA}
    for n in range(1, count + 1):
        verses[f"verse_{n}"] = verse_text(chapter_id, n)
    return {"index": chapter_id, "name": ARABIC_NAMES[int(chapter_id) - 1], "verse": verses}


class FakeCorpusServer:
    """Serves manifest, surah and tafsir JSON the way the static corpus does."""

    def __init__(self):
        self.requests: Counter[str] = Counter()
        self.manifest: object = manifest_records()
        self.failing_chapters: set[str] = set()
        self.malformed_chapters: set[str] = set()
        self.commentary = {("2", "255"): "هذه الآية أعظم آية في كتاب الله."}
        self.broken_commentary = {("2", "1")}

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests[path] += 1

        if path == "/allSurahsMeta.json":
            return httpx.Response(200, json=self.manifest)

        m = _CHAPTER_PATH_RE.match(path)
        if m:
            chapter_id = m.group(1)
            if chapter_id in self.failing_chapters:
                return httpx.Response(500, text="boom")
            if chapter_id in self.malformed_chapters:
                return httpx.Response(200, json={"verses": []})
            return httpx.Response(200, json=chapter_payload(chapter_id))

        m = _TAFSIR_PATH_RE.match(path)
        if m:
            key = (m.group(1), m.group(2))
            if key in self.broken_commentary:
                return httpx.Response(503, text="unavailable")
            if key in self.commentary:
                return httpx.Response(200, json={"text": self.commentary[key]})
        return httpx.Response(404, text="not found")

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler),
            base_url="http://corpus.test/",
        )


@pytest.fixture
def server() -> FakeCorpusServer:
    return FakeCorpusServer()


@pytest.fixture
def corpus(server) -> CorpusIndex:
    index = CorpusIndex(server.client())
    index.set_chapters(manifest_records())
    return index


@pytest.fixture
def resolver(corpus) -> ReferenceResolver:
    return ReferenceResolver(corpus)


@pytest.fixture
def router(resolver) -> IntentRouter:
    return IntentRouter(resolver, max_search_results=7)


@pytest.fixture
def sessions() -> SessionStore:
    return SessionStore(MemoryKeyValueStore())


@pytest.fixture
def chat_service(corpus, router, sessions) -> ChatService:
    return ChatService(corpus, router, sessions)
