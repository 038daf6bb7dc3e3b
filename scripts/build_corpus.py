"""Build the static Quran corpus served to the chat backend.

Uses the alquran.cloud API to fetch the Arabic (Uthmani) text of every
Surah plus one tafsir edition, and writes:

    <out>/allSurahsMeta.json              manifest (114 entries)
    <out>/surah/surah_<n>.json            {"verse": {"verse_0": basmala, "verse_1": ...}}
    <out>/tafseer/<n>/<ayah>.json         {"text": ...}

Usage (from project root):
    python scripts/build_corpus.py [output_dir]
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import httpx

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)

API_BASE = "https://api.alquran.cloud/v1"
ARABIC_EDITION = "quran-uthmani"
TAFSIR_EDITION = "ar.muyassar"
TOTAL_SURAHS = 114
BATCH_CONCURRENCY = 5
BATCH_DELAY = 1.0

BASMALA = "بِسْمِ ٱللَّهِ ٱلرَّحْمَٰنِ ٱلرَّحِيمِ"
# Al-Fatiha counts the basmala as ayah 1; At-Tawba has none.
_NO_BASMALA_PREFIX = {1, 9}

_SURAH_PREFIX = "سُورَةُ "


async def fetch_surah(client: httpx.AsyncClient, surah_number: int, edition: str) -> dict:
    """Fetch a single surah in one edition."""
    url = f"{API_BASE}/surah/{surah_number}/{edition}"
    resp = await client.get(url)
    resp.raise_for_status()
    data = resp.json()

    if data["code"] != 200:
        raise RuntimeError(f"API error for surah {surah_number}: {data}")
    return data["data"]


async def fetch_all(client: httpx.AsyncClient, edition: str) -> list[dict]:
    """Fetch all 114 surahs of one edition in small batches."""
    surahs = []
    for i in range(1, TOTAL_SURAHS + 1, BATCH_CONCURRENCY):
        batch_end = min(i + BATCH_CONCURRENCY, TOTAL_SURAHS + 1)
        logger.info("[%s] Fetching surahs %d-%d...", edition, i, batch_end - 1)

        tasks = [fetch_surah(client, n, edition) for n in range(i, batch_end)]
        surahs.extend(await asyncio.gather(*tasks))

        if batch_end <= TOTAL_SURAHS:
            await asyncio.sleep(BATCH_DELAY)

    logger.info("[%s] Fetched %d surahs.", edition, len(surahs))
    return surahs


def split_basmala(surah_number: int, text: str) -> tuple[str | None, str]:
    """Separate the basmala the API prepends to ayah 1 of most surahs."""
    if surah_number in _NO_BASMALA_PREFIX or not text.startswith(BASMALA):
        return None, text
    return BASMALA, text[len(BASMALA):].strip()


def build_manifest_record(surah: dict) -> dict:
    name = surah["name"]
    if name.startswith(_SURAH_PREFIX):
        name = name[len(_SURAH_PREFIX):]
    return {
        "index": str(surah["number"]),
        "name": name,
        "name_simple": surah["englishName"],
        "verses": surah["numberOfAyahs"],
    }


def build_chapter_payload(surah: dict) -> dict:
    number = surah["number"]
    verses: dict[str, str] = {}
    for ayah in surah["ayahs"]:
        text = ayah["text"]
        if ayah["numberInSurah"] == 1:
            basmala, text = split_basmala(number, text)
            if basmala:
                verses["verse_0"] = basmala
        verses[f"verse_{ayah['numberInSurah']}"] = text
    return {
        "index": str(number),
        "name": build_manifest_record(surah)["name"],
        "verse": dict(sorted(verses.items(), key=lambda kv: int(kv[0].split("_")[1]))),
        "count": surah["numberOfAyahs"],
    }


def _write_json(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")


async def main(out_dir: Path) -> None:
    logger.info("Building corpus into %s...", out_dir)

    async with httpx.AsyncClient(timeout=30.0) as client:
        surahs = await fetch_all(client, ARABIC_EDITION)
        tafsirs = await fetch_all(client, TAFSIR_EDITION)

    _write_json(out_dir / "allSurahsMeta.json", [build_manifest_record(s) for s in surahs])
    for surah in surahs:
        _write_json(out_dir / "surah" / f"surah_{surah['number']}.json", build_chapter_payload(surah))

    tafsir_count = 0
    for surah in tafsirs:
        for ayah in surah["ayahs"]:
            if ayah["text"].strip():
                _write_json(
                    out_dir / "tafseer" / str(surah["number"]) / f"{ayah['numberInSurah']}.json",
                    {"text": ayah["text"].strip()},
                )
                tafsir_count += 1

    logger.info("Wrote %d surahs and %d tafsir entries.", len(surahs), tafsir_count)


if __name__ == "__main__":
    target = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("corpus")
    asyncio.run(main(target))
