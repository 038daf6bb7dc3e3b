from scripts.build_corpus import BASMALA, build_chapter_payload, build_manifest_record, split_basmala


def _surah(number: int, ayahs: list[str]) -> dict:
    return {
        "number": number,
        "name": "سُورَةُ الإخلاص",
        "englishName": "Al-Ikhlaas",
        "numberOfAyahs": len(ayahs),
        "ayahs": [{"numberInSurah": i, "text": t} for i, t in enumerate(ayahs, start=1)],
    }


def test_split_basmala():
    assert split_basmala(112, f"{BASMALA} قُلْ هُوَ ٱللَّهُ أَحَدٌ") == (BASMALA, "قُلْ هُوَ ٱللَّهُ أَحَدٌ")


def test_split_basmala_keeps_fatiha_and_tawba():
    assert split_basmala(1, BASMALA) == (None, BASMALA)
    assert split_basmala(9, "بَرَآءَةٌ") == (None, "بَرَآءَةٌ")


def test_split_basmala_without_prefix():
    assert split_basmala(2, "الٓمٓ") == (None, "الٓمٓ")


def test_manifest_record_strips_surah_prefix():
    record = build_manifest_record(_surah(112, ["a", "b", "c", "d"]))
    assert record == {"index": "112", "name": "الإخلاص", "name_simple": "Al-Ikhlaas", "verses": 4}


def test_chapter_payload_moves_basmala_to_verse_zero():
    payload = build_chapter_payload(_surah(112, [f"{BASMALA} قُلْ", "ٱللَّهُ", "لَمْ", "وَلَمْ"]))

    assert list(payload["verse"]) == ["verse_0", "verse_1", "verse_2", "verse_3", "verse_4"]
    assert payload["verse"]["verse_0"] == BASMALA
    assert payload["verse"]["verse_1"] == "قُلْ"
    assert payload["count"] == 4


def test_chapter_payload_for_fatiha_has_no_verse_zero():
    payload = build_chapter_payload(_surah(1, [BASMALA, "ٱلْحَمْدُ"]))
    assert "verse_0" not in payload["verse"]
    assert payload["verse"]["verse_1"] == BASMALA
