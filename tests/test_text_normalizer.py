import pytest

from quranchat.services.text_normalizer import normalize, to_arabic_indic_digits


def test_empty_and_none_normalize_to_empty_string():
    assert normalize("") == ""
    assert normalize(None) == ""
    assert normalize("   ") == ""


def test_strips_tashkeel_and_tatweel():
    assert normalize("الْبَقَرَةِ") == "البقره"
    assert normalize("البـــقرة") == "البقره"
    assert normalize("الرَّحْمَٰنِ") == "الرحمن"


def test_folds_letter_variants():
    assert normalize("أإآٱ") == "اااا"
    assert normalize("آية") == normalize("اية") == "ايه"
    assert normalize("مُوسَى") == "موسي"


def test_trims_and_casefolds():
    assert normalize("  Al-Baqarah ") == "al-baqarah"


@pytest.mark.parametrize("text", [
    "", " ", "البقرة", "سُورَةُ الْفَاتِحَةِ", "Al-Kahf", "إبراهيم 5", "ـــ", "İstanbul", "Straße",
])
def test_normalize_is_idempotent(text):
    once = normalize(text)
    assert normalize(once) == once


def test_arabic_indic_digits():
    assert to_arabic_indic_digits(255) == "۲۵۵"
    assert to_arabic_indic_digits("2") == "۲"
