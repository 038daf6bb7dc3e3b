"""Arabic text canonicalisation for fuzzy comparisons.

Every name/keyword comparison in the chat engine goes through
``normalize`` so that diacritics, tatweel and letter variants never
decide a match. Numeric comparisons bypass it.
"""

import re

# Tashkeel, Quranic annotation marks and superscript alef
_DIACRITICS_RE = re.compile(
    "[ؐ-ًؚ-ٰٟۖ-ۜ۟-۪ۨ-ۭ]"
)
_TATWEEL = "ـ"

# Letter variants with several written forms -> base letter
_LETTER_FOLDS = str.maketrans({
    "آ": "ا",  # alef with madda
    "أ": "ا",  # alef with hamza above
    "إ": "ا",  # alef with hamza below
    "ٱ": "ا",  # alef wasla
    "ة": "ه",  # ta marbuta -> ha
    "ى": "ي",  # alef maqsura -> ya
})

_ARABIC_INDIC_DIGITS = str.maketrans("0123456789", "۰۱۲۳۴۵۶۷۸۹")

# Arabic-Indic (U+0660..) and Eastern Arabic-Indic (U+06F0..) -> ASCII
_ASCII_DIGITS = {
    **{0x0660 + i: str(i) for i in range(10)},
    **{0x06F0 + i: str(i) for i in range(10)},
}


def normalize(text: str | None) -> str:
    """Canonicalise text for comparison. Total and idempotent."""
    if not text:
        return ""
    text = _DIACRITICS_RE.sub("", str(text)).replace(_TATWEEL, "")
    text = text.translate(_LETTER_FOLDS)
    return text.strip().casefold()


def to_arabic_indic_digits(value: int | str) -> str:
    """Render ASCII digits as Eastern Arabic-Indic digits for display."""
    return str(value).translate(_ARABIC_INDIC_DIGITS)


def to_ascii_digits(text: str) -> str:
    """Fold Arabic-Indic digits typed by the user back to ASCII."""
    return text.translate(_ASCII_DIGITS)
