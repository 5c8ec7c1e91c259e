"""
OCR text cleanup for lab reports.

Fixes the character confusions Tesseract typically makes on lab values
(``l``/``I`` for ``1``, ``o``/``O`` for ``0``), normalizes dates and units,
and restores the spelling of common test names.
"""

import re
from typing import List, Pattern, Tuple

# Applied in order; CO2-style formulas are protected before o/0 swaps
_CHARACTER_FIXES: List[Tuple[Pattern, str]] = [
    (re.compile(r'\|'), 'I'),
    (re.compile(r'\b[cC][oO](\d)'), r'CO\1'),
    (re.compile(r'[lI](\d)'), r'1\1'),
    (re.compile(r'(\d)[oO](?![a-zA-Z])'), r'\g<1>0'),
    (re.compile(r'(?<![cCa-zA-Z])[oO](\d)'), r'0\1'),
]

_SPACING_FIX = (re.compile(r'\s{2,}'), ' ')

_DATE_FIX = (re.compile(r'\b(\d{1,2})[.\-](\d{1,2})[.\-](\d{4})\b'), r'\1/\2/\3')

_UNIT_FIXES: List[Tuple[Pattern, str]] = [
    (re.compile(r'(\d) ?g/d[lL]\b'), r'\1 g/dL'),
    (re.compile(r'(\d) ?mm[0oO]l/m[0oO]l\b'), r'\1 mmol/mol'),
    (re.compile(r'(\d) ?mm[0oO]l/[lL]\b'), r'\1 mmol/L'),
]

_NAME_FIXES: List[Tuple[Pattern, str]] = [
    (re.compile(r'[aA][l1I][cC]([ -])[hH]em[0o]gl[0o]b[il]ne'), r'A1c\1Hemoglobine'),
    (re.compile(r'[hH][bB][aA][l1I][cC]'), 'HbA1c'),
    (re.compile(r'[hH]em[0o]gl[0o]b[il]ne'), 'Hemoglobine'),
    (re.compile(r'[hH]emat[0o]cr[il]et'), 'Hematocriet'),
    (re.compile(r'\b[bB][iI][oO0][cC][hH][eE][mM][iI][eE]\b'), 'BIOCHEMIE'),
]


def _apply(text: str, fixes: List[Tuple[Pattern, str]]) -> str:
    for pattern, replacement in fixes:
        text = pattern.sub(replacement, text)
    return text


def clean_ocr_text(text: str) -> str:
    """
    Clean OCR noise in lab report text.

    Args:
        text: Raw OCR text or a single cell

    Returns:
        Cleaned text
    """
    if not text:
        return text

    cleaned = _apply(text, _NAME_FIXES)
    cleaned = _apply(cleaned, _CHARACTER_FIXES)
    cleaned = _SPACING_FIX[0].sub(_SPACING_FIX[1], cleaned)
    cleaned = _DATE_FIX[0].sub(_DATE_FIX[1], cleaned)
    cleaned = _apply(cleaned, _UNIT_FIXES)
    return cleaned
