"""
Deterministic normalization only. No fuzzy matching here.
Canonical keys are the matching currency between mentions, profile keys,
synonym allergen keys and rule tables.
"""
import re
import logging
import unicodedata
from typing import List

logger = logging.getLogger(__name__)

E_NUMBER_PATTERN = re.compile(r"\bE\d{3,4}\b", re.IGNORECASE)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_WHITESPACE = re.compile(r"\s+")


def strip_diacritics(text: str) -> str:
    """'Maní' -> 'Mani'. Decomposes (NFD) and drops combining marks."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_whitespace(text: str) -> str:
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def canonicalize(text: str) -> str:
    """
    Canonical form of a surface string:
    lowercase, diacritics stripped, non-alphanumeric runs collapsed to '_', trimmed of '_'.
    'Leche en Polvo (12%)' -> 'leche_en_polvo_12'. Idempotent.
    """
    if not text or not isinstance(text, str):
        return ""
    t = strip_diacritics(text.lower())
    t = _NON_ALNUM.sub("_", t)
    return t.strip("_")


def normalize_allergen_key(value: str) -> str:
    """Allergen/diet/intolerance keys share the canonical form."""
    return canonicalize(value)


def extract_e_numbers(text: str) -> List[str]:
    """
    E-number codes (E + 3-4 digits) in order of first occurrence,
    uppercased and deduplicated.
    """
    if not text:
        return []
    codes: List[str] = []
    for match in E_NUMBER_PATTERN.finditer(text):
        code = match.group(0).upper()
        if code not in codes:
            codes.append(code)
    return codes


def merge_e_numbers(*groups: List[str]) -> List[str]:
    """Union of code lists, uppercased, first occurrence wins."""
    merged: List[str] = []
    for group in groups:
        for code in group or []:
            if not isinstance(code, str):
                continue
            c = code.strip().upper()
            if c and c not in merged:
                merged.append(c)
    return merged
