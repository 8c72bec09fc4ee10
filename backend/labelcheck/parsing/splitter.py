"""
Delimiter-aware item splitting shared by the text segmenter and the hierarchy expander.
Splits on , ; • · only at parenthesis depth 0.
"""
import re
from typing import List

from labelcheck.normalization.normalizer import normalize_whitespace

DELIMITERS = frozenset(",;•·")

_LEADING_BULLETS = re.compile(r"^[·•\-:]+")
_TRAILING_DOT = re.compile(r"\.$")
_LEADING_CONJUNCTION = re.compile(r"^\s*y\s+", re.IGNORECASE)


def clean_item(value: str) -> str:
    """Strip leading bullets/dashes/colons, one trailing '.', and a leading 'y '."""
    t = _LEADING_BULLETS.sub("", value)
    t = _TRAILING_DOT.sub("", t)
    t = _LEADING_CONJUNCTION.sub("", t)
    return t.strip()


def split_items(text: str) -> List[str]:
    """
    'Chocolate (leche, cacao, E322), Azúcar' -> ['Chocolate (leche, cacao, E322)', 'Azúcar'].
    Unbalanced ')' never drives depth below zero.
    If nothing survives, the whole whitespace-normalized input is returned as one item.
    """
    items: List[str] = []
    current: List[str] = []
    depth = 0

    for ch in text:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(0, depth - 1)

        if depth == 0 and ch in DELIMITERS:
            candidate = normalize_whitespace("".join(current))
            if candidate:
                cleaned = clean_item(candidate)
                if cleaned:
                    items.append(cleaned)
            current = []
            continue

        current.append(ch)

    final_candidate = normalize_whitespace("".join(current))
    if final_candidate:
        cleaned = clean_item(final_candidate)
        if cleaned:
            items.append(cleaned)

    if items:
        return items
    whole = normalize_whitespace(text)
    return [whole] if whole else []
