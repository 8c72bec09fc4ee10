"""
Segment raw OCR label text into an ingredients block, split items and trace phrases.
- Header detection on diacritic-stripped, uppercased lines ("INGREDIENTES:", "Ingredientes", ...).
- Block ends at the next section header (ALERGENOS, TRAZAS, NUTRICION, LOTE, ...)
  or at the first blank line once content has started.
- No header -> whole text is the block (degraded mode, had_header_match=False).
Optimized for Spanish/Chilean labels; never raises on empty or odd input.
"""
import re
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from labelcheck.normalization.normalizer import normalize_whitespace, strip_diacritics
from labelcheck.parsing.splitter import split_items

logger = logging.getLogger(__name__)

HEADER_PATTERN = re.compile(r"^\s*INGREDIENT(?:ES|E|S)?[^\w]?", re.IGNORECASE)

STOP_PATTERN = re.compile(
    r"^\s*(ALERGEN|TRAZAS|PUEDE CONTENER|CONTENIDO|NUTRIC|LOTE|FECHA|CONSERV|PREPARACI"
    r"|MODO|USO|TABLA|DECLARAC|ADVERT|CONTACTO|FABRIC|ENVASADO)",
    re.IGNORECASE,
)

# "puede contener ..." / "traza(s) de ..." up to the next . ; ,
TRACE_PATTERN = re.compile(r"\b(?:puede\s+contener|trazas?\s+de)[^.;,]*", re.IGNORECASE)


@dataclass(frozen=True)
class IngredientParseResult:
    header: Optional[str]
    raw_block: str
    items: List[str] = field(default_factory=list)
    traces: List[str] = field(default_factory=list)
    had_header_match: bool = False

    def to_dict(self) -> dict:
        return {
            "header": self.header,
            "rawBlock": self.raw_block,
            "items": list(self.items),
            "traces": list(self.traces),
            "hadHeaderMatch": self.had_header_match,
        }


def collect_traces(block: str) -> List[str]:
    """All non-overlapping trace phrases in block, whitespace-normalized, casing preserved."""
    traces: List[str] = []
    for match in TRACE_PATTERN.finditer(block or ""):
        phrase = normalize_whitespace(match.group(0))
        if phrase:
            traces.append(phrase)
    return traces


def _find_header_index(normalized_lines: List[str]) -> int:
    for idx, line in enumerate(normalized_lines):
        if HEADER_PATTERN.match(line):
            return idx
    return -1


def extract_ingredients(text: str) -> IngredientParseResult:
    """
    Extract the ingredients block from OCR text.

    'INGREDIENTES: Chocolate (leche, cacao, E322), Azúcar'
      -> items ['Chocolate (leche, cacao, E322)', 'Azúcar'], had_header_match=True
    """
    if not text or not text.strip():
        return IngredientParseResult(header=None, raw_block="", items=[], traces=[], had_header_match=False)

    lines = re.split(r"\r?\n", text)
    normalized_lines = [strip_diacritics(line).upper() for line in lines]
    header_index = _find_header_index(normalized_lines)

    if header_index == -1:
        whole = normalize_whitespace(text)
        logger.debug("SEGMENTER no_header chars=%d", len(whole))
        return IngredientParseResult(
            header=None,
            raw_block=whole,
            items=split_items(whole),
            traces=collect_traces(whole),
            had_header_match=False,
        )

    block: List[str] = []
    header_line = lines[header_index]
    has_content = bool(HEADER_PATTERN.sub("", header_line).strip())
    for i in range(header_index, len(lines)):
        line = lines[i]
        if i > header_index:
            if STOP_PATTERN.match(normalized_lines[i]):
                break
            if not line.strip():
                if has_content:
                    break
                continue
            has_content = True
        block.append(line)

    raw_block = "\n".join(block).strip()
    first_content = HEADER_PATTERN.sub("", header_line).strip()
    body = " ".join(part for part in [first_content] + [l.strip() for l in block[1:]] if part)
    cleaned = normalize_whitespace(body)

    result = IngredientParseResult(
        header=header_line,
        raw_block=raw_block,
        items=split_items(cleaned) if cleaned else [],
        traces=collect_traces(raw_block),
        had_header_match=True,
    )
    logger.debug(
        "SEGMENTER header_line=%d items=%d traces=%d",
        header_index, len(result.items), len(result.traces),
    )
    return result
