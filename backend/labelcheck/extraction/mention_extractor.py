"""
Normalize vision-model mentions into Mention value objects.
- canonical is always recomputed from surface.
- enumbers = codes found in surface, merged with any codes the model reported.
- type/section/offset pass through; unknown enum values fall back to ingredient/other.
Also builds mentions straight from OCR text when no structured output is available.
"""
import re
import logging
from typing import Iterable, List, Optional, Union

from labelcheck.models.mention import (
    DetectedAllergen,
    IngredientsResult,
    Legibility,
    Mention,
    MentionOffset,
    MentionSection,
    MentionType,
    Quality,
)
from labelcheck.models.schema import IngredientsResultPayload, MentionPayload
from labelcheck.normalization.normalizer import canonicalize, extract_e_numbers, merge_e_numbers
from labelcheck.parsing.ingredient_parser import TRACE_PATTERN, extract_ingredients

logger = logging.getLogger(__name__)

_TRACE_PREFIX = re.compile(r"^\s*(?:puede\s+contener\s*)?(?:trazas?\s+de\s*)?", re.IGNORECASE)
_TRACE_ITEM_SPLIT = re.compile(r"\s*(?:,|\by\b|\be\b|/)\s*", re.IGNORECASE)


def _coerce_type(value: str) -> MentionType:
    try:
        return MentionType(value)
    except ValueError:
        logger.warning("EXTRACTOR unknown mention type=%r; using ingredient", value)
        return MentionType.INGREDIENT


def _coerce_section(value: str) -> MentionSection:
    try:
        return MentionSection(value)
    except ValueError:
        logger.warning("EXTRACTOR unknown mention section=%r; using other", value)
        return MentionSection.OTHER


def build_mention(raw: Union[MentionPayload, dict]) -> Mention:
    """Canonicalize a single model-reported mention."""
    payload = raw if isinstance(raw, MentionPayload) else MentionPayload.model_validate(raw)
    surface = payload.surface.strip()
    return Mention(
        surface=surface,
        canonical=canonicalize(surface),
        type=_coerce_type(payload.type),
        section=_coerce_section(payload.section),
        offset=MentionOffset(start=payload.offset.start, end=payload.offset.end),
        enumbers=merge_e_numbers(extract_e_numbers(surface), payload.enumbers),
        implies_allergens=list(dict.fromkeys(a for a in payload.implies_allergens if a)),
        evidence=payload.evidence or surface,
        parent_canonical=payload.parent_canonical,
        sub_ingredients=list(payload.sub_ingredients),
    )


def extract_mentions(raw_mentions: Iterable[Union[MentionPayload, dict]]) -> List[Mention]:
    mentions = [build_mention(m) for m in raw_mentions]
    return [m for m in mentions if m.surface]


def build_ingredients_result(payload: IngredientsResultPayload) -> IngredientsResult:
    """Validated payload -> IngredientsResult with canonicalized mentions."""
    try:
        legibility = Legibility(payload.quality.legibility)
    except ValueError:
        legibility = Legibility.MEDIUM
    mentions = extract_mentions(payload.mentions)
    if len(mentions) != len(payload.mentions):
        logger.info(
            "EXTRACTOR dropped_empty_mentions count=%d",
            len(payload.mentions) - len(mentions),
        )
    return IngredientsResult(
        ocr_text=payload.ocr_text,
        language=payload.language,
        quality=Quality(legibility=legibility, confidence=payload.quality.confidence),
        mentions=mentions,
        detected_allergens=[
            DetectedAllergen(key=a.key, source_mentions=list(a.source_mentions), confidence=a.confidence)
            for a in payload.detected_allergens
        ],
        warnings=list(payload.warnings),
        confidence=payload.confidence,
    )


def _locate(text: str, needle: str, cursor: int) -> Optional[MentionOffset]:
    idx = text.lower().find(needle.lower(), cursor)
    if idx == -1:
        return None
    return MentionOffset(start=idx, end=idx + len(needle))


def _trace_items(phrase: str) -> List[str]:
    """'Puede contener trazas de maní y soya' -> ['maní', 'soya']"""
    rest = _TRACE_PREFIX.sub("", phrase)
    return [part.strip() for part in _TRACE_ITEM_SPLIT.split(rest) if part and part.strip()]


def mentions_from_text(text: str) -> List[Mention]:
    """
    Degraded path: build mentions from raw OCR text via the segmenter.
    Items become ingredient mentions; each trace phrase yields may_contain allergen mentions.
    Offsets come from a forward case-insensitive search; unfound items get the block span.
    """
    parsed = extract_ingredients(text)
    if not parsed.items and not parsed.traces:
        return []

    block_start = max(0, text.find(parsed.raw_block.split("\n")[0])) if parsed.raw_block else 0
    block_span = MentionOffset(start=block_start, end=block_start + len(parsed.raw_block))

    mentions: List[Mention] = []
    cursor = block_start
    for item in parsed.items:
        offset = _locate(text, item, cursor)
        if offset is not None:
            cursor = offset.end
        mentions.append(Mention(
            surface=item,
            canonical=canonicalize(item),
            type=MentionType.INGREDIENT,
            section=MentionSection.INGREDIENTS,
            offset=offset or block_span,
            enumbers=extract_e_numbers(item),
            evidence=item,
        ))

    for match in TRACE_PATTERN.finditer(text):
        phrase = match.group(0)
        span = MentionOffset(start=match.start(), end=match.end())
        for part in _trace_items(phrase):
            mentions.append(Mention(
                surface=part,
                canonical=canonicalize(part),
                type=MentionType.ALLERGEN,
                section=MentionSection.MAY_CONTAIN,
                offset=_locate(text, part, match.start()) or span,
                enumbers=extract_e_numbers(part),
                evidence=" ".join(phrase.split()),
            ))

    logger.info(
        "EXTRACTOR text_mentions items=%d traces=%d header=%s",
        len(parsed.items), len(parsed.traces), parsed.had_header_match,
    )
    return [m for m in mentions if m.canonical]
