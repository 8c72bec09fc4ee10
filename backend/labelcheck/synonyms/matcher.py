"""
Allergen synonym expansion for mentions.

Fuzzy path: one fuzzy-similarity lookup per distinct ingredient/allergen surface,
top N matches at or above min_similarity. Exact path (fuzzy unavailable):
bidirectional case-insensitive substring containment, similarity fixed at 1.0.

Best-effort enrichment: a failing lookup is logged and skipped; a total failure
yields an empty map. Callers cannot tell "service down" from "no match".
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Protocol, Sequence, runtime_checkable

from labelcheck.models.mention import DetectedAllergen, IngredientsResult, Mention, MentionType
from labelcheck.normalization.normalizer import normalize_allergen_key

logger = logging.getLogger(__name__)

DEFAULT_MIN_SIMILARITY = 0.3
DEFAULT_LIMIT = 5

_MATCHABLE_TYPES = (MentionType.INGREDIENT, MentionType.ALLERGEN)


@dataclass(frozen=True)
class SynonymMatch:
    surface: str            # mention surface that was queried
    allergen_key: str
    synonym_surface: str    # dictionary entry that matched
    similarity: float       # 0.0 - 1.0
    locale: str = "es-CL"
    weight: float = 1.0

    @property
    def rank_key(self) -> tuple:
        return (-self.similarity, -self.weight)

    def to_dict(self) -> dict:
        return {
            "surface": self.surface,
            "allergenKey": self.allergen_key,
            "synonymSurface": self.synonym_surface,
            "similarity": self.similarity,
            "locale": self.locale,
            "weight": self.weight,
        }


@dataclass(frozen=True)
class SynonymRow:
    """One dictionary entry: a surface form that implies an allergen key."""
    allergen_key: str
    surface: str
    locale: str = "es-CL"
    weight: float = 1.0


@runtime_checkable
class SynonymSource(Protocol):
    supports_fuzzy: bool

    def match(self, query: str, min_similarity: float, limit: int) -> List[SynonymMatch]:
        """Fuzzy lookup for one query string."""
        ...

    def list_synonyms(self) -> List[SynonymRow]:
        """Whole dictionary, for the exact fallback."""
        ...


def matchable_surfaces(mentions: Iterable[Mention]) -> List[str]:
    """Distinct surfaces of ingredient/allergen mentions, first-seen order."""
    surfaces: List[str] = []
    for m in mentions:
        if m.type in _MATCHABLE_TYPES and m.surface and m.surface not in surfaces:
            surfaces.append(m.surface)
    return surfaces


def rank_matches(matches: Iterable[SynonymMatch], min_similarity: float, limit: int) -> List[SynonymMatch]:
    kept = [m for m in matches if m.similarity >= min_similarity]
    kept.sort(key=lambda m: m.rank_key)
    return kept[:limit]


def expand_allergen_synonyms(
    source: SynonymSource,
    mentions: Sequence[Mention],
    min_similarity: float = DEFAULT_MIN_SIMILARITY,
    limit: int = DEFAULT_LIMIT,
) -> Dict[str, List[SynonymMatch]]:
    """
    Surface -> ranked matches. Surfaces with nothing at or above min_similarity are absent.
    """
    result: Dict[str, List[SynonymMatch]] = {}
    surfaces = matchable_surfaces(mentions)
    if not surfaces:
        return result

    failed = 0
    try:
        for surface in surfaces:
            try:
                rows = source.match(surface, min_similarity, limit)
            except Exception as e:
                failed += 1
                logger.warning("SYNONYMS lookup failed surface=%s error=%s", surface[:60], e)
                continue
            ranked = rank_matches(rows, min_similarity, limit)
            if ranked:
                result[surface] = ranked
    except Exception as e:
        logger.error("SYNONYMS expansion failed: %s", e)
        return {}

    logger.info(
        "SYNONYMS fuzzy surfaces=%d matched=%d failed=%d min_similarity=%.2f",
        len(surfaces), len(result), failed, min_similarity,
    )
    return result


def expand_allergen_synonyms_exact(
    source: SynonymSource,
    mentions: Sequence[Mention],
) -> Dict[str, List[SynonymMatch]]:
    """
    Substring containment in either direction ('leche' ~ 'leche en polvo'), similarity 1.0.
    Ordered by weight within a surface.
    """
    result: Dict[str, List[SynonymMatch]] = {}
    surfaces = matchable_surfaces(mentions)
    if not surfaces:
        return result

    try:
        rows = source.list_synonyms()
    except Exception as e:
        logger.error("SYNONYMS exact dictionary load failed: %s", e)
        return {}

    for surface in surfaces:
        needle = surface.lower()
        matches = [
            SynonymMatch(
                surface=surface,
                allergen_key=row.allergen_key,
                synonym_surface=row.surface,
                similarity=1.0,
                locale=row.locale,
                weight=row.weight,
            )
            for row in rows
            if row.surface and (row.surface.lower() in needle or needle in row.surface.lower())
        ]
        if matches:
            matches.sort(key=lambda m: m.rank_key)
            result[surface] = matches

    logger.info("SYNONYMS exact surfaces=%d matched=%d dictionary=%d", len(surfaces), len(result), len(rows))
    return result


def apply_synonym_matches(
    result: IngredientsResult,
    matches: Dict[str, List[SynonymMatch]],
) -> IngredientsResult:
    """
    Merge matched allergen keys into mentions' implies_allergens and into detected_allergens.
    New detected entries take the best similarity as confidence; existing entries keep
    their key and gain source mention indices.
    """
    if not matches:
        return result

    mentions: List[Mention] = []
    sources: Dict[str, List[int]] = {}
    best: Dict[str, float] = {}
    for idx, m in enumerate(result.mentions):
        found = matches.get(m.surface) if m.type in _MATCHABLE_TYPES else None
        if not found:
            mentions.append(m)
            continue
        implied = list(m.implies_allergens)
        present = {normalize_allergen_key(a) for a in implied}
        for match in found:
            key = normalize_allergen_key(match.allergen_key)
            if not key:
                continue
            if key not in present:
                implied.append(key)
                present.add(key)
            idxs = sources.setdefault(key, [])
            if idx not in idxs:
                idxs.append(idx)
            best[key] = max(best.get(key, 0.0), match.similarity)
        mentions.append(m.with_changes(implies_allergens=implied))

    detected: List[DetectedAllergen] = []
    seen = set()
    for a in result.detected_allergens:
        key = normalize_allergen_key(a.key)
        seen.add(key)
        if key in sources:
            merged = list(a.source_mentions) + [i for i in sources[key] if i not in a.source_mentions]
            detected.append(DetectedAllergen(
                key=a.key, source_mentions=merged, confidence=max(a.confidence, best[key]),
            ))
        else:
            detected.append(a)
    for key, idxs in sources.items():
        if key not in seen:
            detected.append(DetectedAllergen(key=key, source_mentions=list(idxs), confidence=round(best[key], 4)))

    return result.with_changes(mentions=mentions, detected_allergens=detected)
