"""
In-process synonym dictionary with RapidFuzz scoring.
Used offline and in tests in place of the database RPC; surfaces are compared
lowercased and without accents, scores are scaled to 0..1.
"""
import logging
from typing import Iterable, List

from rapidfuzz import fuzz, process, utils

from labelcheck.normalization.normalizer import strip_diacritics
from labelcheck.synonyms.matcher import SynonymMatch, SynonymRow, rank_matches

logger = logging.getLogger(__name__)


def _prepare(text: str) -> str:
    return utils.default_process(strip_diacritics(text or ""))


def similarity(a: str, b: str) -> float:
    """Normalized Indel similarity in [0, 1]; empty input scores 0."""
    return fuzz.ratio(a, b, processor=_prepare) / 100.0


class InMemorySynonymSource:
    supports_fuzzy = True

    def __init__(self, rows: Iterable[SynonymRow]):
        self._rows: List[SynonymRow] = list(rows)

    @classmethod
    def from_dict(cls, data: dict, locale: str = "es-CL") -> "InMemorySynonymSource":
        """{"leche": ["leche", "lactosa", "suero de leche"], ...} -> source"""
        rows = [
            SynonymRow(allergen_key=key, surface=surface, locale=locale)
            for key, surfaces in data.items()
            for surface in surfaces
        ]
        return cls(rows)

    def match(self, query: str, min_similarity: float, limit: int) -> List[SynonymMatch]:
        hits = process.extract(
            query,
            [row.surface for row in self._rows],
            scorer=fuzz.ratio,
            processor=_prepare,
            score_cutoff=min_similarity * 100,
            limit=None,
        )
        candidates = []
        for _, score, idx in hits:
            row = self._rows[idx]
            candidates.append(SynonymMatch(
                surface=query,
                allergen_key=row.allergen_key,
                synonym_surface=row.surface,
                similarity=round(score / 100.0, 4),
                locale=row.locale,
                weight=row.weight,
            ))
        logger.debug("SYNONYMS memory query=%r hits=%d", query, len(candidates))
        return rank_matches(candidates, min_similarity, limit)

    def list_synonyms(self) -> List[SynonymRow]:
        return list(self._rows)
