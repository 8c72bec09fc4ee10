"""
Synonym dictionary backed by Supabase:
- fuzzy: RPC match_allergen_synonyms_fuzzy(p_query, p_min_similarity, p_limit) using pg_trgm
- exact fallback: allergen_synonyms joined to allergen_types for the key
Errors propagate; the matcher decides how to degrade.
"""
import logging
from typing import Any, List

from supabase import Client

from labelcheck.synonyms.matcher import SynonymMatch, SynonymRow

logger = logging.getLogger(__name__)

FUZZY_RPC = "match_allergen_synonyms_fuzzy"
SYNONYMS_TABLE = "allergen_synonyms"
_DICTIONARY_LIMIT = 1000


def _allergen_key(row: dict) -> str:
    joined: Any = row.get("allergen_types")
    if isinstance(joined, list):
        joined = joined[0] if joined else {}
    if isinstance(joined, dict):
        return str(joined.get("key") or "")
    return str(row.get("allergen_key") or "")


class SupabaseSynonymSource:
    def __init__(self, client: Client, supports_fuzzy: bool = True):
        self._client = client
        self.supports_fuzzy = supports_fuzzy

    def match(self, query: str, min_similarity: float, limit: int) -> List[SynonymMatch]:
        response = self._client.rpc(
            FUZZY_RPC,
            {"p_query": query, "p_min_similarity": min_similarity, "p_limit": limit},
        ).execute()
        rows = response.data or []
        return [
            SynonymMatch(
                surface=query,
                allergen_key=row["allergen_key"],
                synonym_surface=row["synonym_surface"],
                similarity=float(row.get("similarity") or 0.0),
                locale=row.get("locale") or "es-CL",
                weight=float(row.get("weight") or 1.0),
            )
            for row in rows
            if isinstance(row, dict) and row.get("allergen_key")
        ]

    def list_synonyms(self) -> List[SynonymRow]:
        response = (
            self._client.table(SYNONYMS_TABLE)
            .select("surface, locale, weight, allergen_types!inner(key)")
            .limit(_DICTIONARY_LIMIT)
            .execute()
        )
        rows: List[SynonymRow] = []
        for row in response.data or []:
            key = _allergen_key(row)
            if not key or not row.get("surface"):
                continue
            rows.append(SynonymRow(
                allergen_key=key,
                surface=row["surface"],
                locale=row.get("locale") or "es-CL",
                weight=float(row.get("weight") or 1.0),
            ))
        logger.debug("SYNONYMS dictionary rows=%d", len(rows))
        return rows
