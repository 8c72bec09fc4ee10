"""
Allergen synonym expansion: matcher, fuzzy similarity, dictionary sources.
"""
from .matcher import (
    SynonymMatch,
    SynonymRow,
    SynonymSource,
    apply_synonym_matches,
    expand_allergen_synonyms,
    expand_allergen_synonyms_exact,
)
from .memory_source import InMemorySynonymSource, similarity

__all__ = [
    "SynonymMatch",
    "SynonymRow",
    "SynonymSource",
    "apply_synonym_matches",
    "expand_allergen_synonyms",
    "expand_allergen_synonyms_exact",
    "InMemorySynonymSource",
    "similarity",
]
