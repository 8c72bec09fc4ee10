"""
Diet and intolerance rule tables. Pure lookups, no side effects.

DIET_BLOCKS: diet key -> allergen/ingredient keys always blocked for that diet.
INTOLERANCE_TRIGGERS: intolerance key -> ingredient keys that trigger it.

halal and kosher are declared with empty lists: pork/alcohol detection and
meat/dairy separation are not expressible as ingredient keys, so no rule fires here.

Tables are immutable; the risk evaluator receives a DietaryRules instance so
alternate rule sets can be injected (tests, JSON file via DIETARY_RULES_PATH).
"""
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional, Tuple

from labelcheck.config import get_dietary_rules_path
from labelcheck.normalization.normalizer import normalize_allergen_key

logger = logging.getLogger(__name__)

_DEFAULT_DIET_BLOCKS = {
    "celiaco": ["gluten", "trigo", "cebada", "centeno", "avena"],
    "vegano": ["leche", "huevo", "miel", "gelatina", "lactosa", "suero"],
    "vegetariano": ["gelatina"],  # animal-derived gelatin only
    "halal": [],
    "kosher": [],
}

_DEFAULT_INTOLERANCE_TRIGGERS = {
    "fodmap": ["trigo", "cebolla", "ajo", "lactosa", "miel", "manzana", "pera"],
    "lactosa": ["leche", "lactosa", "suero", "crema"],
    "fructosa": ["miel", "fructosa", "jarabe_de_maiz"],
}


def _freeze(table: Mapping[str, Iterable[str]]) -> Mapping[str, Tuple[str, ...]]:
    frozen = {}
    for key, values in table.items():
        k = normalize_allergen_key(key)
        if not k:
            continue
        frozen[k] = tuple(dict.fromkeys(v for v in (normalize_allergen_key(x) for x in values) if v))
    return MappingProxyType(frozen)


def _union(groups: Iterable[Tuple[str, ...]]) -> List[str]:
    out: List[str] = []
    for group in groups:
        for key in group:
            if key not in out:
                out.append(key)
    return out


@dataclass(frozen=True)
class DietaryRules:
    diet_blocks: Mapping[str, Tuple[str, ...]]
    intolerance_triggers: Mapping[str, Tuple[str, ...]]

    @classmethod
    def from_tables(
        cls,
        diet_blocks: Mapping[str, Iterable[str]],
        intolerance_triggers: Mapping[str, Iterable[str]],
    ) -> "DietaryRules":
        return cls(diet_blocks=_freeze(diet_blocks), intolerance_triggers=_freeze(intolerance_triggers))

    @classmethod
    def from_file(cls, path: Path) -> "DietaryRules":
        """{"diet_blocks": {...}, "intolerance_triggers": {...}}; a missing section is empty."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        rules = cls.from_tables(data.get("diet_blocks", {}), data.get("intolerance_triggers", {}))
        logger.info(
            "Loaded dietary rules diets=%d intolerances=%d from %s",
            len(rules.diet_blocks), len(rules.intolerance_triggers), path,
        )
        return rules

    def blocked_for_diet(self, diet: str) -> Tuple[str, ...]:
        return self.diet_blocks.get(normalize_allergen_key(diet), ())

    def triggers_for_intolerance(self, intolerance: str) -> Tuple[str, ...]:
        return self.intolerance_triggers.get(normalize_allergen_key(intolerance), ())

    def is_blocked_by_diet(self, diet: str, ingredient_key: str) -> bool:
        return normalize_allergen_key(ingredient_key) in self.blocked_for_diet(diet)

    def triggers_intolerance(self, intolerance: str, ingredient_key: str) -> bool:
        return normalize_allergen_key(ingredient_key) in self.triggers_for_intolerance(intolerance)

    def get_blocked_ingredients_for_diets(self, diets: Iterable[str]) -> List[str]:
        return _union(self.blocked_for_diet(d) for d in diets)

    def get_triggers_for_intolerances(self, intolerances: Iterable[str]) -> List[str]:
        return _union(self.triggers_for_intolerance(i) for i in intolerances)


DEFAULT_RULES = DietaryRules.from_tables(_DEFAULT_DIET_BLOCKS, _DEFAULT_INTOLERANCE_TRIGGERS)

DIET_BLOCKS = DEFAULT_RULES.diet_blocks
INTOLERANCE_TRIGGERS = DEFAULT_RULES.intolerance_triggers


def load_dietary_rules(path: Optional[Path] = None) -> DietaryRules:
    """Rules from the configured JSON file, or the built-in tables when it does not exist."""
    rules_path = path or get_dietary_rules_path()
    if not rules_path.exists():
        logger.info("Dietary rules file not found at %s; using built-in tables.", rules_path)
        return DEFAULT_RULES
    return DietaryRules.from_file(rules_path)


def is_blocked_by_diet(diet: str, ingredient_key: str) -> bool:
    return DEFAULT_RULES.is_blocked_by_diet(diet, ingredient_key)


def triggers_intolerance(intolerance: str, ingredient_key: str) -> bool:
    return DEFAULT_RULES.triggers_intolerance(intolerance, ingredient_key)


def get_blocked_ingredients_for_diets(diets: Iterable[str]) -> List[str]:
    return DEFAULT_RULES.get_blocked_ingredients_for_diets(diets)


def get_triggers_for_intolerances(intolerances: Iterable[str]) -> List[str]:
    return DEFAULT_RULES.get_triggers_for_intolerances(intolerances)
