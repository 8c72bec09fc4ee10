from .dietary_rules import (
    DIET_BLOCKS,
    INTOLERANCE_TRIGGERS,
    DEFAULT_RULES,
    DietaryRules,
    load_dietary_rules,
    is_blocked_by_diet,
    triggers_intolerance,
    get_blocked_ingredients_for_diets,
    get_triggers_for_intolerances,
)

__all__ = [
    "DIET_BLOCKS",
    "INTOLERANCE_TRIGGERS",
    "DEFAULT_RULES",
    "DietaryRules",
    "load_dietary_rules",
    "is_blocked_by_diet",
    "triggers_intolerance",
    "get_blocked_ingredients_for_diets",
    "get_triggers_for_intolerances",
]
