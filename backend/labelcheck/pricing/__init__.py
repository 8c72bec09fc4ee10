from .cost_estimator import (
    DEFAULT_TILE_RULES,
    PRICES_USD_PER_MTOK,
    CostEstimateResult,
    ImageSpec,
    TileCalcResult,
    TileRules,
    cost_from_usage,
    estimate_cost,
    normalize_and_count_tiles,
)

__all__ = [
    "DEFAULT_TILE_RULES",
    "PRICES_USD_PER_MTOK",
    "CostEstimateResult",
    "ImageSpec",
    "TileCalcResult",
    "TileRules",
    "cost_from_usage",
    "estimate_cost",
    "normalize_and_count_tiles",
]
