"""
Vision-call cost estimation: image tile counting and USD cost from token counts.
Prices are USD per million tokens.
"""
import math
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from labelcheck.errors import PricingError

logger = logging.getLogger(__name__)

UNIT_TOKENS = 1_000_000

PRICES_USD_PER_MTOK: Dict[str, Dict[str, float]] = {
    "gpt-4o": {"input": 2.5, "output": 10.0},
    "gpt-4o-mini": {"input": 0.15, "output": 0.6},
}


@dataclass(frozen=True)
class ImageSpec:
    width: int
    height: int


@dataclass(frozen=True)
class TileRules:
    tile_size_px: int = 512
    base_tokens: int = 70
    per_tile_tokens: int = 140
    short_side_target_px: int = 768
    long_side_max_px: int = 2048
    no_upscale: bool = True


DEFAULT_TILE_RULES = TileRules()


@dataclass(frozen=True)
class TileCalcResult:
    scaled_width: int
    scaled_height: int
    tiles_x: int
    tiles_y: int
    tiles: int
    image_tokens: int


@dataclass(frozen=True)
class ImageCostDetail:
    idx: int
    tiles: int
    image_tokens: int


@dataclass(frozen=True)
class CostEstimateResult:
    total_image_tokens: int
    prompt_text_tokens: int
    output_tokens: int
    input_tokens: int
    cost_usd: float
    per_image_usd: float
    details: List[ImageCostDetail] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "totalImageTokens": self.total_image_tokens,
            "promptTextTokens": self.prompt_text_tokens,
            "outputTokens": self.output_tokens,
            "inputTokens": self.input_tokens,
            "costUSD": self.cost_usd,
            "perImageUSD": self.per_image_usd,
            "details": [
                {"idx": d.idx, "tiles": d.tiles, "imageTokens": d.image_tokens} for d in self.details
            ],
        }


def _scale(width: int, height: int, factor: float) -> tuple:
    return math.floor(width * factor), math.floor(height * factor)


def normalize_and_count_tiles(img: ImageSpec, rules: TileRules = DEFAULT_TILE_RULES) -> TileCalcResult:
    """
    Fit the long side within long_side_max_px, then bring the short side down to
    short_side_target_px (or up to it when upscaling is allowed); floor after each scale.
    4096x3072 -> 2048x1536 -> 1024x768 -> 2x2 tiles -> 630 tokens.
    """
    w, h = img.width, img.height

    long_side = max(w, h)
    if long_side > rules.long_side_max_px:
        w, h = _scale(w, h, rules.long_side_max_px / long_side)

    short_side = min(w, h)
    if short_side > rules.short_side_target_px:
        w, h = _scale(w, h, rules.short_side_target_px / short_side)
    elif not rules.no_upscale and 0 < short_side < rules.short_side_target_px:
        w, h = _scale(w, h, rules.short_side_target_px / short_side)

    tiles_x = math.ceil(w / rules.tile_size_px)
    tiles_y = math.ceil(h / rules.tile_size_px)
    tiles = tiles_x * tiles_y
    return TileCalcResult(
        scaled_width=w,
        scaled_height=h,
        tiles_x=tiles_x,
        tiles_y=tiles_y,
        tiles=tiles,
        image_tokens=rules.base_tokens + rules.per_tile_tokens * tiles,
    )


def _prices_for(model: str, prices_override: Optional[Mapping[str, Mapping[str, float]]]) -> Mapping[str, float]:
    prices_map = {**PRICES_USD_PER_MTOK, **(prices_override or {})}
    prices = prices_map.get(model)
    if not prices:
        raise PricingError(f"Missing pricing information for model {model}")
    return prices


def estimate_cost(
    model: str,
    images: Sequence[ImageSpec],
    prompt_text_tokens: float = 0,
    expected_output_tokens: float = 120,
    prices_override: Optional[Mapping[str, Mapping[str, float]]] = None,
    rules: TileRules = DEFAULT_TILE_RULES,
) -> CostEstimateResult:
    """Pre-call estimate for one request carrying `images`. Raises PricingError for unknown models."""
    prices = _prices_for(model, prices_override)

    details = []
    for idx, image in enumerate(images):
        tile = normalize_and_count_tiles(image, rules)
        details.append(ImageCostDetail(idx=idx, tiles=tile.tiles, image_tokens=tile.image_tokens))

    total_image_tokens = sum(d.image_tokens for d in details)
    prompt_tokens = max(0, math.floor(prompt_text_tokens))
    output_tokens = max(0, math.floor(expected_output_tokens))
    input_tokens = prompt_tokens + total_image_tokens

    cost = (input_tokens / UNIT_TOKENS) * prices["input"] + (output_tokens / UNIT_TOKENS) * prices["output"]
    per_image = cost / len(details) if details else 0.0

    logger.debug(
        "PRICING model=%s images=%d input_tokens=%d output_tokens=%d cost_usd=%.6f",
        model, len(details), input_tokens, output_tokens, cost,
    )
    return CostEstimateResult(
        total_image_tokens=total_image_tokens,
        prompt_text_tokens=prompt_tokens,
        output_tokens=output_tokens,
        input_tokens=input_tokens,
        cost_usd=cost,
        per_image_usd=per_image,
        details=details,
    )


def cost_from_usage(
    model: str,
    usage: Mapping[str, int],
    prices_override: Optional[Mapping[str, Mapping[str, float]]] = None,
) -> float:
    """Actual cost from a completion's usage block ({prompt_tokens, completion_tokens})."""
    prices = _prices_for(model, prices_override)
    input_cost = (usage.get("prompt_tokens", 0) / UNIT_TOKENS) * prices["input"]
    output_cost = (usage.get("completion_tokens", 0) / UNIT_TOKENS) * prices["output"]
    return input_cost + output_cost
