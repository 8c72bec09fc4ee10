"""
Boundary validation of raw vision output / stored extraction JSON (IngredientsResultV2 shape).
Payloads without a `mentions` array are legacy and rejected, never repaired.
"""
import logging
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from labelcheck.errors import InvalidExtractionError, LegacyFormatError

logger = logging.getLogger(__name__)


class OffsetPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    start: int = 0
    end: int = 0


class MentionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    surface: str
    canonical: Optional[str] = None
    type: str = "ingredient"
    section: str = "ingredients"
    offset: OffsetPayload = Field(default_factory=OffsetPayload)
    enumbers: List[str] = Field(default_factory=list)
    implies_allergens: List[str] = Field(default_factory=list)
    evidence: str = ""
    parent_canonical: Optional[str] = None
    sub_ingredients: List[str] = Field(default_factory=list)


class DetectedAllergenPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    source_mentions: List[int] = Field(default_factory=list)
    confidence: float = 0.0


class QualityPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    legibility: str = "medium"
    confidence: float = 0.0


class IngredientsResultPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ocr_text: str = ""
    language: str = "es"
    quality: QualityPayload = Field(default_factory=QualityPayload)
    mentions: List[MentionPayload]
    detected_allergens: List[DetectedAllergenPayload] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    confidence: float = 0.0


def validate_extraction(raw: Any) -> IngredientsResultPayload:
    """
    Validate a raw extraction dict.
    Raises LegacyFormatError when `mentions` is missing or not a list,
    InvalidExtractionError for any other shape problem.
    """
    if not isinstance(raw, dict):
        raise InvalidExtractionError("Extraction raw_json is null or invalid")
    if not isinstance(raw.get("mentions"), list):
        raise LegacyFormatError("Extraction does not have current format (missing mentions array)")
    try:
        return IngredientsResultPayload.model_validate(raw)
    except ValidationError as e:
        logger.warning("SCHEMA invalid extraction errors=%d", e.error_count())
        raise InvalidExtractionError(f"Extraction failed validation: {e.error_count()} error(s)") from e
