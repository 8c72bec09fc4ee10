"""
Structured extraction contract: mentions, detected allergens, quality, IngredientsResult.
Field names and enum values are the JSON wire format stored per scan and
consumed by the presentation layer; keep them stable.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, List, Optional


class MentionType(str, Enum):
    INGREDIENT = "ingredient"
    ALLERGEN = "allergen"
    CLAIM = "claim"        # "Sin gluten", "Libre de lactosa"
    WARNING = "warning"    # "Puede contener", "Trazas de"
    ICON = "icon"          # front-of-pack badge


class MentionSection(str, Enum):
    INGREDIENTS = "ingredients"
    MAY_CONTAIN = "may_contain"
    FRONT_LABEL = "front_label"
    NUTRITION = "nutrition"
    OTHER = "other"


class Legibility(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class MentionOffset:
    """Character span in ocr_text; used for UI highlighting only."""
    start: int = 0
    end: int = 0

    def to_dict(self) -> dict:
        return {"start": self.start, "end": self.end}

    @classmethod
    def from_dict(cls, d: Optional[dict]) -> "MentionOffset":
        d = d or {}
        return cls(start=int(d.get("start", 0) or 0), end=int(d.get("end", 0) or 0))


@dataclass(frozen=True)
class Mention:
    surface: str
    canonical: str
    type: MentionType = MentionType.INGREDIENT
    section: MentionSection = MentionSection.INGREDIENTS
    offset: MentionOffset = field(default_factory=MentionOffset)
    enumbers: list[str] = field(default_factory=list)
    implies_allergens: list[str] = field(default_factory=list)
    evidence: str = ""
    # Hierarchy links (set by the hierarchy expander)
    parent_canonical: Optional[str] = None
    sub_ingredients: list[str] = field(default_factory=list)

    @property
    def is_parent(self) -> bool:
        return bool(self.sub_ingredients)

    def with_changes(self, **changes: Any) -> "Mention":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        d = {
            "surface": self.surface,
            "canonical": self.canonical,
            "type": self.type.value,
            "section": self.section.value,
            "offset": self.offset.to_dict(),
            "enumbers": list(self.enumbers),
            "implies_allergens": list(self.implies_allergens),
            "evidence": self.evidence,
        }
        if self.parent_canonical is not None or self.sub_ingredients:
            if self.parent_canonical is not None:
                d["parent_canonical"] = self.parent_canonical
            d["sub_ingredients"] = list(self.sub_ingredients)
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Mention":
        return cls(
            surface=d.get("surface", "") or "",
            canonical=d.get("canonical", "") or "",
            type=MentionType(d.get("type", "ingredient")),
            section=MentionSection(d.get("section", "ingredients")),
            offset=MentionOffset.from_dict(d.get("offset")),
            enumbers=list(d.get("enumbers", []) or []),
            implies_allergens=list(d.get("implies_allergens", []) or []),
            evidence=d.get("evidence", "") or "",
            parent_canonical=d.get("parent_canonical"),
            sub_ingredients=list(d.get("sub_ingredients", []) or []),
        )


@dataclass(frozen=True)
class DetectedAllergen:
    key: str
    source_mentions: list[int] = field(default_factory=list)  # indices into mentions
    confidence: float = 0.0

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "source_mentions": list(self.source_mentions),
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "DetectedAllergen":
        return cls(
            key=d["key"],
            source_mentions=[int(i) for i in d.get("source_mentions", []) or []],
            confidence=float(d.get("confidence", 0.0) or 0.0),
        )


@dataclass(frozen=True)
class Quality:
    legibility: Legibility = Legibility.MEDIUM
    confidence: float = 0.0

    def to_dict(self) -> dict:
        return {"legibility": self.legibility.value, "confidence": self.confidence}

    @classmethod
    def from_dict(cls, d: Optional[dict]) -> "Quality":
        d = d or {}
        return cls(
            legibility=Legibility(d.get("legibility", "medium")),
            confidence=float(d.get("confidence", 0.0) or 0.0),
        )


@dataclass(frozen=True)
class IngredientsResult:
    """Top-level extraction artifact; stored verbatim for later risk regeneration."""
    ocr_text: str = ""
    language: str = "es"
    quality: Quality = field(default_factory=Quality)
    mentions: List[Mention] = field(default_factory=list)
    detected_allergens: List[DetectedAllergen] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    confidence: float = 0.0

    def with_changes(self, **changes: Any) -> "IngredientsResult":
        return replace(self, **changes)

    def unique_e_numbers(self) -> List[str]:
        codes: List[str] = []
        for m in self.mentions:
            for code in m.enumbers:
                if code not in codes:
                    codes.append(code)
        return codes

    def to_dict(self) -> dict:
        return {
            "ocr_text": self.ocr_text,
            "language": self.language,
            "quality": self.quality.to_dict(),
            "mentions": [m.to_dict() for m in self.mentions],
            "detected_allergens": [a.to_dict() for a in self.detected_allergens],
            "warnings": list(self.warnings),
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "IngredientsResult":
        return cls(
            ocr_text=d.get("ocr_text", "") or "",
            language=d.get("language", "es") or "es",
            quality=Quality.from_dict(d.get("quality")),
            mentions=[Mention.from_dict(m) for m in d.get("mentions", []) or []],
            detected_allergens=[DetectedAllergen.from_dict(a) for a in d.get("detected_allergens", []) or []],
            warnings=list(d.get("warnings", []) or []),
            confidence=float(d.get("confidence", 0.0) or 0.0),
        )
