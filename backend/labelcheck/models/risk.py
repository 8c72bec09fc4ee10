"""
Structured risk verdict. Enum values and field names are part of the wire contract.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RISK_ORDER.index(self)

    def escalate(self, other: "RiskLevel") -> "RiskLevel":
        """Highest of the two levels."""
        return self if self.rank >= other.rank else other


_RISK_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH]


class RiskDecision(str, Enum):
    ALLOW = "allow"
    WARN = "warn"
    BLOCK = "block"

    @classmethod
    def from_level(cls, level: RiskLevel) -> "RiskDecision":
        if level == RiskLevel.HIGH:
            return cls.BLOCK
        if level == RiskLevel.MEDIUM:
            return cls.WARN
        return cls.ALLOW


class ReasonType(str, Enum):
    CONTAINS = "contains"
    DIET = "diet"
    INTOLERANCE = "intolerance"
    E_NUMBER = "e_number"
    TRACE = "trace"
    SAME_LINE = "same_line"
    E_NUMBER_UNCERTAIN = "e_number_uncertain"
    LOW_CONFIDENCE = "low_confidence"
    NO_PROFILE = "no_profile"


@dataclass(frozen=True)
class RiskReason:
    """
    One human-checkable reason. allergen holds the allergen key (or the E-number code
    for e_number reasons); mention_ids index into IngredientsResult.mentions.
    """
    type: ReasonType
    level: RiskLevel
    allergen: Optional[str] = None
    mention_ids: List[int] = field(default_factory=list)
    rule: str = ""
    evidence: str = ""
    severity: Optional[int] = None
    code: Optional[str] = None
    diet: Optional[str] = None
    intolerance: Optional[str] = None

    @property
    def dedup_key(self) -> tuple:
        return (self.type.value, self.allergen)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "type": self.type.value,
            "level": self.level.value,
            "allergen": self.allergen,
            "mention_ids": list(self.mention_ids),
            "rule": self.rule,
            "evidence": self.evidence,
        }
        for name in ("severity", "code", "diet", "intolerance"):
            value = getattr(self, name)
            if value is not None:
                d[name] = value
        return d


ACTION_SAVE = "guardar"
ACTION_VERIFY = "pedir verificación"
ACTION_ALTERNATIVES = "ver alternativas"


@dataclass(frozen=True)
class RiskAssessment:
    risk: RiskLevel
    reasons: List[RiskReason] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def decision(self) -> RiskDecision:
        return RiskDecision.from_level(self.risk)

    @property
    def actions(self) -> List[str]:
        if self.risk == RiskLevel.HIGH:
            return [ACTION_SAVE, ACTION_ALTERNATIVES, ACTION_VERIFY]
        if self.risk == RiskLevel.MEDIUM:
            return [ACTION_SAVE, ACTION_VERIFY]
        return [ACTION_SAVE]

    def reasons_of(self, reason_type: ReasonType) -> List[RiskReason]:
        return [r for r in self.reasons if r.type == reason_type]

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk": self.risk.value,
            "decision": self.decision.value,
            "confidence": self.confidence,
            "reasons": [r.to_dict() for r in self.reasons],
            "actions": list(self.actions),
        }
