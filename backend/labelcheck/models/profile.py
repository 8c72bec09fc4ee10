"""
Read-only snapshot of the user's profile as returned by the get_profile_payload RPC.
allergens carry a severity 0..3 (2 = high, 3 = anaphylaxis); diets and intolerances are keys.
strictness + per-allergen overrides tune how traces, same-line and uncertain E-numbers escalate.
The scan pipeline never mutates or persists it.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from labelcheck.normalization.normalizer import normalize_allergen_key

SEVERITY_HIGH = 2
SEVERITY_ANAPHYLAXIS = 3


class ENumberUncertainPolicy(str, Enum):
    ALLOW = "allow"
    WARN = "warn"
    BLOCK = "block"


@dataclass(frozen=True)
class ProfileAllergen:
    key: str
    severity: int = 0
    notes: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any) -> "ProfileAllergen":
        """Accepts {"key", "severity", "notes"} or a bare key (legacy, severity 0)."""
        if isinstance(value, str):
            return cls(key=value)
        severity = value.get("severity")
        return cls(
            key=str(value["key"]),
            severity=max(0, min(SEVERITY_ANAPHYLAXIS, int(severity or 0))),
            notes=value.get("notes"),
        )

    def to_dict(self) -> dict:
        d: Dict[str, Any] = {"key": self.key, "severity": self.severity}
        if self.notes is not None:
            d["notes"] = self.notes
        return d


@dataclass(frozen=True)
class ProfileIntolerance:
    key: str
    severity: Optional[int] = None

    @classmethod
    def from_value(cls, value: Any) -> "ProfileIntolerance":
        if isinstance(value, str):
            return cls(key=value)
        severity = value.get("severity")
        return cls(key=str(value["key"]), severity=int(severity) if severity is not None else None)

    def to_dict(self) -> dict:
        return {"key": self.key, "severity": self.severity}


@dataclass(frozen=True)
class Strictness:
    block_traces: bool = False
    block_same_line: bool = False
    e_numbers_uncertain: ENumberUncertainPolicy = ENumberUncertainPolicy.WARN
    min_model_confidence: float = 0.7
    pediatric_mode: bool = False
    anaphylaxis_mode: bool = False
    residual_protein_ppm_default: float = 20.0

    @classmethod
    def from_dict(cls, d: dict) -> "Strictness":
        min_conf = d.get("min_model_confidence")
        ppm = d.get("residual_protein_ppm_default")
        return cls(
            block_traces=bool(d.get("block_traces", False)),
            block_same_line=bool(d.get("block_same_line", False)),
            e_numbers_uncertain=ENumberUncertainPolicy(d.get("e_numbers_uncertain") or "warn"),
            min_model_confidence=float(min_conf) if min_conf is not None else 0.7,
            pediatric_mode=bool(d.get("pediatric_mode", False)),
            anaphylaxis_mode=bool(d.get("anaphylaxis_mode", False)),
            residual_protein_ppm_default=float(ppm) if ppm is not None else 20.0,
        )

    def to_dict(self) -> dict:
        return {
            "block_traces": self.block_traces,
            "block_same_line": self.block_same_line,
            "e_numbers_uncertain": self.e_numbers_uncertain.value,
            "min_model_confidence": self.min_model_confidence,
            "pediatric_mode": self.pediatric_mode,
            "anaphylaxis_mode": self.anaphylaxis_mode,
            "residual_protein_ppm_default": self.residual_protein_ppm_default,
        }


@dataclass(frozen=True)
class StrictnessOverride:
    block_traces: Optional[bool] = None
    block_same_line: Optional[bool] = None
    e_numbers_uncertain: Optional[ENumberUncertainPolicy] = None
    residual_protein_ppm: Optional[float] = None
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, d: dict) -> "StrictnessOverride":
        policy = d.get("e_numbers_uncertain")
        ppm = d.get("residual_protein_ppm")
        return cls(
            block_traces=d.get("block_traces") if isinstance(d.get("block_traces"), bool) else None,
            block_same_line=d.get("block_same_line") if isinstance(d.get("block_same_line"), bool) else None,
            e_numbers_uncertain=ENumberUncertainPolicy(policy) if policy else None,
            residual_protein_ppm=float(ppm) if ppm is not None else None,
            notes=d.get("notes"),
        )

    def to_dict(self) -> dict:
        return {
            "block_traces": self.block_traces,
            "block_same_line": self.block_same_line,
            "e_numbers_uncertain": self.e_numbers_uncertain.value if self.e_numbers_uncertain else None,
            "residual_protein_ppm": self.residual_protein_ppm,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class EffectiveStrictness:
    """Base strictness with one allergen's overrides applied."""
    block_traces: bool
    block_same_line: bool
    e_numbers_uncertain: ENumberUncertainPolicy
    residual_protein_ppm: float
    pediatric_mode: bool
    anaphylaxis_mode: bool
    min_model_confidence: float


@dataclass(frozen=True)
class ProfilePayload:
    user_id: Optional[str] = None
    allergens: List[ProfileAllergen] = field(default_factory=list)
    diets: List[str] = field(default_factory=list)
    intolerances: List[ProfileIntolerance] = field(default_factory=list)
    strictness: Optional[Strictness] = None
    overrides: Dict[str, StrictnessOverride] = field(default_factory=dict)

    def is_configured(self) -> bool:
        """False for a first-time user with nothing declared."""
        return bool(self.allergens or self.diets or self.intolerances)

    def allergen_severities(self) -> Dict[str, int]:
        """Canonical allergen key -> severity (highest wins on duplicates)."""
        out: Dict[str, int] = {}
        for a in self.allergens:
            key = normalize_allergen_key(a.key)
            if key:
                out[key] = max(out.get(key, 0), a.severity)
        return out

    def allergen_display_keys(self) -> Dict[str, str]:
        """Canonical allergen key -> key as declared in the profile."""
        out: Dict[str, str] = {}
        for a in self.allergens:
            key = normalize_allergen_key(a.key)
            if key and key not in out:
                out[key] = a.key
        return out

    def diet_keys(self) -> List[str]:
        return list(dict.fromkeys(k for k in (normalize_allergen_key(d) for d in self.diets) if k))

    def intolerance_keys(self) -> List[str]:
        return list(dict.fromkeys(
            k for k in (normalize_allergen_key(i.key) for i in self.intolerances) if k
        ))

    def effective_strictness(self, allergen_key: str) -> EffectiveStrictness:
        """Per-allergen overrides on top of the base strictness (defaults when none is set)."""
        base = self.strictness or Strictness()
        override = self.overrides.get(allergen_key)
        if override is None:
            canonical = normalize_allergen_key(allergen_key)
            for key, candidate in self.overrides.items():
                if normalize_allergen_key(key) == canonical:
                    override = candidate
                    break
        override = override or StrictnessOverride()
        return EffectiveStrictness(
            block_traces=override.block_traces if override.block_traces is not None else base.block_traces,
            block_same_line=(
                override.block_same_line if override.block_same_line is not None else base.block_same_line
            ),
            e_numbers_uncertain=override.e_numbers_uncertain or base.e_numbers_uncertain,
            residual_protein_ppm=(
                override.residual_protein_ppm
                if override.residual_protein_ppm is not None
                else base.residual_protein_ppm_default
            ),
            pediatric_mode=base.pediatric_mode,
            anaphylaxis_mode=base.anaphylaxis_mode,
            min_model_confidence=base.min_model_confidence,
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "allergens": [a.to_dict() for a in self.allergens],
            "diets": list(self.diets),
            "intolerances": [i.to_dict() for i in self.intolerances],
            "strictness": self.strictness.to_dict() if self.strictness else None,
            "overrides": {k: v.to_dict() for k, v in self.overrides.items()},
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ProfilePayload":
        """Load from the RPC payload; tolerates missing sections and bare-string allergen lists."""
        data = data or {}
        strictness = data.get("strictness")
        return cls(
            user_id=data.get("user_id"),
            allergens=[ProfileAllergen.from_value(a) for a in data.get("allergens") or []],
            diets=[str(d) for d in data.get("diets") or []],
            intolerances=[ProfileIntolerance.from_value(i) for i in data.get("intolerances") or []],
            strictness=Strictness.from_dict(strictness) if isinstance(strictness, dict) else None,
            overrides={
                str(k): StrictnessOverride.from_dict(v)
                for k, v in (data.get("overrides") or {}).items()
                if isinstance(v, dict)
            },
        )
