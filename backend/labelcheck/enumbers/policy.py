"""
E-number policies as decided per user by the decide_e_number RPC.
policy 'unknown' means the dictionary has no explicit resolution for this user;
combined with residual_protein_risk it surfaces as an uncertain E-number.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from supabase import Client

from labelcheck.normalization.normalizer import merge_e_numbers

logger = logging.getLogger(__name__)

DECIDE_RPC = "decide_e_number"


class ENumberPolicyKind(str, Enum):
    ALLOW = "allow"
    WARN = "warn"
    BLOCK = "block"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ENumberPolicy:
    code: str
    policy: ENumberPolicyKind = ENumberPolicyKind.UNKNOWN
    name_es: Optional[str] = None
    linked_allergens: list[str] = field(default_factory=list)
    matched_allergens: list[str] = field(default_factory=list)
    residual_protein_risk: bool = False
    reason: Optional[str] = None
    likely_origins: list[str] = field(default_factory=list)
    exists: bool = True

    @property
    def is_unresolved(self) -> bool:
        return self.policy == ENumberPolicyKind.UNKNOWN

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "policy": self.policy.value,
            "name_es": self.name_es,
            "linked_allergens": list(self.linked_allergens),
            "matched_allergens": list(self.matched_allergens),
            "residual_protein_risk": self.residual_protein_risk,
            "reason": self.reason,
            "likely_origins": list(self.likely_origins),
            "exists": self.exists,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ENumberPolicy":
        try:
            kind = ENumberPolicyKind(d.get("policy") or "unknown")
        except ValueError:
            logger.warning("ENUMBER unknown policy=%r code=%s", d.get("policy"), d.get("code"))
            kind = ENumberPolicyKind.UNKNOWN
        return cls(
            code=str(d["code"]).upper(),
            policy=kind,
            name_es=d.get("name_es"),
            linked_allergens=list(d.get("linked_allergens") or d.get("linked_allergen_keys") or []),
            matched_allergens=list(d.get("matched_allergens") or []),
            residual_protein_risk=bool(d.get("residual_protein_risk", False)),
            reason=d.get("reason"),
            likely_origins=list(d.get("likely_origins") or []),
            exists=bool(d.get("exists", True)),
        )


def fetch_e_number_policies(client: Client, user_id: str, codes: Iterable[str]) -> List[ENumberPolicy]:
    """
    One decide_e_number call per distinct code. A failing code is logged and skipped,
    so the result may be shorter than the input.
    """
    policies: List[ENumberPolicy] = []
    for code in merge_e_numbers(list(codes)):
        try:
            response = client.rpc(DECIDE_RPC, {"p_user_id": user_id, "p_code": code}).execute()
        except Exception as e:
            logger.warning("ENUMBER policy lookup failed code=%s error=%s", code, e)
            continue
        data = response.data
        if isinstance(data, list):
            data = data[0] if data else None
        if not isinstance(data, dict):
            logger.info("ENUMBER no policy code=%s", code)
            continue
        policies.append(ENumberPolicy.from_dict({"code": code, **data}))
    logger.info("ENUMBER policies fetched=%d", len(policies))
    return policies
