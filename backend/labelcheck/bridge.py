"""
Scan pipeline entry points.

run_scan_pipeline: raw vision JSON -> validate -> mentions -> hierarchy expansion
-> hierarchy validation -> synonym expansion -> risk evaluation.
regenerate_assessment: same pipeline over a stored extraction row, against the
user's current profile and E-number policies.
"""
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Mapping, Optional, Sequence

from supabase import Client

from labelcheck.config import (
    get_synonym_fuzzy_enabled,
    get_synonym_match_limit,
    get_synonym_min_similarity,
)
from labelcheck.enumbers.policy import ENumberPolicy, fetch_e_number_policies
from labelcheck.extraction.hierarchy import post_process_ingredients, validate_hierarchy
from labelcheck.extraction.mention_extractor import build_ingredients_result
from labelcheck.models.mention import IngredientsResult, Mention
from labelcheck.models.profile import ProfilePayload
from labelcheck.models.risk import RiskAssessment
from labelcheck.models.schema import validate_extraction
from labelcheck.risk.evaluator import RiskEvaluator
from labelcheck.rules.dietary_rules import load_dietary_rules
from labelcheck.supabase_client import fetch_user_profile
from labelcheck.synonyms.matcher import (
    SynonymMatch,
    SynonymSource,
    apply_synonym_matches,
    expand_allergen_synonyms,
    expand_allergen_synonyms_exact,
)
from labelcheck.synonyms.supabase_source import SupabaseSynonymSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanOutcome:
    result: IngredientsResult
    assessment: RiskAssessment
    hierarchy_warnings: List[str] = field(default_factory=list)
    synonym_matches: Dict[str, List[SynonymMatch]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "analysis": self.result.to_dict(),
            "risk": self.assessment.to_dict(),
            "hierarchy_warnings": list(self.hierarchy_warnings),
            "synonym_matches": {
                surface: [m.to_dict() for m in matches] for surface, matches in self.synonym_matches.items()
            },
        }


@lru_cache(maxsize=1)
def get_default_evaluator() -> RiskEvaluator:
    """Evaluator over the configured rule file, built once per process."""
    return RiskEvaluator(rules=load_dietary_rules())


def load_ingredients_result(raw: Any) -> IngredientsResult:
    """Validated, canonicalized IngredientsResult. Raises LegacyFormatError / InvalidExtractionError."""
    return build_ingredients_result(validate_extraction(raw))


def match_synonyms(source: Optional[SynonymSource], mentions: Sequence[Mention]) -> Dict[str, List[SynonymMatch]]:
    """Fuzzy lookup when the source supports it and it is enabled, exact containment otherwise."""
    if source is None:
        return {}
    if source.supports_fuzzy and get_synonym_fuzzy_enabled():
        return expand_allergen_synonyms(
            source, mentions,
            min_similarity=get_synonym_min_similarity(),
            limit=get_synonym_match_limit(),
        )
    return expand_allergen_synonyms_exact(source, mentions)


def run_scan_pipeline(
    raw: Any,
    profile: Optional[ProfilePayload],
    synonym_source: Optional[SynonymSource] = None,
    e_number_policies: Sequence[ENumberPolicy] = (),
    evaluator: Optional[RiskEvaluator] = None,
) -> ScanOutcome:
    if isinstance(raw, IngredientsResult):
        result = raw
    else:
        result = load_ingredients_result(raw)

    result = post_process_ingredients(result)
    hierarchy_warnings = validate_hierarchy(result)

    matches = match_synonyms(synonym_source, result.mentions)
    result = apply_synonym_matches(result, matches)

    assessment = (evaluator or get_default_evaluator()).evaluate(result, profile, e_number_policies)
    logger.info(
        "PIPELINE mentions=%d synonym_surfaces=%d hierarchy_warnings=%d risk=%s",
        len(result.mentions), len(matches), len(hierarchy_warnings), assessment.risk.value,
    )
    return ScanOutcome(
        result=result,
        assessment=assessment,
        hierarchy_warnings=hierarchy_warnings,
        synonym_matches=matches,
    )


def regenerate_assessment(
    client: Client,
    extraction_row: Mapping[str, Any],
    user_id: str,
    evaluator: Optional[RiskEvaluator] = None,
) -> ScanOutcome:
    """
    Re-evaluate a stored extraction ({id, user_id, raw_json, ...}) for user_id.
    Raises InvalidExtractionError / LegacyFormatError for unusable raw_json;
    profile, policy and synonym lookups degrade instead of raising.
    """
    result = load_ingredients_result(extraction_row.get("raw_json"))
    profile = fetch_user_profile(client, user_id)
    policies = fetch_e_number_policies(client, user_id, result.unique_e_numbers())
    logger.info(
        "PIPELINE regenerate extraction=%s user=%s profile=%s enumbers=%d",
        extraction_row.get("id"), user_id, profile is not None, len(policies),
    )
    return run_scan_pipeline(
        result,
        profile,
        synonym_source=SupabaseSynonymSource(client),
        e_number_policies=policies,
        evaluator=evaluator,
    )
