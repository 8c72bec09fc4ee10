"""
Deterministic risk evaluation. Same inputs -> same RiskAssessment, no clock or randomness,
so a stored extraction can be re-evaluated against the user's current profile.

Policy (highest wins):
  high    profile allergen with severity >= 2 (or anaphylaxis mode) present;
          implied key blocked by a profile diet or triggering a profile intolerance;
          E-number with an explicit 'block' policy
  medium  profile allergen with severity 0-1 present; may-contain/trace of a profile
          allergen or diet-blocked key; cross-contamination language ('misma línea',
          'instalación') when the user has allergens; explicit 'warn' E-number;
          unresolved residual-protein E-number linked to a profile allergen
  medium  model confidence below threshold
  low     no profile configured (informational reason only), or nothing found
Strictness (block_traces, block_same_line, e_numbers_uncertain) can lift medium reasons to high.
An unknown E-number policy on its own raises nothing: e_numbers_uncertain applies only
to residual-protein codes linked to one of the user's allergens.
"""
import re
import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from labelcheck.config import DEFAULT_LOW_CONFIDENCE_THRESHOLD, get_low_confidence_threshold
from labelcheck.enumbers.policy import ENumberPolicy, ENumberPolicyKind
from labelcheck.models.mention import IngredientsResult, Mention, MentionSection, MentionType
from labelcheck.models.profile import SEVERITY_HIGH, ENumberUncertainPolicy, ProfilePayload
from labelcheck.models.risk import ReasonType, RiskAssessment, RiskLevel, RiskReason
from labelcheck.normalization.normalizer import normalize_allergen_key, strip_diacritics
from labelcheck.rules.dietary_rules import DEFAULT_RULES, DietaryRules

logger = logging.getLogger(__name__)

CROSS_CONTAMINATION_PATTERN = re.compile(
    r"\bmismas?\s+lineas?\b|\binstalacion(?:es)?\b", re.IGNORECASE
)

# Order of reason types within one risk level
_TYPE_ORDER = [
    ReasonType.CONTAINS,
    ReasonType.DIET,
    ReasonType.INTOLERANCE,
    ReasonType.E_NUMBER,
    ReasonType.TRACE,
    ReasonType.SAME_LINE,
    ReasonType.E_NUMBER_UNCERTAIN,
    ReasonType.LOW_CONFIDENCE,
    ReasonType.NO_PROFILE,
]


def _reason_sort_key(indexed: Tuple[int, RiskReason]) -> tuple:
    encounter, reason = indexed
    return (-reason.level.rank, _TYPE_ORDER.index(reason.type), encounter)


def _dedup_key(reason: RiskReason) -> tuple:
    if reason.type in (ReasonType.E_NUMBER, ReasonType.E_NUMBER_UNCERTAIN):
        return (reason.type.value, reason.code)
    return reason.dedup_key


class _ReasonCollector:
    """Accumulates reasons deduplicated by (type, allergen); duplicates merge ids and keep the higher level."""

    def __init__(self) -> None:
        self._by_key: Dict[tuple, RiskReason] = {}
        self._order: List[tuple] = []

    def add(self, reason: RiskReason) -> None:
        key = _dedup_key(reason)
        existing = self._by_key.get(key)
        if existing is None:
            self._by_key[key] = reason
            self._order.append(key)
            return
        ids = list(existing.mention_ids) + [i for i in reason.mention_ids if i not in existing.mention_ids]
        if reason.level.rank > existing.level.rank:
            self._by_key[key] = replace(reason, mention_ids=ids)
        else:
            self._by_key[key] = replace(existing, mention_ids=ids)

    def ordered(self) -> List[RiskReason]:
        indexed = [(i, self._by_key[k]) for i, k in enumerate(self._order)]
        return [r for _, r in sorted(indexed, key=_reason_sort_key)]


def _is_trace_mention(mention: Mention) -> bool:
    return mention.section == MentionSection.MAY_CONTAIN or mention.type == MentionType.WARNING


def _collect_implied(result: IngredientsResult) -> Tuple[Dict[str, List[int]], Dict[str, List[int]]]:
    """
    (contains, traces): canonical allergen key -> mention indices.
    Allergen mentions imply their own canonical key. Claims ('sin gluten') never count as
    presence. detected_allergens whose sources are all may-contain mentions count as traces;
    entries without sources count as presence.
    """
    contains: Dict[str, List[int]] = {}
    traces: Dict[str, List[int]] = {}
    mentions = result.mentions

    for idx, m in enumerate(mentions):
        if m.type == MentionType.CLAIM:
            continue
        target = traces if _is_trace_mention(m) else contains
        implied = list(m.implies_allergens)
        if m.type == MentionType.ALLERGEN:
            implied.append(m.canonical)
        for raw in implied:
            key = normalize_allergen_key(raw)
            if key:
                ids = target.setdefault(key, [])
                if idx not in ids:
                    ids.append(idx)

    for detected in result.detected_allergens:
        key = normalize_allergen_key(detected.key)
        if not key:
            continue
        valid = [i for i in detected.source_mentions if 0 <= i < len(mentions)]
        if valid and all(_is_trace_mention(mentions[i]) for i in valid):
            target = traces
        elif valid and all(mentions[i].type == MentionType.CLAIM for i in valid):
            continue
        else:
            target = contains
        ids = target.setdefault(key, [])
        for i in valid:
            if i not in ids:
                ids.append(i)

    return contains, traces


def _describe(mentions: Sequence[Mention], ids: Iterable[int]) -> str:
    for i in ids:
        if 0 <= i < len(mentions):
            m = mentions[i]
            return f'"{m.surface}" ({m.section.value})'
    return "detectado por el modelo"


def _cross_contamination_hits(result: IngredientsResult) -> Tuple[List[int], List[str]]:
    """Mention indices and free-text snippets carrying cross-contamination language."""
    ids = [
        idx for idx, m in enumerate(result.mentions)
        if CROSS_CONTAMINATION_PATTERN.search(strip_diacritics(f"{m.surface} {m.evidence}"))
    ]
    snippets = [w for w in result.warnings if CROSS_CONTAMINATION_PATTERN.search(strip_diacritics(w))]
    if not ids and not snippets:
        for line in (result.ocr_text or "").splitlines():
            if CROSS_CONTAMINATION_PATTERN.search(strip_diacritics(line)):
                snippets.append(line.strip())
    return ids, snippets


class RiskEvaluator:
    """
    Pipeline: implied allergens -> profile allergens -> diets -> intolerances -> traces
    -> cross-contamination -> E-numbers -> confidence -> profile presence.
    Rule tables are injected so alternate rule sets can be evaluated.
    """

    def __init__(
        self,
        rules: Optional[DietaryRules] = None,
        low_confidence_threshold: Optional[float] = None,
    ):
        self._rules = rules or DEFAULT_RULES
        self._low_confidence_threshold = (
            low_confidence_threshold if low_confidence_threshold is not None else get_low_confidence_threshold()
        )

    @property
    def rules(self) -> DietaryRules:
        return self._rules

    def evaluate(
        self,
        result: IngredientsResult,
        profile: Optional[ProfilePayload],
        e_number_policies: Sequence[ENumberPolicy] = (),
    ) -> RiskAssessment:
        profile = profile or ProfilePayload()
        reasons = _ReasonCollector()
        mentions = result.mentions
        contains, traces = _collect_implied(result)

        severities = profile.allergen_severities()
        display = profile.allergen_display_keys()

        # Profile allergens present
        for key, ids in contains.items():
            if key not in severities:
                continue
            severity = severities[key]
            strict = profile.effective_strictness(display[key])
            high = severity >= SEVERITY_HIGH or strict.anaphylaxis_mode
            reasons.add(RiskReason(
                type=ReasonType.CONTAINS,
                level=RiskLevel.HIGH if high else RiskLevel.MEDIUM,
                allergen=display[key],
                mention_ids=list(ids),
                rule="allergen.inline.block" if high else "allergen.inline.warn",
                evidence=_describe(mentions, ids),
                severity=severity,
            ))

        # Diets
        for diet in profile.diet_keys():
            blocked = self._rules.blocked_for_diet(diet)
            if not blocked:
                logger.debug("RISK diet=%s has no ingredient rules", diet)
                continue
            for key, ids in contains.items():
                if key in blocked:
                    reasons.add(RiskReason(
                        type=ReasonType.DIET,
                        level=RiskLevel.HIGH,
                        allergen=key,
                        mention_ids=list(ids),
                        rule=f"diet.{diet}.block",
                        evidence=f"{_describe(mentions, ids)} bloqueado por dieta {diet}",
                        diet=diet,
                    ))

        # Intolerances
        for intolerance in profile.intolerance_keys():
            triggers = self._rules.triggers_for_intolerance(intolerance)
            for key, ids in contains.items():
                if key in triggers:
                    reasons.add(RiskReason(
                        type=ReasonType.INTOLERANCE,
                        level=RiskLevel.HIGH,
                        allergen=key,
                        mention_ids=list(ids),
                        rule=f"intolerance.{intolerance}.block",
                        evidence=f"{_describe(mentions, ids)} puede desencadenar {intolerance}",
                        intolerance=intolerance,
                    ))

        # May contain / traces
        diet_blocked = set(self._rules.get_blocked_ingredients_for_diets(profile.diet_keys()))
        for key, ids in traces.items():
            if key in severities:
                strict = profile.effective_strictness(display[key])
                block = strict.block_traces or strict.anaphylaxis_mode
                allergen = display[key]
            elif key in diet_blocked:
                block = False
                allergen = key
            else:
                continue
            reasons.add(RiskReason(
                type=ReasonType.TRACE,
                level=RiskLevel.HIGH if block else RiskLevel.MEDIUM,
                allergen=allergen,
                mention_ids=list(ids),
                rule="allergen.traces.block" if block else "allergen.traces.warn",
                evidence=_describe(mentions, ids),
                severity=severities.get(key),
            ))

        # Cross-contamination
        self._add_cross_contamination(result, profile, reasons)

        # E-numbers
        self._add_e_numbers(result, profile, e_number_policies, reasons)

        # Model confidence
        threshold = (
            profile.strictness.min_model_confidence if profile.strictness is not None
            else self._low_confidence_threshold
        )
        if result.quality.confidence < threshold:
            reasons.add(RiskReason(
                type=ReasonType.LOW_CONFIDENCE,
                level=RiskLevel.MEDIUM,
                rule="confidence.below_threshold",
                evidence=f"Confianza {result.quality.confidence:.0%} < {threshold:.0%}",
            ))

        # No profile
        if not profile.is_configured():
            reasons.add(RiskReason(
                type=ReasonType.NO_PROFILE,
                level=RiskLevel.LOW,
                rule="profile.missing",
                evidence="Perfil no disponible",
            ))

        ordered = reasons.ordered()
        level = RiskLevel.LOW
        for r in ordered:
            level = level.escalate(r.level)

        logger.info(
            "RISK level=%s reasons=%d types=%s confidence=%.2f",
            level.value, len(ordered), sorted({r.type.value for r in ordered}),
            result.quality.confidence,
        )
        return RiskAssessment(risk=level, reasons=ordered, confidence=result.quality.confidence)

    def _add_cross_contamination(
        self,
        result: IngredientsResult,
        profile: ProfilePayload,
        reasons: _ReasonCollector,
    ) -> None:
        display = profile.allergen_display_keys()
        if not display:
            return
        ids, snippets = _cross_contamination_hits(result)
        if not ids and not snippets:
            return
        texts = [f"{result.mentions[i].surface} {result.mentions[i].evidence}" for i in ids] + snippets
        bounded = [f"_{normalize_allergen_key(t)}_" for t in texts]

        hit_keys = [k for k in display if any(f"_{k}_" in b for b in bounded)]
        evidence = (
            f'"{result.mentions[ids[0]].surface}" ({result.mentions[ids[0]].section.value})'
            if ids else snippets[0]
        )
        if not hit_keys:
            strict = profile.effective_strictness("")
            block = strict.block_same_line
            reasons.add(RiskReason(
                type=ReasonType.SAME_LINE,
                level=RiskLevel.HIGH if block else RiskLevel.MEDIUM,
                mention_ids=list(ids),
                rule="allergen.same_line.block" if block else "allergen.same_line.warn",
                evidence=evidence,
            ))
            return
        for key in hit_keys:
            strict = profile.effective_strictness(display[key])
            reasons.add(RiskReason(
                type=ReasonType.SAME_LINE,
                level=RiskLevel.HIGH if strict.block_same_line else RiskLevel.MEDIUM,
                allergen=display[key],
                mention_ids=list(ids),
                rule="allergen.same_line.block" if strict.block_same_line else "allergen.same_line.warn",
                evidence=evidence,
            ))

    def _add_e_numbers(
        self,
        result: IngredientsResult,
        profile: ProfilePayload,
        policies: Sequence[ENumberPolicy],
        reasons: _ReasonCollector,
    ) -> None:
        display = profile.allergen_display_keys()
        for policy in policies:
            ids = [idx for idx, m in enumerate(result.mentions) if policy.code in m.enumbers]
            evidence = f"{policy.code} ({policy.name_es or 'E-number'})"

            if policy.policy in (ENumberPolicyKind.BLOCK, ENumberPolicyKind.WARN):
                block = policy.policy == ENumberPolicyKind.BLOCK
                reasons.add(RiskReason(
                    type=ReasonType.E_NUMBER,
                    level=RiskLevel.HIGH if block else RiskLevel.MEDIUM,
                    mention_ids=ids,
                    rule=f"enumber.{policy.policy.value}",
                    evidence=evidence,
                    code=policy.code,
                ))
                continue

            if not (policy.is_unresolved and policy.residual_protein_risk and policy.linked_allergens):
                continue
            candidates = list(policy.matched_allergens) + list(policy.linked_allergens)
            linked = list(dict.fromkeys(
                display[k] for k in (normalize_allergen_key(a) for a in candidates) if k in display
            ))
            if not linked:
                continue
            strict = profile.effective_strictness(linked[0])
            if strict.e_numbers_uncertain == ENumberUncertainPolicy.ALLOW:
                logger.debug("RISK uncertain E-number allowed code=%s allergen=%s", policy.code, linked[0])
                continue
            block = strict.e_numbers_uncertain == ENumberUncertainPolicy.BLOCK
            reasons.add(RiskReason(
                type=ReasonType.E_NUMBER_UNCERTAIN,
                level=RiskLevel.HIGH if block else RiskLevel.MEDIUM,
                allergen=linked[0],
                mention_ids=ids,
                rule="enumber.uncertain.block" if block else "enumber.uncertain.warn",
                evidence=evidence,
                code=policy.code,
            ))


def evaluate_risk(
    result: IngredientsResult,
    profile: Optional[ProfilePayload],
    e_number_policies: Sequence[ENumberPolicy] = (),
    rules: Optional[DietaryRules] = None,
    low_confidence_threshold: float = DEFAULT_LOW_CONFIDENCE_THRESHOLD,
) -> RiskAssessment:
    """Convenience wrapper around RiskEvaluator; the threshold is never read from the environment."""
    evaluator = RiskEvaluator(rules=rules, low_confidence_threshold=low_confidence_threshold)
    return evaluator.evaluate(result, profile, e_number_policies)
