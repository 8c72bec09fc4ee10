"""
Unit tests: profile snapshot parsing, strictness overrides, mention serialization.
"""


def test_profile_from_dict_tolerates_missing_sections():
    """Missing keys -> empty, unconfigured profile."""
    from labelcheck.models.profile import ProfilePayload
    p = ProfilePayload.from_dict(None)
    assert p.is_configured() is False
    assert p.allergen_severities() == {}
    assert ProfilePayload.from_dict({"intolerances": [{"key": "lactosa"}]}).is_configured() is True


def test_severity_clamped_and_highest_wins():
    """Severity clamped to 0..3; duplicate keys keep the max."""
    from labelcheck.models.profile import ProfilePayload
    p = ProfilePayload.from_dict({"allergens": [
        {"key": "Maní", "severity": 7},
        {"key": "mani", "severity": 1},
        {"key": "leche", "severity": -2},
    ]})
    assert p.allergen_severities() == {"mani": 3, "leche": 0}
    assert p.allergen_display_keys()["mani"] == "Maní"


def test_effective_strictness_override_by_canonical_key():
    """Overrides apply by canonical allergen key; unset fields inherit the base."""
    from labelcheck.models.profile import ENumberUncertainPolicy, ProfilePayload
    p = ProfilePayload.from_dict({
        "allergens": [{"key": "Maní", "severity": 3}],
        "strictness": {"block_traces": False, "block_same_line": True, "residual_protein_ppm_default": 10},
        "overrides": {"mani": {"block_traces": True, "e_numbers_uncertain": "block"}},
    })
    eff = p.effective_strictness("Maní")
    assert eff.block_traces is True
    assert eff.block_same_line is True
    assert eff.e_numbers_uncertain == ENumberUncertainPolicy.BLOCK
    assert eff.residual_protein_ppm == 10.0
    base = p.effective_strictness("leche")
    assert base.block_traces is False
    assert base.min_model_confidence == 0.7


def test_mention_to_dict_hierarchy_keys_only_when_set():
    """parent_canonical/sub_ingredients appear only for hierarchy nodes."""
    from labelcheck.models.mention import Mention
    plain = Mention(surface="Sal", canonical="sal").to_dict()
    assert "parent_canonical" not in plain
    assert "sub_ingredients" not in plain
    child = Mention(surface="leche", canonical="leche", parent_canonical="chocolate").to_dict()
    assert child["parent_canonical"] == "chocolate"
    assert child["sub_ingredients"] == []


def test_ingredients_result_from_stored_json():
    """Stored JSON loads into typed objects with enum values preserved."""
    from labelcheck.models.mention import IngredientsResult, MentionSection
    stored = {
        "ocr_text": "x",
        "quality": {"legibility": "low", "confidence": 0.4},
        "mentions": [{"surface": "maní", "canonical": "mani", "type": "allergen", "section": "may_contain"}],
        "detected_allergens": [{"key": "mani", "source_mentions": [0], "confidence": 0.8}],
    }
    result = IngredientsResult.from_dict(stored)
    assert result.mentions[0].section == MentionSection.MAY_CONTAIN
    assert result.to_dict()["quality"] == {"legibility": "low", "confidence": 0.4}
    assert result.detected_allergens[0].source_mentions == [0]
