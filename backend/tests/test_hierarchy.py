"""
Unit tests: compound ingredient expansion and hierarchy validation.
"""


def _mention(surface, **kw):
    from labelcheck.models.mention import Mention, MentionOffset
    from labelcheck.normalization.normalizer import canonicalize
    kw.setdefault("offset", MentionOffset(start=13, end=13 + len(surface)))
    return Mention(surface=surface, canonical=canonicalize(surface), evidence=surface, **kw)


def test_expand_parent_and_children():
    """Parent keeps pre-paren text; children inherit type/section/offset."""
    from labelcheck.extraction.hierarchy import expand_mention
    m = _mention("Chocolate (leche, cacao, E322)", enumbers=["E322"], implies_allergens=["leche"])
    out = expand_mention(m)
    assert [x.surface for x in out] == ["Chocolate", "leche", "cacao", "E322"]
    parent = out[0]
    assert parent.canonical == "chocolate"
    assert parent.sub_ingredients == ["leche", "cacao", "E322"]
    assert parent.enumbers == []
    for child in out[1:]:
        assert child.parent_canonical == "chocolate"
        assert child.offset == m.offset
        assert child.type == m.type
        assert child.implies_allergens == ["leche"]
    assert out[3].enumbers == ["E322"]


def test_nested_parentheses_stay_in_one_child():
    """Only the first top-level group is expanded; nested groups are a single child."""
    from labelcheck.extraction.hierarchy import expand_mention
    m = _mention("Relleno (crema (leche, sal), azúcar) (otro)")
    out = expand_mention(m)
    assert out[0].surface == "Relleno"
    assert out[0].sub_ingredients == ["crema (leche, sal)", "azúcar"]
    assert len(out) == 3


def test_passthrough_without_group_or_non_ingredient():
    """No parenthetical, empty group, or non-ingredient type -> unchanged."""
    from labelcheck.extraction.hierarchy import expand_mention
    from labelcheck.models.mention import MentionType
    plain = _mention("Azúcar")
    assert expand_mention(plain) == [plain]
    empty = _mention("Sal ( )")
    assert expand_mention(empty) == [empty]
    claim = _mention("Sin gluten (certificado, sello)", type=MentionType.CLAIM)
    assert expand_mention(claim) == [claim]


def test_post_process_has_no_orphans():
    """Output of post_process_ingredients validates with zero warnings."""
    from labelcheck.extraction.hierarchy import post_process_ingredients, validate_hierarchy
    from labelcheck.models.mention import IngredientsResult
    result = IngredientsResult(mentions=[
        _mention("Chocolate (leche, cacao, E322)"),
        _mention("Azúcar"),
        _mention("Galleta (harina de trigo, sal)"),
    ])
    out = post_process_ingredients(result)
    assert validate_hierarchy(out) == []
    parents = {m.canonical: m for m in out.mentions if m.sub_ingredients}
    for m in out.mentions:
        if m.parent_canonical:
            assert m.surface in parents[m.parent_canonical].sub_ingredients
    # every listed child exists
    for parent in parents.values():
        children = [m.surface for m in out.mentions if m.parent_canonical == parent.canonical]
        assert children == parent.sub_ingredients


def test_post_process_does_not_mutate_input():
    """Input result is left untouched."""
    from labelcheck.extraction.hierarchy import post_process_ingredients
    from labelcheck.models.mention import IngredientsResult
    result = IngredientsResult(mentions=[_mention("Chocolate (leche, cacao)")])
    post_process_ingredients(result)
    assert len(result.mentions) == 1
    assert result.mentions[0].surface == "Chocolate (leche, cacao)"


def test_validate_flags_orphan_and_unbalanced():
    """Orphaned child and unbalanced parentheses are advisory warnings."""
    from labelcheck.extraction.hierarchy import validate_hierarchy
    from labelcheck.models.mention import IngredientsResult
    result = IngredientsResult(mentions=[
        _mention("leche", parent_canonical="chocolate"),
        _mention("Harina (trigo"),
    ])
    warnings = validate_hierarchy(result)
    assert len(warnings) == 2
    assert any("missing parent" in w for w in warnings)
    assert any("Unbalanced" in w for w in warnings)


def test_unclosed_group_passes_through():
    """'(' without a closing ')' is not expanded."""
    from labelcheck.extraction.hierarchy import expand_mention, first_paren_group
    m = _mention("Harina (trigo, cebada")
    assert first_paren_group(m.surface) is None
    assert expand_mention(m) == [m]


def test_post_process_remaps_detected_allergen_indices():
    """Expansion shifts later mentions; detected allergens follow them."""
    from labelcheck.extraction.hierarchy import post_process_ingredients
    from labelcheck.models.mention import DetectedAllergen, IngredientsResult, MentionType
    result = IngredientsResult(
        mentions=[_mention("Chocolate (azucar, cacao)"), _mention("mani", type=MentionType.ALLERGEN)],
        detected_allergens=[
            DetectedAllergen(key="mani", source_mentions=[1], confidence=0.9),
            DetectedAllergen(key="cacao", source_mentions=[0, 7], confidence=0.5),
        ],
    )
    out = post_process_ingredients(result)
    assert [m.surface for m in out.mentions] == ["Chocolate", "azucar", "cacao", "mani"]
    assert out.detected_allergens[0].source_mentions == [3]
    assert out.detected_allergens[1].source_mentions == [0]
    assert result.detected_allergens[0].source_mentions == [1]


def test_post_process_is_idempotent():
    """A second pass leaves nested children alone and stays consistent."""
    from labelcheck.extraction.hierarchy import post_process_ingredients, validate_hierarchy
    from labelcheck.models.mention import IngredientsResult
    first = post_process_ingredients(IngredientsResult(mentions=[_mention("Chocolate (leche (entera), cacao)")]))
    assert [m.surface for m in first.mentions] == ["Chocolate", "leche (entera)", "cacao"]
    second = post_process_ingredients(IngredientsResult.from_dict(first.to_dict()))
    assert [m.to_dict() for m in second.mentions] == [m.to_dict() for m in first.mentions]
    assert validate_hierarchy(second) == []
