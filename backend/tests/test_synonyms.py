"""
Unit tests for allergen synonym expansion (in-memory dictionary and mocked Supabase client).
"""
from unittest.mock import MagicMock


def _mentions(*specs):
    from labelcheck.models.mention import Mention, MentionType
    from labelcheck.normalization.normalizer import canonicalize
    out = []
    for spec in specs:
        surface, mtype = spec if isinstance(spec, tuple) else (spec, MentionType.INGREDIENT)
        out.append(Mention(surface=surface, canonical=canonicalize(surface), type=mtype, evidence=surface))
    return out


def _source():
    from labelcheck.synonyms.memory_source import InMemorySynonymSource
    return InMemorySynonymSource.from_dict({
        "leche": ["leche", "suero de leche", "caseinato"],
        "mani": ["maní", "cacahuate"],
        "soya": ["soya", "lecitina de soya"],
    })


def test_similarity_bounds():
    """Identical strings -> 1.0; unrelated -> 0.0; accents and case ignored."""
    from labelcheck.synonyms.memory_source import similarity
    assert similarity("Maní", "mani") == 1.0
    assert similarity("leche", "zzz") == 0.0
    assert 0.0 < similarity("leche en polvo", "leche") < 1.0
    assert similarity("", "leche") == 0.0


def test_fuzzy_dedups_surfaces_and_filters_types():
    """One lookup per distinct ingredient/allergen surface; claims are not queried."""
    from labelcheck.models.mention import MentionType
    from labelcheck.synonyms.matcher import expand_allergen_synonyms
    source = MagicMock(wraps=_source())
    source.supports_fuzzy = True
    mentions = _mentions("Leche", "Leche", ("Sin gluten", MentionType.CLAIM), ("maní", MentionType.ALLERGEN))
    out = expand_allergen_synonyms(source, mentions, min_similarity=0.3, limit=5)
    assert source.match.call_count == 2
    assert out["Leche"][0].allergen_key == "leche"
    assert out["maní"][0].allergen_key == "mani"
    assert "Sin gluten" not in out


def test_fuzzy_threshold_and_limit():
    """Below-threshold surfaces are absent; lists are capped and ranked."""
    from labelcheck.synonyms.matcher import expand_allergen_synonyms
    out = expand_allergen_synonyms(_source(), _mentions("Azúcar", "suero de leche"), min_similarity=0.5, limit=1)
    assert "Azúcar" not in out
    assert len(out["suero de leche"]) == 1
    assert out["suero de leche"][0].synonym_surface == "suero de leche"
    assert out["suero de leche"][0].similarity == 1.0


def test_ranking_similarity_then_weight():
    """Equal similarity ranks by weight descending."""
    from labelcheck.synonyms.matcher import SynonymMatch, rank_matches
    a = SynonymMatch("x", "leche", "a", 0.8, weight=1.0)
    b = SynonymMatch("x", "soya", "b", 0.8, weight=2.0)
    c = SynonymMatch("x", "mani", "c", 0.9, weight=0.5)
    d = SynonymMatch("x", "huevo", "d", 0.1, weight=9.0)
    assert rank_matches([a, b, c, d], 0.3, 5) == [c, b, a]


def test_partial_failure_skips_surface():
    """A failing lookup is skipped; other surfaces still resolve."""
    from labelcheck.synonyms.matcher import expand_allergen_synonyms
    real = _source()

    def flaky(query, min_similarity, limit):
        if query == "Leche":
            raise RuntimeError("timeout")
        return real.match(query, min_similarity, limit)

    source = MagicMock()
    source.match.side_effect = flaky
    out = expand_allergen_synonyms(source, _mentions("Leche", "maní"))
    assert "Leche" not in out
    assert "maní" in out


def test_exact_fallback_bidirectional_substring():
    """Exact path: containment either way, similarity fixed at 1.0."""
    from labelcheck.synonyms.matcher import expand_allergen_synonyms_exact
    out = expand_allergen_synonyms_exact(_source(), _mentions("Leche en polvo", "soya", "Azúcar"))
    assert [m.allergen_key for m in out["Leche en polvo"]] == ["leche"]
    assert {m.allergen_key for m in out["soya"]} == {"soya"}
    assert len(out["soya"]) == 2
    assert all(m.similarity == 1.0 for ms in out.values() for m in ms)
    assert "Azúcar" not in out


def test_exact_fallback_total_failure_returns_empty():
    """Dictionary load failure -> empty map, no exception."""
    from labelcheck.synonyms.matcher import expand_allergen_synonyms_exact
    source = MagicMock()
    source.list_synonyms.side_effect = ConnectionError("down")
    assert expand_allergen_synonyms_exact(source, _mentions("Leche")) == {}


def test_apply_matches_adds_implied_and_detected():
    """Matched keys flow into implies_allergens and detected_allergens."""
    from labelcheck.models.mention import DetectedAllergen, IngredientsResult
    from labelcheck.synonyms.matcher import apply_synonym_matches, expand_allergen_synonyms
    result = IngredientsResult(
        mentions=_mentions("Caseinato", "Azúcar"),
        detected_allergens=[DetectedAllergen(key="leche", source_mentions=[], confidence=0.5)],
    )
    matches = expand_allergen_synonyms(_source(), result.mentions, min_similarity=0.5)
    out = apply_synonym_matches(result, matches)
    assert out.mentions[0].implies_allergens == ["leche"]
    assert out.mentions[1].implies_allergens == []
    assert len(out.detected_allergens) == 1
    assert out.detected_allergens[0].source_mentions == [0]
    assert out.detected_allergens[0].confidence == 1.0
    assert result.mentions[0].implies_allergens == []


def test_supabase_source_fuzzy_rpc():
    """Fuzzy RPC is called with p_query/p_min_similarity/p_limit and rows are mapped."""
    from labelcheck.synonyms.supabase_source import FUZZY_RPC, SupabaseSynonymSource
    client = MagicMock()
    client.rpc.return_value.execute.return_value = MagicMock(data=[
        {"allergen_key": "leche", "synonym_surface": "lactosuero", "similarity": 0.45, "locale": "es-CL", "weight": 1},
        {"synonym_surface": "sin clave"},
    ])
    rows = SupabaseSynonymSource(client).match("suero lácteo", 0.3, 5)
    client.rpc.assert_called_once_with(FUZZY_RPC, {"p_query": "suero lácteo", "p_min_similarity": 0.3, "p_limit": 5})
    assert len(rows) == 1
    assert rows[0].allergen_key == "leche"
    assert rows[0].to_dict()["synonymSurface"] == "lactosuero"


def test_supabase_source_dictionary_rows():
    """Exact dictionary reads allergen key from the joined allergen_types row."""
    from labelcheck.synonyms.supabase_source import SupabaseSynonymSource
    client = MagicMock()
    query = client.table.return_value.select.return_value.limit.return_value
    query.execute.return_value = MagicMock(data=[
        {"surface": "caseína", "locale": "es-CL", "weight": 2, "allergen_types": {"key": "leche"}},
        {"surface": "huevo en polvo", "allergen_types": [{"key": "huevo"}]},
        {"surface": "", "allergen_types": {"key": "soya"}},
    ])
    rows = SupabaseSynonymSource(client, supports_fuzzy=False).list_synonyms()
    client.table.assert_called_once_with("allergen_synonyms")
    assert [(r.allergen_key, r.surface, r.weight) for r in rows] == [("leche", "caseína", 2.0), ("huevo", "huevo en polvo", 1.0)]


def test_memory_source_scores_and_cutoff():
    """Rows below the cutoff are dropped; survivors are ranked by score."""
    source = _source()
    rows = source.match("Suero de Leche", 0.5, 5)
    assert [r.synonym_surface for r in rows] == ["suero de leche", "leche"]
    assert rows[0].similarity == 1.0
    assert 0.5 <= rows[1].similarity < 1.0
    assert source.match("Azúcar", 0.5, 5) == []
