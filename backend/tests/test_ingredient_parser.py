"""
Unit tests: ingredient block segmentation, depth-aware splitting, trace phrases.
Run from repo root: python -m pytest backend/tests/test_ingredient_parser.py -v
"""


def test_header_and_nested_parentheses_not_split():
    """Commas inside (...) never split an item."""
    from labelcheck.parsing.ingredient_parser import extract_ingredients
    res = extract_ingredients("INGREDIENTES: Chocolate (leche, cacao, E322), Azúcar")
    assert res.had_header_match is True
    assert res.items == ["Chocolate (leche, cacao, E322)", "Azúcar"]


def test_no_header_degraded_mode():
    """Without a header the whole text is the block."""
    from labelcheck.parsing.ingredient_parser import extract_ingredients
    res = extract_ingredients("Solo texto sin seccion")
    assert res.had_header_match is False
    assert res.header is None
    assert res.items == ["Solo texto sin seccion"]
    assert res.traces == []


def test_trace_phrase_keeps_casing():
    """Trace phrase runs up to the next . ; , and keeps original casing."""
    from labelcheck.parsing.ingredient_parser import extract_ingredients
    res = extract_ingredients("INGREDIENTES: Harina. Puede contener trazas de maní.")
    assert len(res.traces) == 1
    assert res.traces[0].lower() == "puede contener trazas de maní"
    assert res.traces[0].startswith("Puede")


def test_empty_input_returns_empty_result():
    """Empty or whitespace-only text never raises."""
    from labelcheck.parsing.ingredient_parser import extract_ingredients
    for text in ("", "   \n\t  "):
        res = extract_ingredients(text)
        assert res.items == []
        assert res.traces == []
        assert res.raw_block == ""
        assert res.had_header_match is False


def test_stop_section_ends_block():
    """A following section header (ALÉRGENOS, NUTRICIÓN, ...) closes the block."""
    from labelcheck.parsing.ingredient_parser import extract_ingredients
    text = (
        "Galletas de avena\n"
        "Ingredientes: harina de trigo, azúcar,\n"
        "aceite vegetal\n"
        "Alérgenos: contiene gluten\n"
        "Información nutricional"
    )
    res = extract_ingredients(text)
    assert res.had_header_match is True
    assert res.items == ["harina de trigo", "azúcar", "aceite vegetal"]
    assert "Alérgenos" not in res.raw_block


def test_blank_line_after_content_ends_block():
    """Blank line ends the block only once content has started."""
    from labelcheck.parsing.ingredient_parser import extract_ingredients
    text = "INGREDIENTES:\n\nleche, azúcar\n\nLote 1234"
    res = extract_ingredients(text)
    assert res.items == ["leche", "azúcar"]


def test_header_variants_match_case_insensitively():
    """INGREDIENTE / ingredients / Ingredientes all count as headers."""
    from labelcheck.parsing.ingredient_parser import extract_ingredients
    for header in ("INGREDIENTE:", "ingredients:", "Ingredientes"):
        res = extract_ingredients(f"{header} sal, agua")
        assert res.had_header_match is True, header
        assert res.items == ["sal", "agua"]


def test_multiple_traces_collected():
    """All non-overlapping trace phrases are returned."""
    from labelcheck.parsing.ingredient_parser import collect_traces
    traces = collect_traces("Trazas de soya; puede contener   trazas de nueces.")
    assert traces == ["Trazas de soya", "puede contener trazas de nueces"]


def test_to_dict_wire_names():
    """Parse result serializes with camelCase keys."""
    from labelcheck.parsing.ingredient_parser import extract_ingredients
    d = extract_ingredients("Ingredientes: sal").to_dict()
    assert set(d) == {"header", "rawBlock", "items", "traces", "hadHeaderMatch"}


def test_split_items_cleans_bullets_and_conjunction():
    """Leading bullets/dashes/colons, trailing '.', and leading 'y ' are stripped."""
    from labelcheck.parsing.splitter import split_items
    out = split_items("• harina; - sal · y azúcar.")
    assert out == ["harina", "sal", "azúcar"]


def test_split_items_unbalanced_close_paren():
    """Stray ')' does not push depth negative; later commas still split."""
    from labelcheck.parsing.splitter import split_items
    out = split_items("sal), agua, (azúcar, miel)")
    assert out == ["sal)", "agua", "(azúcar, miel)"]


def test_split_items_nothing_survives_returns_whole():
    """Only delimiters -> empty list; text with no delimiters -> single item."""
    from labelcheck.parsing.splitter import split_items
    assert split_items(" ,  ; ") == [", ;"]
    assert split_items("agua   mineral") == ["agua mineral"]
    assert split_items("   ") == []
