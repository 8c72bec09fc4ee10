"""
Expand compound ingredients into explicit parent/child mention trees.

'Chocolate (leche, cacao, E322)' ->
    parent  'Chocolate'  sub_ingredients=['leche', 'cacao', 'E322']
    child   'leche'      parent_canonical='chocolate'
    child   'cacao'      parent_canonical='chocolate'
    child   'E322'       parent_canonical='chocolate', enumbers=['E322']

Only the first top-level parenthetical group is expanded; nested groups stay
inside a single child via the depth-aware splitter. Children's E-numbers are
not rolled up into the parent.
"""
import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from labelcheck.models.mention import IngredientsResult, Mention, MentionType
from labelcheck.normalization.normalizer import canonicalize, extract_e_numbers
from labelcheck.parsing.splitter import split_items

logger = logging.getLogger(__name__)


def first_paren_group(text: str) -> Optional[Tuple[int, int]]:
    """
    (open_index, close_index) of the first balanced top-level '(...)' group,
    or None when there is no '(' or it is never closed.
    """
    start = text.find("(")
    if start == -1:
        return None
    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return start, i
    return None


def parse_sub_ingredients(text: str) -> List[str]:
    """'Chocolate (leche, cacao, E322)' -> ['leche', 'cacao', 'E322']"""
    group = first_paren_group(text)
    if group is None:
        return []
    inner = text[group[0] + 1:group[1]]
    if not inner.strip():
        return []
    return split_items(inner)


def expand_mention(mention: Mention) -> List[Mention]:
    """One mention -> [mention] unchanged, or [parent, *children]. Children are never re-expanded."""
    if mention.type != MentionType.INGREDIENT or mention.parent_canonical:
        return [mention]
    subs = parse_sub_ingredients(mention.surface)
    if not subs:
        return [mention]

    parent_name = mention.surface.split("(", 1)[0].strip()
    parent_canonical = canonicalize(parent_name)
    if not parent_canonical:
        return [mention]

    parent = mention.with_changes(
        surface=parent_name,
        canonical=parent_canonical,
        sub_ingredients=list(subs),
        enumbers=extract_e_numbers(parent_name),
    )
    children = [
        Mention(
            surface=sub,
            canonical=canonicalize(sub),
            type=mention.type,
            section=mention.section,
            offset=mention.offset,
            enumbers=extract_e_numbers(sub),
            implies_allergens=list(mention.implies_allergens),
            evidence=sub,
            parent_canonical=parent_canonical,
            sub_ingredients=[],
        )
        for sub in subs
    ]
    return [parent] + children


def post_process_ingredients(result: IngredientsResult) -> IngredientsResult:
    """
    Pure transform over result.mentions. detected_allergens indices are remapped to
    the new position of their mention (the parent when it was expanded).
    """
    expanded: List[Mention] = []
    new_index: List[int] = []
    parents = 0
    for mention in result.mentions:
        out = expand_mention(mention)
        new_index.append(len(expanded))
        if len(out) > 1:
            parents += 1
        expanded.extend(out)

    if not parents:
        return result
    logger.info(
        "HIERARCHY expanded parents=%d mentions_in=%d mentions_out=%d",
        parents, len(result.mentions), len(expanded),
    )
    detected = [
        replace(d, source_mentions=[new_index[i] for i in d.source_mentions if 0 <= i < len(new_index)])
        for d in result.detected_allergens
    ]
    return result.with_changes(mentions=expanded, detected_allergens=detected)


def validate_hierarchy(result: IngredientsResult) -> List[str]:
    """
    Advisory consistency checks; never blocks or mutates.
    - child whose parent_canonical matches no mention owning sub-ingredients
    - child not listed in its parent's sub_ingredients
    - unbalanced parentheses in a surface
    """
    warnings: List[str] = []
    listed_by_parent: dict[str, set] = {}
    for m in result.mentions:
        if m.sub_ingredients:
            listed_by_parent.setdefault(m.canonical, set()).update(m.sub_ingredients)

    for m in result.mentions:
        if not m.parent_canonical:
            continue
        if m.parent_canonical not in listed_by_parent:
            warnings.append(
                f'Sub-ingredient "{m.surface}" references missing parent "{m.parent_canonical}"'
            )
        elif m.surface not in listed_by_parent[m.parent_canonical]:
            warnings.append(
                f'Sub-ingredient "{m.surface}" is not listed by parent "{m.parent_canonical}"'
            )

    for m in result.mentions:
        if m.surface.count("(") != m.surface.count(")"):
            warnings.append(f'Unbalanced parentheses in "{m.surface}"')

    if warnings:
        logger.warning("HIERARCHY validation warnings=%d", len(warnings))
    return warnings
