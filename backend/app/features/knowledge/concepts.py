"""
Knowledge feature: concept expansion for fallback retrieval.

When a question matches nothing in the corpus (e.g. a question about coding
frustration), it is rewritten into Gita concepts and searched again.
Each family is matched independently and the results are unioned, in table
order, with the baseline concepts always last.
"""

import re
from typing import NamedTuple


class ConceptFamily(NamedTuple):
    name: str
    pattern: re.Pattern
    concepts: tuple[str, ...]


CONCEPT_FAMILIES: tuple[ConceptFamily, ...] = (
    ConceptFamily(
        "frustration",
        re.compile(r"\b(?:frustrat\w*|angry|mad|annoy\w*|upset|done|tired|exhaust\w*)\b", re.IGNORECASE),
        ("perseverance", "equanimity", "detachment from results", "overcoming obstacles"),
    ),
    ConceptFamily(
        "failure",
        re.compile(r"\b(?:fail\w*|stuck|can't|cannot|unable|impossible|hopeless|give up|giving up)\b", re.IGNORECASE),
        ("duty and action", "resilience", "karma yoga"),
    ),
    ConceptFamily(
        "confusion",
        re.compile(r"\b(?:confus\w*|lost|don't know|uncertain\w*|doubt\w*)\b", re.IGNORECASE),
        ("self-knowledge", "wisdom", "dharma"),
    ),
    ConceptFamily(
        "work",
        re.compile(r"\b(?:work\w*|jobs?|careers?|code|coding|projects?|tasks?)\b", re.IGNORECASE),
        ("nishkama karma", "action without attachment", "duty"),
    ),
    ConceptFamily(
        "purpose",
        re.compile(r"\b(?:why|purpose|meaning\w*|point|reason)\b", re.IGNORECASE),
        ("purpose of life", "self-realization"),
    ),
)

BASELINE_CONCEPTS: tuple[str, ...] = ("karma yoga", "dharma", "dealing with difficulties")


def matched_families(query: str) -> list[ConceptFamily]:
    # Curly apostrophes from mobile keyboards
    text = query.replace("’", "'")
    return [family for family in CONCEPT_FAMILIES if family.pattern.search(text)]


def expand_concepts(query: str) -> list[str]:
    """Map a query to deduplicated concept terms, baseline included."""
    concepts: list[str] = []
    for family in matched_families(query):
        concepts.extend(family.concepts)
    concepts.extend(BASELINE_CONCEPTS)
    return list(dict.fromkeys(concepts))


def build_fallback_query(query: str) -> str:
    return " ".join(expand_concepts(query))
