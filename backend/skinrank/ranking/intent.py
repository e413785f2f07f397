"""Intent parsing: free-text query + profile → Intent.

Concern and category detection is table-driven: each tag maps to a keyword
set, and a query matches a tag when any keyword appears as a word prefix.
Tags are evaluated in table order, so the resulting lists are stable
regardless of where the words appear in the query.
"""

from __future__ import annotations

import re
from typing import get_args

from skinrank.models.contracts import Category, Concern, Intent, Profile

CONCERN_ORDER: tuple[Concern, ...] = get_args(Concern)

CONCERN_KEYWORDS: dict[Concern, tuple[str, ...]] = {
    "acne": ("acne", "pimple", "whitehead", "blackhead", "breakout", "zit"),
    "pigmentation": (
        "dark spot",
        "hyperpig",
        "pigment",
        "melasma",
        "dull",
        "uneven tone",
        "discolo",
    ),
    "redness": ("redness", "rosacea", "flush", "irritat"),
    "dehydration": ("dehydrat", "dry", "flaky", "tight"),
    "oil": ("oily", "oil", "sebum", "shine", "greasy"),
}

CATEGORY_KEYWORDS: dict[Category, tuple[str, ...]] = {
    "sunscreen": ("spf", "sunscreen", "sun screen", "sunblock"),
    "cleanser": ("cleanser", "face wash", "facewash"),
    "serum": ("serum", "treatment", "essence"),
    "moisturizer": ("moisturizer", "moisturiser", "cream", "lotion", "gel"),
    "exfoliant": ("exfoliat", "aha", "bha", "peel", "mandelic", "glycolic", "lactic"),
}

DEFAULT_CONCERNS: tuple[Concern, ...] = ("acne",)
PIGMENTATION_ROUTINE: tuple[Category, ...] = ("sunscreen", "serum", "exfoliant")

# "oily skin" describes the skin type, not an oil-control concern
_OILY_SKIN_RE = re.compile(r"\boily\s+skin\b")
_TAN_RE = re.compile(r"\b(?:sun)?tan(?:ned|ning|s)?\b")
_BUDGET_RE = re.compile(r"\bunder\s*(?:₹|\$)?\s*(\d{1,3}(?:,\d{3})+|\d+)(?:\.(\d{1,2}))?")


def _compile_table(table: dict) -> dict:
    return {
        tag: re.compile(r"\b(?:" + "|".join(re.escape(k) for k in keywords) + r")")
        for tag, keywords in table.items()
    }


_CONCERN_PATTERNS: dict[Concern, re.Pattern[str]] = _compile_table(CONCERN_KEYWORDS)
_CATEGORY_PATTERNS: dict[Category, re.Pattern[str]] = _compile_table(CATEGORY_KEYWORDS)


def parse_budget(text: str) -> float | None:
    """Return the ceiling from the first 'under <amount>' phrase, if any."""
    match = _BUDGET_RE.search(text.lower())
    if match is None:
        return None
    whole = match.group(1).replace(",", "")
    cents = match.group(2)
    return float(f"{whole}.{cents}") if cents else float(whole)


def match_concerns(text: str) -> list[Concern]:
    """Return matched concern tags in fixed table order, never empty."""
    q = _OILY_SKIN_RE.sub(" ", text.lower())
    hits = {tag for tag, pattern in _CONCERN_PATTERNS.items() if pattern.search(q)}
    if "pigmentation" not in hits and _TAN_RE.search(q):
        hits.add("pigmentation")
    concerns = [tag for tag in CONCERN_ORDER if tag in hits]
    return concerns or list(DEFAULT_CONCERNS)


def match_categories(text: str, concerns: list[Concern]) -> list[Category]:
    """Return matched category tags in table order.

    A pigmentation query with no explicit category gets a full routine.
    """
    q = text.lower()
    categories = [tag for tag, pattern in _CATEGORY_PATTERNS.items() if pattern.search(q)]
    if not categories and "pigmentation" in concerns:
        return list(PIGMENTATION_ROUTINE)
    return categories


def parse_intent(query: str, profile: Profile | None = None) -> Intent:
    """Parse a free-text query into an Intent.

    Only the query text is classified. Declared profile concerns are applied
    later by the scorer (comedogenic penalty), not folded into the intent.
    """
    concerns = match_concerns(query)
    return Intent(
        budget_max=parse_budget(query),
        concerns=concerns,
        categories=match_categories(query, concerns),
    )
