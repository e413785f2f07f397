"""Rule-based fit scoring and explanation.

The score is a sum of independent signals over the lower-cased
``name + snippet`` text. ``explain`` reads the same signals back so the
``why`` string never praises something the score penalized.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field

from skinrank.models.contracts import Candidate, Concern, Intent, Profile, RankedResult

ACTIVE_MAP: dict[Concern, tuple[str, ...]] = {
    "acne": ("salicylic", "benzoyl peroxide", "azelaic", "retinol", "adapalene"),
    "pigmentation": (
        "vitamin c",
        "ascorbic",
        "arbutin",
        "kojic",
        "azelaic",
        "niacinamide",
        "tranexamic",
    ),
    "redness": ("azelaic", "niacinamide", "allantoin", "centella", "madecassoside"),
    "dehydration": ("hyaluronic", "glycerin", "panthenol", "squalane"),
    "oil": ("niacinamide", "zinc", "salicylic"),
}

# Removed from the acne bank when the intent is a sunscreen
SUNSCREEN_PRUNED_ACNE_ACTIVES: frozenset[str] = frozenset({"salicylic", "benzoyl peroxide"})

IRRITANTS: tuple[str, ...] = ("fragrance", "parfum", "linalool", "limonene", "eugenol", "citrus")
HIGH_COMEDOGENIC: tuple[str, ...] = (
    "isopropyl myristate",
    "isopropyl palmitate",
    "coconut oil",
)

BRAND_BOOST: dict[str, tuple[str, ...]] = {
    "in": (
        "minimalist",
        "the derma co",
        "dot & key",
        "foxtale",
        "re'equil",
        "deconstruct",
        "aqualogica",
        "plum",
    ),
    "us": ("cerave", "la roche-posay", "neutrogena", "the ordinary", "paula's choice"),
    "gb": ("la roche-posay", "cerave", "the inkey list", "the ordinary", "bioderma"),
}

CONCERN_POINTS = 18
SUNSCREEN_POINTS = 25
SKIN_TYPE_POINTS = 10
IRRITANT_PENALTY = -30
COMEDOGENIC_PENALTY = -12
WITHIN_BUDGET_POINTS = 6
OVER_BUDGET_PENALTY = -10
MAX_RATING_POINTS = 10
BRAND_POINTS = 6
CONCERN_MATCH_THRESHOLD = 20

_SPF_RE = re.compile(r"spf|pa\+|sunscreen|\buva\b|\buvb\b|broad[- ]spectrum")
_SKIN_TYPE_RE: dict[str, re.Pattern[str]] = {
    "oily": re.compile(r"\bgel\b|fluid|oil[- ]?free|matte"),
    "dry": re.compile(r"cream|balm|\brich\b|ceramide"),
    "sensitive": re.compile(r"fragrance[- ]?free|mineral|zinc oxide|titanium dioxide|soothing"),
}
_FRAGRANCE_FREE_RE = re.compile(r"fragrance[- ]?free")
_MINERAL_RE = re.compile(r"mineral (?:sunscreen|filters?|spf)|zinc oxide|titanium dioxide")
_BRIGHTENING_RE = re.compile(r"vitamin c|arbutin|azelaic|niacinamide|kojic|tranexamic")


@dataclass
class ScoreBreakdown:
    """Per-signal contributions for one candidate."""

    signals: dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.signals.values())

    def add(self, name: str, points: int) -> None:
        if points:
            self.signals[name] = self.signals.get(name, 0) + points


def candidate_text(candidate: Candidate) -> str:
    return f"{candidate.name} {candidate.snippet}".lower()


def active_bank(concern: Concern, intent: Intent) -> tuple[str, ...]:
    bank = ACTIVE_MAP.get(concern, ())
    if concern == "acne" and "sunscreen" in intent.categories:
        return tuple(a for a in bank if a not in SUNSCREEN_PRUNED_ACNE_ACTIVES)
    return bank


def _rating_points(rating: float | None) -> int:
    if rating is None or not math.isfinite(rating) or rating <= 0:
        return 0
    return min(MAX_RATING_POINTS, round(rating * 2))


def _brand_boosted(candidate: Candidate, region: str) -> bool:
    brands = BRAND_BOOST.get(region.lower(), ())
    haystack = f"{candidate.brand} {candidate.name}".lower()
    return any(brand in haystack for brand in brands)


def score_breakdown(
    candidate: Candidate,
    intent: Intent,
    profile: Profile,
    region: str,
) -> ScoreBreakdown:
    """Evaluate every signal for one candidate."""
    text = candidate_text(candidate)
    breakdown = ScoreBreakdown()

    for concern in intent.concerns:
        if any(active in text for active in active_bank(concern, intent)):
            breakdown.add(f"concern:{concern}", CONCERN_POINTS)

    if "sunscreen" in intent.categories and _SPF_RE.search(text):
        breakdown.add("spf", SUNSCREEN_POINTS)

    texture = _SKIN_TYPE_RE.get(profile.skin_type)
    if texture is not None and texture.search(text):
        breakdown.add("skin_type", SKIN_TYPE_POINTS)

    if profile.is_sensitive_to("fragrance") and any(w in text for w in IRRITANTS):
        breakdown.add("irritant", IRRITANT_PENALTY)

    if "acne" in profile.concerns and any(w in text for w in HIGH_COMEDOGENIC):
        breakdown.add("comedogenic", COMEDOGENIC_PENALTY)

    price = candidate.price.value if candidate.price else None
    if intent.budget_max is not None and price is not None:
        if price <= intent.budget_max:
            breakdown.add("budget", WITHIN_BUDGET_POINTS)
        else:
            breakdown.add("budget", OVER_BUDGET_PENALTY)

    breakdown.add("rating", _rating_points(candidate.rating))

    if _brand_boosted(candidate, region):
        breakdown.add("brand", BRAND_POINTS)

    return breakdown


def score_candidate(candidate: Candidate, intent: Intent, profile: Profile, region: str) -> int:
    return score_breakdown(candidate, intent, profile, region).total


def explain(candidate: Candidate, breakdown: ScoreBreakdown, profile: Profile) -> str:
    """Short human-readable justification consistent with the breakdown."""
    text = candidate_text(candidate)
    penalized_fragrance = "irritant" in breakdown.signals
    bits: list[str] = []

    if _SPF_RE.search(text):
        bits.append("broad-spectrum SPF")
    if _FRAGRANCE_FREE_RE.search(text) and not penalized_fragrance:
        bits.append("fragrance-free")
    if profile.skin_type == "oily" and "skin_type" in breakdown.signals:
        bits.append("oily-skin friendly texture")
    if _MINERAL_RE.search(text):
        bits.append("mineral filters")
    if _BRIGHTENING_RE.search(text):
        bits.append("brightening actives")
    if breakdown.total >= CONCERN_MATCH_THRESHOLD:
        bits.append("matches your concerns")

    if not bits:
        return "Good overall fit."
    return f"Picked for {'; '.join(bits)}."


def rank_candidates(
    candidates: list[Candidate],
    intent: Intent,
    profile: Profile,
    region: str,
    top_n: int = 12,
) -> list[RankedResult]:
    """Score, explain, and order candidates (stable on ties), keeping the top N."""
    ranked: list[RankedResult] = []
    for candidate in candidates:
        breakdown = score_breakdown(candidate, intent, profile, region)
        ranked.append(
            RankedResult(
                **candidate.model_dump(),
                score=breakdown.total,
                why=explain(candidate, breakdown, profile),
            )
        )
    ranked.sort(key=lambda r: r.score, reverse=True)
    return ranked[:top_n]
