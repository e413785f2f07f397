"""Search plan building for one request.

Variants run strict → broad:
1. strict      commerce search, tokens + query, retailer site: restriction
2. web_strict  same string, general web search
3. relaxed     commerce search, tokens + query, no restriction
4. broad       commerce search, tokens + "best <category> for <skin> skin"
5. site_sweep  web search, one query per retailer domain

Sunscreen queries never carry acne actives.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, get_args

from skinrank.models.contracts import Category, Concern, Intent, Profile, SearchMode, SkinType

VariantName = Literal["strict", "web_strict", "relaxed", "broad", "site_sweep"]

RETAILER_DOMAINS: dict[str, tuple[str, ...]] = {
    "in": (
        "nykaa.com",
        "amazon.in",
        "flipkart.com",
        "purplle.com",
        "tirabeauty.com",
        "myntra.com",
        "sephora.com",
    ),
    "us": (
        "sephora.com",
        "ulta.com",
        "amazon.com",
        "target.com",
        "walmart.com",
        "dermstore.com",
        "cvs.com",
    ),
    "gb": (
        "boots.com",
        "lookfantastic.com",
        "amazon.co.uk",
        "cultbeauty.co.uk",
        "superdrug.com",
        "sephora.co.uk",
    ),
}

SUNSCREEN_TOKENS: tuple[str, ...] = ("SPF 50", "broad spectrum")

TEXTURE_TOKENS: dict[SkinType, tuple[str, ...]] = {
    "oily": ("gel", "matte", "oil-free"),
    "dry": ("hydrating", "cream"),
    "sensitive": ("mineral",),
}

CONCERN_ACTIVE_TOKENS: dict[Concern, tuple[str, ...]] = {
    "pigmentation": ("brightening", "vitamin c OR arbutin OR azelaic"),
    "acne": ("salicylic OR benzoyl peroxide",),
    "redness": ("azelaic OR centella OR niacinamide",),
}

FRAGRANCE_FREE_TOKEN = '"fragrance-free"'


@dataclass(frozen=True)
class QueryVariant:
    name: VariantName
    mode: SearchMode
    queries: tuple[str, ...]


def retailer_domains(region: str) -> tuple[str, ...]:
    """Known commerce domains for a region, falling back to a global list."""
    region = region.lower()
    if region in RETAILER_DOMAINS:
        return RETAILER_DOMAINS[region]
    return ("sephora.com", f"amazon.{region}", "lookfantastic.com", "iherb.com", "yesstyle.com")


def _join(*parts: str) -> str:
    return " ".join(p.strip() for p in parts if p and p.strip())


def _site_clause(domains: tuple[str, ...]) -> str:
    return " OR ".join(f"site:{d}" for d in domains)


def build_tokens(intent: Intent, profile: Profile) -> list[str]:
    """Assemble search tokens: category words, then sunscreen or active cues."""
    tokens: list[str] = [c for c in get_args(Category) if c in intent.categories]

    sunscreen = "sunscreen" in intent.categories
    if sunscreen:
        tokens.extend(SUNSCREEN_TOKENS)
        tokens.extend(TEXTURE_TOKENS.get(profile.skin_type, ()))

    for concern in intent.concerns:
        if sunscreen and concern == "acne":
            continue
        tokens.extend(CONCERN_ACTIVE_TOKENS.get(concern, ()))

    if profile.is_sensitive_to("fragrance"):
        tokens.append(FRAGRANCE_FREE_TOKEN)

    deduped: list[str] = []
    for token in tokens:
        if token not in deduped:
            deduped.append(token)
    return deduped


def _broad_phrase(intent: Intent, profile: Profile) -> str:
    category = intent.categories[0] if intent.categories else "skincare"
    if profile.skin_type == "unknown":
        return f"best {category}"
    return f"best {category} for {profile.skin_type} skin"


def build_query_plan(
    intent: Intent,
    profile: Profile,
    query: str,
    region: str,
) -> list[QueryVariant]:
    """Build the ordered cascade plan for one request."""
    tokens = " ".join(build_tokens(intent, profile))
    domains = retailer_domains(region)
    base = _join(tokens, query)
    strict = _join(base, _site_clause(domains))

    return [
        QueryVariant("strict", "commerce", (strict,)),
        QueryVariant("web_strict", "web", (strict,)),
        QueryVariant("relaxed", "commerce", (base,)),
        QueryVariant("broad", "commerce", (_join(tokens, _broad_phrase(intent, profile)),)),
        QueryVariant(
            "site_sweep",
            "web",
            tuple(_join(base, f"site:{domain}") for domain in domains),
        ),
    ]
