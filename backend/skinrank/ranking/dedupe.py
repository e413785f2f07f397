"""Deduplication, product-URL classification, and candidate enrichment.

Order of operations:
1. collapse by URL without fragment (first occurrence wins)
2. enrich: store host, price inferred from text when missing
3. keep product-detail URLs
4. drop known prices above the budget

Steps 3 and 4 never empty a non-empty pool: if a filter would remove
everything, the pool from before that filter is kept.
"""

from __future__ import annotations

import re
import urllib.parse

import structlog

from skinrank.models.contracts import Candidate, Price
from skinrank.ranking.normalize import default_currency

log = structlog.get_logger("skinrank.dedupe")

# Host key → path patterns that identify a product detail page. Keys without
# a dot match any host containing that label (amazon.in, amazon.co.uk, ...).
PRODUCT_URL_PATTERNS: dict[str, tuple[str, ...]] = {
    "nykaa.com": (r"/p/\d+",),
    "amazon": (r"/dp/[A-Z0-9]{10}", r"/gp/product/"),
    "flipkart.com": (r"/p/itm",),
    "purplle.com": (r"/product/",),
    "tirabeauty.com": (r"/product/",),
    "myntra.com": (r"/\d+/buy",),
    "sephora": (r"/products?/",),
    "ulta.com": (r"/p/",),
    "target.com": (r"/p/",),
    "walmart.com": (r"/ip/",),
    "dermstore.com": (r"/p/",),
    "cvs.com": (r"-prodid-",),
    "boots.com": (r"-\d{6,}/?$",),
    "lookfantastic.com": (r"/\d+\.html$",),
    "superdrug.com": (r"/p/",),
    "cultbeauty.co.uk": (r"\.html$",),
    "google": (r"/shopping/product/",),
}

_COMPILED_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    key: tuple(re.compile(p) for p in patterns) for key, patterns in PRODUCT_URL_PATTERNS.items()
}

# Listing, search, and editorial paths on hosts we have no patterns for
_NON_PRODUCT_PATH_RE = re.compile(
    r"/(?:search|s|blogs?|articles?|category|categories|tags?|news|magazine)(?:/|$)",
    re.IGNORECASE,
)

_TEXT_PRICE_RE = re.compile(
    r"(₹|\brs\.?|\binr|\$|\busd|£|€)\s?(\d{1,3}(?:,\d{3})+|\d+)(\.\d{1,2})?",
    re.IGNORECASE,
)

_SYMBOL_CURRENCY: dict[str, str] = {
    "₹": "INR",
    "rs": "INR",
    "rs.": "INR",
    "inr": "INR",
    "$": "USD",
    "usd": "USD",
    "£": "GBP",
    "€": "EUR",
}


def canonical_url(url: str) -> str:
    return url.split("#", 1)[0]


def store_for(url: str) -> str:
    """Hostname without a leading 'www.'."""
    host = urllib.parse.urlparse(url).hostname or ""
    return host.removeprefix("www.")


def _retailer_key(host: str) -> str | None:
    labels = host.split(".")
    for key in _COMPILED_PATTERNS:
        if "." in key:
            if host == key or host.endswith("." + key):
                return key
        elif key in labels:
            return key
    return None


def is_product_url(url: str) -> bool:
    """True when the URL looks like a purchasable product page.

    Known retailers must match one of their detail-page patterns. Other
    hosts (brand sites) pass unless the path is a search, listing, or
    editorial page.
    """
    parsed = urllib.parse.urlparse(url)
    host = (parsed.hostname or "").removeprefix("www.")
    if not host:
        return False
    key = _retailer_key(host)
    if key is None:
        return not _NON_PRODUCT_PATH_RE.search(parsed.path)
    return any(p.search(parsed.path) for p in _COMPILED_PATTERNS[key])


def infer_price(text: str, region: str) -> Price | None:
    """Find the first currency amount in free text."""
    match = _TEXT_PRICE_RE.search(text)
    if match is None:
        return None
    symbol, whole, cents = match.groups()
    value = float(whole.replace(",", "") + (cents or ""))
    if value <= 0:
        return None
    currency = _SYMBOL_CURRENCY.get(symbol.lower(), default_currency(region))
    return Price(value=value, currency=currency)


def unique_by_url(candidates: list[Candidate]) -> list[Candidate]:
    seen: set[str] = set()
    unique: list[Candidate] = []
    for candidate in candidates:
        key = canonical_url(candidate.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


def enrich(candidate: Candidate, region: str) -> Candidate:
    """Fill in store and, when missing, a price parsed from name + snippet."""
    candidate.store = store_for(candidate.url)
    if candidate.price is None:
        candidate.price = infer_price(f"{candidate.name} {candidate.snippet}", region)
    return candidate


def filter_by_budget(candidates: list[Candidate], budget_max: float | None) -> list[Candidate]:
    """Drop known prices above the ceiling, unless that leaves nothing."""
    if budget_max is None:
        return candidates
    within = [c for c in candidates if c.price is None or c.price.value <= budget_max]
    if not within and candidates:
        log.info("budget_filter_fallback", budget_max=budget_max, pool=len(candidates))
        return candidates
    return within


def dedupe_candidates(
    candidates: list[Candidate],
    region: str,
    budget_max: float | None = None,
) -> list[Candidate]:
    """Collapse, enrich, and filter the accumulated cascade output."""
    unique = [enrich(c, region) for c in unique_by_url(candidates)]

    products = [c for c in unique if is_product_url(c.url)]
    if not products and unique:
        log.info("product_url_filter_fallback", pool=len(unique))
        products = unique

    pool = filter_by_budget(products, budget_max)
    log.info(
        "dedupe_complete",
        accumulated=len(candidates),
        unique=len(unique),
        products=len(products),
        final=len(pool),
    )
    return pool
