"""Normalize raw SerpAPI JSON into Candidate records.

One response can carry three independent result shapes, each with its own
field layout. Each shape has an adapter implementing the same
``normalize(raw, region)`` contract; ``normalize_response`` runs them all in
a fixed order (shopping, inline shopping, organic).

Records without a URL are dropped here and never reach scoring.
"""

from __future__ import annotations

import math
import re
from typing import Any, ClassVar

import structlog
from pydantic import ValidationError

from skinrank.models.contracts import Candidate, CandidateSource, Price

log = structlog.get_logger("skinrank.normalize")

ORGANIC_LIMIT = 8

_CURRENCY_MARKERS: tuple[tuple[str, str], ...] = (
    ("₹", "INR"),
    ("rs.", "INR"),
    ("rs ", "INR"),
    ("inr", "INR"),
    ("£", "GBP"),
    ("€", "EUR"),
    ("$", "USD"),
    ("usd", "USD"),
)

_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d+)?")


def default_currency(region: str) -> str:
    return {"in": "INR", "gb": "GBP"}.get(region.lower(), "USD")


def currency_for(text: str, region: str) -> str:
    """Currency code from a price string's symbol, else the region default."""
    lowered = text.lower()
    for marker, code in _CURRENCY_MARKERS:
        if marker in lowered:
            return code
    return default_currency(region)


def parse_price(price_text: Any, extracted: Any, region: str) -> Price | None:
    """Build a Price from SerpAPI's ``price`` string and ``extracted_price`` number.

    ``extracted_price`` wins when numeric; otherwise the first number in the
    price string is used. Non-positive or unparseable amounts yield None.
    """
    text = str(price_text) if price_text else ""
    value: float | None = None
    if isinstance(extracted, (int, float)) and not isinstance(extracted, bool):
        value = float(extracted)
    elif text:
        match = _NUMBER_RE.search(text)
        if match:
            try:
                value = float(match.group(0).replace(",", ""))
            except ValueError:
                value = None
    if value is None or not math.isfinite(value) or value <= 0:
        return None
    return Price(value=value, currency=currency_for(text, region))


def parse_rating(raw: Any) -> float | None:
    """Numeric rating from a number or numeric string; NaN and infinity count as absent."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def _extensions_text(record: dict[str, Any]) -> str:
    extensions = record.get("extensions") or []
    if not isinstance(extensions, list):
        return ""
    return " ".join(str(e) for e in extensions)


class ShapeAdapter:
    """Base adapter: pulls a list of records out of one response key."""

    key: ClassVar[str]
    source: ClassVar[CandidateSource]
    limit: ClassVar[int | None] = None

    def records(self, raw: dict[str, Any]) -> list[dict[str, Any]]:
        records = raw.get(self.key) or []
        if not isinstance(records, list):
            return []
        records = [r for r in records if isinstance(r, dict)]
        return records[: self.limit] if self.limit is not None else records

    def to_fields(self, record: dict[str, Any], index: int, region: str) -> dict[str, Any]:
        raise NotImplementedError

    def normalize(self, raw: dict[str, Any], region: str) -> list[Candidate]:
        candidates: list[Candidate] = []
        for index, record in enumerate(self.records(raw)):
            fields = self.to_fields(record, index, region)
            if not fields.get("url"):
                log.warning(
                    "candidate_dropped",
                    reason="missing url",
                    source=self.source,
                    title=str(record.get("title", ""))[:80],
                )
                continue
            try:
                candidates.append(Candidate(source=self.source, **fields))
            except ValidationError as exc:
                log.warning(
                    "candidate_dropped",
                    reason="invalid fields",
                    source=self.source,
                    error=str(exc)[:200],
                )
        return candidates


class ShoppingResultsAdapter(ShapeAdapter):
    """Primary commerce listings (Google Shopping engine)."""

    key = "shopping_results"
    source = "shopping"

    def to_fields(self, record: dict[str, Any], index: int, region: str) -> dict[str, Any]:
        return {
            "id": str(record.get("product_id") or f"shop_{index}"),
            "name": str(record.get("title") or ""),
            "brand": str(record.get("source") or ""),
            "url": record.get("link") or record.get("product_link") or "",
            "price": parse_price(record.get("price"), record.get("extracted_price"), region),
            "rating": parse_rating(record.get("rating")),
            "snippet": str(record.get("snippet") or _extensions_text(record)),
        }


class InlineShoppingAdapter(ShapeAdapter):
    """Inline commerce block embedded in a web search response."""

    key = "inline_shopping_results"
    source = "inline_shopping"

    def to_fields(self, record: dict[str, Any], index: int, region: str) -> dict[str, Any]:
        return {
            "id": str(record.get("product_id") or f"inline_{index}"),
            "name": str(record.get("title") or ""),
            "brand": str(record.get("source") or ""),
            "url": record.get("link") or record.get("product_link") or "",
            "price": parse_price(record.get("price"), record.get("extracted_price"), region),
            "rating": parse_rating(record.get("rating")),
            "snippet": _extensions_text(record),
        }


class OrganicResultsAdapter(ShapeAdapter):
    """Plain organic links. Never carry price or rating."""

    key = "organic_results"
    source = "organic"
    limit = ORGANIC_LIMIT

    def to_fields(self, record: dict[str, Any], index: int, region: str) -> dict[str, Any]:
        position = record.get("position")
        return {
            "id": f"org_{position}" if position else f"org_{index}",
            "name": str(record.get("title") or ""),
            "brand": _displayed_site(str(record.get("displayed_link") or "")),
            "url": record.get("link") or "",
            "price": None,
            "rating": None,
            "snippet": str(record.get("snippet") or ""),
        }


def _displayed_site(displayed_link: str) -> str:
    """'https://www.nykaa.com › skin › serum' → 'nykaa.com'."""
    site = displayed_link.split("://", 1)[-1]
    site = re.split(r"[/\s›]", site, maxsplit=1)[0]
    return site.removeprefix("www.")


ADAPTERS: tuple[ShapeAdapter, ...] = (
    ShoppingResultsAdapter(),
    InlineShoppingAdapter(),
    OrganicResultsAdapter(),
)


def normalize_response(raw: dict[str, Any], region: str) -> list[Candidate]:
    """Run every shape adapter over one provider response."""
    candidates: list[Candidate] = []
    for adapter in ADAPTERS:
        candidates.extend(adapter.normalize(raw, region))
    return candidates
