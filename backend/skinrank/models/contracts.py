"""skinrank contract models.

The wire format is camelCase (``skinType``, ``budgetMax``, ``queryUsed``);
Python code uses the snake_case attribute names. FastAPI serializes
response models by alias, so routes return these models directly.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

# === Shared Types ===

SkinType = Literal["oily", "dry", "combination", "sensitive", "normal", "unknown"]
Concern = Literal["acne", "pigmentation", "redness", "dehydration", "oil"]
Category = Literal["sunscreen", "cleanser", "serum", "moisturizer", "exfoliant"]
SearchMode = Literal["commerce", "web"]
CandidateSource = Literal["shopping", "inline_shopping", "organic"]


class _WireModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}


# === Inbound ===


class Profile(_WireModel):
    """Caller-supplied skin profile. Read-only for the engine."""

    model_config = {"frozen": True}

    skin_type: SkinType = "unknown"
    concerns: list[str] = []
    sensitivities: list[str] = []
    region: str | None = Field(default=None, pattern=r"^[a-z]{2}$")

    @field_validator("skin_type", mode="before")
    @classmethod
    def _normalize_skin_type(cls, value: object) -> object:
        if value is None:
            return "unknown"
        if isinstance(value, str):
            return value.strip().lower() or "unknown"
        return value

    @field_validator("region", mode="before")
    @classmethod
    def _normalize_region(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower() or None
        return value

    @field_validator("concerns", "sensitivities")
    @classmethod
    def _normalize_terms(cls, values: list[str]) -> list[str]:
        """Lower-case, strip, and de-duplicate while keeping first-seen order."""
        terms: list[str] = []
        for value in values:
            term = value.strip().lower()
            if term and term not in terms:
                terms.append(term)
        return terms

    def is_sensitive_to(self, term: str) -> bool:
        return any(term in s for s in self.sensitivities)


class RecommendRequest(_WireModel):
    profile: Profile = Field(default_factory=Profile)
    query: str = Field(default="", max_length=500)


# === Derived ===


class Intent(_WireModel):
    """Structured reading of the free-text query."""

    model_config = {"frozen": True}

    budget_max: float | None = None
    concerns: list[Concern] = Field(min_length=1)
    categories: list[Category] = []


class Price(_WireModel):
    value: float
    currency: str


class Candidate(_WireModel):
    """One normalized search result. Enriched by dedupe, then scored."""

    id: str
    name: str = ""
    brand: str = ""
    url: str = Field(min_length=1)
    price: Price | None = None
    rating: float | None = None
    snippet: str = ""
    source: CandidateSource
    store: str = ""


class RankedResult(Candidate):
    model_config = {"frozen": True}

    score: int
    why: str


# === Outbound ===


class RecommendResponse(_WireModel):
    query_used: str
    intent: Intent
    results: list[RankedResult] = []


class ProductSearchResponse(_WireModel):
    products: list[Candidate] = []


class ErrorResponse(BaseModel):
    error: str
    message: str
    retryable: bool
    detail: str | None = None
