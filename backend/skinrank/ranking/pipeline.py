"""Recommendation pipeline for a single request.

intent → query plan → cascade (search + normalize) → dedupe → score.

Stateless: everything comes in through the request and goes out in the
response. Only a missing search credential fails the request; provider
trouble degrades to fewer (or zero) results.
"""

from __future__ import annotations

import httpx
import structlog

from skinrank.config import settings
from skinrank.errors import ConfigurationError, ProviderError
from skinrank.models.contracts import Candidate, RecommendRequest, RecommendResponse, SearchMode
from skinrank.ranking.cascade import SearchFn, run_cascade
from skinrank.ranking.dedupe import dedupe_candidates
from skinrank.ranking.intent import parse_intent
from skinrank.ranking.normalize import normalize_response
from skinrank.ranking.queries import build_query_plan
from skinrank.ranking.scoring import rank_candidates
from skinrank.utils.serpapi import search_serpapi

log = structlog.get_logger("skinrank.pipeline")

# Added on top of the HTTP timeout so httpx reports timeouts first
ATTEMPT_TIMEOUT_MARGIN = 2.0


def _require_api_key() -> str:
    if not settings.serpapi_api_key:
        raise ConfigurationError("SERPAPI_API_KEY not set")
    return settings.serpapi_api_key


def serpapi_search_fn(http_client: httpx.AsyncClient, region: str, api_key: str) -> SearchFn:
    """Bind a shared client, region, and credential into a cascade search function."""

    async def _search(query: str, mode: SearchMode) -> dict:
        return await search_serpapi(
            http_client,
            query,
            mode,
            region,
            api_key,
            base_url=settings.serpapi_base_url,
            timeout=settings.search_timeout_seconds,
        )

    return _search


def resolve_region(region: str | None) -> str:
    return (region or settings.default_region).lower()


async def _recommend_with(
    request: RecommendRequest,
    search: SearchFn,
    region: str,
) -> RecommendResponse:
    profile = request.profile
    intent = parse_intent(request.query, profile)
    plan = build_query_plan(intent, profile, request.query, region)

    log.info(
        "recommend_pipeline_start",
        region=region,
        skin_type=profile.skin_type,
        concerns=intent.concerns,
        categories=intent.categories,
        budget_max=intent.budget_max,
    )

    cascade = await run_cascade(
        search,
        plan,
        region,
        min_candidates=settings.min_candidates,
        sweep_concurrency=settings.sweep_concurrency,
        timeout=settings.search_timeout_seconds + ATTEMPT_TIMEOUT_MARGIN,
    )
    pool = dedupe_candidates(cascade.candidates, region, intent.budget_max)
    results = rank_candidates(pool, intent, profile, region, top_n=settings.top_n)

    log.info(
        "recommend_pipeline_complete",
        cascade_state=cascade.state,
        attempts=len(cascade.attempts),
        accumulated=len(cascade.candidates),
        returned=len(results),
    )
    return RecommendResponse(query_used=cascade.query_used, intent=intent, results=results)


async def recommend(
    request: RecommendRequest,
    *,
    search: SearchFn | None = None,
) -> RecommendResponse:
    """Produce a ranked, explained shortlist for one request.

    ``search`` replaces the SerpAPI adapter (used by tests and alternate
    providers). Without it, SERPAPI_API_KEY must be configured.
    """
    region = resolve_region(request.profile.region)
    if search is not None:
        return await _recommend_with(request, search, region)

    api_key = _require_api_key()
    async with httpx.AsyncClient() as http_client:
        search = serpapi_search_fn(http_client, region, api_key)
        return await _recommend_with(request, search, region)


async def search_products(
    query: str,
    region: str | None = None,
    *,
    search: SearchFn | None = None,
) -> list[Candidate]:
    """Single commerce-mode search, normalized and deduplicated, unscored.

    Provider failures return an empty list.
    """
    if not query.strip():
        return []
    region = resolve_region(region)

    async def _run(search_fn: SearchFn) -> list[Candidate]:
        try:
            raw = await search_fn(query, "commerce")
        except ProviderError as exc:
            log.warning("product_search_failed", query=query[:80], error=str(exc)[:200])
            return []
        return dedupe_candidates(normalize_response(raw, region), region)

    if search is not None:
        return await _run(search)

    api_key = _require_api_key()
    async with httpx.AsyncClient() as http_client:
        return await _run(serpapi_search_fn(http_client, region, api_key))
