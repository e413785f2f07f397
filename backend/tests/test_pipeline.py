"""End-to-end pipeline tests with a fake search function in place of SerpAPI."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import patch

import pytest

from skinrank.errors import ConfigurationError, ProviderSoftError, ProviderTransportError
from skinrank.models.contracts import Profile, RecommendRequest
from skinrank.ranking import pipeline
from skinrank.ranking.dedupe import canonical_url


class ScriptedSearch:
    """Returns the same payload for every call (or raises) and records calls."""

    def __init__(self, payload: Any = None, exc: Exception | None = None):
        self.payload = payload if payload is not None else {}
        self.exc = exc
        self.calls: list[tuple[str, str]] = []

    async def __call__(self, query: str, mode: str) -> dict[str, Any]:
        self.calls.append((query, mode))
        if self.exc is not None:
            raise self.exc
        return self.payload


def _request(query: str, **profile: Any) -> RecommendRequest:
    return RecommendRequest(profile=Profile(**profile), query=query)


class TestRecommend:
    def test_oily_sunscreen_under_budget(self, shopping_payload):
        search = ScriptedSearch(shopping_payload)
        request = _request(
            "sunscreen for oily skin under 500",
            skin_type="oily",
            sensitivities=["fragrance"],
            region="in",
        )
        response = asyncio.run(pipeline.recommend(request, search=search))

        assert response.intent.budget_max == 500
        assert response.intent.categories == ["sunscreen"]
        assert response.intent.concerns == ["acne"]
        # first variant alone satisfies the threshold
        assert len(search.calls) == 1
        assert response.query_used == search.calls[0][0]
        assert "sunscreen" in response.query_used.lower()
        assert len(response.results) == 10
        assert all(r.price is not None and r.price.value <= 500 for r in response.results)
        assert all(r.why for r in response.results)
        scores = [r.score for r in response.results]
        assert scores == sorted(scores, reverse=True)

    def test_results_have_unique_urls(self, make_shopping_record):
        records = [make_shopping_record(i % 4, product_id=f"p{i}") for i in range(12)]
        search = ScriptedSearch({"shopping_results": records})
        response = asyncio.run(pipeline.recommend(_request("serum for acne"), search=search))
        urls = [canonical_url(r.url) for r in response.results]
        assert len(urls) == len(set(urls)) == 4

    def test_organic_only_results(self, organic_payload):
        search = ScriptedSearch(organic_payload)
        response = asyncio.run(
            pipeline.recommend(_request("vitamin c serum for dark spots under 100"), search=search)
        )
        assert len(response.results) == 5
        assert all(r.source == "organic" for r in response.results)
        assert all(r.price is None for r in response.results)
        assert response.intent.concerns == ["pigmentation"]

    def test_no_results_is_not_an_error(self):
        search = ScriptedSearch({})
        response = asyncio.run(pipeline.recommend(_request("cleanser"), search=search))
        assert response.results == []
        assert response.query_used

    def test_provider_failures_degrade_to_empty(self):
        search = ScriptedSearch(exc=ProviderTransportError("down"))
        response = asyncio.run(pipeline.recommend(_request("cleanser"), search=search))
        assert response.results == []
        assert len(search.calls) > 1

    def test_non_finite_rating_does_not_fail_request(self):
        payload = {
            "shopping_results": [
                {"title": "Gel SPF", "link": "https://www.nykaa.com/a/p/1", "rating": "NaN"},
                {
                    "title": "Fluid SPF",
                    "link": "https://www.nykaa.com/b/p/2",
                    "rating": float("nan"),
                },
            ]
        }
        response = asyncio.run(
            pipeline.recommend(_request("sunscreen"), search=ScriptedSearch(payload))
        )
        assert len(response.results) == 2
        assert all(r.rating is None for r in response.results)

    def test_top_n_cap(self, make_shopping_record):
        records = [make_shopping_record(i) for i in range(30)]
        search = ScriptedSearch({"shopping_results": records})
        response = asyncio.run(pipeline.recommend(_request("serum"), search=search))
        assert len(response.results) == pipeline.settings.top_n

    def test_region_falls_back_to_default(self):
        with patch.object(pipeline.settings, "default_region", "us"):
            assert pipeline.resolve_region(None) == "us"
        assert pipeline.resolve_region("GB") == "gb"

    def test_missing_api_key_raises(self):
        with patch.object(pipeline.settings, "serpapi_api_key", ""):
            with pytest.raises(ConfigurationError):
                asyncio.run(pipeline.recommend(_request("sunscreen")))


class TestSearchProducts:
    def test_empty_query_skips_search(self):
        search = ScriptedSearch({"shopping_results": []})
        assert asyncio.run(pipeline.search_products("   ", search=search)) == []
        assert search.calls == []

    def test_single_commerce_search(self, shopping_payload):
        search = ScriptedSearch(shopping_payload)
        products = asyncio.run(pipeline.search_products("gel sunscreen", "in", search=search))
        assert search.calls == [("gel sunscreen", "commerce")]
        assert len(products) == 10
        assert all(p.store == "nykaa.com" for p in products)

    def test_provider_error_returns_empty(self):
        search = ScriptedSearch(exc=ProviderSoftError("quota"))
        assert asyncio.run(pipeline.search_products("spf", search=search)) == []

    def test_missing_api_key_raises(self):
        with patch.object(pipeline.settings, "serpapi_api_key", ""):
            with pytest.raises(ConfigurationError):
                asyncio.run(pipeline.search_products("spf"))
