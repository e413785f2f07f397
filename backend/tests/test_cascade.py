"""Tests for the cascade controller: early stop, fallbacks, error recovery.

Uses a counting fake provider in place of SerpAPI.
"""

from __future__ import annotations

import asyncio
from typing import Any

from skinrank.errors import ProviderSoftError, ProviderTransportError
from skinrank.models.contracts import Profile
from skinrank.ranking.cascade import iter_attempts, run_cascade, threshold_met
from skinrank.ranking.intent import parse_intent
from skinrank.ranking.queries import build_query_plan


def _plan(query: str = "serum for acne", region: str = "in"):
    profile = Profile()
    return build_query_plan(parse_intent(query, profile), profile, query, region)


def _payload(n: int, prefix: str = "x") -> dict[str, Any]:
    return {
        "shopping_results": [
            {
                "title": f"Serum {prefix}{i}",
                "link": f"https://www.nykaa.com/{prefix}-{i}/p/{i}",
                "extracted_price": 100 + i,
            }
            for i in range(n)
        ]
    }


class FakeProvider:
    """Returns scripted payloads (or raises) in call order and records every call."""

    def __init__(self, script: list[Any], default: Any = None):
        self.script = list(script)
        self.default = default if default is not None else {}
        self.calls: list[tuple[str, str]] = []

    async def __call__(self, query: str, mode: str) -> dict[str, Any]:
        self.calls.append((query, mode))
        step = self.script.pop(0) if self.script else self.default
        if isinstance(step, BaseException):
            raise step
        return step


class TestThreshold:
    def test_predicate(self):
        assert threshold_met(8, 8)
        assert not threshold_met(7, 8)


class TestIterAttempts:
    def test_one_attempt_per_ordinary_variant(self):
        batches = list(iter_attempts(_plan()))
        names = [b[0].variant for b in batches]
        assert names[:4] == ["strict", "web_strict", "relaxed", "broad"]
        assert all(len(b) == 1 for b in batches)

    def test_sweep_batches(self):
        plan = _plan()
        sweep_size = len(plan[-1].queries)
        batches = list(iter_attempts(plan, sweep_batch_size=3))
        sweep_batches = [b for b in batches if b[0].variant == "site_sweep"]
        assert sum(len(b) for b in sweep_batches) == sweep_size
        assert all(len(b) <= 3 for b in sweep_batches)


class TestRunCascade:
    def test_stops_after_first_variant_when_enough(self):
        provider = FakeProvider([_payload(10)])
        plan = _plan()
        result = asyncio.run(run_cascade(provider, plan, "in", min_candidates=8))
        assert len(provider.calls) == 1
        assert provider.calls[0] == (plan[0].queries[0], "commerce")
        assert result.state == "done"
        assert result.query_used == plan[0].queries[0]
        assert len(result.candidates) == 10

    def test_accumulates_across_variants(self):
        provider = FakeProvider([_payload(3, "a"), _payload(3, "b"), _payload(3, "c")])
        plan = _plan()
        result = asyncio.run(run_cascade(provider, plan, "in", min_candidates=8))
        assert len(provider.calls) == 3
        assert [mode for _, mode in provider.calls] == ["commerce", "web", "commerce"]
        assert result.query_used == plan[2].queries[0]
        assert result.state == "done"
        assert len(result.candidates) == 9

    def test_each_variant_issued_at_most_once(self):
        provider = FakeProvider([], default={})
        plan = _plan()
        result = asyncio.run(run_cascade(provider, plan, "in", min_candidates=8))
        expected = 4 + len(plan[-1].queries)
        assert len(provider.calls) == expected
        issued = [q for q, _ in provider.calls]
        # strict and web_strict share a string but run in different modes
        assert len(set(provider.calls)) == expected
        assert issued[-1] == plan[-1].queries[-1]
        assert result.state == "exhausted"
        assert result.candidates == []
        assert result.attempts[-1].state == "exhausted"

    def test_sweep_stops_as_soon_as_threshold_met(self):
        provider = FakeProvider([{}, {}, {}, {}, _payload(2, "s1"), _payload(8, "s2")])
        plan = _plan()
        result = asyncio.run(run_cascade(provider, plan, "in", min_candidates=8))
        assert len(provider.calls) == 6
        assert result.query_used == plan[-1].queries[1]
        assert result.state == "done"

    def test_errors_count_as_zero_and_cascade_continues(self):
        provider = FakeProvider(
            [
                ProviderTransportError("boom"),
                ProviderSoftError("quota"),
                _payload(9),
            ]
        )
        result = asyncio.run(run_cascade(provider, _plan(), "in", min_candidates=8))
        assert len(provider.calls) == 3
        assert result.state == "done"
        assert result.attempts[0].error == "boom"
        assert result.attempts[1].error == "quota"
        assert result.attempts[2].count == 9

    def test_timeout_counts_as_zero(self):
        calls = 0

        async def slow_then_fast(query: str, mode: str) -> dict[str, Any]:
            nonlocal calls
            calls += 1
            if calls == 1:
                await asyncio.sleep(5)
            return _payload(8)

        result = asyncio.run(
            run_cascade(slow_then_fast, _plan(), "in", min_candidates=8, timeout=0.05)
        )
        assert calls == 2
        assert result.attempts[0].error is not None
        assert result.attempts[0].count == 0
        assert result.state == "done"

    def test_concurrent_sweep_cancels_in_flight_calls(self):
        started: list[str] = []
        cancelled: list[str] = []

        async def provider(query: str, mode: str) -> dict[str, Any]:
            if query.count("site:") == 1:
                started.append(query)
                if len(started) == 1:
                    return _payload(8, "fast")
                try:
                    await asyncio.sleep(5)
                except asyncio.CancelledError:
                    cancelled.append(query)
                    raise
            return {}

        plan = _plan()
        result = asyncio.run(
            run_cascade(provider, plan, "in", min_candidates=8, sweep_concurrency=3)
        )
        assert result.state == "done"
        assert len(started) == 3
        assert len(cancelled) == 2
        assert len(result.candidates) == 8

    def test_unexpected_payload_type_is_recorded(self):
        provider = FakeProvider([["not", "a", "dict"], _payload(8)])
        result = asyncio.run(run_cascade(provider, _plan(), "in", min_candidates=8))
        assert "unexpected payload" in (result.attempts[0].error or "")
        assert result.state == "done"
