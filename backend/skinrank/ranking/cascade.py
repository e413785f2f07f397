"""Cascade controller: runs the query plan until enough candidates exist.

``iter_attempts`` turns the plan into batches of attempts: one attempt per
batch for the ordinary variants, ``sweep_concurrency`` attempts per batch for
the per-site sweep. ``run_cascade`` consumes batches in order and checks a
single stop predicate after each one.

Attempt lifecycle: pending → tried → done (threshold met, stop) or
exhausted (plan ran out). A provider error, timeout, or unexpected payload
on one attempt counts as zero candidates; the cascade always moves on.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog

from skinrank.errors import ProviderError
from skinrank.models.contracts import Candidate, SearchMode
from skinrank.ranking.normalize import normalize_response
from skinrank.ranking.queries import QueryVariant, VariantName

log = structlog.get_logger("skinrank.cascade")

AttemptState = Literal["pending", "tried", "done", "exhausted"]
SearchFn = Callable[[str, SearchMode], Awaitable[dict[str, Any]]]

DEFAULT_MIN_CANDIDATES = 8


@dataclass(frozen=True)
class Attempt:
    variant: VariantName
    mode: SearchMode
    query: str


@dataclass
class AttemptRecord:
    variant: VariantName
    mode: SearchMode
    query: str
    state: AttemptState = "pending"
    count: int = 0
    error: str | None = None


@dataclass
class CascadeResult:
    candidates: list[Candidate] = field(default_factory=list)
    query_used: str = ""
    state: AttemptState = "exhausted"
    attempts: list[AttemptRecord] = field(default_factory=list)


def threshold_met(count: int, minimum: int) -> bool:
    return count >= minimum


def iter_attempts(plan: list[QueryVariant], sweep_batch_size: int = 1) -> Iterator[list[Attempt]]:
    """Yield attempt batches in plan order."""
    for variant in plan:
        attempts = [Attempt(variant.name, variant.mode, q) for q in variant.queries]
        if variant.name != "site_sweep":
            for attempt in attempts:
                yield [attempt]
            continue
        size = max(1, sweep_batch_size)
        for start in range(0, len(attempts), size):
            yield attempts[start : start + size]


async def _try_attempt(
    search: SearchFn,
    attempt: Attempt,
    region: str,
    timeout: float | None,
) -> tuple[AttemptRecord, list[Candidate]]:
    record = AttemptRecord(attempt.variant, attempt.mode, attempt.query)
    try:
        raw = await asyncio.wait_for(search(attempt.query, attempt.mode), timeout)
        if isinstance(raw, dict):
            found = normalize_response(raw, region)
        else:
            record.error = f"unexpected payload type {type(raw).__name__}"
            found = []
    except ProviderError as exc:
        record.error = str(exc)
        found = []
    except asyncio.TimeoutError:
        record.error = f"timed out after {timeout}s"
        found = []

    record.state = "tried"
    record.count = len(found)
    if record.error:
        log.warning(
            "cascade_attempt_failed",
            variant=attempt.variant,
            mode=attempt.mode,
            query=attempt.query[:80],
            error=record.error[:200],
        )
    else:
        log.info(
            "cascade_attempt",
            variant=attempt.variant,
            mode=attempt.mode,
            query=attempt.query[:80],
            count=record.count,
        )
    return record, found


async def _run_batch(
    search: SearchFn,
    batch: list[Attempt],
    region: str,
    timeout: float | None,
    result: CascadeResult,
    min_candidates: int,
) -> None:
    """Run a batch concurrently, cancelling in-flight calls once the threshold is met."""
    tasks = [asyncio.ensure_future(_try_attempt(search, a, region, timeout)) for a in batch]
    try:
        for next_done in asyncio.as_completed(tasks):
            record, found = await next_done
            result.attempts.append(record)
            result.candidates.extend(found)
            result.query_used = record.query
            if threshold_met(len(result.candidates), min_candidates):
                break
    finally:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            log.info("cascade_sweep_cancelled", cancelled=len(pending))


async def run_cascade(
    search: SearchFn,
    plan: list[QueryVariant],
    region: str,
    *,
    min_candidates: int = DEFAULT_MIN_CANDIDATES,
    sweep_concurrency: int = 1,
    timeout: float | None = None,
) -> CascadeResult:
    """Issue plan variants in order until ``min_candidates`` have accumulated.

    Each ordinary variant is issued at most once. The returned ``query_used``
    is the last query that was tried (empty if nothing ran).
    """
    result = CascadeResult()
    for batch in iter_attempts(plan, sweep_concurrency):
        await _run_batch(search, batch, region, timeout, result, min_candidates)
        if threshold_met(len(result.candidates), min_candidates):
            result.state = "done"
            break

    if result.attempts:
        result.attempts[-1].state = result.state

    log.info(
        "cascade_complete",
        state=result.state,
        attempts=len(result.attempts),
        failed=sum(1 for a in result.attempts if a.error),
        candidates=len(result.candidates),
    )
    return result
