"""Health check endpoint.

Always returns 200 so load balancers keep routing. ``search_provider``
reports whether the SerpAPI credential is configured; no call is made.
"""

from __future__ import annotations

from fastapi import APIRouter

from skinrank.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check() -> dict:
    return {
        "status": "ok",
        "version": "0.1.0",
        "environment": settings.environment,
        "search_provider": "configured" if settings.serpapi_api_key else "missing",
    }
