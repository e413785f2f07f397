"""Recommendation and product search endpoints.

An empty result list is a normal 200 response. ConfigurationError is
mapped to a 500 by the app-level exception handler.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Query

from skinrank.models.contracts import (
    ErrorResponse,
    ProductSearchResponse,
    RecommendRequest,
    RecommendResponse,
)
from skinrank.ranking import pipeline

logger = structlog.get_logger()

router = APIRouter(tags=["recommend"])


@router.post(
    "/recommend",
    response_model=RecommendResponse,
    responses={422: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def recommend(body: RecommendRequest) -> RecommendResponse:
    response = await pipeline.recommend(body)
    logger.info("recommend_served", results=len(response.results))
    return response


@router.get(
    "/products/search",
    response_model=ProductSearchResponse,
    responses={500: {"model": ErrorResponse}},
)
async def search_products(
    q: str = Query(default="", max_length=500),
    region: str | None = Query(default=None, pattern=r"^[a-zA-Z]{2}$"),
) -> ProductSearchResponse:
    products = await pipeline.search_products(q, region)
    return ProductSearchResponse(products=products)
