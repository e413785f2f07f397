"""Shared fixtures: ASGI test client and canned SerpAPI records."""

from __future__ import annotations

from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from skinrank.main import app


@pytest.fixture
async def client():
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


def _shopping_record(i: int, **overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "position": i + 1,
        "product_id": f"pid-{i}",
        "title": f"Gel Sunscreen SPF 50 No. {i}",
        "link": f"https://www.nykaa.com/gel-sunscreen-{i}/p/{1000 + i}",
        "source": "Nykaa",
        "price": f"₹{300 + i}",
        "extracted_price": 300 + i,
        "rating": 4.2,
        "snippet": "Lightweight matte finish, broad spectrum PA++++",
    }
    record.update(overrides)
    return record


def _organic_record(i: int, **overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "position": i + 1,
        "title": f"Brightening Serum {i}",
        "link": f"https://www.example-brand.com/products/serum-{i}",
        "displayed_link": "https://www.example-brand.com › products",
        "snippet": "Vitamin C and niacinamide serum for dark spots.",
    }
    record.update(overrides)
    return record


@pytest.fixture
def make_shopping_record():
    return _shopping_record


@pytest.fixture
def make_organic_record():
    return _organic_record


@pytest.fixture
def shopping_payload() -> dict[str, Any]:
    return {"shopping_results": [_shopping_record(i) for i in range(10)]}


@pytest.fixture
def organic_payload() -> dict[str, Any]:
    return {"organic_results": [_organic_record(i) for i in range(5)]}
