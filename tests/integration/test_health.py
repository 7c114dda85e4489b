"""Integration tests: Health and root endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from settlement.main import app


@pytest.mark.asyncio
async def test_health():
    """Health endpoint at /health."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["currency"] == "CLP"


@pytest.mark.asyncio
async def test_root_links_docs():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.json()["docs"] == "/docs"


@pytest.mark.asyncio
async def test_request_id_header_echoed():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/health", headers={"X-Request-ID": "req-123"})
    assert resp.headers.get("X-Request-ID") == "req-123"


@pytest.mark.asyncio
async def test_responses_are_not_cacheable():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        resp = await client.get("/health")
    assert resp.headers["Cache-Control"] == "no-store"
    assert resp.headers["X-Frame-Options"] == "DENY"
    assert len(resp.headers["X-Request-ID"]) == 32
    assert float(resp.headers["X-Process-Time"]) >= 0
