"""HTTP surface: list, detail and intelligence routes over a real SQLite store."""
from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from conftest import make_token
from edge_engine.cache.token_cache import TokenCache
from edge_engine.config import Settings
from edge_engine.main import app
from edge_engine.runtime import build_runtime


@pytest_asyncio.fixture
async def client(tmp_path):
    settings = Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    runtime = build_runtime(settings, cache=TokenCache(), with_queues=False)
    await runtime.init()
    async with runtime.session_factory() as session:
        session.add_all([
            make_token("MintLow", momentum_score=40.0),
            make_token("MintHigh", momentum_score=90.0),
            make_token("MintNone"),
        ])
        await session.commit()
    app.state.runtime = runtime
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
    await runtime.close()


class TestTokenRoutes:
    @pytest.mark.asyncio
    async def test_health(self, client):
        resp = await client.get("/api/health")
        assert resp.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_list_sorted_by_momentum_with_nulls_last(self, client):
        resp = await client.get("/api/tokens", params={"sort": "momentum", "limit": 10})
        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 3
        assert [t["contract"] for t in body["tokens"]] == ["MintHigh", "MintLow", "MintNone"]

    @pytest.mark.asyncio
    async def test_list_pagination(self, client):
        body = (await client.get("/api/tokens", params={"page": 2, "limit": 2})).json()
        assert body["page"] == 2
        assert [t["contract"] for t in body["tokens"]] == ["MintNone"]

    @pytest.mark.asyncio
    async def test_unknown_sort_falls_back(self, client):
        resp = await client.get("/api/tokens", params={"sort": "bogus"})
        assert resp.status_code == 200
        assert resp.json()["tokens"][0]["contract"] == "MintHigh"

    @pytest.mark.asyncio
    async def test_detail_and_missing(self, client):
        resp = await client.get("/api/tokens/1")
        assert resp.status_code == 200
        assert resp.json()["contract"] == "MintLow"
        assert resp.json()["signal"] is None
        assert (await client.get("/api/tokens/999")).status_code == 404

    @pytest.mark.asyncio
    async def test_intelligence(self, client):
        resp = await client.get("/api/tokens/2/intelligence")
        assert resp.status_code == 200
        body = resp.json()
        assert body["partial"] is False
        assert body["edge_score"]["recommendation"]["action"] in ("STRONG_BUY", "BUY", "HOLD", "CAUTION", "AVOID")
        assert (await client.get("/api/tokens/999/intelligence")).status_code == 404
