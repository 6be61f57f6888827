"""Rate limiting, pagination, caching and the provider fallback chain."""
from __future__ import annotations

import httpx
import pytest

from edge_engine.services.birdeye import BirdeyeClient
from edge_engine.services.data_provider import FetchThresholds, TokenFetcher
from edge_engine.services.dexscreener import DexScreenerClient
from edge_engine.services.errors import RateLimitError, TransientNetworkError, UpstreamExhausted
from edge_engine.services.mock_tokens import MOCK_TOKENS, MockTokenProvider
from edge_engine.services.rate_limiter import RateLimiter
from edge_engine.services.records import RawTokenRecord


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


def record(symbol: str) -> RawTokenRecord:
    return RawTokenRecord(address=f"{symbol}-mint", symbol=symbol, name=symbol, price=1, liquidity=50_000)


class FakePrimary:
    name = "birdeye"

    def __init__(self, pages=None, errors=None):
        self.pages = list(pages or [])
        self.errors = list(errors or [])
        self.calls: list[int] = []

    async def fetch_token_page(self, offset, limit, **filters):
        self.calls.append(offset)
        if self.errors:
            error = self.errors.pop(0)
            if error is not None:
                raise error
        if not self.pages:
            return [], False
        return self.pages.pop(0)


class FakeSource:
    def __init__(self, name: str, records=None, error: Exception | None = None):
        self.name = name
        self.records = records or []
        self.error = error
        self.calls = 0

    async def fetch_tokens(self, limit: int = 100):
        self.calls += 1
        if self.error:
            raise self.error
        return list(self.records)


def make_fetcher(primary, fallbacks, clock: FakeClock, cache_ttl: float = 30.0, limiter=None):
    limiter = limiter or RateLimiter(min_interval=0.2, cooldown_seconds=60, clock=clock, sleep=clock.sleep)
    fetcher = TokenFetcher(
        primary,
        fallbacks,
        limiter,
        page_size=2,
        page_delay=1.5,
        max_consecutive_errors=3,
        cache_ttl=cache_ttl,
        clock=clock,
        sleep=clock.sleep,
    )
    return fetcher, limiter


class TestRateLimiter:
    def test_clears_exactly_at_expiry(self):
        clock = FakeClock(0.0)
        limiter = RateLimiter(cooldown_seconds=60, clock=clock, sleep=clock.sleep)
        limiter.trip()
        assert limiter.reset_at == 60
        clock.now = 59.999
        assert limiter.is_limited()
        clock.now = 60.0
        assert not limiter.is_limited()
        assert limiter.reset_at is None

    @pytest.mark.asyncio
    async def test_throttle_spaces_requests(self):
        clock = FakeClock(0.0)
        limiter = RateLimiter(min_interval=0.2, clock=clock, sleep=clock.sleep)
        await limiter.throttle()
        await limiter.throttle()
        assert clock.sleeps == [pytest.approx(0.2)]


class TestTokenFetcher:
    @pytest.mark.asyncio
    async def test_paginates_until_last_page(self):
        clock = FakeClock()
        primary = FakePrimary(pages=[([record("A"), record("B")], True), ([record("C")], False)])
        fetcher, _ = make_fetcher(primary, [], clock)

        records = await fetcher.fetch_all(FetchThresholds())

        assert [r.symbol for r in records] == ["A", "B", "C"]
        assert primary.calls == [0, 2]
        assert clock.sleeps.count(1.5) == 1

    @pytest.mark.asyncio
    async def test_results_are_cached_per_thresholds(self):
        clock = FakeClock()
        primary = FakePrimary(pages=[([record("A")], False), ([record("B")], False)])
        fetcher, _ = make_fetcher(primary, [], clock)

        first = await fetcher.fetch_all(FetchThresholds())
        second = await fetcher.fetch_all(FetchThresholds())
        assert [r.symbol for r in first] == [r.symbol for r in second] == ["A"]
        assert len(primary.calls) == 1

        other = await fetcher.fetch_all(FetchThresholds(min_liquidity=1))
        assert [r.symbol for r in other] == ["B"]

    @pytest.mark.asyncio
    async def test_cache_disabled_with_zero_ttl(self):
        clock = FakeClock()
        primary = FakePrimary(pages=[([record("A")], False), ([record("B")], False)])
        fetcher, _ = make_fetcher(primary, [], clock, cache_ttl=0)

        await fetcher.fetch_all(FetchThresholds())
        await fetcher.fetch_all(FetchThresholds())
        assert len(primary.calls) == 2

    @pytest.mark.asyncio
    async def test_rate_limit_trips_and_falls_back_in_order(self):
        clock = FakeClock()
        primary = FakePrimary(errors=[RateLimitError("birdeye", "HTTP 429")])
        gmgn = FakeSource("gmgn", records=[])
        dex = FakeSource("dexscreener", records=[record("DEX")])
        mock = FakeSource("mock", records=[record("MOCK")])
        fetcher, limiter = make_fetcher(primary, [gmgn, dex, mock], clock)

        records = await fetcher.fetch_all(FetchThresholds())

        assert [r.symbol for r in records] == ["DEX"]
        assert limiter.is_limited()
        assert (gmgn.calls, dex.calls, mock.calls) == (1, 1, 0)

    @pytest.mark.asyncio
    async def test_cooldown_skips_primary_entirely(self):
        clock = FakeClock()
        primary = FakePrimary(pages=[([record("A")], False)])
        dex = FakeSource("dexscreener", records=[record("DEX")])
        fetcher, limiter = make_fetcher(primary, [dex], clock, cache_ttl=0)
        limiter.trip("test")

        records = await fetcher.fetch_all(FetchThresholds())
        assert [r.symbol for r in records] == ["DEX"]
        assert primary.calls == []

        clock.now += 60
        records = await fetcher.fetch_all(FetchThresholds())
        assert [r.symbol for r in records] == ["A"]

    @pytest.mark.asyncio
    async def test_consecutive_errors_abort_pagination(self):
        clock = FakeClock()
        errors = [TransientNetworkError("boom")] * 3
        primary = FakePrimary(errors=errors)
        fallback = FakeSource("gmgn", records=[record("G")])
        fetcher, limiter = make_fetcher(primary, [fallback], clock)

        records = await fetcher.fetch_all(FetchThresholds())

        assert [r.symbol for r in records] == ["G"]
        assert len(primary.calls) == 3
        assert not limiter.is_limited()

    @pytest.mark.asyncio
    async def test_failing_fallback_is_skipped(self):
        clock = FakeClock()
        primary = FakePrimary(errors=[RateLimitError("birdeye")])
        broken = FakeSource("gmgn", error=RuntimeError("gmgn down"))
        fetcher, _ = make_fetcher(primary, [broken, MockTokenProvider()], clock)

        records = await fetcher.fetch_all(FetchThresholds())
        assert len(records) == len(MOCK_TOKENS)

    @pytest.mark.asyncio
    async def test_all_providers_exhausted(self):
        clock = FakeClock()
        primary = FakePrimary(errors=[RateLimitError("birdeye")])
        fetcher, _ = make_fetcher(primary, [FakeSource("gmgn"), FakeSource("dexscreener")], clock)

        with pytest.raises(UpstreamExhausted):
            await fetcher.fetch_all(FetchThresholds())


class TestBirdeyeClient:
    def _client(self, handler, clock: FakeClock):
        limiter = RateLimiter(min_interval=0.2, cooldown_seconds=60, clock=clock, sleep=clock.sleep)
        client = BirdeyeClient(
            "test-key",
            limiter,
            max_retries=3,
            backoff_base=1.0,
            sleep=clock.sleep,
            transport=httpx.MockTransport(handler),
        )
        return client, limiter

    @pytest.mark.asyncio
    async def test_429_trips_shared_limiter(self):
        clock = FakeClock()
        client, limiter = self._client(lambda request: httpx.Response(429, text="Too Many Requests"), clock)

        with pytest.raises(RateLimitError):
            await client.fetch_token_page(0, 50, 10_000, 5_000, 10_000)
        assert limiter.is_limited()

    @pytest.mark.asyncio
    async def test_quota_message_in_200_body_is_a_rate_limit(self):
        clock = FakeClock()
        body = {"success": False, "message": "Compute units usage limit exceeded"}
        client, limiter = self._client(lambda request: httpx.Response(200, json=body), clock)

        with pytest.raises(RateLimitError):
            await client.get_token_overview("Mint")
        assert limiter.is_limited()

    @pytest.mark.asyncio
    async def test_retries_5xx_with_backoff(self):
        clock = FakeClock()
        responses = [
            httpx.Response(503),
            httpx.Response(502),
            httpx.Response(200, json={"success": True, "data": {"items": [
                {"address": "Mint1", "symbol": "AAA", "name": "Aaa", "price": 1.5, "liquidity": 20_000},
            ], "has_next": False}}),
        ]
        seen = []

        def handler(request: httpx.Request):
            seen.append(request)
            return responses.pop(0)

        client, limiter = self._client(handler, clock)
        records, has_next = await client.fetch_token_page(0, 50, 10_000, 5_000, 10_000)

        assert [r.symbol for r in records] == ["AAA"]
        assert has_next is False
        assert len(seen) == 3
        assert 1.0 in clock.sleeps and 2.0 in clock.sleeps
        assert seen[0].headers["X-API-KEY"] == "test-key"
        assert seen[0].url.params["limit"] == "50"
        assert not limiter.is_limited()

    @pytest.mark.asyncio
    async def test_persistent_5xx_surfaces_after_retry_budget(self):
        clock = FakeClock()
        seen = []
        client, limiter = self._client(lambda request: seen.append(request) or httpx.Response(504), clock)

        with pytest.raises(TransientNetworkError) as exc:
            await client.get_token_overview("Mint")
        assert exc.value.status_code == 504
        assert len(seen) == 3
        assert [s for s in clock.sleeps if s >= 1.0] == [1.0, 2.0]
        assert not limiter.is_limited()

    @pytest.mark.asyncio
    async def test_connect_errors_are_retried(self):
        clock = FakeClock()
        attempts = []

        def handler(request: httpx.Request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"success": True, "data": {"price": 2.0}})

        client, _ = self._client(handler, clock)
        assert await client.get_token_overview("Mint") == {"price": 2.0}
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        clock = FakeClock()
        seen = []
        client, _ = self._client(lambda request: seen.append(request) or httpx.Response(404), clock)

        with pytest.raises(httpx.HTTPStatusError):
            await client.get_token_security("Mint")
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_is_not_retried(self):
        clock = FakeClock()
        seen = []
        client, _ = self._client(lambda request: seen.append(request) or httpx.Response(429), clock)

        with pytest.raises(RateLimitError):
            await client.get_token_overview("Mint")
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_cooldown_blocks_requests(self):
        clock = FakeClock()
        calls = []
        client, limiter = self._client(lambda request: calls.append(request) or httpx.Response(200, json={}), clock)
        limiter.trip()

        with pytest.raises(RateLimitError):
            await client.get_token_security("Mint")
        assert calls == []


class TestDexScreener:
    @pytest.mark.asyncio
    async def test_maps_pairs_and_filters_chain(self):
        payload = {"pairs": [
            {
                "chainId": "solana",
                "pairAddress": "Pair1",
                "dexId": "raydium",
                "baseToken": {"address": "MintA", "symbol": "AAA", "name": "Aaa"},
                "priceUsd": "0.5",
                "liquidity": {"usd": 40_000},
                "volume": {"h24": 90_000},
                "marketCap": 500_000,
                "priceChange": {"h24": 4.2},
                "pairCreatedAt": 1_700_000_000_000,
            },
            {
                "chainId": "ethereum",
                "pairAddress": "Pair2",
                "baseToken": {"address": "MintB", "symbol": "BBB", "name": "Bbb"},
            },
        ]}
        client = DexScreenerClient(transport=httpx.MockTransport(lambda request: httpx.Response(200, json=payload)))

        records = await client.fetch_tokens(limit=10)

        assert [r.address for r in records] == ["MintA"]
        assert records[0].liquidity == 40_000
        assert records[0].last_trade_unix_time == 1_700_000_000
        assert records[0].source == "dexscreener"
