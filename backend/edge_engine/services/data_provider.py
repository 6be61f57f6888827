from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

import httpx

from edge_engine.services.birdeye import BirdeyeClient
from edge_engine.services.errors import RateLimitError, TransientNetworkError, UpstreamExhausted
from edge_engine.services.rate_limiter import Clock, RateLimiter, Sleeper
from edge_engine.services.records import RawTokenRecord

logger = logging.getLogger(__name__)


class TokenSource(Protocol):
    """Fallback adapter: one call, whole list, already in RawTokenRecord shape."""

    name: str

    async def fetch_tokens(self, limit: int = 100) -> list[RawTokenRecord]: ...


@dataclass(frozen=True)
class FetchThresholds:
    min_liquidity: float = 20_000
    min_volume_24h: float = 5_000
    min_market_cap: float = 10_000
    sort_by: str = "liquidity"
    sort_type: str = "desc"
    max_tokens: int = 200

    def cache_key(self) -> str:
        return (
            f"all_tokens:{self.min_liquidity}:{self.min_volume_24h}:{self.min_market_cap}"
            f":{self.sort_by}:{self.sort_type}:{self.max_tokens}"
        )


class TokenFetcher:
    """Birdeye (paginated, throttled) → GMGN → DexScreener → mock.

    The rate limiter is shared with every other Birdeye consumer. While its
    cooldown is active the primary is not touched at all and the call goes
    straight to the fallback chain. Results are cached in memory per
    threshold tuple for ``cache_ttl`` seconds.
    """

    def __init__(
        self,
        primary: BirdeyeClient,
        fallbacks: Sequence[TokenSource],
        rate_limiter: RateLimiter,
        page_size: int = 50,
        page_delay: float = 1.5,
        max_consecutive_errors: int = 3,
        cache_ttl: float = 30.0,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.primary = primary
        self.fallbacks = list(fallbacks)
        self.rate_limiter = rate_limiter
        self.page_size = page_size
        self.page_delay = page_delay
        self.max_consecutive_errors = max_consecutive_errors
        self.cache_ttl = cache_ttl
        self._clock = clock
        self._sleep = sleep
        self._cache: dict[str, tuple[float, list[RawTokenRecord]]] = {}

    # ── cache ──────────────────────────────────────────────────────

    def _cache_get(self, key: str) -> Optional[list[RawTokenRecord]]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        expires_at, records = entry
        if self._clock() >= expires_at:
            del self._cache[key]
            return None
        return list(records)

    def _cache_put(self, key: str, records: list[RawTokenRecord]):
        if self.cache_ttl <= 0 or not records:
            return
        self._cache[key] = (self._clock() + self.cache_ttl, list(records))

    def clear_cache(self):
        self._cache.clear()

    # ── token list ─────────────────────────────────────────────────

    def is_rate_limited(self) -> bool:
        return self.rate_limiter.is_limited()

    async def fetch_all(self, thresholds: FetchThresholds) -> list[RawTokenRecord]:
        key = thresholds.cache_key()
        cached = self._cache_get(key)
        if cached is not None:
            logger.debug(f"Token list cache hit for {key}")
            return cached

        if self.rate_limiter.is_limited():
            logger.info("Primary provider cooling down, going straight to fallbacks")
            return await self._fetch_fallbacks(key, thresholds)

        records, primary_failed = await self._paginate_primary(thresholds)
        if records:
            logger.info(f"Fetched {len(records)} tokens from {self.primary.name}")
            self._cache_put(key, records)
            return records
        if primary_failed:
            return await self._fetch_fallbacks(key, thresholds)
        return []

    async def _paginate_primary(self, thresholds: FetchThresholds) -> tuple[list[RawTokenRecord], bool]:
        """Walk the primary's pages sequentially. Returns (records, failed)."""
        records: list[RawTokenRecord] = []
        offset = 0
        consecutive_errors = 0

        while len(records) < thresholds.max_tokens:
            try:
                page, has_next = await self.primary.fetch_token_page(
                    offset=offset,
                    limit=self.page_size,
                    min_liquidity=thresholds.min_liquidity,
                    min_volume_24h=thresholds.min_volume_24h,
                    min_market_cap=thresholds.min_market_cap,
                    sort_by=thresholds.sort_by,
                    sort_type=thresholds.sort_type,
                )
            except RateLimitError as e:
                if not self.rate_limiter.is_limited():
                    self.rate_limiter.trip(f"({e})")
                logger.warning(f"Primary rate limited at offset {offset}: {e}")
                return records, True
            except (TransientNetworkError, httpx.HTTPError, ValueError) as e:
                consecutive_errors += 1
                logger.warning(
                    f"Primary page at offset {offset} failed "
                    f"({consecutive_errors}/{self.max_consecutive_errors}): {e}"
                )
                if consecutive_errors >= self.max_consecutive_errors:
                    return records, True
                await self._sleep(self.page_delay)
                continue

            consecutive_errors = 0
            records.extend(page)
            if not has_next or not page:
                break
            offset += self.page_size
            await self._sleep(self.page_delay)

        return records[: thresholds.max_tokens], False

    async def _fetch_fallbacks(self, key: str, thresholds: FetchThresholds) -> list[RawTokenRecord]:
        for source in self.fallbacks:
            logger.info(f"Trying fallback provider {source.name}")
            try:
                records = await source.fetch_tokens(limit=thresholds.max_tokens)
            except Exception as e:
                logger.warning(f"Fallback {source.name} failed: {e}")
                continue
            if records:
                logger.info(f"Fallback {source.name} returned {len(records)} tokens")
                self._cache_put(key, records)
                return records
            logger.warning(f"Fallback {source.name} returned nothing")
        raise UpstreamExhausted("all token providers failed or returned no data")

    # ── per-token lookups (snapshot job) ───────────────────────────

    async def fetch_token_market_data(self, address: str) -> Optional[dict]:
        return await self.primary.get_token_overview(address)

    async def fetch_token_security(self, address: str) -> Optional[dict]:
        return await self.primary.get_token_security(address)
