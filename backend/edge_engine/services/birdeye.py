from __future__ import annotations
import asyncio
import logging
import httpx
from typing import Any, Optional

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential

from edge_engine.services.errors import RateLimitError, TransientNetworkError
from edge_engine.services.rate_limiter import RateLimiter, Sleeper
from edge_engine.services.records import RawTokenRecord

logger = logging.getLogger(__name__)

BIRDEYE_BASE = "https://public-api.birdeye.so"
MAX_TOKENS_PER_REQUEST = 50

# Body fragments Birdeye uses for quota exhaustion instead of a 429
RATE_LIMIT_MARKERS = ("Compute units", "limit exceeded")
TRANSIENT_STATUS = (500, 502, 503, 504)


class BirdeyeClient:
    """Primary token-list provider (V3 list with server-side filters)."""

    name = "birdeye"

    def __init__(
        self,
        api_key: str,
        rate_limiter: RateLimiter,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        sleep: Sleeper = asyncio.sleep,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.headers = {
            "X-API-KEY": self.api_key,
            "x-chain": "solana",
            "accept": "application/json",
        }
        self.rate_limiter = rate_limiter
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self._sleep = sleep
        self._transport = transport

    def _is_rate_limited(self, resp: httpx.Response) -> bool:
        if resp.status_code == 429:
            return True
        if resp.is_success:
            # Quota errors can also arrive as 200 with {"success": false, "message": ...}
            try:
                body = resp.json()
            except ValueError:
                return False
            if not isinstance(body, dict) or body.get("success", True):
                return False
            text = str(body.get("message", ""))
        else:
            text = resp.text
        return any(marker in text for marker in RATE_LIMIT_MARKERS)

    async def _request(self, path: str, params: dict) -> dict:
        if self.rate_limiter.is_limited():
            raise RateLimitError(self.name, "cooldown active")
        await self.rate_limiter.throttle()
        try:
            async with httpx.AsyncClient(timeout=30, transport=self._transport) as client:
                resp = await client.get(
                    f"{BIRDEYE_BASE}{path}",
                    headers=self.headers,
                    params=params,
                )
        except (httpx.TimeoutException, httpx.ConnectError, httpx.RemoteProtocolError) as e:
            raise TransientNetworkError(f"{self.name} {type(e).__name__}: {e}") from e
        if self._is_rate_limited(resp):
            self.rate_limiter.trip(f"({self.name} {resp.status_code})")
            raise RateLimitError(self.name, f"HTTP {resp.status_code}")
        if resp.status_code in TRANSIENT_STATUS:
            raise TransientNetworkError(f"{self.name} HTTP {resp.status_code}", status_code=resp.status_code)
        resp.raise_for_status()
        return resp.json()

    def _log_retry(self, state: RetryCallState):
        logger.warning(
            f"Birdeye attempt {state.attempt_number} failed ({state.outcome.exception()}), "
            f"retrying in {state.next_action.sleep:.1f}s"
        )

    async def _get(self, path: str, params: Optional[dict] = None) -> dict:
        """GET with bounded retries; rate limits and 4xx are never retried."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff_base),
            retry=retry_if_exception_type(TransientNetworkError),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._request(path, params or {})

    async def fetch_token_page(
        self,
        offset: int,
        limit: int,
        min_liquidity: float,
        min_volume_24h: float,
        min_market_cap: float,
        sort_by: str = "liquidity",
        sort_type: str = "desc",
    ) -> tuple[list[RawTokenRecord], bool]:
        """One page of the V3 token list. Returns (records, has_next)."""
        data = await self._get(
            "/defi/v3/token/list",
            params={
                "offset": offset,
                "limit": min(limit, MAX_TOKENS_PER_REQUEST),
                "sort_by": sort_by,
                "sort_type": sort_type,
                "min_liquidity": min_liquidity,
                "min_volume_24h_usd": min_volume_24h,
                "min_mc": min_market_cap,
            },
        )
        payload = data.get("data") or {}
        items = payload.get("items") or []
        return [self.to_raw(item) for item in items], bool(payload.get("has_next"))

    async def get_token_overview(self, address: str) -> Optional[dict]:
        """Price, liquidity, volume and market cap for one token."""
        data = await self._get("/defi/token_overview", params={"address": address})
        return data.get("data") or None

    async def get_token_security(self, address: str) -> Optional[dict]:
        """Authorities, owner/creator and holder concentration for one token."""
        data = await self._get("/defi/token_security", params={"address": address})
        return data.get("data") or None

    @staticmethod
    def to_raw(item: dict[str, Any]) -> RawTokenRecord:
        return RawTokenRecord(
            address=item.get("address"),
            symbol=item.get("symbol"),
            name=item.get("name"),
            price=item.get("price"),
            liquidity=item.get("liquidity"),
            volume_24h_usd=item.get("volume_24h_usd"),
            market_cap=item.get("market_cap"),
            fdv=item.get("fdv"),
            price_change_24h_percent=item.get("price_change_24h_percent"),
            last_trade_unix_time=item.get("last_trade_unix_time"),
            logo_uri=item.get("logo_uri"),
            source="birdeye",
        )
