from __future__ import annotations
import logging
import httpx
from typing import Optional

from edge_engine.services.records import RawTokenRecord

logger = logging.getLogger(__name__)

GMGN_TOP_POOLS = "https://gmgn.ai/defi/quotation/v1/tokens/top_pools/sol"


class GmgnClient:
    """Secondary discovery source: GMGN top Solana pools by 24h volume.

    No API key. Used only while Birdeye is rate-limited or failing.
    """

    name = "gmgn"

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._transport = transport

    async def _get(self, params: dict) -> dict:
        async with httpx.AsyncClient(timeout=15, transport=self._transport) as client:
            resp = await client.get(GMGN_TOP_POOLS, params=params)
            resp.raise_for_status()
            return resp.json()

    async def fetch_tokens(self, limit: int = 100) -> list[RawTokenRecord]:
        try:
            data = await self._get({
                "orderby": "volume_24h_usd",
                "direction": "desc",
                "filters[]": "renounced",
                "limit": limit,
            })
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"GMGN top pools fetch failed: {e}")
            return []

        if not isinstance(data, dict) or data.get("code") != 0:
            logger.warning("Unexpected GMGN response format")
            return []
        rank = (data.get("data") or {}).get("rank") or []

        results = []
        for item in rank[:limit]:
            results.append(RawTokenRecord(
                address=item.get("address"),
                symbol=item.get("symbol"),
                name=item.get("name"),
                price=item.get("price"),
                liquidity=item.get("liquidity"),
                volume_24h_usd=item.get("volume_24h_usd"),
                market_cap=item.get("market_cap"),
                price_change_24h_percent=item.get("price_change_24h_percent"),
                last_trade_unix_time=item.get("creation_timestamp"),
                logo_uri=item.get("logo"),
                source=self.name,
            ))

        logger.info(f"GMGN: discovered {len(results)} Solana tokens")
        return results
