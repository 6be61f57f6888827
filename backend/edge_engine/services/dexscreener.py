from __future__ import annotations
import logging
import httpx
from typing import Optional

from edge_engine.services.records import RawTokenRecord

logger = logging.getLogger(__name__)

DEXSCREENER_API = "https://api.dexscreener.com/latest/dex"


class DexScreenerClient:
    """Lightweight client for DexScreener public API (free, no auth required).

    Tertiary discovery source: free-text pair search, restricted to one chain.
    """

    name = "dexscreener"

    def __init__(
        self,
        query: str = "Solana",
        chain_id: str = "solana",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.query = query
        self.chain_id = chain_id
        self._transport = transport

    async def _get(self, path: str, params: Optional[dict] = None) -> dict | list:
        async with httpx.AsyncClient(timeout=15, transport=self._transport) as client:
            resp = await client.get(
                f"{DEXSCREENER_API}{path}",
                params=params or {},
            )
            resp.raise_for_status()
            return resp.json()

    async def search_pairs(self, query: str) -> list[dict]:
        """Raw pairs for a search query, filtered to the configured chain."""
        try:
            data = await self._get("/search", params={"q": query})
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"DexScreener search failed for {query!r}: {e}")
            return []
        if not isinstance(data, dict):
            return []
        return [p for p in data.get("pairs") or [] if p.get("chainId") == self.chain_id]

    async def fetch_tokens(self, limit: int = 100) -> list[RawTokenRecord]:
        pairs = await self.search_pairs(self.query)

        results = []
        seen = set()
        for pair in pairs:
            base = pair.get("baseToken") or {}
            address = base.get("address")
            if not address or address in seen:
                continue
            seen.add(address)
            created_ms = pair.get("pairCreatedAt")
            results.append(RawTokenRecord(
                address=address,
                symbol=base.get("symbol"),
                name=base.get("name"),
                price=pair.get("priceUsd"),
                liquidity=(pair.get("liquidity") or {}).get("usd"),
                volume_24h_usd=(pair.get("volume") or {}).get("h24"),
                market_cap=pair.get("marketCap") or pair.get("fdv"),
                fdv=pair.get("fdv"),
                price_change_24h_percent=(pair.get("priceChange") or {}).get("h24"),
                last_trade_unix_time=created_ms // 1000 if isinstance(created_ms, int) else None,
                logo_uri=(pair.get("info") or {}).get("imageUrl"),
                pair_address=pair.get("pairAddress"),
                dex_id=pair.get("dexId"),
                source=self.name,
            ))
            if len(results) >= limit:
                break

        logger.info(f"DexScreener: discovered {len(results)} {self.chain_id} tokens")
        return results
