from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from edge_engine.services.records import ParsedSwap

logger = logging.getLogger(__name__)

HELIUS_API = "https://api.helius.xyz/v0"


class HeliusClient:
    """Swap history for a mint via the Enhanced Transactions API."""

    def __init__(
        self,
        api_key: str,
        max_concurrency: int = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._transport = transport

    async def _api_get(self, path: str, params: Optional[dict] = None) -> list | dict:
        """REST GET to Helius API (Enhanced Transactions, etc.)."""
        async with self._semaphore:
            all_params = {"api-key": self.api_key}
            if params:
                all_params.update(params)
            async with httpx.AsyncClient(timeout=30, transport=self._transport) as client:
                resp = await client.get(
                    f"{HELIUS_API}{path}",
                    params=all_params,
                )
                resp.raise_for_status()
                return resp.json()

    async def get_token_swaps(self, address: str, price_usd: float, limit: int = 100) -> list[ParsedSwap]:
        """Recent swaps for a token, valued at the token's current USD price."""
        try:
            txs = await self._api_get(
                f"/addresses/{address}/transactions",
                params={"limit": min(limit, 100), "type": "SWAP"},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Helius enhanced transactions failed for {address}: {e}")
            return []

        if not isinstance(txs, list):
            return []

        swaps = []
        for tx in txs:
            parsed = parse_swap_tx(tx, address, price_usd)
            if parsed:
                swaps.append(parsed)
        return swaps[:limit]


def parse_swap_tx(tx: dict, token_address: str, price_usd: float) -> Optional[ParsedSwap]:
    """Reduce an Enhanced Transaction to a buy/sell of ``token_address`` by the fee payer."""
    if tx.get("type") != "SWAP":
        return None
    signature = tx.get("signature")
    fee_payer = tx.get("feePayer", "")
    if not signature or not fee_payer:
        return None

    token_in = None   # token arriving at fee_payer = buy
    token_out = None  # token leaving fee_payer = sell
    for transfer in tx.get("tokenTransfers") or []:
        if transfer.get("mint") != token_address:
            continue
        if transfer.get("toUserAccount") == fee_payer:
            token_in = transfer
        elif transfer.get("fromUserAccount") == fee_payer:
            token_out = transfer

    if not token_in and not token_out:
        return None

    transfer = token_in or token_out
    try:
        token_amount = abs(float(transfer.get("tokenAmount") or 0))
        ts = datetime.fromtimestamp(int(tx.get("timestamp") or 0), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None

    return ParsedSwap(
        signature=signature,
        wallet_address=fee_payer,
        side="buy" if token_in else "sell",
        amount_usd=token_amount * (price_usd or 0),
        timestamp=ts,
    )
