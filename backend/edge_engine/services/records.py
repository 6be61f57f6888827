"""Record shapes passed between the fetcher, filter, normalizer and ingestor."""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional


@dataclass
class RawTokenRecord:
    """Provider record mapped onto common field names, values left as delivered.

    Numbers may still be strings or None here; parsing is the normalizer's job.
    """

    address: Optional[str]
    symbol: Optional[str]
    name: Optional[str]
    price: Any = None
    liquidity: Any = None
    volume_24h_usd: Any = None
    market_cap: Any = None
    fdv: Any = None
    price_change_24h_percent: Any = None
    last_trade_unix_time: Any = None
    logo_uri: Optional[str] = None
    pair_address: Optional[str] = None
    dex_id: Optional[str] = None
    source: str = "birdeye"


@dataclass
class NormalizedToken:
    chain: str
    contract: str
    name: str
    symbol: str
    pair_address: str
    dex_id: str
    price: float
    liquidity: float
    volume_24h: float
    market_cap: float
    fdv: float
    price_change_24h: float
    pair_created_at: datetime
    logo_url: Optional[str] = None


@dataclass
class ParsedSwap:
    """One swap from the on-chain feed, reduced to what the ingestor stores."""

    signature: str
    wallet_address: str
    side: str  # buy / sell
    amount_usd: float
    timestamp: datetime
