from __future__ import annotations
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel


class TokenListItem(BaseModel):
    id: int
    contract: str
    chain: str
    symbol: str
    name: str
    logo_url: Optional[str] = None
    price: float
    liquidity: float
    volume_24h: float
    market_cap: float
    fdv: float = 0.0
    price_change_24h: float = 0.0
    momentum_score: Optional[float] = None
    conviction_score: Optional[float] = None
    threat_level: Optional[str] = None
    smart_wallet_flow: int = 0
    cluster_detected: bool = False
    last_seen_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SignalOut(BaseModel):
    conviction_score: float
    momentum_phase: str
    threat_level: str
    edge_score: float
    edge_verdict: str
    confidence: float
    updated_at: datetime

    model_config = {"from_attributes": True}


class TokenDetail(TokenListItem):
    pair_address: Optional[str] = None
    dex_id: Optional[str] = None
    pair_created_at: Optional[datetime] = None
    mint_authority: Optional[bool] = None
    freeze_authority: Optional[bool] = None
    owner_address: Optional[str] = None
    creator_address: Optional[str] = None
    top10_holder_pct: float = 0.0
    liquidity_locked: Optional[bool] = None
    ai_summary: Optional[str] = None
    ai_summary_updated_at: Optional[datetime] = None
    first_seen_at: Optional[datetime] = None
    signal: Optional[SignalOut] = None


class TokenListResponse(BaseModel):
    tokens: List[TokenListItem]
    total: int
    page: int
    limit: int
