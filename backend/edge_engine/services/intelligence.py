"""Runs every scoring engine for one token and assembles the dashboard payload."""
from __future__ import annotations
import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edge_engine.cache.keys import intelligence_key
from edge_engine.cache.token_cache import TokenCache
from edge_engine.models.token import Token
from edge_engine.services.scoring.alpha import AlphaResult, compute_alpha
from edge_engine.services.scoring.conviction import ConvictionResult, compute_conviction
from edge_engine.services.scoring.degen_intel import (
    DegenIntelResult,
    build_degen_intel,
    compute_narrative,
    compute_smart_flow,
)
from edge_engine.services.scoring.dev_profile import DevProfileResult, compute_dev_profile
from edge_engine.services.scoring.edge_score import EdgeScoreResult, compute_edge_score
from edge_engine.services.scoring.market_integrity import MarketIntegrityResult, compute_market_integrity
from edge_engine.services.scoring.market_structure import MarketStructureResult, compute_market_structure
from edge_engine.services.scoring.momentum import MomentumResult, compute_momentum
from edge_engine.services.scoring.threat import ThreatResult, compute_threat

logger = logging.getLogger(__name__)


@dataclass
class TokenIntelligence:
    momentum: MomentumResult
    structure: MarketStructureResult
    conviction: ConvictionResult
    threat: ThreatResult
    alpha: AlphaResult
    integrity: MarketIntegrityResult
    dev_profile: DevProfileResult
    degen_intel: DegenIntelResult
    edge: EdgeScoreResult

    def to_payload(self, token: Token) -> dict:
        return {
            "token_id": token.id,
            "contract": token.contract,
            "symbol": token.symbol,
            "partial": False,
            "momentum": asdict(self.momentum),
            "market_structure": asdict(self.structure),
            "conviction": asdict(self.conviction),
            "threat": asdict(self.threat),
            "alpha": asdict(self.alpha),
            "market_integrity": asdict(self.integrity),
            "dev_profile": asdict(self.dev_profile),
            "degen_intel": asdict(self.degen_intel),
            "edge_score": asdict(self.edge),
        }


async def score_token(
    db: AsyncSession,
    token: Token,
    cache: Optional[TokenCache] = None,
    sectors_ttl: int = 300,
    now: Optional[datetime] = None,
) -> TokenIntelligence:
    now = now or datetime.now(timezone.utc)
    momentum = await compute_momentum(db, token.id)
    structure = await compute_market_structure(db, token.id, now)
    conviction = await compute_conviction(db, token, now)
    threat = compute_threat(token)
    integrity = await compute_market_integrity(db, token.id, now)
    dev = await compute_dev_profile(db, token, now)
    narrative = await compute_narrative(token.symbol, token.name, cache, sectors_ttl)
    smart_flow = await compute_smart_flow(db, token.id, now)
    intel = build_degen_intel(narrative, smart_flow)
    return TokenIntelligence(
        momentum=momentum,
        structure=structure,
        conviction=conviction,
        threat=threat,
        alpha=compute_alpha(momentum, conviction, threat),
        integrity=integrity,
        dev_profile=dev,
        degen_intel=intel,
        edge=compute_edge_score(threat, dev, intel, integrity),
    )


class IntelligenceService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: Optional[TokenCache] = None,
        ttl: int = 60,
        sectors_ttl: int = 300,
        timeout: float = 5.0,
    ):
        self.session_factory = session_factory
        self.cache = cache
        self.ttl = ttl
        self.sectors_ttl = sectors_ttl
        self.timeout = timeout

    async def get_intelligence(self, token_id: int) -> Optional[dict]:
        """Full payload for a token, or None when the token does not exist."""
        key = intelligence_key(token_id)
        if self.cache:
            cached = await self.cache.get_json(key)
            if cached is not None:
                return cached

        async with self.session_factory() as db:
            token = await db.get(Token, token_id)
            if token is None:
                return None
            result = await score_token(db, token, self.cache, self.sectors_ttl)
            payload = result.to_payload(token)

        if self.cache:
            await self.cache.set_json(key, payload, self.ttl)
        return payload

    async def get_intelligence_with_deadline(self, token_id: int) -> Optional[dict]:
        try:
            return await asyncio.wait_for(self.get_intelligence(token_id), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Intelligence for token {token_id} exceeded {self.timeout}s, returning partial payload")
            return minimal_payload(token_id)


def minimal_payload(token_id: int) -> dict:
    return {
        "token_id": token_id,
        "partial": True,
        "message": "Intelligence is still being computed, retry shortly",
    }
