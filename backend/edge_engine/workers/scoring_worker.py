from __future__ import annotations
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edge_engine.cache.token_cache import TokenCache
from edge_engine.models.signal import Signal
from edge_engine.models.token import Token
from edge_engine.services.intelligence import TokenIntelligence, score_token

logger = logging.getLogger(__name__)

ACTIVE_WINDOW_HOURS = 24


async def write_scores(db: AsyncSession, token: Token, intel: TokenIntelligence, now: datetime):
    """Copy scores onto the token and replace its Signal row wholesale."""
    token.momentum_score = intel.momentum.score
    token.conviction_score = intel.conviction.score
    token.threat_level = intel.threat.level

    fields = {
        "conviction_score": intel.conviction.score,
        "momentum_phase": intel.momentum.phase,
        "threat_level": intel.threat.level,
        "edge_score": intel.edge.score,
        "edge_verdict": intel.edge.recommendation.action,
        "confidence": intel.edge.recommendation.confidence,
        "updated_at": now,
    }
    result = await db.execute(select(Signal).where(Signal.token_id == token.id))
    signal = result.scalar_one_or_none()
    if signal is None:
        db.add(Signal(token_id=token.id, **fields))
    else:
        for key, value in fields.items():
            setattr(signal, key, value)


async def run_scoring_cycle(
    session_factory: async_sessionmaker[AsyncSession],
    cache: Optional[TokenCache] = None,
    limit: int = 100,
    sectors_ttl: int = 300,
    now: Optional[datetime] = None,
) -> dict:
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(hours=ACTIVE_WINDOW_HOURS)
    async with session_factory() as db:
        rows = await db.execute(
            select(Token.id)
            .where(Token.last_seen_at >= cutoff)
            .order_by(Token.last_seen_at.desc())
            .limit(limit)
        )
        token_ids = rows.scalars().all()

    logger.info(f"Scoring cycle: {len(token_ids)} active tokens")
    success = 0
    errors = 0

    for token_id in token_ids:
        try:
            async with session_factory() as db:
                async with db.begin():
                    token = await db.get(Token, token_id)
                    if token is None:
                        continue
                    intel = await score_token(db, token, cache, sectors_ttl, now)
                    await write_scores(db, token, intel, now)
            success += 1
        except (SQLAlchemyError, ArithmeticError, ValueError) as e:
            errors += 1
            logger.warning(f"Scoring failed for token {token_id}: {e}")

    logger.info(f"Scoring cycle completed: {success} scored, {errors} errors")
    return {"scored": success, "errors": errors}
