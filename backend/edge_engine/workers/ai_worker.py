from __future__ import annotations
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edge_engine.models.token import Token
from edge_engine.services.summarizer import TokenSummarizer

logger = logging.getLogger(__name__)

MIN_MARKET_CAP = 100_000
MIN_VOLUME_24H = 200_000
MIN_AGE_HOURS = 24
REFRESH_MINUTES = 30
TOKENS_PER_CYCLE = 10


async def run_ai_interpretation(
    session_factory: async_sessionmaker[AsyncSession],
    summarizer: TokenSummarizer,
    now: Optional[datetime] = None,
) -> int:
    """Write fresh AI summaries for established, liquid tokens. Returns how many were written."""
    now = now or datetime.now(timezone.utc)
    written = 0
    async with session_factory() as db:
        result = await db.execute(
            select(Token)
            .where(
                Token.market_cap >= MIN_MARKET_CAP,
                Token.volume_24h >= MIN_VOLUME_24H,
                Token.first_seen_at <= now - timedelta(hours=MIN_AGE_HOURS),
                or_(
                    Token.ai_summary.is_(None),
                    Token.ai_summary_updated_at < now - timedelta(minutes=REFRESH_MINUTES),
                ),
            )
            .order_by(Token.momentum_score.desc())
            .limit(TOKENS_PER_CYCLE)
        )
        tokens = result.scalars().all()
        logger.info(f"AI interpretation: {len(tokens)} tokens selected")
        summaries = []
        for token in tokens:
            summary = await summarizer.summarize(token)
            if summary:
                summaries.append((token.id, token.symbol, summary))

    for token_id, symbol, summary in summaries:
        try:
            async with session_factory() as db:
                async with db.begin():
                    token = await db.get(Token, token_id)
                    if token is None:
                        continue
                    token.ai_summary = summary
                    token.ai_summary_updated_at = datetime.now(timezone.utc)
            written += 1
        except SQLAlchemyError as e:
            logger.warning(f"Saving AI summary failed for {symbol}: {e}")

    logger.info(f"AI interpretation completed: {written} summaries")
    return written
