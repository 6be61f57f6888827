from __future__ import annotations
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edge_engine.models.token import Token
from edge_engine.services.helius import HeliusClient
from edge_engine.services.ingestor import Ingestor
from edge_engine.services.wallet_classifier import detect_cluster, update_smart_wallets

logger = logging.getLogger(__name__)

MIN_VOLUME_24H = 150_000
MIN_LIQUIDITY = 75_000
ACTIVE_WINDOW_MINUTES = 10
TOKENS_PER_CYCLE = 20
SWAPS_PER_TOKEN = 100


async def run_wallet_intelligence(
    session_factory: async_sessionmaker[AsyncSession],
    helius: HeliusClient,
    ingestor: Ingestor,
    now: Optional[datetime] = None,
) -> dict:
    """Pull recent swaps for liquid, active tokens and re-score the wallets behind them."""
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(minutes=ACTIVE_WINDOW_MINUTES)
    async with session_factory() as db:
        rows = await db.execute(
            select(Token.id, Token.contract, Token.symbol, Token.price)
            .where(
                Token.volume_24h >= MIN_VOLUME_24H,
                Token.liquidity >= MIN_LIQUIDITY,
                Token.last_seen_at >= cutoff,
            )
            .order_by(Token.volume_24h.desc())
            .limit(TOKENS_PER_CYCLE)
        )
        targets = rows.all()

    logger.info(f"Wallet intelligence: {len(targets)} tokens selected")
    analyzed = 0
    smart_wallets = 0
    clusters = 0

    for token_id, contract, symbol, price in targets:
        try:
            swaps = await helius.get_token_swaps(contract, price or 0.0, limit=SWAPS_PER_TOKEN)
            if not swaps:
                continue
            stored = await ingestor.ingest_transactions(token_id, swaps)

            async with session_factory() as db:
                async with db.begin():
                    written = await update_smart_wallets(db, token_id)
                    cluster = await detect_cluster(db, token_id, now)
                    token = await db.get(Token, token_id)
                    if token is not None:
                        token.smart_wallet_flow = written
                        token.cluster_detected = cluster

            smart_wallets += written
            clusters += int(cluster)
            analyzed += 1
            logger.debug(f"{symbol}: {stored} new swaps, {written} smart wallets, cluster={cluster}")
        except SQLAlchemyError as e:
            logger.warning(f"Wallet intelligence failed for {symbol}: {e}")

    logger.info(
        f"Wallet intelligence completed: {analyzed} analyzed, "
        f"{smart_wallets} smart wallets, {clusters} clusters"
    )
    return {"analyzed": analyzed, "smart_wallets": smart_wallets, "clusters": clusters}
