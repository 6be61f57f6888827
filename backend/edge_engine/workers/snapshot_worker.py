from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edge_engine.models.market_snapshot import MarketSnapshot
from edge_engine.models.token import Token
from edge_engine.services.data_provider import TokenFetcher
from edge_engine.services.errors import RateLimitError, TransientNetworkError

logger = logging.getLogger(__name__)

ACTIVE_WINDOW_HOURS = 24


@dataclass
class SnapshotCycleResult:
    snapshot_count: int = 0
    error_count: int = 0
    rate_limited_count: int = 0
    skipped: bool = False


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def apply_market_data(token: Token, overview: dict):
    token.price = _float(overview.get("price"), token.price)
    token.liquidity = _float(overview.get("liquidity"), token.liquidity)
    token.volume_24h = _float(overview.get("v24hUSD"), token.volume_24h)
    token.market_cap = _float(overview.get("mc", overview.get("marketCap")), token.market_cap)
    token.fdv = _float(overview.get("fdv"), token.fdv) or token.market_cap
    token.price_change_24h = _float(overview.get("priceChange24hPercent"), token.price_change_24h)


def apply_security(token: Token, security: dict):
    token.mint_authority = bool(security.get("mintAuthority"))
    token.freeze_authority = bool(security.get("freezeAuthority"))
    token.owner_address = security.get("ownerAddress") or None
    token.creator_address = security.get("creatorAddress") or token.creator_address
    top10 = security.get("top10HolderPercent")
    if top10 is not None:
        pct = _float(top10)
        # Birdeye reports a 0-1 fraction
        token.top10_holder_pct = pct * 100 if pct <= 1 else pct
    lock = security.get("lockInfo")
    if lock is not None:
        token.liquidity_locked = bool(lock)


async def run_snapshot_cycle(
    session_factory: async_sessionmaker[AsyncSession],
    fetcher: TokenFetcher,
    limit: int = 50,
    request_delay: float = 0.3,
    sleep=asyncio.sleep,
    now: Optional[datetime] = None,
) -> SnapshotCycleResult:
    """Refresh market data and security for active tokens, one request at a time."""
    result = SnapshotCycleResult()
    if fetcher.is_rate_limited():
        logger.warning("Primary provider rate limited, skipping snapshot cycle")
        result.skipped = True
        return result

    cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=ACTIVE_WINDOW_HOURS)
    async with session_factory() as db:
        rows = await db.execute(
            select(Token.id, Token.contract)
            .where(Token.last_seen_at >= cutoff)
            .order_by(Token.last_seen_at.desc())
            .limit(limit)
        )
        targets = rows.all()

    logger.info(f"Snapshot cycle: {len(targets)} active tokens")

    for index, (token_id, contract) in enumerate(targets):
        if fetcher.is_rate_limited():
            result.rate_limited_count = len(targets) - index
            logger.warning(f"Rate limit hit during snapshot cycle, {result.rate_limited_count} tokens left")
            break
        try:
            overview = await fetcher.fetch_token_market_data(contract)
            if not overview:
                logger.debug(f"No market data for {contract}")
                continue
            security = None
            if not fetcher.is_rate_limited():
                security = await fetcher.fetch_token_security(contract)

            stamp = datetime.now(timezone.utc)
            async with session_factory() as db:
                async with db.begin():
                    token = await db.get(Token, token_id)
                    if token is None:
                        continue
                    apply_market_data(token, overview)
                    if security:
                        apply_security(token, security)
                    db.add(MarketSnapshot(
                        token_id=token_id,
                        price=token.price,
                        liquidity=token.liquidity,
                        volume=token.volume_24h,
                        market_cap=token.market_cap,
                        fdv=token.fdv,
                        price_change_24h=token.price_change_24h,
                        timestamp=stamp,
                    ))
            result.snapshot_count += 1
        except RateLimitError as e:
            result.rate_limited_count = len(targets) - index
            logger.warning(f"Snapshot cycle stopped by rate limit: {e}")
            break
        except (TransientNetworkError, httpx.HTTPError, SQLAlchemyError, ValueError) as e:
            result.error_count += 1
            logger.warning(f"Snapshot failed for token {token_id}: {e}")

        await sleep(request_delay)

    logger.info(
        f"Snapshot cycle completed: {result.snapshot_count} snapshots, "
        f"{result.error_count} errors, {result.rate_limited_count} deferred"
    )
    return result
