"""Windowed reads shared by the scoring engines."""
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edge_engine.models.market_snapshot import MarketSnapshot
from edge_engine.models.wallet_transaction import WalletTransaction


async def recent_snapshots(db: AsyncSession, token_id: int, limit: int = 24) -> list[MarketSnapshot]:
    """Newest ``limit`` snapshots, returned oldest first."""
    result = await db.execute(
        select(MarketSnapshot)
        .where(MarketSnapshot.token_id == token_id)
        .order_by(MarketSnapshot.timestamp.desc(), MarketSnapshot.id.desc())
        .limit(limit)
    )
    return list(reversed(result.scalars().all()))


async def recent_transactions(
    db: AsyncSession,
    token_id: int,
    hours: float = 24,
    limit: int = 500,
    now: Optional[datetime] = None,
) -> list[WalletTransaction]:
    """Transactions in the trailing window, newest first."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)
    result = await db.execute(
        select(WalletTransaction)
        .where(WalletTransaction.token_id == token_id, WalletTransaction.timestamp >= cutoff)
        .order_by(WalletTransaction.timestamp.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def snapshots_since(
    db: AsyncSession,
    token_id: int,
    hours: float = 24,
    limit: int = 100,
    now: Optional[datetime] = None,
) -> list[MarketSnapshot]:
    """Snapshots in the trailing window, oldest first."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=hours)
    result = await db.execute(
        select(MarketSnapshot)
        .where(MarketSnapshot.token_id == token_id, MarketSnapshot.timestamp >= cutoff)
        .order_by(MarketSnapshot.timestamp.asc(), MarketSnapshot.id.asc())
        .limit(limit)
    )
    return list(result.scalars().all())
