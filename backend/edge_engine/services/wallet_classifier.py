from __future__ import annotations
import logging
import math
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from edge_engine.models.smart_wallet import SmartWallet
from edge_engine.models.wallet_transaction import WalletTransaction

logger = logging.getLogger(__name__)

MIN_TRADES = 3
SMART_SCORE_THRESHOLD = 40
LARGE_TRADE_USD = 5_000
EARLY_ENTRY_FRACTION = 0.2
WIN_RATE_THRESHOLD = 0.6
CLUSTER_WINDOW_MINUTES = 5
CLUSTER_MIN_WALLETS = 3


@dataclass
class WalletStats:
    address: str
    trades: int
    avg_trade_usd: float
    early_entry: bool
    win_rate: float
    last_active: datetime


def compute_smart_score(stats: WalletStats) -> float:
    """0-100 from trade size, entry timing and realized win rate."""
    score = 0.0
    if stats.avg_trade_usd > LARGE_TRADE_USD:
        score += 30
    if stats.early_entry:
        score += 40
    if stats.win_rate > WIN_RATE_THRESHOLD:
        score += 30
    return min(score, 100)


def early_buyers(transactions: Sequence[WalletTransaction]) -> set[str]:
    """Wallets whose first buy falls in the earliest fifth of all recorded buys."""
    buys = sorted((tx for tx in transactions if tx.side == "buy"), key=lambda tx: tx.timestamp)
    if not buys:
        return set()
    cutoff = max(1, math.ceil(len(buys) * EARLY_ENTRY_FRACTION))
    return {tx.wallet_address for tx in buys[:cutoff]}


async def realized_win_rates(db: AsyncSession, wallets: Sequence[str]) -> dict[str, float]:
    """Share of closed positions (any token) where a wallet sold for more than it bought."""
    if not wallets:
        return {}
    result = await db.execute(
        select(
            WalletTransaction.wallet_address,
            WalletTransaction.token_id,
            WalletTransaction.side,
            func.sum(WalletTransaction.amount_usd),
        )
        .where(WalletTransaction.wallet_address.in_(list(wallets)))
        .group_by(WalletTransaction.wallet_address, WalletTransaction.token_id, WalletTransaction.side)
    )
    positions: dict[tuple[str, int], dict[str, float]] = defaultdict(dict)
    for wallet, token_id, side, total in result.all():
        positions[(wallet, token_id)][side] = total or 0.0

    closed: dict[str, int] = defaultdict(int)
    wins: dict[str, int] = defaultdict(int)
    for (wallet, _), sides in positions.items():
        if "buy" in sides and "sell" in sides:
            closed[wallet] += 1
            if sides["sell"] > sides["buy"]:
                wins[wallet] += 1
    return {wallet: wins[wallet] / closed[wallet] for wallet in closed}


async def update_smart_wallets(db: AsyncSession, token_id: int) -> int:
    """Re-score every wallet seen on a token; upsert the ones that qualify.

    Returns how many wallets were written.
    """
    result = await db.execute(
        select(WalletTransaction).where(WalletTransaction.token_id == token_id)
    )
    transactions = result.scalars().all()
    by_wallet: dict[str, list[WalletTransaction]] = defaultdict(list)
    for tx in transactions:
        by_wallet[tx.wallet_address].append(tx)

    candidates = [w for w, txs in by_wallet.items() if len(txs) >= MIN_TRADES]
    if not candidates:
        return 0

    early = early_buyers(transactions)
    win_rates = await realized_win_rates(db, candidates)

    written = 0
    for address in candidates:
        txs = by_wallet[address]
        stats = WalletStats(
            address=address,
            trades=len(txs),
            avg_trade_usd=sum(tx.amount_usd or 0 for tx in txs) / len(txs),
            early_entry=address in early,
            win_rate=win_rates.get(address, 0.0),
            last_active=max(tx.timestamp for tx in txs),
        )
        score = compute_smart_score(stats)
        if score < SMART_SCORE_THRESHOLD:
            continue

        wallet = await db.get(SmartWallet, address)
        if wallet is None:
            db.add(SmartWallet(
                address=address,
                smart_score=score,
                total_trades=stats.trades,
                win_rate=stats.win_rate,
                avg_trade_usd=stats.avg_trade_usd,
                last_active=stats.last_active,
            ))
        else:
            wallet.smart_score = score
            wallet.total_trades = max(wallet.total_trades, stats.trades)
            wallet.win_rate = stats.win_rate
            wallet.avg_trade_usd = stats.avg_trade_usd
            wallet.last_active = stats.last_active
        written += 1

    await db.flush()
    logger.info(f"Token {token_id}: {written} smart wallets updated from {len(candidates)} candidates")
    return written


async def detect_cluster(db: AsyncSession, token_id: int, now: Optional[datetime] = None) -> bool:
    """Several smart wallets buying the same token within a few minutes."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(minutes=CLUSTER_WINDOW_MINUTES)
    result = await db.execute(
        select(func.count(func.distinct(WalletTransaction.wallet_address)))
        .join(SmartWallet, SmartWallet.address == WalletTransaction.wallet_address)
        .where(
            WalletTransaction.token_id == token_id,
            WalletTransaction.side == "buy",
            WalletTransaction.timestamp >= cutoff,
            SmartWallet.smart_score >= SMART_SCORE_THRESHOLD,
        )
    )
    return (result.scalar() or 0) >= CLUSTER_MIN_WALLETS
