"""Conviction: how deep liquidity is relative to market cap, nudged by buyer behavior."""
from __future__ import annotations
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from edge_engine.models.token import Token
from edge_engine.models.wallet_transaction import WalletTransaction
from edge_engine.services.scoring.common import RED, clamp, color_tier, round_half_up
from edge_engine.services.scoring.history import recent_transactions

TRANSACTION_WINDOW_HOURS = 24
TRANSACTION_LIMIT = 200
MAX_WALLET_BOOST = 10


@dataclass
class ConvictionResult:
    score: int
    color: str
    liquidity_ratio: float = 0.0
    volume_to_mc_ratio: float = 0.0
    repeat_buyers: int = 0
    smart_wallet_entries: int = 0
    avg_position_size: float = 0.0
    buy_pressure: float = 50.0
    signals: list[str] = field(default_factory=list)


def ratio_score(ratio: float) -> float:
    if ratio >= 15:
        return min(100, 76 + (ratio - 15) * 2)
    if ratio >= 8:
        return 56 + ((ratio - 8) / 7) * 19
    if ratio >= 3:
        return 31 + ((ratio - 3) / 5) * 24
    return (ratio / 3) * 30


def conviction_from_metrics(
    liquidity: float,
    market_cap: float,
    volume_24h: float = 0.0,
    transactions: Sequence[WalletTransaction] = (),
) -> ConvictionResult:
    market_cap = market_cap or 1
    liquidity_ratio = (liquidity or 0) * 100 / market_cap
    volume_ratio = (volume_24h or 0) * 100 / market_cap
    signals = []

    base = ratio_score(liquidity_ratio)
    if liquidity_ratio >= 15:
        signals.append(f"Deep liquidity: {liquidity_ratio:.1f}% of MC")
    elif liquidity_ratio >= 8:
        signals.append(f"Solid liquidity: {liquidity_ratio:.1f}% of MC")
    elif liquidity_ratio >= 3:
        signals.append(f"Moderate liquidity: {liquidity_ratio:.1f}% of MC, watch slippage")
    else:
        signals.append(f"Thin liquidity: {liquidity_ratio:.1f}% of MC, high rug risk")

    if volume_ratio > 50:
        signals.append(f"Extreme trading: volume {volume_ratio:.0f}% of MC")
    elif volume_ratio > 20:
        signals.append(f"High interest: volume {volume_ratio:.0f}% of MC")
    elif volume_ratio > 10:
        signals.append(f"Active trading: volume {volume_ratio:.0f}% of MC")

    repeat_buyers = 0
    smart_entries = 0
    avg_position = 0.0
    buy_pressure = 50.0
    if transactions:
        buyer_counts = Counter(tx.wallet_address for tx in transactions if tx.side == "buy")
        buys = sum(buyer_counts.values())
        buy_volume = sum(tx.amount_usd or 0 for tx in transactions if tx.side == "buy")
        repeat_buyers = sum(1 for count in buyer_counts.values() if count >= 2)
        smart_entries = sum(1 for count in buyer_counts.values() if count >= 3)
        avg_position = buy_volume / buys if buys else 0.0
        buy_pressure = buys / len(transactions) * 100

        if repeat_buyers > 5:
            signals.append(f"{repeat_buyers} repeat buyers")
        if buy_pressure > 60:
            signals.append(f"Buy pressure: {buy_pressure:.0f}%")
        elif buy_pressure < 40:
            signals.append(f"Sell pressure: {100 - buy_pressure:.0f}%")

    boost = min(MAX_WALLET_BOOST, repeat_buyers + 2 * smart_entries)
    score = int(clamp(round_half_up(base + boost)))

    return ConvictionResult(
        score=score,
        color=color_tier(score),
        liquidity_ratio=liquidity_ratio,
        volume_to_mc_ratio=volume_ratio,
        repeat_buyers=repeat_buyers,
        smart_wallet_entries=smart_entries,
        avg_position_size=avg_position,
        buy_pressure=buy_pressure,
        signals=signals,
    )


async def compute_conviction(
    db: AsyncSession,
    token: Optional[Token],
    now: Optional[datetime] = None,
) -> ConvictionResult:
    if token is None:
        return ConvictionResult(score=10, color=RED, signals=["Token not found"])
    transactions = await recent_transactions(
        db, token.id, hours=TRANSACTION_WINDOW_HOURS, limit=TRANSACTION_LIMIT, now=now
    )
    return conviction_from_metrics(token.liquidity, token.market_cap, token.volume_24h, transactions)
