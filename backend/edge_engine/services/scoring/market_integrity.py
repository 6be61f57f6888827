"""Market integrity: wash trading, collusive wallet clusters and bot-like volume.

Works purely on the token's recent WalletTransaction rows. Each detector is a
plain function so it can be exercised on hand-built transactions.
"""
from __future__ import annotations
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from edge_engine.models.wallet_transaction import WalletTransaction
from edge_engine.services.scoring.common import GREEN, ORANGE, RED, YELLOW, as_utc, round_half_up
from edge_engine.services.scoring.history import recent_transactions

TRANSACTION_WINDOW_HOURS = 24
TRANSACTION_LIMIT = 500
NO_DATA_SCORE = 70
MIN_AUDIT_TRANSACTIONS = 10
CLUSTER_MIN_TRANSACTIONS = 5
CLUSTER_MIN_WALLETS = 3


@dataclass
class WashTradingResult:
    detected: bool = False
    wash_volume_percent: float = 0.0
    real_volume: float = 0.0
    reported_volume: float = 0.0
    flagged_transactions: int = 0
    color: str = GREEN


@dataclass
class CollusionResult:
    detected: bool = False
    cluster_count: int = 0
    wallets_in_clusters: int = 0
    controlled_supply_percent: float = 0.0
    wallets: list[str] = field(default_factory=list)


@dataclass
class VolumeAuditResult:
    is_organic: bool = True
    bot_probability: int = 0
    variance: float = 100.0
    repeated_sizes: int = 0
    time_distribution: str = "NATURAL"  # NATURAL / SUSPICIOUS / BOT_PATTERN


@dataclass
class MarketIntegrityResult:
    score: int
    color: str
    wash_trading: WashTradingResult = field(default_factory=WashTradingResult)
    collusion: CollusionResult = field(default_factory=CollusionResult)
    volume_audit: VolumeAuditResult = field(default_factory=VolumeAuditResult)
    signals: list[str] = field(default_factory=list)


def detect_wash_trading(transactions: Sequence[WalletTransaction]) -> WashTradingResult:
    total_volume = 0.0
    activity: dict[str, list[float]] = defaultdict(lambda: [0, 0, 0.0])  # buys, sells, volume
    for tx in transactions:
        amount = tx.amount_usd or 0.0
        total_volume += amount
        entry = activity[tx.wallet_address]
        entry[2] += amount
        if tx.side == "buy":
            entry[0] += 1
        else:
            entry[1] += 1

    wash_volume = 0.0
    flagged = 0
    for buys, sells, volume in activity.values():
        if buys and sells:
            paired = min(buys, sells)
            wash_volume += paired * (volume / (buys + sells))
            flagged += paired

    wash_pct = wash_volume / total_volume * 100 if total_volume > 0 else 0.0
    if wash_pct > 30:
        color = RED
    elif wash_pct > 10:
        color = ORANGE
    else:
        color = GREEN

    return WashTradingResult(
        detected=wash_pct > 10,
        wash_volume_percent=wash_pct,
        real_volume=total_volume - wash_volume,
        reported_volume=total_volume,
        flagged_transactions=int(flagged),
        color=color,
    )


def detect_collusion(transactions: Sequence[WalletTransaction]) -> CollusionResult:
    # No wallet-to-wallet flow data yet; heavy repeat traders stand in for a cluster
    counts = Counter(tx.wallet_address for tx in transactions)
    busy = [wallet for wallet, count in counts.most_common() if count >= CLUSTER_MIN_TRANSACTIONS]
    detected = len(busy) >= CLUSTER_MIN_WALLETS
    return CollusionResult(
        detected=detected,
        cluster_count=1 if detected else 0,
        wallets_in_clusters=len(busy),
        controlled_supply_percent=min(50, len(busy) * 5) if detected else 0,
        wallets=busy[:10],
    )


def _variance(values: Sequence[float]) -> tuple[float, float]:
    mean = sum(values) / len(values)
    return mean, sum((v - mean) ** 2 for v in values) / len(values)


def audit_volume(transactions: Sequence[WalletTransaction]) -> VolumeAuditResult:
    if len(transactions) < MIN_AUDIT_TRANSACTIONS:
        return VolumeAuditResult()

    sizes = [tx.amount_usd or 0.0 for tx in transactions]
    mean, variance = _variance(sizes)
    normalized_variance = min(100.0, variance / (mean * mean) * 100) if mean > 0 else 0.0

    size_counts = Counter(round_half_up(size) for size in sizes)
    repeated = sum(1 for count in size_counts.values() if count >= 3)

    timestamps = sorted(as_utc(tx.timestamp).timestamp() for tx in transactions)
    intervals = [b - a for a, b in zip(timestamps, timestamps[1:])]
    avg_interval, interval_variance = _variance(intervals)
    normalized_interval_variance = interval_variance / (avg_interval * avg_interval + 1)

    bot = 0
    if normalized_variance < 20:
        bot += 40
    elif normalized_variance < 50:
        bot += 20
    if repeated > 5:
        bot += 30
    elif repeated > 2:
        bot += 15
    if normalized_interval_variance < 0.1:
        bot += 30
    elif normalized_interval_variance < 0.5:
        bot += 15
    bot = min(100, bot)

    if bot > 70:
        distribution = "BOT_PATTERN"
    elif bot > 40:
        distribution = "SUSPICIOUS"
    else:
        distribution = "NATURAL"

    return VolumeAuditResult(
        is_organic=bot < 40,
        bot_probability=bot,
        variance=normalized_variance,
        repeated_sizes=repeated,
        time_distribution=distribution,
    )


def integrity_score(wash: WashTradingResult, collusion: CollusionResult, audit: VolumeAuditResult) -> int:
    score = 100.0
    score -= wash.wash_volume_percent * 0.5
    if collusion.detected:
        score -= 20 + collusion.wallets_in_clusters * 2
    score -= audit.bot_probability * 0.3
    return max(0, round_half_up(score))


def integrity_from_transactions(transactions: Sequence[WalletTransaction]) -> MarketIntegrityResult:
    if not transactions:
        return MarketIntegrityResult(score=NO_DATA_SCORE, color=YELLOW, signals=["No recent trades to audit"])

    wash = detect_wash_trading(transactions)
    collusion = detect_collusion(transactions)
    audit = audit_volume(transactions)

    signals = []
    if wash.wash_volume_percent > 30:
        signals.append(f"Wash trading: {wash.wash_volume_percent:.0f}% fake volume")
    elif wash.wash_volume_percent > 10:
        signals.append(f"Suspicious self-trading: {wash.wash_volume_percent:.0f}%")
    if collusion.detected:
        signals.append(f"Collusion: {collusion.wallets_in_clusters} wallets trading among themselves")
    if audit.bot_probability > 70:
        signals.append(f"Bot activity: {audit.bot_probability}% probability")
    elif audit.is_organic:
        signals.append("Organic trading pattern")

    score = integrity_score(wash, collusion, audit)
    if score < 40:
        color = RED
    elif score < 70:
        color = YELLOW
    else:
        color = GREEN

    return MarketIntegrityResult(
        score=score,
        color=color,
        wash_trading=wash,
        collusion=collusion,
        volume_audit=audit,
        signals=signals or ["Market appears clean"],
    )


async def compute_market_integrity(
    db: AsyncSession,
    token_id: int,
    now: Optional[datetime] = None,
) -> MarketIntegrityResult:
    transactions = await recent_transactions(
        db, token_id, hours=TRANSACTION_WINDOW_HOURS, limit=TRANSACTION_LIMIT, now=now
    )
    return integrity_from_transactions(transactions)
