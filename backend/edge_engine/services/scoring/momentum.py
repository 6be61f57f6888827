"""Momentum: blended 24h price and volume change mapped onto a 0-100 zone scale."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from edge_engine.models.market_snapshot import MarketSnapshot
from edge_engine.services.scoring.common import RED, clamp, color_tier, round_half_up
from edge_engine.services.scoring.history import recent_snapshots

SNAPSHOT_WINDOW = 24


@dataclass
class MomentumResult:
    score: int
    phase: str
    color: str
    raw_momentum: float = 0.0
    price_change_24h: float = 0.0
    volume_change_24h: float = 0.0
    market_phase: str = "DEAD"
    signals: list[str] = field(default_factory=list)


def momentum_phase(score: float) -> str:
    if score >= 86:
        return "Explosive"
    if score >= 66:
        return "Aggressive"
    if score >= 46:
        return "Trending"
    if score >= 26:
        return "Awakening"
    return "Dead"


def detect_phase(velocity: float) -> str:
    """Market phase from a 0-100 velocity reading."""
    if velocity < 40:
        return "DEAD"
    if velocity < 60:
        return "STEALTH"
    if velocity < 75:
        return "EARLY_EXPANSION"
    if velocity < 90:
        return "MARKUP"
    return "DISTRIBUTION"


def default_momentum(reason: str = "No market history yet") -> MomentumResult:
    return MomentumResult(score=25, phase="Dead", color=RED, signals=[reason])


def momentum_from_changes(price_change: float, volume_change: float) -> MomentumResult:
    raw = (price_change + volume_change) / 2
    signals = []

    if raw >= 15:
        score = min(100, 76 + (raw - 15) * 1.5)
        signals.append(f"High velocity: +{raw:.1f}% momentum")
    elif raw >= 5:
        score = 56 + ((raw - 5) / 10) * 19
        signals.append(f"Steady growth: +{raw:.1f}% momentum")
    elif raw >= -5:
        score = 31 + ((raw + 5) / 10) * 24
        signals.append(f"Sideways: {raw:+.1f}% momentum")
    elif raw >= -10:
        score = 20 + ((raw + 10) / 5) * 11
        signals.append(f"Cooling off: {raw:.1f}% momentum")
    else:
        score = max(0, 20 + raw)
        signals.append(f"Heavy distribution: {raw:.1f}% momentum")

    score = int(clamp(round_half_up(score)))

    if price_change > 10:
        signals.append(f"Price up {price_change:.1f}%")
    elif price_change < -10:
        signals.append(f"Price down {abs(price_change):.1f}%")
    if volume_change > 50:
        signals.append(f"Volume surge +{volume_change:.0f}%")
    elif volume_change < -30:
        signals.append(f"Volume declining {volume_change:.0f}%")

    return MomentumResult(
        score=score,
        phase=momentum_phase(score),
        color=color_tier(score),
        raw_momentum=raw,
        price_change_24h=price_change,
        volume_change_24h=volume_change,
        market_phase=detect_phase(score),
        signals=signals,
    )


def momentum_from_snapshots(snapshots: Sequence[MarketSnapshot]) -> MomentumResult:
    """Snapshots must be ordered oldest first."""
    if not snapshots:
        return default_momentum()

    if len(snapshots) == 1:
        return momentum_from_changes(snapshots[0].price_change_24h or 0.0, 0.0)

    oldest, newest = snapshots[0], snapshots[-1]
    price_change = 0.0
    if oldest.price and oldest.price > 0:
        price_change = (newest.price - oldest.price) / oldest.price * 100

    earlier = [s.volume or 0.0 for s in snapshots[:-1]]
    avg_volume = sum(earlier) / len(earlier)
    volume_change = 0.0
    if avg_volume > 0:
        volume_change = ((newest.volume or 0.0) - avg_volume) / avg_volume * 100

    return momentum_from_changes(price_change, volume_change)


async def compute_momentum(db: AsyncSession, token_id: int) -> MomentumResult:
    snapshots = await recent_snapshots(db, token_id, limit=SNAPSHOT_WINDOW)
    return momentum_from_snapshots(snapshots)
