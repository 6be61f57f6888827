"""Market structure: trend, phase, key levels and volatility over the snapshot series."""
from __future__ import annotations
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from edge_engine.models.market_snapshot import MarketSnapshot
from edge_engine.services.scoring.common import clamp
from edge_engine.services.scoring.history import snapshots_since

MIN_SNAPSHOTS = 10
WINDOW_HOURS = 24
MAX_SNAPSHOTS = 100

PHASE_POINTS = {"EXPANSION": 25, "ACCUMULATION": 15, "DISTRIBUTION": -10, "CONTRACTION": -20, "NEUTRAL": 0}
TREND_POINTS = {"BULLISH": 15, "BEARISH": -15, "NEUTRAL": 0}
VOLATILITY_POINTS = {"MEDIUM": 5, "HIGH": -5, "LOW": 0}


@dataclass
class MarketStructureResult:
    phase: str = "NEUTRAL"  # ACCUMULATION / EXPANSION / DISTRIBUTION / CONTRACTION / NEUTRAL
    trend: str = "NEUTRAL"  # BULLISH / BEARISH / NEUTRAL
    support: Optional[float] = None
    resistance: Optional[float] = None
    volatility: str = "LOW"  # LOW / MEDIUM / HIGH
    score: int = 50
    signals: list[str] = field(default_factory=list)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def determine_trend(prices: Sequence[float]) -> str:
    """Average of the last 10 prices against the 10 before them."""
    if len(prices) < 5:
        return "NEUTRAL"
    older = prices[-20:-10]
    older_avg = _mean(older)
    if older_avg <= 0:
        return "NEUTRAL"
    change = (_mean(prices[-10:]) - older_avg) / older_avg * 100
    if change > 5:
        return "BULLISH"
    if change < -5:
        return "BEARISH"
    return "NEUTRAL"


def determine_phase(prices: Sequence[float], volumes: Sequence[float]) -> str:
    price_change = (prices[-1] - prices[0]) / prices[0] * 100 if prices[0] > 0 else 0.0
    avg_volume = _mean(volumes)
    recent_volume = sum(volumes[-5:]) / 5

    if abs(price_change) < 10 and recent_volume > avg_volume * 1.2:
        return "ACCUMULATION"
    if price_change > 10 and recent_volume > avg_volume:
        return "EXPANSION"
    if price_change < 5 and recent_volume > avg_volume * 1.1:
        return "DISTRIBUTION"
    return "CONTRACTION"


def find_key_levels(prices: Sequence[float]) -> tuple[Optional[float], Optional[float]]:
    """Mean of local minima (support) and local maxima (resistance)."""
    if len(prices) < MIN_SNAPSHOTS:
        return None, None
    lows, highs = [], []
    for i in range(2, len(prices) - 2):
        if prices[i] < prices[i - 1] and prices[i] < prices[i + 1]:
            lows.append(prices[i])
        if prices[i] > prices[i - 1] and prices[i] > prices[i + 1]:
            highs.append(prices[i])
    return (_mean(lows) if lows else None), (_mean(highs) if highs else None)


def volatility_band(prices: Sequence[float]) -> str:
    if len(prices) < 5:
        return "LOW"
    returns = [(cur - prev) / prev for prev, cur in zip(prices, prices[1:]) if prev > 0]
    if not returns:
        return "LOW"
    std_dev = math.sqrt(sum(r * r for r in returns) / len(returns))
    if std_dev > 0.05:
        return "HIGH"
    if std_dev > 0.02:
        return "MEDIUM"
    return "LOW"


def structure_from_snapshots(snapshots: Sequence[MarketSnapshot]) -> MarketStructureResult:
    """Snapshots must be ordered oldest first."""
    if len(snapshots) < MIN_SNAPSHOTS:
        return MarketStructureResult(signals=[f"Fewer than {MIN_SNAPSHOTS} snapshots, structure unknown"])

    prices = [s.price or 0.0 for s in snapshots]
    volumes = [s.volume or 0.0 for s in snapshots]

    trend = determine_trend(prices)
    phase = determine_phase(prices, volumes)
    support, resistance = find_key_levels(prices)
    volatility = volatility_band(prices)
    score = int(clamp(50 + PHASE_POINTS[phase] + TREND_POINTS[trend] + VOLATILITY_POINTS[volatility]))

    signals = [f"{phase.title()} phase, {trend.lower()} trend"]
    if volatility == "HIGH":
        signals.append("High volatility")
    if support is not None and resistance is not None:
        signals.append(f"Range {support:.6g} - {resistance:.6g}")

    return MarketStructureResult(
        phase=phase,
        trend=trend,
        support=support,
        resistance=resistance,
        volatility=volatility,
        score=score,
        signals=signals,
    )


async def compute_market_structure(
    db: AsyncSession,
    token_id: int,
    now: Optional[datetime] = None,
) -> MarketStructureResult:
    snapshots = await snapshots_since(db, token_id, hours=WINDOW_HOURS, limit=MAX_SNAPSHOTS, now=now)
    return structure_from_snapshots(snapshots)
