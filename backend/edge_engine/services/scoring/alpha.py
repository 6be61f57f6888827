from __future__ import annotations
from dataclasses import dataclass, field

from edge_engine.services.scoring.conviction import ConvictionResult
from edge_engine.services.scoring.momentum import MomentumResult
from edge_engine.services.scoring.threat import ThreatResult
from edge_engine.services.scoring.common import round_half_up

MOMENTUM_WEIGHT = 0.40
CONVICTION_WEIGHT = 0.35
SAFETY_WEIGHT = 0.25


@dataclass
class AlphaBreakdown:
    momentum: float
    conviction: float
    safety: float


@dataclass
class AlphaResult:
    score: int
    level: str  # DEGEN / HIGH / MODERATE / LOW / AVOID
    breakdown: AlphaBreakdown
    signals: list[str] = field(default_factory=list)


def alpha_level(score: float) -> str:
    if score > 80:
        return "DEGEN"
    if score >= 60:
        return "HIGH"
    if score >= 40:
        return "MODERATE"
    if score >= 20:
        return "LOW"
    return "AVOID"


def compute_alpha(momentum: MomentumResult, conviction: ConvictionResult, threat: ThreatResult) -> AlphaResult:
    """Weighted blend of momentum, conviction and threat safety."""
    breakdown = AlphaBreakdown(
        momentum=momentum.score * MOMENTUM_WEIGHT,
        conviction=conviction.score * CONVICTION_WEIGHT,
        safety=threat.safety_score * SAFETY_WEIGHT,
    )
    score = round_half_up(breakdown.momentum + breakdown.conviction + breakdown.safety)

    signals = []
    if momentum.score >= 76:
        signals.append(f"Strong momentum: {momentum.raw_momentum:.1f}%")
    elif momentum.score >= 56:
        signals.append(f"Healthy momentum: {momentum.score}/100")
    elif momentum.score < 31:
        signals.append(f"Weak momentum: {momentum.score}/100")

    if conviction.score >= 76:
        signals.append(f"Deep liquidity: {conviction.liquidity_ratio:.1f}% of MC")
    elif conviction.score >= 56:
        signals.append(f"Solid liquidity: {conviction.liquidity_ratio:.1f}% of MC")
    elif conviction.score < 31:
        signals.append(f"Thin liquidity: {conviction.liquidity_ratio:.1f}% of MC")

    if threat.safety_score >= 76:
        signals.append("Safe: no critical red flags")
    elif threat.safety_score >= 31:
        signals.append("Caution: minor security concerns")
    else:
        signals.append("Danger: critical security flags")

    return AlphaResult(score=score, level=alpha_level(score), breakdown=breakdown, signals=signals)
