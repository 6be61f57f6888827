"""Edge score: the master composite, plus the rule-based trade recommendation."""
from __future__ import annotations
from dataclasses import dataclass, field

from edge_engine.services.scoring.common import BLUE, GREEN, ORANGE, RED, YELLOW, round_half_up
from edge_engine.services.scoring.degen_intel import DegenIntelResult
from edge_engine.services.scoring.dev_profile import DevProfileResult
from edge_engine.services.scoring.market_integrity import MarketIntegrityResult
from edge_engine.services.scoring.threat import ThreatResult

SAFETY_WEIGHT = 0.30
NARRATIVE_WEIGHT = 0.20
SMART_FLOW_WEIGHT = 0.30
INTEGRITY_WEIGHT = 0.20


@dataclass
class EdgeComponent:
    score: int
    weight: int
    contribution: int


@dataclass
class Recommendation:
    action: str  # STRONG_BUY / BUY / HOLD / CAUTION / AVOID
    reason: str
    confidence: int


@dataclass
class EdgeScoreResult:
    score: int
    level: str
    color: str
    breakdown: dict[str, EdgeComponent]
    recommendation: Recommendation
    top_signals: list[str] = field(default_factory=list)
    risk_factors: list[str] = field(default_factory=list)
    bullish_factors: list[str] = field(default_factory=list)


def composite_safety(dev_reputation: float, bundle_risk: float, threat_safety: float) -> float:
    return max(0.0, 100 - (100 - dev_reputation) * 0.5 - bundle_risk * 0.3 - (100 - threat_safety) * 0.2)


def edge_level(score: float) -> tuple[str, str]:
    if score >= 80:
        return "ALPHA", GREEN
    if score >= 65:
        return "EDGE", BLUE
    if score >= 45:
        return "NEUTRAL", YELLOW
    if score >= 25:
        return "RISKY", ORANGE
    return "AVOID", RED


def edge_from_components(safety: float, narrative: float, smart_flow: float, integrity: float) -> tuple[int, dict[str, EdgeComponent]]:
    parts = {
        "safety": (safety, SAFETY_WEIGHT),
        "narrative": (narrative, NARRATIVE_WEIGHT),
        "smart_flow": (smart_flow, SMART_FLOW_WEIGHT),
        "market_integrity": (integrity, INTEGRITY_WEIGHT),
    }
    total = sum(score * weight for score, weight in parts.values())
    breakdown = {
        name: EdgeComponent(
            score=round_half_up(score),
            weight=round_half_up(weight * 100),
            contribution=round_half_up(score * weight),
        )
        for name, (score, weight) in parts.items()
    }
    return round_half_up(total), breakdown


def recommend(
    score: int,
    risk_count: int,
    bullish_count: int,
    threat: ThreatResult,
    dev: DevProfileResult,
) -> Recommendation:
    if dev.reputation.label == "SERIAL_RUGGER":
        return Recommendation("AVOID", "Serial rugger, high probability of exit scam", 95)
    if dev.drain_alert.triggered:
        return Recommendation("AVOID", "Developer has exited, likely rug in progress", 90)
    if threat.safety_score < 30:
        return Recommendation("AVOID", "Critical security flags detected", 85)

    if score >= 80 and risk_count == 0:
        return Recommendation("STRONG_BUY", "Alpha opportunity with strong fundamentals", min(95, 70 + bullish_count * 5))
    if score >= 65:
        return Recommendation("BUY", "Good edge with favorable conditions", min(85, 60 + bullish_count * 4))
    if score >= 45:
        return Recommendation("HOLD", "Mixed signals, wait for confirmation", 50)
    if score >= 25:
        return Recommendation("CAUTION", "Multiple risk factors present", 60)
    return Recommendation("AVOID", "High risk with insufficient reward potential", 75)


def compute_edge_score(
    threat: ThreatResult,
    dev: DevProfileResult,
    intel: DegenIntelResult,
    integrity: MarketIntegrityResult,
) -> EdgeScoreResult:
    safety = composite_safety(dev.reputation.score, dev.bundle_risk.score, threat.safety_score)
    score, breakdown = edge_from_components(
        safety, intel.narrative.mindshare, intel.smart_flow.score, integrity.score
    )
    level, color = edge_level(score)

    top_signals: list[str] = []
    risks: list[str] = []
    bullish: list[str] = []

    if dev.reputation.label == "ALPHA_DEV":
        bullish.append("Alpha dev with successful history")
    elif dev.reputation.label == "SERIAL_RUGGER":
        risks.append("Serial rugger detected")
    if dev.drain_alert.triggered:
        risks.append("Dev exit alert triggered")
    if dev.bundle_risk.score > 50:
        risks.append(f"High bundle concentration: {dev.bundle_risk.score}%")

    if intel.narrative.trending:
        bullish.append(f"{intel.narrative.sector} sector is trending")
    if intel.narrative.mindshare > 70:
        bullish.append(f"High mindshare: {intel.narrative.mindshare:.0f}%")

    if intel.smart_flow.alert:
        top_signals.append(intel.smart_flow.alert)
    if intel.smart_flow.score > 70:
        bullish.append("Strong smart money inflow")
    elif intel.smart_flow.score < 30:
        risks.append("Weak smart wallet interest")

    if integrity.wash_trading.detected:
        risks.append(f"Wash trading: {integrity.wash_trading.wash_volume_percent:.0f}% fake volume")
    if integrity.collusion.detected:
        risks.append(f"Collusive network: {integrity.collusion.wallets_in_clusters} wallets")
    if integrity.volume_audit.bot_probability > 50:
        risks.append(f"Bot activity: {integrity.volume_audit.bot_probability}% probability")
    if integrity.score > 80:
        bullish.append("Clean market structure")

    sentiment = intel.sentiment
    if sentiment.overall == "BULLISH" and sentiment.score > 70:
        bullish.append(f"Bullish sentiment: {sentiment.score}%")
    elif sentiment.overall == "BEARISH" and sentiment.score < 30:
        risks.append(f"Bearish sentiment: {sentiment.score}%")
    if sentiment.key_insight:
        top_signals.append(sentiment.key_insight)

    return EdgeScoreResult(
        score=score,
        level=level,
        color=color,
        breakdown=breakdown,
        recommendation=recommend(score, len(risks), len(bullish), threat, dev),
        top_signals=top_signals[:3],
        risk_factors=risks[:5],
        bullish_factors=bullish[:5],
    )
