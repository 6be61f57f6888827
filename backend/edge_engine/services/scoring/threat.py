"""Threat: contract and holder red flags subtracted from a perfect safety score."""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional

from edge_engine.models.token import Token
from edge_engine.services.scoring.common import CRITICAL, GREEN, RED, YELLOW, color_tier

MINT_PENALTY = 50
FREEZE_PENALTY = 40
HIGH_CONCENTRATION_PENALTY = 30
MODERATE_CONCENTRATION_PENALTY = 15
UNLOCKED_LIQUIDITY_PENALTY = 25
OWNERSHIP_PENALTY = 20
UNLOCKED_LIQUIDITY_FLOOR = 10_000


@dataclass
class ThreatFlags:
    mintable: bool = False
    freezable: bool = False
    high_concentration: bool = False
    liquidity_unlocked: bool = False
    ownership_not_renounced: bool = False


@dataclass
class ThreatResult:
    penalty: int
    safety_score: int
    level: str
    color: str
    flags: ThreatFlags = field(default_factory=ThreatFlags)
    warnings: list[str] = field(default_factory=list)


def threat_level(safety_score: float) -> str:
    if safety_score >= 76:
        return GREEN
    if safety_score >= 31:
        return YELLOW
    if safety_score > 0:
        return RED
    return CRITICAL


def compute_threat(token: Optional[Token]) -> ThreatResult:
    if token is None:
        return ThreatResult(penalty=50, safety_score=50, level=YELLOW, color=YELLOW, warnings=["Token not found"])

    flags = ThreatFlags()
    warnings = []
    penalty = 0

    if token.mint_authority:
        penalty += MINT_PENALTY
        flags.mintable = True
        warnings.append("Mint authority active: supply can be diluted")

    if token.freeze_authority:
        penalty += FREEZE_PENALTY
        flags.freezable = True
        warnings.append("Freeze authority active: holders can be frozen")

    concentration = token.top10_holder_pct or 0.0
    if concentration > 50:
        penalty += HIGH_CONCENTRATION_PENALTY
        flags.high_concentration = True
        warnings.append(f"High concentration: top 10 hold {concentration:.0f}%")
    elif concentration > 30:
        penalty += MODERATE_CONCENTRATION_PENALTY
        warnings.append(f"Moderate concentration: top 10 hold {concentration:.0f}%")

    # Unknown lock status is treated as unlocked once there is real liquidity to pull
    if not token.liquidity_locked and (token.liquidity or 0) > UNLOCKED_LIQUIDITY_FLOOR:
        penalty += UNLOCKED_LIQUIDITY_PENALTY
        flags.liquidity_unlocked = True
        warnings.append("Liquidity lock unverified")

    if token.owner_address and token.owner_address != "renounced":
        penalty += OWNERSHIP_PENALTY
        flags.ownership_not_renounced = True
        warnings.append("Contract ownership not renounced")

    safety = max(0, min(100, 100 - penalty))
    if not warnings:
        warnings.append("No significant threats detected")

    return ThreatResult(
        penalty=penalty,
        safety_score=safety,
        level=threat_level(safety),
        color=color_tier(safety),
        flags=flags,
        warnings=warnings,
    )
