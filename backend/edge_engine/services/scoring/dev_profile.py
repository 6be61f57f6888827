"""Developer profile: creator track record, post-launch drain and early-buyer bundling.

Everything here is derived from data already in the store. Creator history
only covers tokens this deployment has ingested, and the drain check only sees
creator swaps the wallet job has pulled, so both under-report for new creators.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from edge_engine.models.token import Token
from edge_engine.models.wallet_transaction import WalletTransaction
from edge_engine.services.scoring.common import GREEN, RED, YELLOW, as_utc, round_half_up

RUGGED_LIQUIDITY_USD = 100
SUCCESS_MARKET_CAP_USD = 1_000_000
DRAIN_WINDOW_MINUTES = 60
DRAIN_SOLD_PERCENT = 50
EARLY_BUYER_SAMPLE = 20


@dataclass
class DevReputation:
    score: int = 50
    label: str = "UNKNOWN"  # ALPHA_DEV / TRUSTED / UNKNOWN / SUSPICIOUS / SERIAL_RUGGER
    previous_projects: int = 0
    rugged_projects: int = 0
    successful_projects: int = 0


@dataclass
class DrainAlert:
    triggered: bool = False
    dev_sold_percent: float = 0.0
    minutes_since_launch: int = 0
    sell_count: int = 0


@dataclass
class BundleRisk:
    score: int = 0
    gini_coefficient: float = 0.0
    sampled_buys: int = 0


@dataclass
class DevProfileResult:
    reputation: DevReputation = field(default_factory=DevReputation)
    drain_alert: DrainAlert = field(default_factory=DrainAlert)
    bundle_risk: BundleRisk = field(default_factory=BundleRisk)
    color: str = GREEN
    signals: list[str] = field(default_factory=list)


def reputation_from_counts(previous: int, rugged: int, successful: int) -> DevReputation:
    if rugged > 2:
        label, score = "SERIAL_RUGGER", max(0, 20 - rugged * 5)
    elif successful > 0:
        label, score = "ALPHA_DEV", min(100, 70 + successful * 10)
    elif previous > 0 and rugged == 0:
        label, score = "TRUSTED", 60
    elif rugged > 0:
        label, score = "SUSPICIOUS", 30
    else:
        label, score = "UNKNOWN", 50
    return DevReputation(
        score=score,
        label=label,
        previous_projects=previous,
        rugged_projects=rugged,
        successful_projects=successful,
    )


def drain_from_trades(
    creator_trades: Sequence[WalletTransaction],
    launched_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> DrainAlert:
    now = now or datetime.now(timezone.utc)
    launched_at = as_utc(launched_at)
    minutes = int((now - launched_at).total_seconds() // 60) if launched_at else 0

    bought = sum(tx.amount_usd or 0 for tx in creator_trades if tx.side == "buy")
    sells = [tx for tx in creator_trades if tx.side == "sell"]
    sold = sum(tx.amount_usd or 0 for tx in sells)
    if bought > 0:
        sold_pct = min(100.0, sold / bought * 100)
    else:
        sold_pct = 100.0 if sold > 0 else 0.0

    early_sell = False
    if launched_at:
        window_end = launched_at + timedelta(minutes=DRAIN_WINDOW_MINUTES)
        early_sell = any(as_utc(tx.timestamp) <= window_end for tx in sells)

    return DrainAlert(
        triggered=early_sell and sold_pct >= DRAIN_SOLD_PERCENT,
        dev_sold_percent=sold_pct,
        minutes_since_launch=minutes,
        sell_count=len(sells),
    )


def gini(values: Sequence[float]) -> float:
    """0 = perfectly even, approaching 1 = one holder has everything."""
    ordered = sorted(v for v in values if v >= 0)
    n = len(ordered)
    total = sum(ordered)
    if n < 2 or total <= 0:
        return 0.0
    weighted = sum((i + 1) * v for i, v in enumerate(ordered))
    return (2 * weighted) / (n * total) - (n + 1) / n


def bundle_risk_from_buys(amounts: Sequence[float]) -> BundleRisk:
    coefficient = gini(amounts)
    return BundleRisk(
        score=round_half_up(coefficient * 100),
        gini_coefficient=coefficient,
        sampled_buys=len(amounts),
    )


def build_dev_profile(reputation: DevReputation, drain: DrainAlert, bundle: BundleRisk) -> DevProfileResult:
    signals = []
    if reputation.label == "SERIAL_RUGGER":
        signals.append(f"Serial rugger: {reputation.rugged_projects} previous rugs")
    elif reputation.label == "ALPHA_DEV":
        signals.append(f"Alpha dev: {reputation.successful_projects} successful projects")
    elif reputation.previous_projects == 0:
        signals.append("New dev: no previous history")

    if drain.triggered:
        signals.append(f"Immediate exit: dev sold {drain.dev_sold_percent:.0f}% within {DRAIN_WINDOW_MINUTES}min of launch")
    elif drain.dev_sold_percent > 0:
        signals.append(f"Dev sold {drain.dev_sold_percent:.0f}% of position")

    if bundle.score > 70:
        signals.append(f"High bundle risk: {bundle.score}% early-buyer concentration")
    elif bundle.score > 40:
        signals.append(f"Moderate bundle concentration: {bundle.score}%")

    if reputation.label == "SERIAL_RUGGER" or drain.triggered or bundle.score > 70:
        color = RED
    elif reputation.label == "SUSPICIOUS" or bundle.score > 40 or drain.dev_sold_percent > 50:
        color = YELLOW
    else:
        color = GREEN

    return DevProfileResult(reputation=reputation, drain_alert=drain, bundle_risk=bundle, color=color, signals=signals)


async def compute_dev_profile(
    db: AsyncSession,
    token: Token,
    now: Optional[datetime] = None,
) -> DevProfileResult:
    reputation = DevReputation()
    drain = DrainAlert()

    if token.creator_address:
        row = (await db.execute(
            select(
                func.count(Token.id),
                func.count(Token.id).filter(Token.liquidity < RUGGED_LIQUIDITY_USD),
                func.count(Token.id).filter(Token.market_cap >= SUCCESS_MARKET_CAP_USD),
            ).where(Token.creator_address == token.creator_address, Token.id != token.id)
        )).one()
        reputation = reputation_from_counts(row[0] or 0, row[1] or 0, row[2] or 0)

        creator_trades = (await db.execute(
            select(WalletTransaction).where(
                WalletTransaction.token_id == token.id,
                WalletTransaction.wallet_address == token.creator_address,
            )
        )).scalars().all()
        drain = drain_from_trades(creator_trades, token.pair_created_at, now)

    early_buys = (await db.execute(
        select(WalletTransaction.amount_usd)
        .where(WalletTransaction.token_id == token.id, WalletTransaction.side == "buy")
        .order_by(WalletTransaction.timestamp.asc())
        .limit(EARLY_BUYER_SAMPLE)
    )).scalars().all()
    bundle = bundle_risk_from_buys([amount or 0.0 for amount in early_buys])

    return build_dev_profile(reputation, drain, bundle)
