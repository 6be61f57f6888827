"""Narrative, smart-money flow and sentiment context for a token.

Sector mindshare is a static baseline table (cached like a live feed would be)
until a social data source exists. Smart flow is real: it reads smart-wallet
activity from the store.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from edge_engine.cache.keys import SECTORS_KEY
from edge_engine.cache.token_cache import TokenCache
from edge_engine.models.smart_wallet import SmartWallet
from edge_engine.models.wallet_transaction import WalletTransaction
from edge_engine.services.scoring.common import GREEN, RED, YELLOW, clamp

SMART_WALLET_MIN_SCORE = 40
FLOW_WINDOW_HOURS = 24
DEFAULT_SECTOR = "MEMES"

SECTOR_KEYWORDS = [
    ("AI_AGENTS", ("ai", "agent", "gpt", "llm", "bot", "sentient")),
    ("MEMES", ("meme", "doge", "pepe", "cat", "dog", "frog", "based")),
    ("DEFI", ("defi", "yield", "lending", "swap", "amm", "vault")),
    ("GAMEFI", ("game", "nft", "play", "metaverse", "gaming")),
    ("POLITIFI", ("trump", "biden", "politics", "election", "vote")),
    ("INFRA", ("chain", "layer", "bridge", "oracle", "infra")),
]

# sector -> (mindshare score, 24h change)
BASELINE_SECTORS = {
    "AI_AGENTS": {"score": 75, "change": 15},
    "MEMES": {"score": 60, "change": -5},
    "DEFI": {"score": 40, "change": -10},
    "GAMEFI": {"score": 35, "change": 5},
    "POLITIFI": {"score": 25, "change": -20},
    "INFRA": {"score": 30, "change": 0},
}


@dataclass
class NarrativeResult:
    sector: str
    mindshare: float
    trending: bool
    heatmap: str  # HOT / WARM / NEUTRAL / COLD
    sectors: list[dict] = field(default_factory=list)


@dataclass
class SmartFlowResult:
    score: int = 50
    recent_entries: int = 0
    recent_exits: int = 0
    net_flow_usd: float = 0.0
    alert: Optional[str] = None


@dataclass
class SentimentResult:
    overall: str = "NEUTRAL"
    score: int = 50
    key_insight: str = "No sentiment source configured"


@dataclass
class DegenIntelResult:
    narrative: NarrativeResult
    smart_flow: SmartFlowResult
    sentiment: SentimentResult
    color: str
    signals: list[str] = field(default_factory=list)


def detect_sector(symbol: str, name: str = "") -> str:
    text = f"{symbol} {name}".lower()
    for sector, keywords in SECTOR_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return sector
    return DEFAULT_SECTOR


async def load_sector_scores(cache: Optional[TokenCache], ttl: int = 300) -> dict[str, dict]:
    if cache is not None:
        cached = await cache.get_json(SECTORS_KEY)
        if isinstance(cached, dict) and cached:
            return cached
        await cache.set_json(SECTORS_KEY, BASELINE_SECTORS, ttl)
    return BASELINE_SECTORS


def narrative_from_sectors(sector: str, sector_scores: dict[str, dict]) -> NarrativeResult:
    data = sector_scores.get(sector) or {"score": 50, "change": 0}
    mindshare = float(data.get("score", 50))
    if mindshare > 70:
        heatmap = "HOT"
    elif mindshare > 50:
        heatmap = "WARM"
    elif mindshare < 25:
        heatmap = "COLD"
    else:
        heatmap = "NEUTRAL"
    sectors = sorted(
        ({"name": name, "score": d.get("score", 0), "change_24h": d.get("change", 0)} for name, d in sector_scores.items()),
        key=lambda s: s["score"],
        reverse=True,
    )
    return NarrativeResult(
        sector=sector,
        mindshare=mindshare,
        trending=float(data.get("change", 0)) > 10,
        heatmap=heatmap,
        sectors=sectors,
    )


async def compute_narrative(
    symbol: str,
    name: str = "",
    cache: Optional[TokenCache] = None,
    sectors_ttl: int = 300,
) -> NarrativeResult:
    scores = await load_sector_scores(cache, sectors_ttl)
    return narrative_from_sectors(detect_sector(symbol, name), scores)


def smart_flow_from_counts(entries: int, exits: int, net_flow: float) -> SmartFlowResult:
    alert = None
    if entries >= 3 and net_flow > 10_000:
        alert = f"Smart money entry: {entries} smart wallets bought ${net_flow / 1000:.0f}k"
    elif exits >= 3 and net_flow < -10_000:
        alert = f"Smart money exit: {exits} smart wallets sold"
    return SmartFlowResult(
        score=int(clamp(50 + (entries - exits) * 10)),
        recent_entries=entries,
        recent_exits=exits,
        net_flow_usd=net_flow,
        alert=alert,
    )


async def compute_smart_flow(
    db: AsyncSession,
    token_id: int,
    now: Optional[datetime] = None,
) -> SmartFlowResult:
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(hours=FLOW_WINDOW_HOURS)
    result = await db.execute(
        select(WalletTransaction.wallet_address, WalletTransaction.side, WalletTransaction.amount_usd)
        .join(SmartWallet, SmartWallet.address == WalletTransaction.wallet_address)
        .where(
            WalletTransaction.token_id == token_id,
            WalletTransaction.timestamp >= cutoff,
            SmartWallet.smart_score >= SMART_WALLET_MIN_SCORE,
        )
    )
    buyers, sellers = set(), set()
    net_flow = 0.0
    for wallet, side, amount in result.all():
        if side == "buy":
            buyers.add(wallet)
            net_flow += amount or 0
        else:
            sellers.add(wallet)
            net_flow -= amount or 0
    return smart_flow_from_counts(len(buyers), len(sellers), net_flow)


def build_degen_intel(narrative: NarrativeResult, smart_flow: SmartFlowResult) -> DegenIntelResult:
    sentiment = SentimentResult()
    signals = []
    if narrative.heatmap == "HOT":
        signals.append(f"{narrative.sector} is hot: {narrative.mindshare:.0f}% mindshare")
    if smart_flow.alert:
        signals.append(smart_flow.alert)
    elif smart_flow.recent_entries > smart_flow.recent_exits:
        signals.append(f"Smart money inflow: {smart_flow.recent_entries} entries")
    elif smart_flow.recent_exits > smart_flow.recent_entries:
        signals.append(f"Smart money exiting: {smart_flow.recent_exits} sellers")

    average = (narrative.mindshare + smart_flow.score + sentiment.score) / 3
    if average > 65:
        color = GREEN
    elif average < 35:
        color = RED
    else:
        color = YELLOW
    return DegenIntelResult(narrative=narrative, smart_flow=smart_flow, sentiment=sentiment, color=color, signals=signals)
