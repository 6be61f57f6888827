"""Scoring engines on hand-built tokens, snapshots and trades."""
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from edge_engine.cache.keys import SECTORS_KEY
from edge_engine.models.market_snapshot import MarketSnapshot
from edge_engine.models.token import Token
from edge_engine.models.wallet_transaction import WalletTransaction
from edge_engine.services.scoring.alpha import alpha_level, compute_alpha
from edge_engine.services.scoring.common import round_half_up
from edge_engine.services.scoring.conviction import conviction_from_metrics, ratio_score
from edge_engine.services.scoring.degen_intel import (
    BASELINE_SECTORS,
    compute_narrative,
    detect_sector,
    narrative_from_sectors,
    smart_flow_from_counts,
)
from edge_engine.services.scoring.dev_profile import (
    bundle_risk_from_buys,
    drain_from_trades,
    gini,
    reputation_from_counts,
)
from edge_engine.services.scoring.edge_score import edge_from_components, edge_level
from edge_engine.services.scoring.market_integrity import integrity_from_transactions
from edge_engine.services.scoring.market_structure import find_key_levels, structure_from_snapshots, volatility_band
from edge_engine.services.scoring.momentum import detect_phase, momentum_from_changes, momentum_from_snapshots
from edge_engine.services.scoring.threat import compute_threat

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def tx(wallet: str, side: str, amount: float, at: datetime, sig: str = "") -> WalletTransaction:
    return WalletTransaction(
        token_id=1,
        wallet_address=wallet,
        side=side,
        amount_usd=amount,
        timestamp=at,
        signature=sig or f"{wallet}-{side}-{at.timestamp()}-{amount}",
    )


def safe_token(**overrides) -> Token:
    fields = dict(contract="Mint", symbol="SAFE", name="Safe", liquidity=150_000, market_cap=1_000_000, liquidity_locked=True)
    fields.update(overrides)
    return Token(**fields)


class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(87.49) == 87


class TestMomentum:
    def test_fifteen_percent_blend_hits_green_floor(self):
        result = momentum_from_changes(20, 10)
        assert result.score == 76
        assert result.phase == "Aggressive"
        assert result.color == "GREEN"
        assert result.market_phase == "MARKUP"

    def test_heavy_distribution_clamps_at_zero(self):
        result = momentum_from_changes(-60, -40)
        assert result.score == 0
        assert result.phase == "Dead"

    def test_sideways(self):
        result = momentum_from_changes(0, 0)
        assert result.score == 43
        assert result.phase == "Awakening"

    def test_no_snapshots_uses_default(self):
        result = momentum_from_snapshots([])
        assert (result.score, result.phase, result.color) == (25, "Dead", "RED")
        assert result.market_phase == "DEAD"

    def test_snapshot_history(self):
        snapshots = [
            MarketSnapshot(token_id=1, price=1.0, volume=100.0, timestamp=NOW - timedelta(hours=2)),
            MarketSnapshot(token_id=1, price=1.1, volume=100.0, timestamp=NOW - timedelta(hours=1)),
            MarketSnapshot(token_id=1, price=1.25, volume=105.0, timestamp=NOW),
        ]
        result = momentum_from_snapshots(snapshots)
        assert result.price_change_24h == pytest.approx(25.0)
        assert result.volume_change_24h == pytest.approx(5.0)
        assert result.score == 76

    def test_phase_detector_boundaries(self):
        assert detect_phase(39.9) == "DEAD"
        assert detect_phase(40) == "STEALTH"
        assert detect_phase(60) == "EARLY_EXPANSION"
        assert detect_phase(75) == "MARKUP"
        assert detect_phase(90) == "DISTRIBUTION"


def series(prices, volumes):
    start = NOW - timedelta(hours=len(prices))
    return [
        MarketSnapshot(token_id=1, price=p, volume=v, timestamp=start + timedelta(hours=i))
        for i, (p, v) in enumerate(zip(prices, volumes))
    ]


class TestMarketStructure:
    def test_short_history_is_neutral(self):
        result = structure_from_snapshots(series([1.0] * 9, [100] * 9))
        assert (result.phase, result.trend, result.volatility, result.score) == ("NEUTRAL", "NEUTRAL", "LOW", 50)
        assert result.support is None and result.resistance is None

    def test_steady_climb_on_rising_volume_is_expansion(self):
        prices = [1.03 ** i for i in range(20)]
        volumes = [100] * 15 + [200] * 5
        result = structure_from_snapshots(series(prices, volumes))
        assert result.trend == "BULLISH"
        assert result.phase == "EXPANSION"
        assert result.volatility == "MEDIUM"
        assert result.score == 95
        assert result.support is None and result.resistance is None

    def test_flat_chop_is_contraction_with_levels(self):
        prices = [1.0 if i % 2 == 0 else 1.04 for i in range(12)]
        result = structure_from_snapshots(series(prices, [100] * 12))
        assert result.trend == "NEUTRAL"
        assert result.phase == "CONTRACTION"
        assert result.score == 35
        assert result.support == pytest.approx(1.0)
        assert result.resistance == pytest.approx(1.04)

    def test_helpers_tolerate_zero_prices(self):
        assert volatility_band([0, 0, 0, 0, 0, 0]) == "LOW"
        assert find_key_levels([1.0] * 5) == (None, None)


class TestConviction:
    def test_fifteen_percent_liquidity_is_green(self):
        result = conviction_from_metrics(150_000, 1_000_000)
        assert result.score >= 76
        assert result.color == "GREEN"
        assert result.liquidity_ratio == pytest.approx(15.0)

    def test_thin_liquidity(self):
        result = conviction_from_metrics(10_000, 1_000_000)
        assert result.score == 10
        assert result.color == "RED"

    def test_ratio_score_bands(self):
        assert ratio_score(8) == 56
        assert ratio_score(3) == 31
        assert ratio_score(0) == 0

    def test_repeat_buyers_boost_is_capped(self):
        start = NOW - timedelta(hours=1)
        trades = []
        for i in range(8):
            for n in range(3):
                trades.append(tx(f"w{i}", "buy", 100, start + timedelta(minutes=i * 3 + n)))
        base = conviction_from_metrics(50_000, 1_000_000).score
        boosted = conviction_from_metrics(50_000, 1_000_000, transactions=trades)
        assert boosted.repeat_buyers == 8
        assert boosted.score == base + 10


class TestThreat:
    def test_mint_and_freeze_with_locked_liquidity(self):
        result = compute_threat(safe_token(mint_authority=True, freeze_authority=True))
        assert result.safety_score == 10
        assert result.level == "RED"
        assert result.color == "RED"
        assert result.flags.mintable and result.flags.freezable

    def test_everything_wrong_is_critical(self):
        token = safe_token(
            mint_authority=True,
            freeze_authority=True,
            top10_holder_pct=80,
            liquidity_locked=False,
            owner_address="Owner111",
        )
        result = compute_threat(token)
        assert result.safety_score == 0
        assert result.level == "CRITICAL"

    def test_clean_token(self):
        result = compute_threat(safe_token())
        assert result.safety_score == 100
        assert result.level == "GREEN"
        assert result.warnings == ["No significant threats detected"]

    def test_missing_token_is_neutral(self):
        result = compute_threat(None)
        assert result.safety_score == 50
        assert result.level == "YELLOW"


class TestAlpha:
    def test_weighted_blend(self):
        result = compute_alpha(
            momentum_from_changes(20, 10),
            conviction_from_metrics(150_000, 1_000_000),
            compute_threat(safe_token()),
        )
        # 76*0.40 + 76*0.35 + 100*0.25 = 82
        assert result.score == 82
        assert result.level == "DEGEN"

    def test_levels(self):
        assert alpha_level(80) == "HIGH"
        assert alpha_level(40) == "MODERATE"
        assert alpha_level(19) == "AVOID"


class TestMarketIntegrity:
    def test_no_trades_is_neutral(self):
        result = integrity_from_transactions([])
        assert result.score == 70
        assert result.color == "YELLOW"

    def test_self_trading_wallet_is_wash(self):
        trades = [
            tx("a", "buy", 100, NOW - timedelta(minutes=30)),
            tx("a", "sell", 100, NOW - timedelta(minutes=20)),
            tx("b", "buy", 200, NOW - timedelta(minutes=10)),
        ]
        result = integrity_from_transactions(trades)
        assert result.wash_trading.wash_volume_percent == pytest.approx(25.0)
        assert result.wash_trading.detected
        assert result.score == 88

    def test_uniform_bot_flow(self):
        trades = [
            tx(f"w{i}", "buy", 100 + i % 6, NOW - timedelta(seconds=10 * i))
            for i in range(18)
        ]
        result = integrity_from_transactions(trades)
        assert result.volume_audit.bot_probability == 100
        assert result.volume_audit.time_distribution == "BOT_PATTERN"
        assert not result.volume_audit.is_organic
        assert result.score == 70


class TestDevProfile:
    def test_reputation_labels(self):
        assert reputation_from_counts(5, 3, 0).label == "SERIAL_RUGGER"
        assert reputation_from_counts(5, 3, 0).score == 5
        assert reputation_from_counts(2, 0, 1).label == "ALPHA_DEV"
        assert reputation_from_counts(2, 0, 1).score == 80
        assert reputation_from_counts(2, 0, 0).label == "TRUSTED"
        assert reputation_from_counts(2, 1, 0).label == "SUSPICIOUS"
        assert reputation_from_counts(0, 0, 0).score == 50

    def test_gini(self):
        assert gini([1, 1, 1, 1]) == 0
        assert gini([0, 0, 0, 100]) == pytest.approx(0.75)
        assert gini([5]) == 0

    def test_bundle_risk(self):
        risk = bundle_risk_from_buys([0, 0, 0, 100])
        assert risk.score == 75
        assert risk.sampled_buys == 4

    def test_early_dump_triggers_drain(self):
        launch = NOW - timedelta(hours=2)
        trades = [
            tx("dev", "buy", 1000, launch + timedelta(minutes=1)),
            tx("dev", "sell", 600, launch + timedelta(minutes=30)),
        ]
        drain = drain_from_trades(trades, launch, NOW)
        assert drain.triggered
        assert drain.dev_sold_percent == pytest.approx(60.0)
        assert drain.minutes_since_launch == 120

    def test_late_sell_does_not_trigger(self):
        launch = NOW - timedelta(hours=3)
        trades = [
            tx("dev", "buy", 1000, launch + timedelta(minutes=1)),
            tx("dev", "sell", 900, launch + timedelta(minutes=90)),
        ]
        assert not drain_from_trades(trades, launch, NOW).triggered

    def test_naive_launch_time_is_treated_as_utc(self):
        launch = (NOW - timedelta(hours=1)).replace(tzinfo=None)
        drain = drain_from_trades([], launch, NOW)
        assert drain.minutes_since_launch == 60
        assert not drain.triggered


class TestDegenIntel:
    def test_sector_detection(self):
        assert detect_sector("GPTCAT") == "AI_AGENTS"
        assert detect_sector("PEPE2", "Pepe Two") == "MEMES"
        assert detect_sector("QQQ", "Zzz") == "MEMES"

    def test_narrative_heat(self):
        hot = narrative_from_sectors("AI_AGENTS", BASELINE_SECTORS)
        assert hot.mindshare == 75
        assert hot.trending
        assert hot.heatmap == "HOT"
        missing = narrative_from_sectors("UNLISTED", BASELINE_SECTORS)
        assert missing.mindshare == 50
        assert missing.heatmap == "NEUTRAL"

    def test_smart_flow(self):
        inflow = smart_flow_from_counts(3, 0, 20_000)
        assert inflow.score == 80
        assert inflow.alert is not None
        assert smart_flow_from_counts(0, 7, -50_000).score == 0

    @pytest.mark.asyncio
    async def test_sector_table_is_cached(self):
        cache = AsyncMock()
        cache.get_json.return_value = None
        result = await compute_narrative("GPTCAT", cache=cache, sectors_ttl=300)
        assert result.sector == "AI_AGENTS"
        cache.set_json.assert_awaited_once_with(SECTORS_KEY, BASELINE_SECTORS, 300)


class TestEdgeScore:
    def test_all_perfect_is_alpha(self):
        score, breakdown = edge_from_components(100, 100, 100, 100)
        assert score == 100
        assert edge_level(score) == ("ALPHA", "GREEN")
        assert breakdown["smart_flow"].weight == 30
        assert breakdown["safety"].contribution == 30

    def test_weighted_mix(self):
        score, _ = edge_from_components(50, 60, 40, 70)
        assert score == 53
        assert edge_level(score)[0] == "NEUTRAL"

    def test_level_boundaries(self):
        assert edge_level(80)[0] == "ALPHA"
        assert edge_level(65)[0] == "EDGE"
        assert edge_level(25)[0] == "RISKY"
        assert edge_level(24)[0] == "AVOID"
