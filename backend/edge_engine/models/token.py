from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Float, Integer, Boolean, DateTime, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from edge_engine.database import Base


class Token(Base):
    __tablename__ = "tokens"
    __table_args__ = (UniqueConstraint("contract", "chain", name="uq_tokens_contract_chain"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    contract: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    chain: Mapped[str] = mapped_column(String(20), nullable=False, default="solana")
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    symbol: Mapped[str] = mapped_column(String(20), nullable=False)
    pair_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    dex_id: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    logo_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Latest market metrics (mirrors the newest snapshot)
    price: Mapped[float] = mapped_column(Float, default=0.0)
    liquidity: Mapped[float] = mapped_column(Float, default=0.0)
    volume_24h: Mapped[float] = mapped_column(Float, default=0.0)
    market_cap: Mapped[float] = mapped_column(Float, default=0.0)
    fdv: Mapped[float] = mapped_column(Float, default=0.0)
    price_change_24h: Mapped[float] = mapped_column(Float, default=0.0)
    pair_created_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Security facts (snapshot job)
    mint_authority: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True, default=None)
    freeze_authority: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True, default=None)
    owner_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    creator_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    top10_holder_pct: Mapped[float] = mapped_column(Float, default=0.0)
    liquidity_locked: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True, default=None)

    # Derived scores (scoring job, last writer wins)
    momentum_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    conviction_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    threat_level: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)  # GREEN/YELLOW/RED/CRITICAL
    smart_wallet_flow: Mapped[int] = mapped_column(Integer, default=0)
    cluster_detected: Mapped[bool] = mapped_column(Boolean, default=False)
    ai_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_summary_updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    first_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    last_ingested_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
