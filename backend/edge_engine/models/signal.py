from __future__ import annotations
from datetime import datetime
from sqlalchemy import String, Float, ForeignKey, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from edge_engine.database import Base


class Signal(Base):
    """Latest composite read model per token, rewritten whole each scoring cycle."""

    __tablename__ = "signals"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    token_id: Mapped[int] = mapped_column(ForeignKey("tokens.id", ondelete="CASCADE"), unique=True, nullable=False)
    conviction_score: Mapped[float] = mapped_column(Float, default=0.0)
    momentum_phase: Mapped[str] = mapped_column(String(20), default="Dead")
    threat_level: Mapped[str] = mapped_column(String(10), default="YELLOW")
    edge_score: Mapped[float] = mapped_column(Float, default=0.0)
    edge_verdict: Mapped[str] = mapped_column(String(20), default="HOLD")  # STRONG_BUY/BUY/HOLD/CAUTION/AVOID
    confidence: Mapped[float] = mapped_column(Float, default=0.0)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
