from __future__ import annotations
from datetime import datetime
from sqlalchemy import String, Float, Integer, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from edge_engine.database import Base


class SmartWallet(Base):
    __tablename__ = "smart_wallets"

    address: Mapped[str] = mapped_column(String(64), primary_key=True)
    smart_score: Mapped[float] = mapped_column(Float, default=0.0)  # 0-100
    total_trades: Mapped[int] = mapped_column(Integer, default=0)
    win_rate: Mapped[float] = mapped_column(Float, default=0.0)
    avg_trade_usd: Mapped[float] = mapped_column(Float, default=0.0)
    last_active: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
