from __future__ import annotations
from datetime import datetime
from sqlalchemy import String, Float, ForeignKey, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from edge_engine.database import Base


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"
    __table_args__ = (Index("ix_wallet_transactions_token_ts", "token_id", "timestamp"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    token_id: Mapped[int] = mapped_column(ForeignKey("tokens.id", ondelete="CASCADE"), nullable=False)
    wallet_address: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount_usd: Mapped[float] = mapped_column(Float, default=0.0)
    side: Mapped[str] = mapped_column(String(4), nullable=False)  # buy / sell
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # On-chain signature doubles as the idempotency key for repeated polling
    signature: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
