from edge_engine.models.token import Token
from edge_engine.models.market_snapshot import MarketSnapshot
from edge_engine.models.wallet_transaction import WalletTransaction
from edge_engine.models.smart_wallet import SmartWallet
from edge_engine.models.signal import Signal

__all__ = [
    "Token",
    "MarketSnapshot",
    "WalletTransaction",
    "SmartWallet",
    "Signal",
]
