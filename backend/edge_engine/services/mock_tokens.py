"""Static last-resort dataset so the scan job always has something to ingest."""
from __future__ import annotations
import logging
import time

from edge_engine.services.records import RawTokenRecord

logger = logging.getLogger(__name__)

DAY = 86400

# address, symbol, name, price, liquidity, volume_24h, price_change_24h, market_cap, age_days
MOCK_TOKENS = [
    ("DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263", "BONK", "Bonk", 0.00001245, 2_450_000, 8_500_000, 23.5, 850_000_000, 180),
    ("WENWENvqqNya429ubCdR81ZmD69brwQaaBYY6p3LCpk", "WEN", "Wen", 0.000085, 1_200_000, 4_200_000, 12.3, 425_000_000, 90),
    ("3S8qX1MsMqRbiwKg2cQyx7nis1oHMgaCuc9c4VfvVdPN", "MYRO", "Myro", 0.0245, 850_000, 2_100_000, -8.2, 245_000_000, 60),
    ("ukHH6c7mMyiWCf1b9pnWe25TSpkDDt3H5pQZgZ74J82", "BOME", "Book of Meme", 0.0089, 3_200_000, 12_000_000, 45.8, 890_000_000, 45),
    ("7GCihgDB8fe6KNjn2MYtkzZcRjQy3t9GHdC8uHYmW2hr", "POPCAT", "Popcat", 0.452, 1_800_000, 6_500_000, 34.2, 452_000_000, 120),
    ("HeLp6NuQkmYB4pYWo2zYs22mESHXPQYzXbB8n4V98jwC", "SLERF", "Slerf", 0.156, 950_000, 3_400_000, 18.9, 156_000_000, 40),
    ("MEW1gQWJ3nEXg2qgERiKu7FAFj79PHvQVREQUzScPP5", "MEW", "Cat in a Dogs World", 0.00234, 2_100_000, 7_800_000, 28.4, 234_000_000, 30),
    ("3fUV7W3JLLgpuJrxAWBUxgWKG8YqCjdqxHaVcxqkMtzw", "WIF", "Dogwifhat", 1.234, 4_500_000, 18_500_000, 42.7, 1_234_000_000, 150),
    ("9BB6NFEcjBCtnNLFko2FqVQBq8HHM13kCyYcdQbgpump", "PENG", "Peng", 0.0123, 680_000, 1_850_000, 15.3, 123_000_000, 20),
    ("5tN42n9vMi6ubp67Uy4NnmM5DMZYN8aS8GeB3bEDHr6E", "GIGA", "Giga Chad", 0.0456, 1_450_000, 5_200_000, 31.8, 456_000_000, 75),
]


class MockTokenProvider:
    name = "mock"

    async def fetch_tokens(self, limit: int = 100) -> list[RawTokenRecord]:
        now = int(time.time())
        logger.warning("Serving static mock token dataset")
        return [
            RawTokenRecord(
                address=address,
                symbol=symbol,
                name=name,
                price=price,
                liquidity=liquidity,
                volume_24h_usd=volume,
                market_cap=market_cap,
                fdv=market_cap,
                price_change_24h_percent=change,
                last_trade_unix_time=now - age_days * DAY,
                source=self.name,
            )
            for address, symbol, name, price, liquidity, volume, change, market_cap, age_days in MOCK_TOKENS[:limit]
        ]
