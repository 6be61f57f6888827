from __future__ import annotations
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from edge_engine.services.records import RawTokenRecord

logger = logging.getLogger(__name__)

MAX_SANE_PRICE = 1e12


@dataclass(frozen=True)
class FilterConfig:
    min_liquidity: float = 10_000
    min_volume_24h: float = 5_000
    min_market_cap: float = 10_000
    min_age_hours: Optional[float] = None


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def rejection_reason(record: RawTokenRecord, config: FilterConfig, now: Optional[float] = None) -> Optional[str]:
    """Why a record fails the thresholds, or None when it passes."""
    if not record.address or not record.symbol or not record.name:
        return "missing identity"

    if (_number(record.liquidity) or 0) < config.min_liquidity:
        return "liquidity"
    if (_number(record.volume_24h_usd) or 0) < config.min_volume_24h:
        return "volume"
    if (_number(record.market_cap) or 0) < config.min_market_cap:
        return "market cap"

    if config.min_age_hours is not None:
        last_trade = _number(record.last_trade_unix_time)
        if last_trade:
            age_hours = ((now if now is not None else time.time()) - last_trade) / 3600
            if age_hours < config.min_age_hours:
                return "too young"

    price = _number(record.price)
    if price is None or price <= 0 or price > MAX_SANE_PRICE:
        return "price"
    return None


def filter_tokens(records: Iterable[RawTokenRecord], config: FilterConfig, now: Optional[float] = None) -> list[RawTokenRecord]:
    kept = []
    rejected = 0
    for record in records:
        reason = rejection_reason(record, config, now)
        if reason is None:
            kept.append(record)
        else:
            rejected += 1
            logger.debug(f"Filtered {record.symbol or record.address}: {reason}")
    if rejected:
        logger.info(f"Filter kept {len(kept)} tokens, rejected {rejected}")
    return kept
