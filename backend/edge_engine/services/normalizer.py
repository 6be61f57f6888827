from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Union

from edge_engine.services.errors import MalformedRecordError
from edge_engine.services.records import NormalizedToken, RawTokenRecord

logger = logging.getLogger(__name__)

DEFAULT_CHAIN = "solana"
MAX_NAME_LENGTH = 100
MAX_SYMBOL_LENGTH = 20


def _parse(value: Any, field: str, default: float = 0.0) -> float:
    """Parse a provider number; missing uses the default, garbage raises."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise MalformedRecordError(f"{field} is a boolean")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise MalformedRecordError(f"{field} not numeric: {value!r}")
    if number != number or number in (float("inf"), float("-inf")):
        raise MalformedRecordError(f"{field} not finite")
    return number


def normalize_record(record: RawTokenRecord, now: Optional[datetime] = None) -> NormalizedToken:
    if not record.address:
        raise MalformedRecordError("missing address")

    price = _parse(record.price, "price")
    market_cap = _parse(record.market_cap, "market_cap")
    fdv = _parse(record.fdv, "fdv", default=market_cap) or market_cap

    last_trade = _parse(record.last_trade_unix_time, "last_trade_unix_time")
    if last_trade > 0:
        pair_created_at = datetime.fromtimestamp(last_trade, tz=timezone.utc)
    else:
        pair_created_at = now or datetime.now(timezone.utc)

    return NormalizedToken(
        chain=DEFAULT_CHAIN,
        contract=record.address,
        name=(record.name or "Unknown")[:MAX_NAME_LENGTH],
        symbol=(record.symbol or "UNK")[:MAX_SYMBOL_LENGTH],
        pair_address=record.pair_address or record.address,
        dex_id=record.dex_id or record.source,
        price=price,
        liquidity=_parse(record.liquidity, "liquidity"),
        volume_24h=_parse(record.volume_24h_usd, "volume_24h_usd"),
        market_cap=market_cap,
        fdv=fdv,
        price_change_24h=_parse(record.price_change_24h_percent, "price_change_24h_percent"),
        pair_created_at=pair_created_at,
        logo_url=record.logo_uri,
    )


def normalize(
    records: Iterable[Union[RawTokenRecord, NormalizedToken]],
    now: Optional[datetime] = None,
) -> list[NormalizedToken]:
    """Map provider records to NormalizedToken, dropping the ones that don't parse.

    Already-normalized input passes through untouched.
    """
    out = []
    for record in records:
        if isinstance(record, NormalizedToken):
            out.append(record)
            continue
        try:
            out.append(normalize_record(record, now))
        except (MalformedRecordError, OverflowError, OSError) as e:
            logger.debug(f"Dropping malformed record {record.address}: {e}")
    return out
