from __future__ import annotations
import math
from datetime import datetime, timezone
from typing import Optional

GREEN = "GREEN"
BLUE = "BLUE"
YELLOW = "YELLOW"
ORANGE = "ORANGE"
RED = "RED"
CRITICAL = "CRITICAL"


def round_half_up(value: float) -> int:
    """Round x.5 away from zero for positives (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def color_tier(score: float) -> str:
    if score >= 76:
        return GREEN
    if score >= 56:
        return BLUE
    if score >= 31:
        return YELLOW
    return RED


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
