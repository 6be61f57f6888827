"""Cache key builders. Keys are plain strings so any client can read them."""
from __future__ import annotations

TOKENS_UPDATED_CHANNEL = "tokens:updated"
SECTORS_KEY = "narrative:sectors"


def token_list_key(sort: str, page: int, limit: int) -> str:
    return f"tokens:list:{sort}:{page}:{limit}"


def token_detail_key(token_id: int) -> str:
    return f"tokens:detail:{token_id}"


def intelligence_key(token_id: int) -> str:
    return f"intelligence:v3:{token_id}"
