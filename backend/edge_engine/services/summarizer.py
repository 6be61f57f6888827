from __future__ import annotations
import logging
from typing import Optional

import httpx

from edge_engine.models.token import Token

logger = logging.getLogger(__name__)

OPENAI_API = "https://api.openai.com/v1"

SYSTEM_PROMPT = (
    "You are a Solana memecoin analyst. Given market and security data for a token, "
    "write a short plain-English read on it: what the numbers say about momentum, "
    "holder risk and liquidity. Two or three sentences, no financial advice disclaimers."
)


def build_prompt(token: Token) -> str:
    lines = [
        f"Token: {token.name} ({token.symbol})",
        f"Price: ${token.price or 0:.8f}",
        f"Market cap: ${token.market_cap or 0:,.0f}",
        f"Liquidity: ${token.liquidity or 0:,.0f}",
        f"24h volume: ${token.volume_24h or 0:,.0f}",
        f"24h price change: {token.price_change_24h or 0:.1f}%",
    ]
    if token.momentum_score is not None:
        lines.append(f"Momentum score: {token.momentum_score:.0f}/100")
    if token.conviction_score is not None:
        lines.append(f"Conviction score: {token.conviction_score:.0f}/100")
    if token.threat_level:
        lines.append(f"Threat level: {token.threat_level}")
    if token.top10_holder_pct is not None:
        lines.append(f"Top 10 holders: {token.top10_holder_pct:.1f}%")
    if token.mint_authority:
        lines.append("Mint authority is still active")
    if token.freeze_authority:
        lines.append("Freeze authority is still active")
    if token.cluster_detected:
        lines.append("Several smart wallets bought within minutes of each other")
    return "\n".join(lines)


class TokenSummarizer:
    """Short AI read of a token via the OpenAI chat completions API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self._transport = transport

    async def summarize(self, token: Token) -> Optional[str]:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(token)},
            ],
            "max_tokens": 200,
            "temperature": 0.4,
        }
        try:
            async with httpx.AsyncClient(timeout=30, transport=self._transport) as client:
                resp = await client.post(
                    f"{OPENAI_API}/chat/completions",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                resp.raise_for_status()
                data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"Summary failed for {token.symbol}: {e}")
            return None
        return content.strip() if isinstance(content, str) and content.strip() else None
