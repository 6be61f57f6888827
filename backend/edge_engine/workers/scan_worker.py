from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Optional

from edge_engine.cache.keys import TOKENS_UPDATED_CHANNEL
from edge_engine.cache.token_cache import TokenCache
from edge_engine.services.data_provider import FetchThresholds, TokenFetcher
from edge_engine.services.ingestor import IngestResult, Ingestor
from edge_engine.services.normalizer import normalize
from edge_engine.services.token_filter import FilterConfig, filter_tokens

logger = logging.getLogger(__name__)


async def run_token_scan(
    fetcher: TokenFetcher,
    ingestor: Ingestor,
    thresholds: FetchThresholds,
    filter_config: FilterConfig,
    cache: Optional[TokenCache] = None,
) -> IngestResult:
    """Fetch → filter → normalize → ingest, then tell listeners the list changed.

    ``UpstreamExhausted`` from the fetcher propagates so the queue retries.
    A tripped ingest breaker ends the cycle; the next interval tries again.
    """
    records = await fetcher.fetch_all(thresholds)
    kept = filter_tokens(records, filter_config)
    tokens = normalize(kept)
    logger.info(f"Token scan: {len(records)} fetched, {len(kept)} passed filters, {len(tokens)} normalized")

    result = await ingestor.ingest(tokens)
    if result.aborted:
        logger.error(
            f"Token scan aborted by ingest breaker after {result.failed_batches} failed batches"
        )
    else:
        logger.info(
            f"Token scan ingested {result.upserted_count} tokens, "
            f"{result.snapshot_count} snapshots, {result.failed_batches} failed batches"
        )

    if cache and result.upserted_count > 0:
        await cache.publish(TOKENS_UPDATED_CHANNEL, {
            "count": result.upserted_count,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
    return result
