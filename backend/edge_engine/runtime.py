"""Wires settings into clients, services and job queues for one process."""
from __future__ import annotations
import asyncio
import functools
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from edge_engine.cache.token_cache import TokenCache
from edge_engine.config import Settings
from edge_engine.database import build_engine, build_session_factory, init_db
from edge_engine.services.birdeye import BirdeyeClient
from edge_engine.services.data_provider import FetchThresholds, TokenFetcher
from edge_engine.services.dexscreener import DexScreenerClient
from edge_engine.services.gmgn import GmgnClient
from edge_engine.services.helius import HeliusClient
from edge_engine.services.ingestor import Ingestor
from edge_engine.services.intelligence import IntelligenceService
from edge_engine.services.mock_tokens import MockTokenProvider
from edge_engine.services.rate_limiter import RateLimiter
from edge_engine.services.summarizer import TokenSummarizer
from edge_engine.services.token_filter import FilterConfig
from edge_engine.workers.ai_worker import run_ai_interpretation
from edge_engine.workers.queues import JobQueue
from edge_engine.workers.scan_worker import run_token_scan
from edge_engine.workers.scoring_worker import run_scoring_cycle
from edge_engine.workers.snapshot_worker import run_snapshot_cycle
from edge_engine.workers.wallet_worker import run_wallet_intelligence

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    cache: TokenCache
    rate_limiter: RateLimiter
    fetcher: TokenFetcher
    ingestor: Ingestor
    intelligence: IntelligenceService
    queues: list[JobQueue] = field(default_factory=list)

    async def init(self):
        await init_db(self.engine)

    def start(self):
        for queue in self.queues:
            queue.start()
        logger.info(f"Started queues: {', '.join(q.name for q in self.queues) or 'none'}")

    async def close(self):
        await asyncio.gather(*(queue.close() for queue in self.queues), return_exceptions=True)
        await self.cache.close()
        await self.engine.dispose()
        logger.info("Runtime closed")


def build_fetcher(settings: Settings, rate_limiter: RateLimiter) -> TokenFetcher:
    fallbacks = [GmgnClient(), DexScreenerClient()]
    if settings.mock_fallback_enabled:
        fallbacks.append(MockTokenProvider())
    primary = BirdeyeClient(
        settings.birdeye_api_key,
        rate_limiter,
        max_retries=settings.fetch_max_retries,
        backoff_base=settings.fetch_backoff_base,
    )
    return TokenFetcher(
        primary,
        fallbacks,
        rate_limiter,
        page_size=settings.fetch_page_size,
        page_delay=settings.fetch_page_delay,
        max_consecutive_errors=settings.fetch_max_consecutive_errors,
        cache_ttl=settings.fetch_cache_ttl,
    )


def build_queues(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    cache: TokenCache,
    fetcher: TokenFetcher,
    ingestor: Ingestor,
) -> list[JobQueue]:
    common = {"attempts": settings.job_attempts, "backoff": settings.job_backoff_seconds}
    queues = []

    if settings.ingestion_enabled:
        thresholds = FetchThresholds(
            min_liquidity=settings.ingestion_min_liquidity,
            min_volume_24h=settings.ingestion_min_volume,
            min_market_cap=settings.ingestion_min_market_cap,
            max_tokens=settings.ingestion_max_tokens,
        )
        filter_config = FilterConfig(
            min_liquidity=settings.ingestion_min_liquidity,
            min_volume_24h=settings.ingestion_min_volume,
            min_market_cap=settings.ingestion_min_market_cap,
            min_age_hours=settings.ingestion_min_age_hours,
        )
        queues.append(JobQueue(
            "token-scan",
            functools.partial(run_token_scan, fetcher, ingestor, thresholds, filter_config, cache),
            interval=settings.ingestion_interval_seconds,
            lock_duration=settings.scan_lock_seconds,
            run_immediately=True,
            **common,
        ))
    else:
        logger.info("Ingestion disabled, token-scan queue not scheduled")

    if settings.helius_api_key:
        helius = HeliusClient(settings.helius_api_key)
        queues.append(JobQueue(
            "wallet-intelligence",
            functools.partial(run_wallet_intelligence, session_factory, helius, ingestor),
            interval=settings.wallet_interval_seconds,
            lock_duration=settings.wallet_lock_seconds,
            run_immediately=False,
            **common,
        ))
    else:
        logger.info("HELIUS_API_KEY not set, wallet-intelligence queue not scheduled")

    if settings.openai_api_key:
        summarizer = TokenSummarizer(settings.openai_api_key, settings.openai_model)
        queues.append(JobQueue(
            "ai-interpretation",
            functools.partial(run_ai_interpretation, session_factory, summarizer),
            interval=settings.ai_interval_seconds,
            lock_duration=settings.ai_lock_seconds,
            run_immediately=False,
            **common,
        ))
    else:
        logger.info("OPENAI_API_KEY not set, ai-interpretation queue not scheduled")

    queues.append(JobQueue(
        "snapshot",
        functools.partial(
            run_snapshot_cycle,
            session_factory,
            fetcher,
            limit=settings.snapshot_batch_limit,
            request_delay=settings.snapshot_request_delay,
        ),
        interval=settings.snapshot_interval_seconds,
        lock_duration=settings.snapshot_lock_seconds,
        run_immediately=False,
        **common,
    ))
    queues.append(JobQueue(
        "scoring",
        functools.partial(
            run_scoring_cycle,
            session_factory,
            cache,
            limit=settings.scoring_batch_limit,
            sectors_ttl=settings.cache_sectors_ttl,
        ),
        interval=settings.scoring_interval_seconds,
        lock_duration=settings.scoring_lock_seconds,
        run_immediately=False,
        **common,
    ))
    return queues


def build_runtime(settings: Settings, cache: Optional[TokenCache] = None, with_queues: bool = True) -> Runtime:
    engine = build_engine(settings)
    session_factory = build_session_factory(engine)
    cache = cache if cache is not None else TokenCache.from_url(settings.redis_url)
    rate_limiter = RateLimiter(
        min_interval=settings.fetch_min_request_interval,
        cooldown_seconds=settings.rate_limit_cooldown_seconds,
    )
    fetcher = build_fetcher(settings, rate_limiter)
    ingestor = Ingestor(
        session_factory,
        batch_size=settings.ingest_batch_size,
        breaker_threshold=settings.ingest_breaker_threshold,
        max_parallel=settings.ingest_max_parallel,
    )
    intelligence = IntelligenceService(
        session_factory,
        cache,
        ttl=settings.cache_intelligence_ttl,
        sectors_ttl=settings.cache_sectors_ttl,
        timeout=settings.intelligence_timeout_seconds,
    )
    queues = build_queues(settings, session_factory, cache, fetcher, ingestor) if with_queues else []
    return Runtime(
        settings=settings,
        engine=engine,
        session_factory=session_factory,
        cache=cache,
        rate_limiter=rate_limiter,
        fetcher=fetcher,
        ingestor=ingestor,
        intelligence=intelligence,
        queues=queues,
    )
