from __future__ import annotations
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./edge_engine.db"
    redis_url: str = "redis://localhost:6379/0"
    log_level: str = "INFO"

    birdeye_api_key: str = ""
    helius_api_key: str = ""
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    frontend_url: str = "http://localhost:3000"
    extra_cors_origins: str = ""  # comma-separated additional origins for production

    # Ingestion thresholds
    ingestion_enabled: bool = True
    ingestion_interval_seconds: int = 120
    ingestion_min_liquidity: float = 10_000
    ingestion_min_volume: float = 5_000
    ingestion_min_market_cap: float = 10_000
    ingestion_min_age_hours: Optional[float] = None
    ingestion_max_tokens: int = 200

    # Fetcher
    fetch_min_request_interval: float = 0.2  # seconds between primary requests
    fetch_page_size: int = 50
    fetch_page_delay: float = 1.5
    fetch_max_retries: int = 3
    fetch_backoff_base: float = 1.0
    fetch_max_consecutive_errors: int = 3
    fetch_cache_ttl: float = 30.0
    rate_limit_cooldown_seconds: float = 60.0
    mock_fallback_enabled: bool = True

    # Ingestor
    ingest_batch_size: int = 10
    ingest_breaker_threshold: int = 3
    ingest_max_parallel: int = 5

    # Queues: interval / lock duration in seconds
    wallet_interval_seconds: int = 300
    ai_interval_seconds: int = 900
    snapshot_interval_seconds: int = 300
    scoring_interval_seconds: int = 600
    scan_lock_seconds: int = 60
    wallet_lock_seconds: int = 120
    ai_lock_seconds: int = 60
    snapshot_lock_seconds: int = 60
    scoring_lock_seconds: int = 120
    job_attempts: int = 3
    job_backoff_seconds: float = 5.0

    # Snapshot / scoring job sizes
    snapshot_batch_limit: int = 50
    snapshot_request_delay: float = 0.3
    scoring_batch_limit: int = 100

    # Cache TTLs
    cache_list_ttl: int = 10
    cache_detail_ttl: int = 20
    cache_intelligence_ttl: int = 60
    cache_sectors_ttl: int = 300

    intelligence_timeout_seconds: float = 5.0

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def async_database_url(self) -> str:
        # Railway provides postgresql:// but SQLAlchemy async needs postgresql+asyncpg://
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.database_url


@lru_cache()
def get_settings() -> Settings:
    return Settings()
