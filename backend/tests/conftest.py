"""Shared test fixtures."""
from __future__ import annotations
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from edge_engine.database import init_db
from edge_engine.models.token import Token


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite file per test; NullPool so no connection outlives its event loop."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


def make_token(contract: str = "Mint111", **overrides) -> Token:
    now = datetime.now(timezone.utc)
    fields = dict(
        contract=contract,
        chain="solana",
        name=f"Token {contract}",
        symbol=contract[:6].upper(),
        price=0.01,
        liquidity=150_000,
        volume_24h=300_000,
        market_cap=1_000_000,
        fdv=1_000_000,
        first_seen_at=now,
        last_seen_at=now,
    )
    fields.update(overrides)
    return Token(**fields)
