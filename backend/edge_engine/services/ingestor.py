from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edge_engine.models.market_snapshot import MarketSnapshot
from edge_engine.models.token import Token
from edge_engine.models.wallet_transaction import WalletTransaction
from edge_engine.services.errors import PersistenceError
from edge_engine.services.records import NormalizedToken, ParsedSwap

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    upserted_count: int = 0
    snapshot_count: int = 0
    failed_batches: int = 0
    aborted: bool = False


def _market_fields(token: NormalizedToken) -> dict:
    return {
        "name": token.name,
        "symbol": token.symbol,
        "pair_address": token.pair_address,
        "dex_id": token.dex_id,
        "logo_url": token.logo_url,
        "price": token.price,
        "liquidity": token.liquidity,
        "volume_24h": token.volume_24h,
        "market_cap": token.market_cap,
        "fdv": token.fdv,
        "price_change_24h": token.price_change_24h,
    }


async def upsert_token(db: AsyncSession, token: NormalizedToken, now: datetime) -> Token:
    """Insert or update one token by (contract, chain) and flush so it has an id."""
    result = await db.execute(
        select(Token).where(Token.contract == token.contract, Token.chain == token.chain)
    )
    row = result.scalar_one_or_none()
    fields = _market_fields(token)

    if row is None:
        row = Token(
            contract=token.contract,
            chain=token.chain,
            pair_created_at=token.pair_created_at,
            first_seen_at=now,
            last_seen_at=now,
            last_ingested_at=now,
            **fields,
        )
        db.add(row)
    else:
        for key, value in fields.items():
            setattr(row, key, value)
        if row.pair_created_at is None:
            row.pair_created_at = token.pair_created_at
        row.last_seen_at = now
        row.last_ingested_at = now

    await db.flush()
    return row


def snapshot_for(token: NormalizedToken, token_id: int, now: datetime) -> MarketSnapshot:
    return MarketSnapshot(
        token_id=token_id,
        price=token.price,
        liquidity=token.liquidity,
        volume=token.volume_24h,
        market_cap=token.market_cap,
        fdv=token.fdv,
        price_change_24h=token.price_change_24h,
        timestamp=now,
    )


class Ingestor:
    """Persists normalized tokens batch by batch, one transaction per record.

    A record that fails rolls back alone. A batch with any failure counts as a
    failed batch, and once ``breaker_threshold`` batches have failed without a
    single successful upsert the store is presumed down and the remaining
    batches are skipped.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        batch_size: int = 10,
        breaker_threshold: int = 3,
        max_parallel: int = 5,
    ):
        self.session_factory = session_factory
        self.batch_size = max(1, batch_size)
        self.breaker_threshold = breaker_threshold
        self._semaphore = asyncio.Semaphore(max(1, max_parallel))

    async def _ingest_one(self, token: NormalizedToken) -> bool:
        async with self._semaphore:
            now = datetime.now(timezone.utc)
            try:
                async with self.session_factory() as db:
                    async with db.begin():
                        row = await upsert_token(db, token, now)
                        db.add(snapshot_for(token, row.id, now))
                return True
            except SQLAlchemyError as e:
                logger.warning(str(PersistenceError(token.contract, e)))
                return False

    async def ingest(self, records: Iterable[NormalizedToken]) -> IngestResult:
        # Last occurrence wins when a provider repeats a contract within one pass
        unique: dict[tuple[str, str], NormalizedToken] = {}
        for record in records:
            unique[(record.contract, record.chain)] = record
        tokens = list(unique.values())

        result = IngestResult()
        for start in range(0, len(tokens), self.batch_size):
            batch = tokens[start:start + self.batch_size]
            outcomes = await asyncio.gather(*(self._ingest_one(t) for t in batch))
            succeeded = sum(1 for ok in outcomes if ok)
            result.upserted_count += succeeded
            result.snapshot_count += succeeded

            if succeeded < len(batch):
                result.failed_batches += 1
                logger.warning(
                    f"Batch at {start} persisted {succeeded}/{len(batch)} "
                    f"(failed batches: {result.failed_batches})"
                )

            if result.failed_batches >= self.breaker_threshold and result.upserted_count == 0:
                remaining = len(tokens) - (start + len(batch))
                logger.error(
                    f"Circuit breaker open after {result.failed_batches} failed batches "
                    f"with no successful writes; skipping {remaining} records"
                )
                result.aborted = True
                break

        logger.info(
            f"Ingested {result.upserted_count} tokens, {result.snapshot_count} snapshots, "
            f"{result.failed_batches} failed batches"
        )
        return result

    async def ingest_transactions(self, token_id: int, swaps: Sequence[ParsedSwap]) -> int:
        """Store swaps for a token, skipping signatures already persisted.

        Returns the number of new rows.
        """
        pending: dict[str, ParsedSwap] = {}
        for swap in swaps:
            if swap.signature and swap.signature not in pending:
                pending[swap.signature] = swap
        if not pending:
            return 0

        async with self.session_factory() as db:
            existing = await db.scalars(
                select(WalletTransaction.signature).where(WalletTransaction.signature.in_(list(pending)))
            )
            for signature in existing.all():
                pending.pop(signature, None)
            if not pending:
                return 0

            for swap in pending.values():
                db.add(self._transaction_row(token_id, swap))
            try:
                await db.commit()
                return len(pending)
            except IntegrityError:
                # Another worker inserted some of these between our read and write
                await db.rollback()

        inserted = 0
        for swap in pending.values():
            if await self._insert_single(token_id, swap):
                inserted += 1
        return inserted

    async def _insert_single(self, token_id: int, swap: ParsedSwap) -> bool:
        try:
            async with self.session_factory() as db:
                async with db.begin():
                    db.add(self._transaction_row(token_id, swap))
            return True
        except IntegrityError:
            logger.debug(f"Duplicate signature {swap.signature}")
            return False

    @staticmethod
    def _transaction_row(token_id: int, swap: ParsedSwap) -> WalletTransaction:
        return WalletTransaction(
            token_id=token_id,
            wallet_address=swap.wallet_address,
            amount_usd=swap.amount_usd,
            side=swap.side,
            timestamp=swap.timestamp,
            signature=swap.signature,
        )
