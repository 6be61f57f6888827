from __future__ import annotations
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from edge_engine.cache.keys import token_detail_key, token_list_key
from edge_engine.database import session_scope
from edge_engine.models.signal import Signal
from edge_engine.models.token import Token
from edge_engine.runtime import Runtime
from edge_engine.schemas.token import SignalOut, TokenDetail, TokenListItem, TokenListResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tokens", tags=["tokens"])

SORT_COLUMNS = {
    "momentum": Token.momentum_score,
    "conviction": Token.conviction_score,
    "volume": Token.volume_24h,
    "liquidity": Token.liquidity,
    "market_cap": Token.market_cap,
    "change": Token.price_change_24h,
    "recent": Token.last_seen_at,
}

UNAVAILABLE = "Token data is temporarily unavailable"


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


async def get_db(runtime: Runtime = Depends(get_runtime)) -> AsyncIterator[AsyncSession]:
    async for session in session_scope(runtime.session_factory):
        yield session


@router.get("", response_model=TokenListResponse)
async def list_tokens(
    sort: str = Query("momentum"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    runtime: Runtime = Depends(get_runtime),
    db: AsyncSession = Depends(get_db),
):
    if sort not in SORT_COLUMNS:
        sort = "momentum"
    key = token_list_key(sort, page, limit)
    cached = await runtime.cache.get_json(key)
    if cached is not None:
        return cached

    column = SORT_COLUMNS[sort]
    try:
        total = (await db.execute(select(func.count(Token.id)))).scalar() or 0
        result = await db.execute(
            select(Token)
            .order_by(column.desc().nulls_last(), Token.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        tokens = result.scalars().all()
    except SQLAlchemyError as e:
        logger.error(f"Token list query failed: {e}")
        raise HTTPException(status_code=503, detail=UNAVAILABLE)

    response = TokenListResponse(
        tokens=[TokenListItem.model_validate(t) for t in tokens],
        total=total,
        page=page,
        limit=limit,
    )
    await runtime.cache.set_json(key, response.model_dump(mode="json"), runtime.settings.cache_list_ttl)
    return response


@router.get("/{token_id}", response_model=TokenDetail)
async def get_token_detail(
    token_id: int,
    runtime: Runtime = Depends(get_runtime),
    db: AsyncSession = Depends(get_db),
):
    key = token_detail_key(token_id)
    cached = await runtime.cache.get_json(key)
    if cached is not None:
        return cached

    try:
        token = await db.get(Token, token_id)
        signal = None
        if token is not None:
            signal = (await db.execute(
                select(Signal).where(Signal.token_id == token_id)
            )).scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error(f"Token detail query failed for {token_id}: {e}")
        raise HTTPException(status_code=503, detail=UNAVAILABLE)

    if token is None:
        raise HTTPException(status_code=404, detail="Token not found")

    detail = TokenDetail.model_validate(token)
    if signal is not None:
        detail.signal = SignalOut.model_validate(signal)
    await runtime.cache.set_json(key, detail.model_dump(mode="json"), runtime.settings.cache_detail_ttl)
    return detail


@router.get("/{token_id}/intelligence")
async def get_token_intelligence(
    token_id: int,
    runtime: Runtime = Depends(get_runtime),
):
    try:
        payload = await runtime.intelligence.get_intelligence_with_deadline(token_id)
    except SQLAlchemyError as e:
        logger.error(f"Intelligence failed for {token_id}: {e}")
        raise HTTPException(status_code=503, detail=UNAVAILABLE)
    if payload is None:
        raise HTTPException(status_code=404, detail="Token not found")
    return payload
