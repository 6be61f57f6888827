"""Best-effort Redis cache: failures read as misses, never as exceptions."""
from __future__ import annotations
import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from edge_engine.cache.keys import intelligence_key, token_detail_key, token_list_key
from edge_engine.cache.token_cache import TokenCache


def mock_redis():
    redis = AsyncMock()
    redis.get.return_value = None
    return redis


class TestTokenCache:
    @pytest.mark.asyncio
    async def test_json_round_trip(self):
        redis = mock_redis()
        cache = TokenCache(redis)

        assert await cache.set_json("k", {"score": 76, "phase": "Aggressive"}, 60)
        redis.set.assert_awaited_once_with("k", json.dumps({"score": 76, "phase": "Aggressive"}), ex=60)

        redis.get.return_value = redis.set.await_args.args[1]
        assert await cache.get_json("k") == {"score": 76, "phase": "Aggressive"}

    @pytest.mark.asyncio
    async def test_miss_returns_none(self):
        cache = TokenCache(mock_redis())
        assert await cache.get_json("absent") is None

    @pytest.mark.asyncio
    async def test_bytes_payload_is_decoded(self):
        redis = mock_redis()
        redis.get.return_value = b'[1, 2, 3]'
        assert await TokenCache(redis).get_json("k") == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_read_failure_is_a_miss(self):
        redis = mock_redis()
        redis.get.side_effect = RedisConnectionError("connection refused")
        assert await TokenCache(redis).get_json("k") is None

    @pytest.mark.asyncio
    async def test_corrupt_payload_is_a_miss(self):
        redis = mock_redis()
        redis.get.return_value = "{not json"
        assert await TokenCache(redis).get_json("k") is None

    @pytest.mark.asyncio
    async def test_write_failure_reports_false(self):
        redis = mock_redis()
        redis.set.side_effect = RedisConnectionError("connection refused")
        redis.publish.side_effect = RedisConnectionError("connection refused")
        cache = TokenCache(redis)

        assert await cache.set_json("k", {"a": 1}, 30) is False
        assert await cache.publish("tokens:updated", {"count": 3}) is False

    @pytest.mark.asyncio
    async def test_without_redis_everything_misses(self):
        cache = TokenCache()
        assert await cache.get_json("k") is None
        assert await cache.set_json("k", 1, 30) is False
        assert await cache.delete("k") is False
        assert await cache.publish("c", {}) is False
        await cache.close()

    @pytest.mark.asyncio
    async def test_close_releases_connection(self):
        redis = mock_redis()
        cache = TokenCache(redis)
        await cache.close()
        redis.aclose.assert_awaited_once()
        assert await cache.get_json("k") is None


class TestKeys:
    def test_key_shapes(self):
        assert token_list_key("momentum", 2, 50) == "tokens:list:momentum:2:50"
        assert token_detail_key(7) == "tokens:detail:7"
        assert intelligence_key(7) == "intelligence:v3:7"
