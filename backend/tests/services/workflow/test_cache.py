"""Tests for the validation result cache.

Covers the in-memory fallback, the Redis path with a mocked client, and the
validator's cached entry points.
"""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import RedisError

from actiongraph.services.workflow.cache import (
    ValidationCache,
    get_validation_cache,
)
from actiongraph.services.workflow.exceptions import CycleError
from actiongraph.services.workflow.validator import DAGValidator


def _redis_cache(mock_redis: MagicMock, ttl: int = 300) -> ValidationCache:
    cache = ValidationCache(ttl=ttl)
    cache._redis = mock_redis
    cache._use_in_memory = False
    return cache


class TestInMemoryCache:
    """Tests for the in-memory fallback."""

    @pytest.mark.asyncio
    async def test_miss_then_hit(self) -> None:
        """Test a stored result is returned for the same fingerprint."""
        cache = ValidationCache()
        assert cache.uses_redis is False
        assert await cache.get("abc") is None

        assert await cache.set("abc", {"scheduled": ["start"]}) is True
        assert await cache.get("abc") == {"scheduled": ["start"]}
        assert await cache.get("other") is None

    @pytest.mark.asyncio
    async def test_expired_entries_are_dropped(self) -> None:
        """Test entries past their TTL read as misses."""
        cache = ValidationCache(ttl=0)
        await cache.set("abc", {"x": 1})

        assert await cache.get("abc") is None
        assert cache._in_memory_cache == {}

    @pytest.mark.asyncio
    async def test_delete_one_and_all(self) -> None:
        """Test single and full invalidation."""
        cache = ValidationCache()
        await cache.set("a", {"x": 1})
        await cache.set("b", {"x": 2})

        await cache.delete("a")
        assert await cache.get("a") is None
        assert await cache.get("b") == {"x": 2}

        await cache.delete()
        assert await cache.get("b") is None

    def test_global_cache_is_shared(self) -> None:
        """Test the module-level accessor returns one instance."""
        assert get_validation_cache() is get_validation_cache()


class TestRedisCache:
    """Tests for the Redis-backed path."""

    @pytest.mark.asyncio
    async def test_set_uses_setex_with_prefixed_key(self) -> None:
        """Test entries are written with the TTL under validation:<fp>."""
        mock_redis = MagicMock()
        mock_redis.setex = AsyncMock()
        cache = _redis_cache(mock_redis, ttl=60)

        assert await cache.set("fp", {"scheduled": ["start"]}) is True
        mock_redis.setex.assert_awaited_once_with(
            "validation:fp", 60, json.dumps({"scheduled": ["start"]})
        )

    @pytest.mark.asyncio
    async def test_get_decodes_json(self) -> None:
        """Test cached JSON is decoded."""
        mock_redis = MagicMock()
        mock_redis.get = AsyncMock(return_value='{"scheduled": ["start"]}')
        cache = _redis_cache(mock_redis)

        assert await cache.get("fp") == {"scheduled": ["start"]}
        mock_redis.get.assert_awaited_once_with("validation:fp")

    @pytest.mark.asyncio
    async def test_redis_errors_degrade_to_miss(self) -> None:
        """Test a Redis outage never fails validation."""
        mock_redis = MagicMock()
        mock_redis.get = AsyncMock(side_effect=RedisError("down"))
        mock_redis.setex = AsyncMock(side_effect=RedisError("down"))
        mock_redis.delete = AsyncMock(side_effect=RedisError("down"))
        cache = _redis_cache(mock_redis)

        assert await cache.get("fp") is None
        assert await cache.set("fp", {"x": 1}) is False
        assert await cache.delete("fp") is False

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(self) -> None:
        """Test undecodable JSON reads as a miss."""
        mock_redis = MagicMock()
        mock_redis.get = AsyncMock(return_value="{not json")
        cache = _redis_cache(mock_redis)

        assert await cache.get("fp") is None

    @pytest.mark.asyncio
    async def test_delete_all_removes_prefixed_keys(self) -> None:
        """Test full invalidation deletes every validation key."""
        mock_redis = MagicMock()
        mock_redis.keys = AsyncMock(return_value=["validation:a", "validation:b"])
        mock_redis.delete = AsyncMock()
        cache = _redis_cache(mock_redis)

        assert await cache.delete() is True
        mock_redis.keys.assert_awaited_once_with("validation:*")
        mock_redis.delete.assert_awaited_once_with("validation:a", "validation:b")


class TestValidatorCaching:
    """Tests for DAGValidator cached entry points."""

    @pytest.mark.asyncio
    async def test_valid_definition_is_cached(self, make_definition, settings) -> None:
        """Test the first validation stores the topology summary."""
        cache = ValidationCache()
        validator = DAGValidator(settings, cache=cache)
        definition = make_definition({"ref": "a", "componentId": "x", "dependsOn": ["start"]})

        topology = await validator.validate_cached(definition)

        cached = await cache.get(topology.fingerprint)
        assert cached is not None
        assert cached["scheduled"] == ["start", "a"]

    @pytest.mark.asyncio
    async def test_cache_hit_skips_validation(self, make_definition, settings, monkeypatch) -> None:
        """Test a hit does not re-run structural checks."""
        cache = ValidationCache()
        validator = DAGValidator(settings, cache=cache)
        definition = make_definition({"ref": "a", "componentId": "x", "dependsOn": ["start"]})
        await validator.validate_cached(definition)

        calls = []
        original = validator.validate
        monkeypatch.setattr(
            validator, "validate", lambda d: calls.append(d) or original(d)
        )
        topology = await validator.validate_cached(definition)

        assert calls == []
        assert topology.scheduled == ["start", "a"]

    @pytest.mark.asyncio
    async def test_invalid_definition_is_not_cached(self, make_definition, settings) -> None:
        """Test failures raise every time and leave the cache empty."""
        cache = ValidationCache()
        validator = DAGValidator(settings, cache=cache)
        definition = make_definition(
            {"ref": "a", "componentId": "x", "params": {"v": "{{b.x}}"}, "dependsOn": ["start"]},
            {"ref": "b", "componentId": "x", "params": {"v": "{{a.x}}"}},
        )

        for _ in range(2):
            with pytest.raises(CycleError):
                await validator.validate_cached(definition)
        assert cache._in_memory_cache == {}

    @pytest.mark.asyncio
    async def test_cached_topology_result(self, make_definition, settings) -> None:
        """Test get_cached_topology returns the stored summary."""
        validator = DAGValidator(settings, cache=ValidationCache())
        definition = make_definition({"ref": "a", "componentId": "x", "dependsOn": ["start"]})

        first = await validator.get_cached_topology(definition)
        second = await validator.get_cached_topology(definition)

        assert first == second
        assert [level.refs for level in second.levels] == [["start"], ["a"]]
