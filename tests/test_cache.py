import json
from unittest.mock import MagicMock

import pytest
import redis

from estates.cache import CACHE_KEYS, Cache, create_ai_response_hash, hash_string


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def empty_remote():
    client = MagicMock()
    client.get.return_value = None
    return client


class TestLocalTier:
    def test_evicts_oldest_entry_when_full(self):
        cache = Cache(redis_client=empty_remote(), max_local_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        assert cache.stats()["local_size"] == 2
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_overwrite_does_not_evict(self):
        cache = Cache(redis_client=empty_remote(), max_local_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)

        assert cache.get("a") == 10
        assert cache.get("b") == 2

    def test_entries_expire(self):
        clock = FakeClock()
        cache = Cache(redis_client=empty_remote(), clock=clock)
        cache.set("k", "v", ttl=10)

        clock.now += 9
        assert cache.get("k") == "v"
        clock.now += 2
        assert cache.get("k") is None

    def test_cleanup_local(self):
        clock = FakeClock()
        cache = Cache(redis_client=empty_remote(), clock=clock)
        cache.set("short", 1, ttl=5)
        cache.set("long", 2, ttl=500)

        clock.now += 10
        assert cache.cleanup_local() == 1
        assert cache.stats()["local_size"] == 1


class TestRemoteTier:
    def test_remote_hit_is_written_back_locally(self, fake_redis):
        fake_redis.set("settings", json.dumps({"rate": 0.5}))
        cache = Cache(redis_client=fake_redis)

        assert cache.get("settings") == {"rate": 0.5}
        fake_redis.delete("settings")
        assert cache.get("settings") == {"rate": 0.5}

        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5

    def test_set_writes_json_with_ttl(self, fake_redis):
        cache = Cache(redis_client=fake_redis)
        assert cache.set("areas", ["dubai-marina"], ttl=300) is True
        assert json.loads(fake_redis.get("areas")) == ["dubai-marina"]
        assert 0 < fake_redis.ttl("areas") <= 300

    def test_remote_errors_degrade_to_miss(self):
        client = MagicMock()
        client.get.side_effect = redis.ConnectionError("connection refused")
        client.setex.side_effect = redis.ConnectionError("connection refused")
        cache = Cache(redis_client=client)

        assert cache.get("missing") is None
        assert cache.set("k", 1) is False
        assert cache.get("k") == 1

    def test_delete_clears_both_tiers(self, fake_redis):
        cache = Cache(redis_client=fake_redis)
        cache.set("k", 1)
        assert cache.delete("k") is True
        assert cache.get("k") is None
        assert fake_redis.get("k") is None

    def test_invalidate_pattern(self, fake_redis):
        cache = Cache(redis_client=fake_redis)
        cache.set(CACHE_KEYS.property_details(1), {"id": 1})
        cache.set(CACHE_KEYS.property_details(2), {"id": 2})
        cache.set(CACHE_KEYS.sync_areas(), [])

        assert cache.invalidate_pattern("property:*") == 2
        assert cache.get("property:1") is None
        assert cache.get("sync:areas") == []


class TestGetOrFetch:
    def test_loader_called_once(self, cache_backend):
        loader = MagicMock(return_value={"days": 60})

        assert cache_backend.get_or_fetch("affiliate:setting:x", loader, 300) == {"days": 60}
        assert cache_backend.get_or_fetch("affiliate:setting:x", loader, 300) == {"days": 60}
        loader.assert_called_once()

    @pytest.mark.asyncio
    async def test_async_loader(self, cache_backend):
        calls = []

        async def loader():
            calls.append(1)
            return [1, 2, 3]

        assert await cache_backend.get_or_fetch_async("k", loader, 60) == [1, 2, 3]
        assert await cache_backend.get_or_fetch_async("k", loader, 60) == [1, 2, 3]
        assert len(calls) == 1


class TestHashing:
    def test_hash_string(self):
        assert hash_string("") == "0"
        assert hash_string("a") == "2p"
        assert hash_string("dubai marina 2br") == hash_string("dubai marina 2br")
        assert hash_string("dubai marina 2br") != hash_string("dubai marina 3br")

    def test_params_hash_ignores_key_order(self):
        assert create_ai_response_hash({"a": 1, "b": 2}) == create_ai_response_hash({"b": 2, "a": 1})

    def test_key_builders(self):
        assert CACHE_KEYS.area_benchmarks("Dubai-Marina") == "benchmarks:dubai-marina"
        assert CACHE_KEYS.affiliate_setting("minimum_payout_amount") == "affiliate:setting:minimum_payout_amount"
        assert CACHE_KEYS.search_results("villa").startswith("search:")
